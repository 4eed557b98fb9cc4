"""프로세스 단위 의존성 컨테이너.

DB 엔진, 외부 클라이언트, 큐, 백그라운드 서비스는 lifespan에서 한 번 만들어
app.state.container에 올려 두고 Depends(get_container)로 꺼내 쓴다.
Google 클라이언트(genai, storage)는 처음 호출될 때 생성된다.
"""

from dataclasses import dataclass

from google import genai
from loguru import logger
from sqlalchemy.engine import Engine

from core.config import Settings
from model.database import build_engine
from processor.media import MediaAnalyzer
from processor.poller import PollPolicy
from processor.post_processor import MediaPostProcessor
from processor.processing_queue import BoundedConcurrencyQueue
from processor.retry import RetryPolicy
from processor.storage import GcsStorage
from service.generation_service import VideoGenerationService
from service.orchestrator import GenerationOrchestrator
from service.sync_service import VideoSyncService
from service.translation_service import TranslationService
from service.video_repository import VideoRepository


def genai_client_factory(settings: Settings):
    def _create() -> genai.Client:
        if settings.GOOGLE_GENAI_USE_VERTEXAI:
            logger.info(
                f"Creating Gen AI client (Vertex AI) | project={settings.GOOGLE_CLOUD_PROJECT} "
                f"location={settings.GOOGLE_CLOUD_LOCATION}"
            )
            return genai.Client(
                vertexai=True,
                project=settings.GOOGLE_CLOUD_PROJECT,
                location=settings.GOOGLE_CLOUD_LOCATION,
            )
        logger.info("Creating Gen AI client (API key)")
        return genai.Client(api_key=settings.GOOGLE_API_KEY)

    return _create


@dataclass
class AppContainer:
    settings: Settings
    engine: Engine
    repository: VideoRepository
    translator: TranslationService
    generator: VideoGenerationService
    queue: BoundedConcurrencyQueue
    post_processor: MediaPostProcessor
    sync_service: VideoSyncService
    orchestrator: GenerationOrchestrator

    @classmethod
    def build(cls, settings: Settings) -> "AppContainer":
        engine = build_engine(settings.DATABASE_URL)
        repository = VideoRepository(engine)
        client_factory = genai_client_factory(settings)

        translator = TranslationService(client_factory, max_concurrent=settings.MAX_CONCURRENT_TRANSLATIONS)
        generator = VideoGenerationService(
            client_factory,
            output_gcs_uri=settings.GOOGLE_CLOUD_OUTPUT_GCS_URI,
            poll_policy=PollPolicy(
                min_interval=settings.POLL_MIN_INTERVAL_SECONDS,
                max_interval=settings.POLL_MAX_INTERVAL_SECONDS,
                backoff_factor=settings.POLL_BACKOFF_FACTOR,
                max_jitter=settings.POLL_MAX_JITTER_SECONDS,
                timeout=settings.POLL_TIMEOUT_SECONDS,
                max_consecutive_errors=settings.POLL_MAX_CONSECUTIVE_ERRORS,
                max_rate_limit_backoff=settings.POLL_MAX_RATE_LIMIT_BACKOFF_SECONDS,
            ),
            max_concurrent=settings.MAX_CONCURRENT_VIDEO_GENERATIONS,
        )

        queue = BoundedConcurrencyQueue(max_concurrent=settings.MAX_CONCURRENT_FFMPEG_PROCESSES)
        post_processor = MediaPostProcessor(
            storage=GcsStorage(project=settings.GOOGLE_CLOUD_PROJECT),
            analyzer=MediaAnalyzer(
                ffmpeg_bin=settings.FFMPEG_BIN,
                ffprobe_bin=settings.FFPROBE_BIN,
                timeout=settings.MEDIA_PROCESSING_TIMEOUT_SECONDS,
                thumbnail_size=settings.THUMBNAIL_SIZE,
            ),
            queue=queue,
            videos_dir=settings.videos_dir,
            thumbnails_dir=settings.thumbnails_dir,
            temp_dir=settings.TEMP_DIR,
        )
        sync_service = VideoSyncService(repository, post_processor)
        orchestrator = GenerationOrchestrator(
            repository,
            translator,
            generator,
            post_processor,
            sync_service=sync_service,
            retry_policy=RetryPolicy(
                max_retries=settings.GENERATION_MAX_RETRIES,
                base_delay=settings.GENERATION_RETRY_BASE_DELAY_SECONDS,
            ),
        )
        return cls(
            settings=settings,
            engine=engine,
            repository=repository,
            translator=translator,
            generator=generator,
            queue=queue,
            post_processor=post_processor,
            sync_service=sync_service,
            orchestrator=orchestrator,
        )

    async def aclose(self) -> None:
        """백그라운드 작업 취소 → 큐 정리 → DB 커넥션 풀 해제 순서로 닫는다."""
        await self.orchestrator.shutdown()
        await self.sync_service.shutdown()
        await self.queue.shutdown()
        self.engine.dispose()
        logger.info("Container closed")
