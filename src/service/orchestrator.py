"""비디오 생성 워크플로우 오케스트레이터.

pending → translating → generating → processing → completed
(종료 전 어느 단계에서든 error로 갈 수 있다)

- 번역은 요청/응답 안에서 동기로 처리한다. 실패하면 레코드를 error로 두고 바로 거절.
- 생성 + 후처리는 백그라운드 태스크에서 실행하고 RetryPolicy에 따라 재시도한다.
  (기본 최대 3회, 5s → 10s → 20s)
- 같은 레코드에 대해 동시에 두 개의 생성 작업이 돌지 않는다.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from core.exceptions import (
    GenerationDisabled,
    GenerationInProgress,
    InvalidStatusTransition,
    MissingFields,
    TranslationError,
    TranslationFailed,
)
from model.video import VideoRecord, VideoStatus
from processor.post_processor import ProcessedVideo
from processor.retry import RetryExhausted, RetryPolicy, run_with_retry
from service.model_catalog import GenerationConfig, TranslationPromptConfig, validate_generation_config
from service.video_repository import VideoRepository
from utility.timer import timer
from utility.validation import validate_resolution


class Translator(Protocol):
    async def translate(
        self, korean_text: str, model: str, prompt_config: TranslationPromptConfig | None = None
    ) -> str: ...


class VideoGenerator(Protocol):
    async def generate(self, english_prompt: str, config: GenerationConfig) -> str: ...


class PostProcessor(Protocol):
    async def process(self, gcs_uri: str, video_id: str) -> ProcessedVideo: ...


class NewVideoSync(Protocol):
    async def sync_new_video(self, video_id: str, gcs_uri: str) -> None: ...


@dataclass(frozen=True)
class GenerationRequest:
    korean_prompt: str
    user_email: str
    config: GenerationConfig = GenerationConfig()
    video_id: str | None = None


class GenerationOrchestrator:
    def __init__(
        self,
        repository: VideoRepository,
        translator: Translator,
        generator: VideoGenerator,
        post_processor: PostProcessor,
        sync_service: NewVideoSync | None = None,
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repository = repository
        self.translator = translator
        self.generator = generator
        self.post_processor = post_processor
        self.sync_service = sync_service
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._active: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    def is_active(self, video_id: str) -> bool:
        return video_id in self._active

    async def start(self, request: GenerationRequest) -> VideoRecord:
        """사전 검증 → 레코드 생성 → 번역 → 백그라운드 생성 예약.

        검증 실패는 레코드도 백그라운드 작업도 만들지 않고 바로 예외.
        반환 시점의 레코드는 generating 상태다.
        """
        if not await self.repository.is_generation_enabled():
            logger.warning("Video generation blocked by admin setting")
            raise GenerationDisabled

        missing = [
            name
            for name, value in (("koreanPrompt", request.korean_prompt), ("userEmail", request.user_email))
            if not (value or "").strip()
        ]
        if missing:
            raise MissingFields(f"Missing required fields: {', '.join(missing)}")
        validate_generation_config(request.config)

        video_id = request.video_id or uuid.uuid4().hex
        if video_id in self._active:
            raise GenerationInProgress

        self._active.add(video_id)
        try:
            record = await self._prepare_record(video_id, request)
            english_prompt = await self._translate(record, request.config)
            record = await self.repository.transition(
                video_id, VideoStatus.GENERATING, english_prompt=english_prompt
            )
        except BaseException:
            self._active.discard(video_id)
            raise

        task = asyncio.create_task(self._run_background(video_id, english_prompt, request.config))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Video generation workflow started | video_id={video_id}")
        return record

    async def _prepare_record(self, video_id: str, request: GenerationRequest) -> VideoRecord:
        record = await self.repository.get(video_id)
        if record is None:
            return await self.repository.create(
                VideoRecord(
                    id=video_id,
                    korean_prompt=request.korean_prompt.strip(),
                    user_email=request.user_email.strip(),
                    status=VideoStatus.PENDING,
                )
            )
        if record.status != VideoStatus.PENDING:
            raise InvalidStatusTransition(f"video {video_id} is already {record.status}")
        return record

    async def _translate(self, record: VideoRecord, config: GenerationConfig) -> str:
        await self.repository.transition(record.id, VideoStatus.TRANSLATING)
        with timer() as t:
            try:
                return await self.translator.translate(
                    record.korean_prompt, config.translation_model, config.translation_prompt
                )
            except Exception as e:
                message = str(e) if isinstance(e, TranslationError) else f"Translation failed: {e}"
                logger.error(
                    f"Workflow start failed | video_id={record.id} stage=translate "
                    f"elapsed={t.elapsed_ms}ms error={message}"
                )
                await self.repository.transition(record.id, VideoStatus.ERROR, error_message=message)
                raise TranslationFailed(f"Workflow start failed: {message}") from e

    async def _run_background(self, video_id: str, english_prompt: str, config: GenerationConfig) -> None:
        try:
            await self.run_generation(video_id, english_prompt, config)
        except asyncio.CancelledError:
            logger.warning(f"Background video generation cancelled | video_id={video_id}")
            raise
        except Exception as e:
            logger.exception(f"Background video generation crashed | video_id={video_id} error={e}")
        finally:
            self._active.discard(video_id)

    async def run_generation(self, video_id: str, english_prompt: str, config: GenerationConfig) -> None:
        """생성 + 후처리를 재시도 정책에 따라 실행하고 최종 상태를 기록한다."""
        stage = "generate"

        async def attempt(n: int) -> tuple[str, ProcessedVideo]:
            nonlocal stage
            if n > 0:
                logger.info(f"Retrying video generation | video_id={video_id} retry={n}/{self.retry_policy.max_retries}")
            stage = "generate"
            gcs_uri = await self.generator.generate(english_prompt, config)
            await self.repository.transition(video_id, VideoStatus.PROCESSING)
            stage = "process"
            processed = await self.post_processor.process(gcs_uri, video_id)
            return gcs_uri, processed

        with timer() as t:

            async def on_failure(n: int, error: Exception) -> None:
                logger.warning(
                    f"Video generation attempt failed | video_id={video_id} stage={stage} "
                    f"elapsed={t.elapsed_ms}ms retry={n}/{self.retry_policy.max_retries} "
                    f"error={type(error).__name__}: {error}"
                )

            try:
                gcs_uri, processed = await run_with_retry(
                    attempt,
                    self.retry_policy,
                    sleep=self._sleep,
                    label=f"Video generation {video_id}",
                    on_failure=on_failure,
                )
            except RetryExhausted as e:
                logger.error(
                    f"Video generation failed after all retries | video_id={video_id} stage={stage} "
                    f"elapsed={t.elapsed_ms}ms retries={e.retries} error={e.last_error}"
                )
                await self.repository.transition(video_id, VideoStatus.ERROR, error_message=str(e))
                return

            await self.repository.transition(
                video_id,
                VideoStatus.COMPLETED,
                gcs_uri=gcs_uri,
                video_url=processed.video_url,
                thumbnail_url=processed.thumbnail_url,
                duration=processed.duration,
                resolution=validate_resolution(processed.resolution, video_id),
            )
            logger.info(
                f"Video generation completed | video_id={video_id} elapsed={t.elapsed_ms}ms "
                f"video_url={processed.video_url} thumbnail_url={processed.thumbnail_url}"
            )

        if self.sync_service is not None:
            try:
                await self.sync_service.sync_new_video(video_id, gcs_uri)
            except Exception as e:
                logger.warning(f"Failed to register video with sync service | video_id={video_id} error={e}")

    async def wait_idle(self) -> None:
        """실행 중인 백그라운드 작업이 모두 끝날 때까지 기다린다."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
