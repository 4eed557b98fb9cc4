"""pytest 공용 fixture.

모든 테스트는 tmp_path 아래의 SQLite 파일 DB와 public/temp 디렉토리를 사용해 격리된다.
(저장소는 asyncio.to_thread로 여러 스레드에서 접근하므로 in-memory 대신 파일 DB)

외부 서비스(Gemini, Veo, GCS, FFmpeg)는 전부 가짜 객체로 대체한다.
- settings: 테스트용 Settings
- container: 가짜 협력 객체로 조립한 AppContainer
- client: container를 주입한 TestClient
"""

import asyncio
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from core.config import Settings
from core.container import AppContainer
from core.exceptions import StorageUnavailable
from main import app
from model.database import build_engine, create_db_and_tables
from processor.media import MediaInfo
from processor.post_processor import MediaPostProcessor
from processor.processing_queue import BoundedConcurrencyQueue
from processor.retry import RetryPolicy
from service.orchestrator import GenerationOrchestrator
from service.sync_service import VideoSyncService
from service.video_repository import VideoRepository

ADMIN_KEY = "test-admin-key"
GCS_URI = "gs://veo-output/videos/sample_0.mp4"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 1024


# --- 가짜 외부 서비스 ---


class FakeTranslator:
    def __init__(self, result: str = "A cat walking slowly on the beach at sunset", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def translate(self, korean_text, model=None, prompt_config=None):
        self.calls.append(korean_text)
        if self.error is not None:
            raise self.error
        return self.result


class FakeGenerator:
    """errors에 넣은 예외를 순서대로 던지고, 다 쓰면 uri를 반환한다."""

    def __init__(self, uri: str = GCS_URI, errors: list[Exception] | None = None):
        self.uri = uri
        self.errors = list(errors or [])
        self.calls = 0

    async def generate(self, english_prompt, config):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.uri


class FakeStorage:
    def __init__(self, objects: dict[str, bytes] | None = None, reachable: bool = True):
        self.objects = {GCS_URI: VIDEO_BYTES} if objects is None else objects
        self.reachable = reachable
        self.downloads: list[str] = []

    async def exists(self, location):
        if not self.reachable:
            raise StorageUnavailable(f"Bucket {location.bucket!r} is not reachable")
        return location.uri in self.objects

    async def download(self, location, destination):
        data = self.objects[location.uri]
        destination.write_bytes(data)
        self.downloads.append(location.uri)
        return len(data)


class FakeAnalyzer:
    def __init__(
        self,
        duration: int | None = 8,
        resolution: str | None = "1280x720",
        make_thumbnail: bool = True,
        gate: asyncio.Event | None = None,
    ):
        self.duration = duration
        self.resolution = resolution
        self.make_thumbnail = make_thumbnail
        self.gate = gate
        self.calls: list[str] = []

    async def analyze(self, video_path, thumbnail_path, video_id=""):
        self.calls.append(video_id)
        if self.gate is not None:
            await self.gate.wait()
        thumbnail = None
        if self.make_thumbnail:
            thumbnail_path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
            thumbnail = thumbnail_path
        return MediaInfo(duration=self.duration, resolution=self.resolution, thumbnail_path=thumbnail)


class RecordingSleep:
    """실제로 기다리지 않고 요청된 대기 시간만 기록한다."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class RecordingRepository(VideoRepository):
    """상태 전이 순서를 기록하는 저장소."""

    def __init__(self, engine):
        super().__init__(engine)
        self.transitions: list[tuple[str, str]] = []

    async def transition(self, video_id, status, **fields):
        record = await super().transition(video_id, status, **fields)
        self.transitions.append((video_id, str(status)))
        return record

    def statuses_for(self, video_id: str) -> list[str]:
        return [status for vid, status in self.transitions if vid == video_id]


# --- 조립 ---


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        PUBLIC_DIR=str(tmp_path / "public"),
        TEMP_DIR=str(tmp_path / "temp"),
        ADMIN_SECRET_KEY=ADMIN_KEY,
        VIDEO_SYNC_ON_STARTUP=False,
        LOG_LEVEL="WARNING",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_container(
    settings: Settings,
    translator=None,
    generator=None,
    storage=None,
    analyzer=None,
    sleep=None,
) -> AppContainer:
    engine = build_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)
    repository = RecordingRepository(engine)
    translator = translator or FakeTranslator()
    generator = generator or FakeGenerator()
    queue = BoundedConcurrencyQueue(max_concurrent=2)
    post_processor = MediaPostProcessor(
        storage=storage or FakeStorage(),
        analyzer=analyzer or FakeAnalyzer(),
        queue=queue,
        videos_dir=settings.videos_dir,
        thumbnails_dir=settings.thumbnails_dir,
        temp_dir=Path(settings.TEMP_DIR),
    )
    sync_service = VideoSyncService(repository, post_processor)
    orchestrator = GenerationOrchestrator(
        repository,
        translator,
        generator,
        post_processor,
        sync_service=sync_service,
        retry_policy=RetryPolicy(),
        sleep=sleep or RecordingSleep(),
    )
    return AppContainer(
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


# --- fixture ---


@pytest.fixture()
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture()
def container(settings):
    c = make_container(settings)
    yield c
    c.engine.dispose()


@contextmanager
def client_for(container: AppContainer) -> Iterator[TestClient]:
    """미리 만든 container를 app.state에 넣고 lifespan을 실행하는 TestClient."""
    app.state.container = container
    try:
        with TestClient(app) as c:
            yield c
    finally:
        del app.state.container


@pytest.fixture()
def client(container):
    with client_for(container) as c:
        yield c


@pytest.fixture()
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}
