"""GenerationOrchestrator 시나리오 테스트.

외부 서비스는 가짜 객체, 재시도 대기는 RecordingSleep으로 즉시 진행한다.
"""

import asyncio

import pytest

import processor.post_processor as post_processor_module
from core.exceptions import (
    GenerationDisabled,
    GenerationError,
    GenerationInProgress,
    InvalidModelParameters,
    MissingFields,
    TranslationError,
    TranslationFailed,
)
from model.video import VideoRecord, VideoStatus
from service.model_catalog import GenerationConfig
from service.orchestrator import GenerationRequest
from conftest import FakeAnalyzer, FakeGenerator, FakeTranslator, RecordingSleep, make_container

PROMPT = "노을 지는 해변을 천천히 걷는 고양이"


def _request(video_id="vid_1", **overrides) -> GenerationRequest:
    values = dict(korean_prompt=PROMPT, user_email="user@test.com", video_id=video_id)
    values.update(overrides)
    return GenerationRequest(**values)


def _run_to_completion(container, request):
    async def scenario():
        await container.repository.seed_defaults()
        started = await container.orchestrator.start(request)
        await container.orchestrator.wait_idle()
        final = await container.repository.get(started.id)
        return started, final

    return asyncio.run(scenario())


class TestHappyPath:
    def test_completes_with_urls_and_metadata(self, settings):
        """번역 → 생성 → 후처리 → completed, URL/길이/해상도 저장."""
        container = make_container(settings)
        started, final = _run_to_completion(container, _request())

        assert started.status == VideoStatus.GENERATING
        assert started.english_prompt == "A cat walking slowly on the beach at sunset"

        assert final.status == VideoStatus.COMPLETED
        assert final.video_url == "/videos/vid_1.mp4"
        assert final.thumbnail_url == "/thumbnails/vid_1.jpg"
        assert final.duration == 8
        assert final.resolution == "1280x720"
        assert final.gcs_uri.startswith("gs://")
        assert final.completed_at is not None
        assert final.error_message is None
        assert container.post_processor.video_path("vid_1").exists()

        assert container.repository.statuses_for("vid_1") == [
            "translating",
            "generating",
            "processing",
            "completed",
        ]

    def test_generated_id_when_not_supplied(self, settings):
        container = make_container(settings)
        started, final = _run_to_completion(container, _request(video_id=None))
        assert len(started.id) == 32
        assert final.status == VideoStatus.COMPLETED

    def test_uses_pre_created_pending_record(self, settings):
        """먼저 만들어 둔 pending 레코드를 그대로 사용한다."""
        container = make_container(settings)

        async def scenario():
            await container.repository.create(
                VideoRecord(id="pre", korean_prompt=PROMPT, user_email="user@test.com")
            )
            await container.repository.seed_defaults()
            await container.orchestrator.start(_request(video_id="pre"))
            await container.orchestrator.wait_idle()
            return await container.repository.get("pre")

        assert asyncio.run(scenario()).status == VideoStatus.COMPLETED

    def test_invalid_resolution_dropped(self, settings):
        """해상도 형식이 틀리면 저장하지 않고 나머지는 그대로 완료."""
        container = make_container(settings, analyzer=FakeAnalyzer(resolution="1280×720"))
        _, final = _run_to_completion(container, _request())
        assert final.status == VideoStatus.COMPLETED
        assert final.resolution is None

    def test_registers_with_sync_service(self, settings):
        container = make_container(settings)

        async def scenario():
            await container.sync_service.initialize()
            await container.repository.seed_defaults()
            await container.orchestrator.start(_request())
            await container.orchestrator.wait_idle()

        asyncio.run(scenario())
        assert container.sync_service.get_status("vid_1").status == "synced"


class TestPreconditions:
    def test_disabled_generation(self, settings):
        """관리자가 끄면 레코드도 만들지 않고 거절."""
        container = make_container(settings)

        async def scenario():
            await container.repository.set_generation_enabled(False)
            with pytest.raises(GenerationDisabled):
                await container.orchestrator.start(_request())
            return await container.repository.get("vid_1")

        assert asyncio.run(scenario()) is None

    def test_missing_fields(self, settings):
        container = make_container(settings)

        async def scenario():
            await container.repository.seed_defaults()
            with pytest.raises(MissingFields, match="userEmail"):
                await container.orchestrator.start(_request(user_email="  "))

        asyncio.run(scenario())

    def test_invalid_model_parameters(self, settings):
        translator = FakeTranslator()
        container = make_container(settings, translator=translator)

        async def scenario():
            await container.repository.seed_defaults()
            with pytest.raises(InvalidModelParameters):
                await container.orchestrator.start(
                    _request(config=GenerationConfig(duration_seconds=12))
                )
            return await container.repository.get("vid_1")

        assert asyncio.run(scenario()) is None
        assert translator.calls == []

    def test_single_flight_per_id(self, settings):
        """같은 ID로 생성 중이면 GenerationInProgress."""
        gate = asyncio.Event()

        class SlowGenerator(FakeGenerator):
            async def generate(self, english_prompt, config):
                await gate.wait()
                return await super().generate(english_prompt, config)

        container = make_container(settings, generator=SlowGenerator())

        async def scenario():
            await container.repository.seed_defaults()
            await container.orchestrator.start(_request())
            assert container.orchestrator.is_active("vid_1")
            with pytest.raises(GenerationInProgress):
                await container.orchestrator.start(_request())
            gate.set()
            await container.orchestrator.wait_idle()
            return container.orchestrator.is_active("vid_1")

        assert asyncio.run(scenario()) is False


class TestTranslationFailure:
    def test_upstream_500_marks_error_without_generating(self, settings):
        """번역 500 → error, generating으로는 가지 않는다."""
        translator = FakeTranslator(error=TranslationError("Translation failed (500): Internal error"))
        generator = FakeGenerator()
        container = make_container(settings, translator=translator, generator=generator)

        async def scenario():
            await container.repository.seed_defaults()
            with pytest.raises(TranslationFailed) as exc_info:
                await container.orchestrator.start(_request())
            record = await container.repository.get("vid_1")
            return exc_info.value, record

        error, record = asyncio.run(scenario())
        assert error.status_code == 502
        assert error.message.startswith("Workflow start failed")
        assert record.status == VideoStatus.ERROR
        assert "Translation failed" in record.error_message
        assert "generating" not in container.repository.statuses_for("vid_1")
        assert generator.calls == 0
        assert not container.orchestrator.is_active("vid_1")

    def test_unexpected_translator_error(self, settings):
        translator = FakeTranslator(error=RuntimeError("connection reset"))
        container = make_container(settings, translator=translator)

        async def scenario():
            await container.repository.seed_defaults()
            with pytest.raises(TranslationFailed):
                await container.orchestrator.start(_request())
            return await container.repository.get("vid_1")

        assert asyncio.run(scenario()).error_message == "Translation failed: connection reset"


class TestRetries:
    def test_transient_generation_failure_recovers(self, settings):
        """생성이 두 번 실패해도 세 번째에 성공하면 completed."""
        sleep = RecordingSleep()
        generator = FakeGenerator(errors=[GenerationError("quota"), GenerationError("quota")])
        container = make_container(settings, generator=generator, sleep=sleep)

        _, final = _run_to_completion(container, _request())
        assert final.status == VideoStatus.COMPLETED
        assert generator.calls == 3
        assert sleep.delays == [5.0, 10.0]

    def test_relocation_failure_exhausts_retries(self, settings, monkeypatch):
        """파일 이동이 계속 실패하면 4번 시도 후 error, 메시지에 (after 3 retries)."""

        def fail(src, dest):
            raise OSError("No space left on device")

        monkeypatch.setattr(post_processor_module, "_relocate", fail)
        sleep = RecordingSleep()
        generator = FakeGenerator()
        container = make_container(settings, generator=generator, sleep=sleep)

        _, final = _run_to_completion(container, _request())
        assert final.status == VideoStatus.ERROR
        assert final.error_message.endswith("(after 3 retries)")
        assert "No space left on device" in final.error_message
        assert final.video_url is None
        assert generator.calls == 4
        assert sleep.delays == [5.0, 10.0, 20.0]
        # processing에서 generating으로 되돌아가지 않는다
        statuses = container.repository.statuses_for("vid_1")
        assert statuses.count("generating") == 1
        assert statuses[-1] == "error"
        assert not container.orchestrator.is_active("vid_1")
