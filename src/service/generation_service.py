"""Veo 비디오 생성 (google-genai).

generate_videos 호출은 작업 핸들(operation)을 돌려주고, 완료까지는 poller가 기다린다.
결과 비디오는 output_gcs_uri 아래에 저장되며 첫 번째 비디오의 gs:// URI를 반환한다.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from google import genai
from google.genai import types
from loguru import logger

from core.exceptions import GenerationError
from processor.poller import PollPolicy, poll_until_done
from service.model_catalog import GenerationConfig, validate_generation_config
from utility.timer import timer


def build_video_config(config: GenerationConfig, output_gcs_uri: str) -> types.GenerateVideosConfig:
    kwargs = dict(
        number_of_videos=1,
        duration_seconds=config.duration_seconds,
        aspect_ratio=config.aspect_ratio,
        enhance_prompt=config.enhance_prompt,
        generate_audio=config.generate_audio,
        output_gcs_uri=output_gcs_uri,
        person_generation="allow_all",
    )
    if config.negative_prompt.strip():
        kwargs["negative_prompt"] = config.negative_prompt.strip()
    return types.GenerateVideosConfig(**kwargs)


def extract_generated_videos(operation: types.GenerateVideosOperation) -> list[types.GeneratedVideo]:
    if operation.error:
        raise GenerationError(f"Video generation operation failed: {operation.error}")
    if operation.response is None:
        return []
    return list(operation.response.generated_videos or [])


class VideoGenerationService:
    def __init__(
        self,
        client_factory: Callable[[], genai.Client],
        output_gcs_uri: str | None,
        poll_policy: PollPolicy = PollPolicy(),
        max_concurrent: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client_factory = client_factory
        self._client: genai.Client | None = None
        self.output_gcs_uri = output_gcs_uri
        self.poll_policy = poll_policy
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._sleep = sleep
        self._clock = clock

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def generate(self, english_prompt: str, config: GenerationConfig) -> str:
        """비디오를 생성하고 결과 gs:// URI를 반환한다."""
        model = validate_generation_config(config)
        if not self.output_gcs_uri:
            raise GenerationError("GOOGLE_CLOUD_OUTPUT_GCS_URI is not configured")

        logger.info(
            f"Video generation started | model={model.name} duration={config.duration_seconds}s "
            f"aspect_ratio={config.aspect_ratio} audio={config.generate_audio} "
            f"prompt={english_prompt[:100]!r}"
        )

        async with self._semaphore:
            with timer() as t:
                operation = await self.client.aio.models.generate_videos(
                    model=model.name,
                    prompt=english_prompt,
                    config=build_video_config(config, self.output_gcs_uri),
                )
                logger.debug(
                    f"Video generation operation started | operation={operation.name} done={operation.done}"
                )

                videos = await poll_until_done(
                    operation,
                    refresh=lambda op: self.client.aio.operations.get(op),
                    extract=extract_generated_videos,
                    policy=self.poll_policy,
                    sleep=self._sleep,
                    clock=self._clock,
                    label=f"Veo operation {operation.name}",
                )

        video = videos[0].video
        uri = video.uri if video else None
        if not uri:
            raise GenerationError("No video URI returned from generation API")

        logger.info(f"Video generation completed | model={model.name} elapsed={t.elapsed_ms}ms uri={uri}")
        return uri
