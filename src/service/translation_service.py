"""한국어 → 영어 번역 (Gemini, google-genai).

임의의 사용자 문장을 그대로 번역해야 하므로 안전 필터는 모든 카테고리에서 OFF.
동시 번역 요청 수는 세마포어로 제한하고, 일시적인 API 오류는 짧게 재시도한다.
"""

import asyncio
from collections.abc import Callable

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from loguru import logger

from core.exceptions import TranslationError
from processor.retry import RetryExhausted, RetryPolicy, Sleep, run_with_retry
from service.model_catalog import DEFAULT_TRANSLATION_MODEL, TranslationPromptConfig
from utility.timer import timer

SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
)

TRANSLATION_RETRY_POLICY = RetryPolicy(max_retries=2, base_delay=1.0)


def build_generation_config(prompt_config: TranslationPromptConfig) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=prompt_config.system_instruction,
        max_output_tokens=1024,
        temperature=0.4,
        top_p=0.95,
        safety_settings=[
            types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.OFF)
            for category in SAFETY_CATEGORIES
        ],
    )


class TranslationService:
    def __init__(
        self,
        client_factory: Callable[[], genai.Client],
        max_concurrent: int = 5,
        retry_policy: RetryPolicy = TRANSLATION_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client_factory = client_factory
        self._client: genai.Client | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self.retry_policy = retry_policy
        self._sleep = sleep

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def translate(
        self,
        korean_text: str,
        model: str = DEFAULT_TRANSLATION_MODEL,
        prompt_config: TranslationPromptConfig | None = None,
    ) -> str:
        """번역된 영어 문장을 반환한다. 실패하면 TranslationError (상태 코드 포함).

        API 호출은 retry_policy에 따라 재시도한다 (기본: 최대 3회 시도, 1s, 2s 대기).
        """
        prompt_config = prompt_config or TranslationPromptConfig()
        user_prompt = prompt_config.render(korean_text)
        logger.debug(
            f"Translation started | model={model} input_length={len(korean_text)} "
            f"preview={korean_text[:50]!r}"
        )

        def call(attempt: int):
            return self.client.aio.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=[types.Part(text=user_prompt)])],
                config=build_generation_config(prompt_config),
            )

        async with self._semaphore:
            with timer() as t:
                try:
                    response = await run_with_retry(
                        call, self.retry_policy, sleep=self._sleep, label=f"Translation ({model})"
                    )
                except RetryExhausted as e:
                    error = e.last_error
                    if not isinstance(error, genai_errors.APIError):
                        raise error from None
                    logger.error(
                        f"Translation failed | model={model} elapsed={t.elapsed_ms}ms "
                        f"retries={e.retries} status={error.code} error={error.message}"
                    )
                    raise TranslationError(f"Translation failed ({error.code}): {error.message}") from error

        text = (response.text or "").strip()
        if not text:
            logger.error(f"Translation returned empty text | model={model} elapsed={t.elapsed_ms}ms")
            raise TranslationError("Translation failed: empty response")

        logger.info(
            f"Translation completed | model={model} elapsed={t.elapsed_ms}ms "
            f"output_length={len(text)} preview={text[:100]!r}"
        )
        return text
