"""번역/비디오 생성 모델 카탈로그와 생성 옵션 검증.

비디오 길이 규칙은 FixedDuration | DurationRange 두 가지 형태뿐이고
검증은 match 문으로 모든 경우를 처리한다 (새 형태를 추가하면 assert_never에서 드러남).
"""

from dataclasses import dataclass, field
from typing import assert_never

from core.exceptions import InvalidModelParameters

DEFAULT_TRANSLATION_MODEL = "gemini-2.0-flash-lite-001"
DEFAULT_VIDEO_MODEL = "veo-2.0-generate-001"

TRANSLATION_MODELS: tuple[str, ...] = (
    "gemini-2.0-flash-lite-001",
    "gemini-2.0-flash-001",
    "gemini-2.5-flash",
)

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a professional translator. "
    "You must only generate the translated text, no other text or comments."
)
DEFAULT_USER_PROMPT_TEMPLATE = "Please translate the following Korean text into English: {text}"


@dataclass(frozen=True)
class FixedDuration:
    seconds: int


@dataclass(frozen=True)
class DurationRange:
    min_seconds: int
    max_seconds: int


DurationRule = FixedDuration | DurationRange


@dataclass(frozen=True)
class VideoModel:
    name: str
    duration: DurationRule
    supports_audio: bool
    aspect_ratios: tuple[str, ...]
    can_disable_enhance_prompt: bool


VIDEO_MODELS: dict[str, VideoModel] = {
    model.name: model
    for model in (
        VideoModel(
            name="veo-2.0-generate-001",
            duration=DurationRange(5, 8),
            supports_audio=False,
            aspect_ratios=("16:9", "9:16"),
            can_disable_enhance_prompt=True,
        ),
        VideoModel(
            name="veo-3.0-generate-preview",
            duration=FixedDuration(8),
            supports_audio=True,
            aspect_ratios=("16:9",),
            can_disable_enhance_prompt=False,
        ),
        VideoModel(
            name="veo-3.0-fast-generate-preview",
            duration=FixedDuration(8),
            supports_audio=True,
            aspect_ratios=("16:9",),
            can_disable_enhance_prompt=False,
        ),
    )
}


@dataclass(frozen=True)
class TranslationPromptConfig:
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    user_prompt_template: str = DEFAULT_USER_PROMPT_TEMPLATE

    def render(self, text: str) -> str:
        return self.user_prompt_template.replace("{text}", text)


@dataclass(frozen=True)
class GenerationConfig:
    translation_model: str = DEFAULT_TRANSLATION_MODEL
    video_model: str = DEFAULT_VIDEO_MODEL
    translation_prompt: TranslationPromptConfig = field(default_factory=TranslationPromptConfig)
    duration_seconds: int = 8
    aspect_ratio: str = "16:9"
    generate_audio: bool = False
    enhance_prompt: bool = True
    negative_prompt: str = ""


def _check_duration(rule: DurationRule, seconds: int, model_name: str) -> None:
    match rule:
        case FixedDuration(seconds=fixed):
            if seconds != fixed:
                raise InvalidModelParameters(
                    f"{model_name}은(는) {fixed}초 고정입니다 (요청: {seconds}초)"
                )
        case DurationRange(min_seconds=low, max_seconds=high):
            if not low <= seconds <= high:
                raise InvalidModelParameters(
                    f"{model_name}의 길이는 {low}~{high}초입니다 (요청: {seconds}초)"
                )
        case _:
            assert_never(rule)


def validate_generation_config(config: GenerationConfig) -> VideoModel:
    """요청 옵션이 모델 능력 범위 안인지 확인한다. 위반은 클라이언트 오류."""
    if config.translation_model not in TRANSLATION_MODELS:
        raise InvalidModelParameters(f"지원하지 않는 번역 모델: {config.translation_model}")

    model = VIDEO_MODELS.get(config.video_model)
    if model is None:
        raise InvalidModelParameters(f"지원하지 않는 비디오 생성 모델: {config.video_model}")

    if "{text}" not in config.translation_prompt.user_prompt_template:
        raise InvalidModelParameters("userPromptTemplate에는 {text} 자리표시자가 있어야 합니다")

    _check_duration(model.duration, config.duration_seconds, model.name)

    if config.generate_audio and not model.supports_audio:
        raise InvalidModelParameters(f"{model.name}은(는) 오디오 생성을 지원하지 않습니다")
    if config.aspect_ratio not in model.aspect_ratios:
        raise InvalidModelParameters(
            f"{model.name}이(가) 지원하는 화면비: {', '.join(model.aspect_ratios)}"
        )
    if not config.enhance_prompt and not model.can_disable_enhance_prompt:
        raise InvalidModelParameters(f"{model.name}은(는) 프롬프트 개선을 끌 수 없습니다")
    return model
