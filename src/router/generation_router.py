from fastapi import APIRouter, Depends, status

from core.container import AppContainer
from core.dependencies import get_container
from core.exceptions import InvalidModelParameters, MissingFields, TranslationError, TranslationFailed
from router.video_router import CamelModel, VideoResponse, check_video_id
from service.model_catalog import (
    DEFAULT_SYSTEM_INSTRUCTION,
    DEFAULT_TRANSLATION_MODEL,
    DEFAULT_USER_PROMPT_TEMPLATE,
    DEFAULT_VIDEO_MODEL,
    TRANSLATION_MODELS,
    GenerationConfig,
    TranslationPromptConfig,
)
from service.orchestrator import GenerationRequest

router = APIRouter(prefix="/api", tags=["generation"])


# --- 요청/응답 스키마 ---


class TranslationPromptSchema(CamelModel):
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    user_prompt_template: str = DEFAULT_USER_PROMPT_TEMPLATE

    def to_config(self) -> TranslationPromptConfig:
        return TranslationPromptConfig(
            system_instruction=self.system_instruction,
            user_prompt_template=self.user_prompt_template,
        )


class GenerationConfigSchema(CamelModel):
    translation_model: str = DEFAULT_TRANSLATION_MODEL
    video_generation_model: str = DEFAULT_VIDEO_MODEL
    translation_prompt_config: TranslationPromptSchema = TranslationPromptSchema()
    duration_seconds: int = 8
    aspect_ratio: str = "16:9"
    generate_audio: bool = False
    enhance_prompt: bool = True
    negative_prompt: str = ""

    def to_config(self) -> GenerationConfig:
        return GenerationConfig(
            translation_model=self.translation_model,
            video_model=self.video_generation_model,
            translation_prompt=self.translation_prompt_config.to_config(),
            duration_seconds=self.duration_seconds,
            aspect_ratio=self.aspect_ratio,
            generate_audio=self.generate_audio,
            enhance_prompt=self.enhance_prompt,
            negative_prompt=self.negative_prompt,
        )


class GenerateVideoRequest(CamelModel):
    id: str | None = None
    korean_prompt: str = ""
    user_email: str = ""
    config: GenerationConfigSchema = GenerationConfigSchema()


class GenerateVideoResponse(CamelModel):
    message: str
    video: VideoResponse


class TranslateRequest(CamelModel):
    korean_text: str = ""
    translation_model: str = DEFAULT_TRANSLATION_MODEL
    translation_prompt_config: TranslationPromptSchema = TranslationPromptSchema()


class TranslateResponse(CamelModel):
    english_text: str
    model: str


# --- 엔드포인트 ---


@router.post(
    "/generate-video",
    response_model=GenerateVideoResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_video(req: GenerateVideoRequest, container: AppContainer = Depends(get_container)):
    """번역까지 끝낸 뒤 202를 돌려준다. 이후 진행 상황은 GET /api/videos/{id}로 확인."""
    record = await container.orchestrator.start(
        GenerationRequest(
            korean_prompt=req.korean_prompt,
            user_email=req.user_email,
            config=req.config.to_config(),
            video_id=check_video_id(req.id) if req.id else None,
        )
    )
    return GenerateVideoResponse(
        message="Video generation started",
        video=VideoResponse.from_record(record),
    )


@router.post("/translate", response_model=TranslateResponse)
async def translate(req: TranslateRequest, container: AppContainer = Depends(get_container)):
    """번역만 수행한다 (레코드 없음)."""
    if not req.korean_text.strip():
        raise MissingFields("Missing required fields: koreanText")
    if req.translation_model not in TRANSLATION_MODELS:
        raise InvalidModelParameters(f"지원하지 않는 번역 모델: {req.translation_model}")
    try:
        english = await container.translator.translate(
            req.korean_text.strip(),
            req.translation_model,
            req.translation_prompt_config.to_config(),
        )
    except TranslationError as e:
        raise TranslationFailed(str(e)) from e
    return TranslateResponse(english_text=english, model=req.translation_model)
