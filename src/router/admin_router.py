from fastapi import APIRouter, Depends
from loguru import logger

from core.container import AppContainer
from core.dependencies import get_container
from core.exceptions import InvalidAdminAction
from core.security import verify_admin_key
from router.video_router import CamelModel

router = APIRouter(prefix="/api/admin", tags=["admin"])


class ToggleFeatureRequest(CamelModel):
    action: str = ""
    admin_key: str | None = None


class FeatureStatusResponse(CamelModel):
    video_generation_enabled: bool
    message: str | None = None


@router.get("/toggle-feature", response_model=FeatureStatusResponse)
async def feature_status(container: AppContainer = Depends(get_container)):
    """현재 비디오 생성 기능 상태 (인증 없음)."""
    enabled = await container.repository.is_generation_enabled()
    return FeatureStatusResponse(video_generation_enabled=enabled)


@router.post("/toggle-feature", response_model=FeatureStatusResponse)
async def toggle_feature(req: ToggleFeatureRequest, container: AppContainer = Depends(get_container)):
    """관리자 키 확인 후 enable / disable / status."""
    verify_admin_key(req.admin_key, container.settings.ADMIN_SECRET_KEY)
    repository = container.repository

    match req.action:
        case "enable" | "disable":
            enabled = req.action == "enable"
            await repository.set_generation_enabled(enabled)
            logger.info(f"Video generation {'enabled' if enabled else 'disabled'} by admin")
            message = f"Video generation {'enabled' if enabled else 'disabled'}"
        case "status":
            enabled = await repository.is_generation_enabled()
            message = None
        case _:
            raise InvalidAdminAction

    return FeatureStatusResponse(video_generation_enabled=enabled, message=message)
