from fastapi import APIRouter, Depends, Query

from core.container import AppContainer
from core.dependencies import get_container
from core.exceptions import InvalidSyncAction
from router.video_router import CamelModel, check_video_id

# /api/videos/{video_id}보다 먼저 등록해야 "sync"가 ID로 잡히지 않는다
router = APIRouter(prefix="/api/videos/sync", tags=["sync"])


class SyncRequest(CamelModel):
    action: str | None = None
    video_id: str | None = None
    gcs_uri: str | None = None


class SyncStatusResponse(CamelModel):
    status: str
    local_video_path: str | None = None
    local_thumbnail_path: str | None = None
    error: str | None = None


class SyncOverviewResponse(CamelModel):
    initialized: bool
    statuses: dict[str, SyncStatusResponse]


@router.get("", response_model=SyncOverviewResponse)
async def sync_status(
    video_id: str | None = Query(default=None, alias="videoId"),
    container: AppContainer = Depends(get_container),
):
    """동기화 상태 조회. videoId가 있으면 해당 비디오만."""
    sync_service = container.sync_service
    if video_id:
        entry = sync_service.get_status(video_id)
        entries = {video_id: entry} if entry else {}
    else:
        entries = sync_service.get_all_statuses()
    return SyncOverviewResponse(
        initialized=sync_service.initialized,
        statuses={key: SyncStatusResponse(**entry.to_dict()) for key, entry in entries.items()},
    )


@router.post("", response_model=SyncOverviewResponse)
async def run_sync(req: SyncRequest, container: AppContainer = Depends(get_container)):
    """action=initialize: 전체 검사 시작 (검사 완료를 기다리지 않음)
    action=sync: 비디오 하나를 바로 동기화 (완료까지 기다림)
    """
    sync_service = container.sync_service
    match req.action:
        case "initialize":
            await sync_service.initialize()
            entries = sync_service.get_all_statuses()
        case "sync" if req.video_id and req.gcs_uri:
            video_id = check_video_id(req.video_id)
            await sync_service.sync_new_video(video_id, req.gcs_uri)
            entry = sync_service.get_status(video_id)
            entries = {video_id: entry} if entry else {}
        case _:
            raise InvalidSyncAction

    return SyncOverviewResponse(
        initialized=sync_service.initialized,
        statuses={key: SyncStatusResponse(**entry.to_dict()) for key, entry in entries.items()},
    )
