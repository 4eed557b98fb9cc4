import asyncio
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.container import AppContainer
from core.dependencies import get_container, require_admin_key
from core.exceptions import GenerationInProgress, InvalidVideoId, MissingFields, VideoNotFound
from model.video import VideoRecord, VideoStatus
from processor.post_processor import VIDEO_ID_PATTERN

router = APIRouter(prefix="/api/videos", tags=["videos"])


# --- 요청/응답 스키마 ---
# JSON 필드는 camelCase (koreanPrompt, userEmail, ...)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VideoResponse(CamelModel):
    id: str
    korean_prompt: str
    english_prompt: str
    user_email: str
    status: VideoStatus
    video_url: str | None = None
    thumbnail_url: str | None = None
    gcs_uri: str | None = None
    duration: int | None = None
    resolution: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(**record.model_dump())


class VideoListResponse(CamelModel):
    videos: list[VideoResponse]
    count: int


class CreateVideoRequest(CamelModel):
    id: str | None = None
    korean_prompt: str = ""
    user_email: str = ""


class DeleteResponse(CamelModel):
    deleted: int
    files_removed: int


class StatsResponse(CamelModel):
    total_videos: int
    completed_videos: int
    error_videos: int


def check_video_id(video_id: str) -> str:
    if not VIDEO_ID_PATTERN.match(video_id):
        raise InvalidVideoId
    return video_id


def _split_ids(raw: str | None) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


# --- 엔드포인트 ---


@router.get("", response_model=VideoListResponse)
async def list_videos(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status_filter: VideoStatus | None = Query(default=None, alias="status"),
    ids: str | None = Query(default=None, description="쉼표로 구분한 비디오 ID 목록"),
    container: AppContainer = Depends(get_container),
):
    """최근 생성 순 목록. ids가 있으면 해당 레코드만, status가 있으면 해당 상태만."""
    repository = container.repository
    if ids:
        records = await repository.list_by_ids(_split_ids(ids))
    elif status_filter is not None:
        records = await repository.list_by_status(status_filter)
        records = records[offset : offset + limit]
    else:
        records = await repository.list_recent(limit=limit, offset=offset)
    videos = [VideoResponse.from_record(r) for r in records]
    return VideoListResponse(videos=videos, count=len(videos))


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(req: CreateVideoRequest, container: AppContainer = Depends(get_container)):
    """pending 레코드만 먼저 만든다. 생성은 /api/generate-video에 같은 id로 요청."""
    missing = [
        name
        for name, value in (("koreanPrompt", req.korean_prompt), ("userEmail", req.user_email))
        if not value.strip()
    ]
    if missing:
        raise MissingFields(f"Missing required fields: {', '.join(missing)}")

    record = VideoRecord(
        id=check_video_id(req.id) if req.id else uuid.uuid4().hex,
        korean_prompt=req.korean_prompt.strip(),
        user_email=req.user_email.strip(),
        status=VideoStatus.PENDING,
    )
    created = await container.repository.create(record)
    return VideoResponse.from_record(created)


@router.delete("", response_model=DeleteResponse, dependencies=[Depends(require_admin_key)])
async def delete_videos(
    ids: str | None = Query(default=None, description="쉼표로 구분한 비디오 ID 목록 (없으면 전체)"),
    container: AppContainer = Depends(get_container),
):
    """관리자 전용 일괄 삭제. 레코드와 서빙 파일, 동기화 상태를 함께 지운다."""
    post_processor = container.post_processor
    id_list = _split_ids(ids)
    if id_list:
        busy = [i for i in id_list if container.orchestrator.is_active(i)]
        if busy:
            raise GenerationInProgress(f"생성 작업이 진행 중인 비디오가 있습니다: {', '.join(busy)}")
        deleted = await container.repository.delete_many(id_list)
        files_removed = 0
        for video_id in id_list:
            files_removed += await asyncio.to_thread(post_processor.remove_served_files, video_id)
            container.sync_service.forget(video_id)
    else:
        deleted = await container.repository.clear_all()
        files_removed = await asyncio.to_thread(post_processor.clear_served_files)
        for video_id in container.sync_service.get_all_statuses():
            container.sync_service.forget(video_id)
    return DeleteResponse(deleted=deleted, files_removed=files_removed)


@router.get("/stats", response_model=StatsResponse)
async def video_stats(container: AppContainer = Depends(get_container)):
    stats = await container.repository.stats()
    return StatsResponse(**stats)


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video_id: str, container: AppContainer = Depends(get_container)):
    record = await container.repository.get_or_raise(video_id)
    return VideoResponse.from_record(record)


@router.delete("/{video_id}", response_model=DeleteResponse, dependencies=[Depends(require_admin_key)])
async def delete_video(video_id: str, container: AppContainer = Depends(get_container)):
    if container.orchestrator.is_active(video_id):
        raise GenerationInProgress
    if not await container.repository.delete(video_id):
        raise VideoNotFound
    files_removed = await asyncio.to_thread(container.post_processor.remove_served_files, video_id)
    container.sync_service.forget(video_id)
    return DeleteResponse(deleted=1, files_removed=files_removed)
