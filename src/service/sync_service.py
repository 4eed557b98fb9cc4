"""비디오 파일 동기화 (Sync Reconciler).

DB의 completed 레코드와 로컬 서빙 디렉터리(videos/, thumbnails/)를 비교해서
빠진 파일을 GCS에서 다시 받아 후처리한다.

    downloading → synced
    downloading → error (메시지 포함)

completed 상태인 레코드만 대상으로 하고, thumbnail_url이 없는 레코드는 비디오 파일만 확인한다.
상태 맵은 메모리에만 있고 재시작하면 다시 만든다.
같은 ID는 in-progress 집합으로 중복 다운로드를 막는다.
"""

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from loguru import logger

from model.video import VideoRecord, VideoStatus
from processor.post_processor import MediaPostProcessor
from service.video_repository import VideoRepository
from utility.timer import timer
from utility.validation import validate_resolution


class SyncStatus(StrEnum):
    SYNCED = "synced"
    DOWNLOADING = "downloading"
    ERROR = "error"
    MISSING_GCS = "missing_gcs"


@dataclass
class SyncStatusEntry:
    status: SyncStatus
    local_video_path: str | None = None
    local_thumbnail_path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "localVideoPath": self.local_video_path,
            "localThumbnailPath": self.local_thumbnail_path,
            "error": self.error,
        }


def _file_present(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


async def _files_present(video_path: Path, thumbnail_path: Path) -> tuple[bool, bool]:
    return await asyncio.to_thread(
        lambda: (_file_present(video_path), _file_present(thumbnail_path))
    )


class VideoSyncService:
    def __init__(self, repository: VideoRepository, post_processor: MediaPostProcessor):
        self.repository = repository
        self.post_processor = post_processor
        self._statuses: dict[str, SyncStatusEntry] = {}
        self._in_progress: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """completed 레코드 전체를 검사한다. 검사 태스크만 띄우고 바로 반환."""
        if self._initialized:
            logger.warning("Video sync service already initialized, skipping")
            return
        self._initialized = True
        await asyncio.to_thread(self.post_processor.ensure_directories)

        records = await self.repository.list_by_status(VideoStatus.COMPLETED)
        with_uri = [r for r in records if r.gcs_uri]
        for record in records:
            if not record.gcs_uri:
                await self._track_without_gcs(record)

        logger.info(
            f"Video sync started | completed={len(records)} with_gcs_uri={len(with_uri)} "
            f"missing_gcs={len(records) - len(with_uri)}"
        )
        checks = [self._spawn(self._check_record(r, r.gcs_uri)) for r in with_uri]
        if checks:
            self._spawn(self._report(checks))

    async def sync_new_video(self, video_id: str, gcs_uri: str) -> None:
        """completed 레코드 하나를 동기화한다. 다른 상태면 건너뛴다."""
        if not self._initialized:
            logger.warning(f"Video sync service not initialized, ignoring | video_id={video_id}")
            return

        record = await self.repository.get(video_id)
        if record is None:
            reason = "Video record not found"
        elif record.status != VideoStatus.COMPLETED:
            reason = f"Video is not completed (status={record.status})"
        else:
            await self._check_record(record, gcs_uri)
            return

        logger.warning(f"Video sync skipped | video_id={video_id} reason={reason}")
        self._statuses[video_id] = SyncStatusEntry(SyncStatus.ERROR, error=reason)

    def get_status(self, video_id: str) -> SyncStatusEntry | None:
        return self._statuses.get(video_id)

    def get_all_statuses(self) -> dict[str, SyncStatusEntry]:
        return dict(self._statuses)

    def forget(self, video_id: str) -> None:
        self._statuses.pop(video_id, None)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _track_without_gcs(self, record: VideoRecord) -> None:
        video_path = self.post_processor.video_path(record.id)
        thumbnail_path = self.post_processor.thumbnail_path(record.id)
        video_ok, thumbnail_ok = await _files_present(video_path, thumbnail_path)
        if video_ok and (thumbnail_ok or record.thumbnail_url is None):
            self._statuses[record.id] = SyncStatusEntry(
                SyncStatus.SYNCED, str(video_path), str(thumbnail_path) if thumbnail_ok else None
            )
            return
        logger.warning(f"Completed video has no GCS URI and local files are missing | video_id={record.id}")
        self._statuses[record.id] = SyncStatusEntry(
            SyncStatus.MISSING_GCS, error="No GCS URI recorded for completed video"
        )

    async def _report(self, checks: list[asyncio.Task]) -> None:
        results = await asyncio.gather(*checks, return_exceptions=True)
        succeeded = sum(1 for r in results if r is True)
        logger.info(f"Video sync finished | succeeded={succeeded} failed={len(results) - succeeded}")

    async def _check_record(self, record: VideoRecord, gcs_uri: str) -> bool:
        """로컬 파일이 있으면 synced, 없으면 다시 받아서 후처리한다.

        thumbnail_url이 없는 레코드는 썸네일 없이 완료된 것이므로 비디오만 확인한다.
        """
        video_id = record.id
        video_path = self.post_processor.video_path(video_id)
        thumbnail_path = self.post_processor.thumbnail_path(video_id)
        video_ok, thumbnail_ok = await _files_present(video_path, thumbnail_path)
        if video_ok and (thumbnail_ok or record.thumbnail_url is None):
            self._statuses[video_id] = SyncStatusEntry(
                SyncStatus.SYNCED, str(video_path), str(thumbnail_path) if thumbnail_ok else None
            )
            return True

        if video_id in self._in_progress:
            logger.debug(f"Video sync already in progress | video_id={video_id}")
            return True

        self._in_progress.add(video_id)
        self._statuses[video_id] = SyncStatusEntry(SyncStatus.DOWNLOADING)
        try:
            with timer() as t:
                processed = await self.post_processor.process(gcs_uri, video_id)
                fields = {"video_url": processed.video_url, "thumbnail_url": processed.thumbnail_url}
                if processed.duration is not None:
                    fields["duration"] = processed.duration
                resolution = validate_resolution(processed.resolution, video_id)
                if resolution is not None:
                    fields["resolution"] = resolution
                try:
                    await self.repository.update(video_id, **fields)
                except Exception:
                    # 레코드가 그 사이 지워졌으면 받은 파일도 남기지 않는다
                    await asyncio.to_thread(self.post_processor.remove_served_files, video_id)
                    raise
        except Exception as e:
            logger.error(f"Video sync failed | video_id={video_id} error={type(e).__name__}: {e}")
            self._statuses[video_id] = SyncStatusEntry(SyncStatus.ERROR, error=str(e))
            return False
        finally:
            self._in_progress.discard(video_id)

        self._statuses[video_id] = SyncStatusEntry(
            SyncStatus.SYNCED,
            str(video_path),
            str(thumbnail_path) if processed.thumbnail_url else None,
        )
        logger.info(f"Video synced | video_id={video_id} elapsed={t.elapsed_ms}ms")
        return True
