"""GCS 객체 하나를 로컬에서 서빙 가능한 비디오 + 썸네일 + 메타데이터로 만든다.

흐름:
1. URI 형식 검증
2. 원격 객체 존재 확인 (다운로드 전에 빠르게 실패)
3. 임시 작업 디렉토리로 다운로드, 빈 파일인지 확인
4. 동시 실행 큐를 거쳐 미디어 분석 1회 (길이/해상도/썸네일)
5. 비디오(필수), 썸네일(best-effort)을 public 디렉토리로 이동
6. 어떤 경로로 끝나든 임시 디렉토리 삭제
"""

import asyncio
import os
import re
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from core.exceptions import EmptyDownload, FileRelocationFailed, GcsObjectNotFound
from processor.media import MediaAnalyzer
from processor.processing_queue import BoundedConcurrencyQueue
from processor.storage import GcsStorage, parse_gcs_uri
from utility.timer import timer

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,255}$")


@dataclass(frozen=True)
class ProcessedVideo:
    video_url: str
    thumbnail_url: str | None
    duration: int | None = None
    resolution: str | None = None


def _make_workdir(root: Path, prefix: str) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=root))


def _remove_workdir(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning(f"Failed to clean up temp directory | path={path}")


@asynccontextmanager
async def temp_workdir(root: Path, prefix: str) -> AsyncIterator[Path]:
    """root 아래에 임시 디렉토리를 만들고, 블록이 끝나면 무조건 지운다."""
    path = await asyncio.to_thread(_make_workdir, root, prefix)
    try:
        yield path
    finally:
        await asyncio.to_thread(_remove_workdir, path)


def _relocate(src: Path, dest: Path) -> None:
    """같은 디렉토리에 스테이징한 뒤 os.replace로 교체한다.

    다른 파일시스템 간 이동이어도 서빙 디렉토리에는 완성된 파일만 보인다.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    staging = dest.with_name(f".{dest.name}.partial")
    try:
        shutil.move(str(src), str(staging))
        os.replace(staging, dest)
    finally:
        if staging.exists():
            staging.unlink(missing_ok=True)


class MediaPostProcessor:
    def __init__(
        self,
        storage: GcsStorage,
        analyzer: MediaAnalyzer,
        queue: BoundedConcurrencyQueue,
        videos_dir: Path,
        thumbnails_dir: Path,
        temp_dir: Path,
    ):
        self.storage = storage
        self.analyzer = analyzer
        self.queue = queue
        self.videos_dir = Path(videos_dir)
        self.thumbnails_dir = Path(thumbnails_dir)
        self.temp_dir = Path(temp_dir)

    def video_path(self, video_id: str) -> Path:
        return self.videos_dir / f"{video_id}.mp4"

    def thumbnail_path(self, video_id: str) -> Path:
        return self.thumbnails_dir / f"{video_id}.jpg"

    def ensure_directories(self) -> None:
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        self.thumbnails_dir.mkdir(parents=True, exist_ok=True)

    def remove_served_files(self, video_id: str) -> int:
        """서빙 중인 비디오/썸네일 파일을 지우고 지운 파일 수를 반환한다."""
        removed = 0
        for path in (self.video_path(video_id), self.thumbnail_path(video_id)):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove served file | path={path} error={e}")
        return removed

    def clear_served_files(self) -> int:
        removed = 0
        for directory, pattern in ((self.videos_dir, "*.mp4"), (self.thumbnails_dir, "*.jpg")):
            if not directory.exists():
                continue
            for path in directory.glob(pattern):
                try:
                    path.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(f"Failed to remove served file | path={path} error={e}")
        return removed

    async def process(self, gcs_uri: str, video_id: str) -> ProcessedVideo:
        if not VIDEO_ID_PATTERN.match(video_id):
            raise ValueError(f"Invalid video id: {video_id!r}")

        location = parse_gcs_uri(gcs_uri)
        logger.info(f"Post-processing started | video_id={video_id} uri={location.uri[:80]}")

        with timer() as t:
            try:
                if not await self.storage.exists(location):
                    raise GcsObjectNotFound(f"File not found in GCS: {location.uri}")

                async with temp_workdir(self.temp_dir, prefix=f"video-{video_id}-") as workdir:
                    local_video = workdir / f"{video_id}.mp4"
                    local_thumbnail = workdir / f"{video_id}.jpg"

                    size = await self.storage.download(location, local_video)
                    if size <= 0 or not local_video.exists():
                        raise EmptyDownload(f"Downloaded file is empty: {location.uri}")
                    logger.debug(f"Video downloaded | video_id={video_id} bytes={size}")

                    info = await self.queue.submit(
                        lambda: self.analyzer.analyze(local_video, local_thumbnail, video_id)
                    )

                    try:
                        await asyncio.to_thread(_relocate, local_video, self.video_path(video_id))
                    except OSError as e:
                        raise FileRelocationFailed(
                            f"Failed to move video into served directory: {e}"
                        ) from e

                    thumbnail_url = None
                    if info.thumbnail_path is not None:
                        try:
                            await asyncio.to_thread(
                                _relocate, info.thumbnail_path, self.thumbnail_path(video_id)
                            )
                            thumbnail_url = f"/thumbnails/{video_id}.jpg"
                        except OSError as e:
                            logger.warning(f"Thumbnail relocation failed | video_id={video_id} error={e}")
            except Exception as e:
                logger.error(
                    f"Post-processing failed | video_id={video_id} "
                    f"elapsed={t.elapsed_ms}ms error={type(e).__name__}: {e}"
                )
                raise

        result = ProcessedVideo(
            video_url=f"/videos/{video_id}.mp4",
            thumbnail_url=thumbnail_url,
            duration=info.duration,
            resolution=info.resolution,
        )
        logger.info(
            f"Post-processing completed | video_id={video_id} elapsed={t.elapsed_ms}ms "
            f"duration={result.duration} resolution={result.resolution}"
        )
        return result
