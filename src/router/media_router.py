"""로컬에 저장된 비디오/썸네일 서빙.

비디오는 Range 요청을 지원한다 (브라우저 <video> 탐색용).
    Range 있음 → 206 + Content-Range (부분 전송)
    Range 없음 → 200 전체 파일
    잘못된 Range → 416 + Content-Range: bytes */size
"""

from collections.abc import Iterator
from pathlib import Path

from fastapi import APIRouter, Depends, Header
from fastapi.responses import FileResponse, StreamingResponse

from core.container import AppContainer
from core.dependencies import get_container
from core.exceptions import ThumbnailNotFound, VideoNotFound
from processor.post_processor import VIDEO_ID_PATTERN
from utility.byte_range import parse_range_header

router = APIRouter(tags=["media"])

CHUNK_SIZE = 1024 * 1024


def _video_id_from(file_name: str, suffix: str) -> str | None:
    video_id = file_name.removesuffix(suffix)
    return video_id if VIDEO_ID_PATTERN.match(video_id) else None


def _iter_file(path: Path, start: int, end: int) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


@router.get("/videos/{file_name}")
async def serve_video(
    file_name: str,
    range_header: str | None = Header(default=None, alias="range"),
    container: AppContainer = Depends(get_container),
):
    video_id = _video_id_from(file_name, ".mp4")
    if video_id is None:
        raise VideoNotFound
    path = container.post_processor.video_path(video_id)
    if not path.is_file():
        raise VideoNotFound

    file_size = path.stat().st_size
    if range_header:
        start, end = parse_range_header(range_header, file_size)
        return StreamingResponse(
            _iter_file(path, start, end),
            status_code=206,
            media_type="video/mp4",
            headers={
                "Content-Range": f"bytes {start}-{end}/{file_size}",
                "Accept-Ranges": "bytes",
                "Content-Length": str(end - start + 1),
            },
        )

    return FileResponse(path, media_type="video/mp4", headers={"Accept-Ranges": "bytes"})


@router.get("/thumbnails/{file_name}")
async def serve_thumbnail(file_name: str, container: AppContainer = Depends(get_container)):
    video_id = _video_id_from(file_name, ".jpg")
    if video_id is None:
        raise ThumbnailNotFound
    path = container.post_processor.thumbnail_path(video_id)
    if not path.is_file() or path.stat().st_size == 0:
        raise ThumbnailNotFound
    return FileResponse(path, media_type="image/jpeg", headers={"Cache-Control": "public, max-age=3600"})
