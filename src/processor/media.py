"""ffprobe/ffmpeg 기반 미디어 분석.

한 번의 분석에서 길이(초), 해상도(WxH), 중간 지점 썸네일 한 장을 만든다.
길이/해상도/썸네일은 best-effort: 실패해도 비디오 자체는 쓸 수 있으므로 None으로 둔다.
단, 전체 분석에는 하드 타임아웃이 있고 넘기면 실행 중인 프로세스를 강제 종료한다.
"""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from core.exceptions import MediaProcessingTimeout
from utility.validation import validate_duration


@dataclass(frozen=True)
class MediaInfo:
    duration: int | None = None
    resolution: str | None = None
    thumbnail_path: Path | None = None


@dataclass(frozen=True)
class _ProcessResult:
    returncode: int
    stdout: str
    stderr: str


class MediaAnalyzer:
    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        timeout: float = 300.0,
        thumbnail_size: str = "1280x720",
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.timeout = timeout
        self.thumbnail_size = thumbnail_size

    async def analyze(self, video_path: Path, thumbnail_path: Path, video_id: str = "") -> MediaInfo:
        """메타데이터 추출 + 썸네일 생성. timeout 초과 시 MediaProcessingTimeout."""
        try:
            async with asyncio.timeout(self.timeout):
                duration, resolution, raw_duration = await self._probe(video_path, video_id)
                midpoint = raw_duration / 2 if raw_duration else 0.0
                thumbnail = await self._thumbnail(video_path, thumbnail_path, midpoint, video_id)
        except TimeoutError:
            logger.error(f"FFmpeg timed out, process killed | video_id={video_id} timeout={self.timeout}s")
            raise MediaProcessingTimeout(
                f"Media processing exceeded {self.timeout:.0f}s for video {video_id}"
            ) from None

        logger.info(
            f"FFmpeg processing finished | video_id={video_id} duration={duration} "
            f"resolution={resolution} thumbnail={thumbnail is not None}"
        )
        return MediaInfo(duration=duration, resolution=resolution, thumbnail_path=thumbnail)

    async def _probe(self, video_path: Path, video_id: str) -> tuple[int | None, str | None, float | None]:
        cmd = [
            self.ffprobe_bin,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(video_path),
        ]
        try:
            result = await _run_process(cmd)
        except FileNotFoundError:
            logger.warning(f"ffprobe not found, skipping metadata | bin={self.ffprobe_bin}")
            return None, None, None

        if result.returncode != 0:
            logger.warning(f"ffprobe failed | video_id={video_id} stderr={result.stderr[-300:]}")
            return None, None, None

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError:
            logger.warning(f"ffprobe returned invalid JSON | video_id={video_id}")
            return None, None, None

        raw_duration: float | None = None
        try:
            raw_duration = float(data.get("format", {}).get("duration"))
        except (TypeError, ValueError):
            pass

        resolution = None
        video_stream = next(
            (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
        )
        if video_stream and video_stream.get("width") and video_stream.get("height"):
            resolution = f"{video_stream['width']}x{video_stream['height']}"

        logger.debug(
            f"FFmpeg codec data | video_id={video_id} "
            f"format={data.get('format', {}).get('format_name')} "
            f"video={video_stream.get('codec_name') if video_stream else None} "
            f"duration={raw_duration} resolution={resolution}"
        )
        return validate_duration(raw_duration), resolution, raw_duration

    async def _thumbnail(
        self, video_path: Path, thumbnail_path: Path, at_seconds: float, video_id: str
    ) -> Path | None:
        width, _, height = self.thumbnail_size.partition("x")
        cmd = [
            self.ffmpeg_bin,
            "-y",
            "-v", "error",
            "-ss", f"{at_seconds:.3f}",
            "-i", str(video_path),
            "-frames:v", "1",
            "-vf", f"scale={width}:{height}:force_original_aspect_ratio=decrease",
            "-q:v", "2",
            "-progress", "pipe:1",
            "-nostats",
            str(thumbnail_path),
        ]
        logger.debug(f"FFmpeg started | video_id={video_id} command={' '.join(cmd)}")

        def on_progress(line: str) -> None:
            key, _, value = line.partition("=")
            if key in ("out_time", "progress"):
                logger.debug(f"FFmpeg progress | video_id={video_id} {key}={value}")

        try:
            result = await _run_process(cmd, on_stdout_line=on_progress)
        except FileNotFoundError:
            logger.warning(f"ffmpeg not found, skipping thumbnail | bin={self.ffmpeg_bin}")
            return None

        if result.returncode != 0 or not thumbnail_path.exists():
            logger.warning(f"Thumbnail generation failed | video_id={video_id} stderr={result.stderr[-300:]}")
            return None
        return thumbnail_path


async def _run_process(
    cmd: list[str], on_stdout_line: Callable[[str], None] | None = None
) -> _ProcessResult:
    """프로세스를 실행하고 끝날 때까지 기다린다.

    기다리는 도중 취소(타임아웃)되면 프로세스를 kill 한 뒤 취소를 다시 던진다.
    """
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stderr_task = asyncio.create_task(proc.stderr.read())
    try:
        stdout_lines: list[str] = []
        async for raw in proc.stdout:
            line = raw.decode(errors="replace").strip()
            stdout_lines.append(line)
            if on_stdout_line is not None and line:
                on_stdout_line(line)
        stderr = await stderr_task
        returncode = await proc.wait()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        stderr_task.cancel()
        raise

    return _ProcessResult(
        returncode=returncode,
        stdout="\n".join(stdout_lines),
        stderr=stderr.decode(errors="replace"),
    )
