"""MediaPostProcessor 테스트 (가짜 GCS / 가짜 FFmpeg)."""

import asyncio
from pathlib import Path

import pytest
from google.api_core import exceptions as gcp_exceptions

import processor.post_processor as post_processor_module
from core.exceptions import (
    EmptyDownload,
    FileRelocationFailed,
    GcsObjectNotFound,
    InvalidGcsUri,
    StorageUnavailable,
)
from processor.post_processor import MediaPostProcessor
from processor.processing_queue import BoundedConcurrencyQueue
from processor.storage import GcsStorage, parse_gcs_uri
from conftest import GCS_URI, VIDEO_BYTES, FakeAnalyzer, FakeStorage


def _make(tmp_path: Path, storage=None, analyzer=None) -> MediaPostProcessor:
    return MediaPostProcessor(
        storage=storage or FakeStorage(),
        analyzer=analyzer or FakeAnalyzer(),
        queue=BoundedConcurrencyQueue(max_concurrent=1),
        videos_dir=tmp_path / "public" / "videos",
        thumbnails_dir=tmp_path / "public" / "thumbnails",
        temp_dir=tmp_path / "temp",
    )


def _temp_leftovers(tmp_path: Path) -> list[Path]:
    temp = tmp_path / "temp"
    return list(temp.iterdir()) if temp.exists() else []


class TestParseGcsUri:
    def test_valid(self):
        location = parse_gcs_uri("gs://my-bucket/path/to/video.mp4")
        assert location.bucket == "my-bucket"
        assert location.path == "path/to/video.mp4"
        assert location.uri == "gs://my-bucket/path/to/video.mp4"

    @pytest.mark.parametrize("uri", ["", "http://bucket/a.mp4", "gs://bucket", "gs:///a.mp4"])
    def test_invalid(self, uri):
        with pytest.raises(InvalidGcsUri):
            parse_gcs_uri(uri)


class TestProcess:
    def test_success(self, tmp_path):
        """다운로드 → 분석 → 이동. 서빙 경로에 파일이 생기고 임시 디렉토리는 비워진다."""
        processor = _make(tmp_path)
        result = asyncio.run(processor.process(GCS_URI, "vid_1"))

        assert result.video_url == "/videos/vid_1.mp4"
        assert result.thumbnail_url == "/thumbnails/vid_1.jpg"
        assert result.duration == 8
        assert result.resolution == "1280x720"
        assert processor.video_path("vid_1").read_bytes() == VIDEO_BYTES
        assert processor.thumbnail_path("vid_1").stat().st_size > 0
        assert _temp_leftovers(tmp_path) == []

    def test_no_thumbnail_is_not_fatal(self, tmp_path):
        """썸네일 생성 실패는 best-effort: thumbnail_url만 None."""
        processor = _make(tmp_path, analyzer=FakeAnalyzer(make_thumbnail=False))
        result = asyncio.run(processor.process(GCS_URI, "vid_1"))
        assert result.thumbnail_url is None
        assert processor.video_path("vid_1").exists()

    def test_analysis_runs_once(self, tmp_path):
        analyzer = FakeAnalyzer()
        asyncio.run(_make(tmp_path, analyzer=analyzer).process(GCS_URI, "vid_1"))
        assert analyzer.calls == ["vid_1"]

    def test_missing_object(self, tmp_path):
        storage = FakeStorage(objects={})
        with pytest.raises(GcsObjectNotFound):
            asyncio.run(_make(tmp_path, storage=storage).process(GCS_URI, "vid_1"))
        assert storage.downloads == []

    def test_unreachable_bucket(self, tmp_path):
        with pytest.raises(StorageUnavailable):
            asyncio.run(_make(tmp_path, storage=FakeStorage(reachable=False)).process(GCS_URI, "vid_1"))

    def test_empty_download(self, tmp_path):
        storage = FakeStorage(objects={GCS_URI: b""})
        with pytest.raises(EmptyDownload):
            asyncio.run(_make(tmp_path, storage=storage).process(GCS_URI, "vid_1"))
        assert _temp_leftovers(tmp_path) == []

    def test_invalid_uri(self, tmp_path):
        with pytest.raises(InvalidGcsUri):
            asyncio.run(_make(tmp_path).process("s3://bucket/a.mp4", "vid_1"))

    def test_invalid_video_id(self, tmp_path):
        with pytest.raises(ValueError):
            asyncio.run(_make(tmp_path).process(GCS_URI, "../etc/passwd"))

    def test_relocation_failure(self, tmp_path, monkeypatch):
        """비디오 이동 실패는 FileRelocationFailed, 임시 디렉토리는 정리된다."""

        def fail(src, dest):
            raise OSError("No space left on device")

        monkeypatch.setattr(post_processor_module, "_relocate", fail)
        with pytest.raises(FileRelocationFailed, match="No space left on device"):
            asyncio.run(_make(tmp_path).process(GCS_URI, "vid_1"))
        assert _temp_leftovers(tmp_path) == []


class TestServedFiles:
    def test_remove_and_clear(self, tmp_path):
        processor = _make(tmp_path)
        asyncio.run(processor.process(GCS_URI, "a"))
        asyncio.run(processor.process(GCS_URI, "b"))

        assert processor.remove_served_files("a") == 2
        assert processor.remove_served_files("a") == 0
        assert processor.clear_served_files() == 2
        assert not processor.video_path("b").exists()


class FakeBlob:
    def __init__(self, error: Exception | None = None, data: bytes = VIDEO_BYTES):
        self.error = error
        self.data = data

    def exists(self):
        return self.error is None

    def download_to_filename(self, filename):
        if self.error is not None:
            raise self.error
        Path(filename).write_bytes(self.data)


class FakeBucket:
    def __init__(self, blob: FakeBlob):
        self._blob = blob

    def blob(self, path):
        return self._blob


class FakeGcsClient:
    def __init__(self, blob: FakeBlob):
        self._blob = blob

    def bucket(self, name):
        return FakeBucket(self._blob)


class TestGcsStorage:
    def _storage(self, blob: FakeBlob) -> GcsStorage:
        return GcsStorage(client_factory=lambda: FakeGcsClient(blob))

    def test_download(self, tmp_path):
        size = asyncio.run(
            self._storage(FakeBlob()).download(parse_gcs_uri(GCS_URI), tmp_path / "v.mp4")
        )
        assert size == len(VIDEO_BYTES)
        assert (tmp_path / "v.mp4").read_bytes() == VIDEO_BYTES

    def test_download_missing_object(self, tmp_path):
        """다운로드 중 객체가 사라지면 GcsObjectNotFound."""
        storage = self._storage(FakeBlob(error=gcp_exceptions.NotFound("No such object")))
        with pytest.raises(GcsObjectNotFound, match="File not found in GCS"):
            asyncio.run(storage.download(parse_gcs_uri(GCS_URI), tmp_path / "v.mp4"))

    def test_download_other_api_error(self, tmp_path):
        storage = self._storage(FakeBlob(error=gcp_exceptions.ServiceUnavailable("backend down")))
        with pytest.raises(StorageUnavailable):
            asyncio.run(storage.download(parse_gcs_uri(GCS_URI), tmp_path / "v.mp4"))
