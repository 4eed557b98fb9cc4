"""Google Cloud Storage 접근 (존재 확인 + 로컬 다운로드).

google-cloud-storage 클라이언트는 동기 API라서 asyncio.to_thread로 감싼다.
클라이언트는 처음 사용할 때 만든다.
"""

import asyncio
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage
from loguru import logger

from core.exceptions import GcsObjectNotFound, InvalidGcsUri, StorageUnavailable

GCS_URI_PATTERN = re.compile(r"^gs://([^/]+)/(.+)$")


@dataclass(frozen=True)
class GcsLocation:
    bucket: str
    path: str

    @property
    def uri(self) -> str:
        return f"gs://{self.bucket}/{self.path}"


def parse_gcs_uri(uri: str) -> GcsLocation:
    """gs://bucket/path 형식을 검증하고 분리한다."""
    match = GCS_URI_PATTERN.match((uri or "").strip())
    if not match:
        raise InvalidGcsUri(f"Invalid GCS URI format: {uri!r} (expected gs://bucket/path)")
    return GcsLocation(bucket=match.group(1), path=match.group(2))


class GcsStorage:
    def __init__(
        self,
        project: str | None = None,
        client_factory: Callable[[], storage.Client] | None = None,
    ):
        self._project = project
        self._client_factory = client_factory or (lambda: storage.Client(project=self._project))
        self._client: storage.Client | None = None

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def exists(self, location: GcsLocation) -> bool:
        """객체 존재 여부. 버킷 접근 자체가 안 되면 StorageUnavailable."""

        def _exists() -> bool:
            blob = self.client.bucket(location.bucket).blob(location.path)
            return blob.exists()

        try:
            return await asyncio.to_thread(_exists)
        except gcp_exceptions.GoogleAPICallError as e:
            raise StorageUnavailable(
                f"Bucket {location.bucket!r} is not reachable: {e}"
            ) from e

    async def download(self, location: GcsLocation, destination: Path) -> int:
        """객체를 destination에 받고 받은 바이트 수를 반환한다."""

        def _download() -> int:
            blob = self.client.bucket(location.bucket).blob(location.path)
            blob.download_to_filename(str(destination))
            return destination.stat().st_size

        try:
            size = await asyncio.to_thread(_download)
        except gcp_exceptions.NotFound as e:
            raise GcsObjectNotFound(f"File not found in GCS: {location.uri}") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise StorageUnavailable(f"Download failed for {location.uri}: {e}") from e

        logger.debug(f"GCS download finished | uri={location.uri} bytes={size}")
        return size
