"""관리자 토글, 동기화 API, 비디오/썸네일 서빙 테스트."""

from conftest import ADMIN_KEY, VIDEO_BYTES, client_for, make_container, make_settings


class TestToggleFeature:
    def test_get_status(self, client):
        resp = client.get("/api/admin/toggle-feature")
        assert resp.status_code == 200
        assert resp.json()["videoGenerationEnabled"] is True

    def test_disable_then_enable(self, client):
        resp = client.post("/api/admin/toggle-feature", json={"action": "disable", "adminKey": ADMIN_KEY})
        assert resp.status_code == 200
        assert resp.json()["videoGenerationEnabled"] is False
        assert client.get("/api/admin/toggle-feature").json()["videoGenerationEnabled"] is False

        resp = client.post("/api/admin/toggle-feature", json={"action": "enable", "adminKey": ADMIN_KEY})
        assert resp.json()["videoGenerationEnabled"] is True

    def test_status_action(self, client):
        resp = client.post("/api/admin/toggle-feature", json={"action": "status", "adminKey": ADMIN_KEY})
        assert resp.status_code == 200
        assert resp.json()["videoGenerationEnabled"] is True

    def test_wrong_key(self, client):
        resp = client.post("/api/admin/toggle-feature", json={"action": "disable", "adminKey": "nope"})
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "INVALID_ADMIN_KEY"
        assert client.get("/api/admin/toggle-feature").json()["videoGenerationEnabled"] is True

    def test_invalid_action(self, client):
        resp = client.post("/api/admin/toggle-feature", json={"action": "reboot", "adminKey": ADMIN_KEY})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_ACTION"

    def test_key_not_configured(self, tmp_path):
        """서버에 관리자 키가 없으면 500 ADMIN_KEY_NOT_CONFIGURED."""
        container = make_container(make_settings(tmp_path, ADMIN_SECRET_KEY=None))
        with client_for(container) as client:
            resp = client.post("/api/admin/toggle-feature", json={"action": "disable", "adminKey": "x"})
        assert resp.status_code == 500
        assert resp.json()["error_code"] == "ADMIN_KEY_NOT_CONFIGURED"


class TestSyncApi:
    def test_status_before_initialize(self, client):
        resp = client.get("/api/videos/sync")
        assert resp.status_code == 200
        assert resp.json() == {"initialized": False, "statuses": {}}

    def test_initialize(self, client):
        resp = client.post("/api/videos/sync", json={"action": "initialize"})
        assert resp.status_code == 200
        assert resp.json()["initialized"] is True

    def test_invalid_action(self, client):
        resp = client.post("/api/videos/sync", json={"action": "explode"})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_SYNC_ACTION"

    def test_sync_requires_video_and_uri(self, client):
        resp = client.post("/api/videos/sync", json={"action": "sync", "videoId": "v1"})
        assert resp.status_code == 400


class TestServeVideo:
    def _put_video(self, container, video_id="v1", data=VIDEO_BYTES):
        container.post_processor.ensure_directories()
        container.post_processor.video_path(video_id).write_bytes(data)

    def test_full_file(self, client, container):
        self._put_video(container)
        resp = client.get("/videos/v1.mp4")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "video/mp4"
        assert resp.headers["accept-ranges"] == "bytes"
        assert resp.content == VIDEO_BYTES

    def test_partial_content(self, client, container):
        self._put_video(container)
        resp = client.get("/videos/v1.mp4", headers={"Range": "bytes=0-9"})
        assert resp.status_code == 206
        assert resp.headers["content-range"] == f"bytes 0-9/{len(VIDEO_BYTES)}"
        assert resp.content == VIDEO_BYTES[:10]

    def test_suffix_range(self, client, container):
        self._put_video(container)
        resp = client.get("/videos/v1.mp4", headers={"Range": "bytes=-4"})
        assert resp.status_code == 206
        assert resp.content == VIDEO_BYTES[-4:]

    def test_unsatisfiable_range(self, client, container):
        """파일 크기를 넘는 Range → 416 + Content-Range: bytes */size."""
        self._put_video(container)
        resp = client.get("/videos/v1.mp4", headers={"Range": f"bytes={len(VIDEO_BYTES) + 10}-"})
        assert resp.status_code == 416
        assert resp.headers["content-range"] == f"bytes */{len(VIDEO_BYTES)}"
        assert resp.json()["error_code"] == "RANGE_NOT_SATISFIABLE"

    def test_missing_video(self, client):
        resp = client.get("/videos/nope.mp4")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "VIDEO_NOT_FOUND"


class TestServeThumbnail:
    def test_thumbnail(self, client, container):
        container.post_processor.ensure_directories()
        container.post_processor.thumbnail_path("v1").write_bytes(b"\xff\xd8jpeg")
        resp = client.get("/thumbnails/v1.jpg")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/jpeg"

    def test_missing_thumbnail(self, client):
        resp = client.get("/thumbnails/nope.jpg")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "THUMBNAIL_NOT_FOUND"

    def test_empty_thumbnail(self, client, container):
        """0바이트 썸네일은 없는 것으로 취급한다."""
        container.post_processor.ensure_directories()
        container.post_processor.thumbnail_path("v1").write_bytes(b"")
        assert client.get("/thumbnails/v1.jpg").status_code == 404
