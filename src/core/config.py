from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "veo-dashboard"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "DEBUG"
    LOG_FILE: str | None = None

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # DB 설정 (기본 SQLite, 운영은 postgresql+psycopg://...)
    DATABASE_URL: str = "sqlite:///./veo_dashboard.db"

    # 파일 저장 경로
    PUBLIC_DIR: str = "./public"
    TEMP_DIR: str = "./temp"

    # 관리자 키 (정적 비교)
    ADMIN_SECRET_KEY: str | None = None

    # Google Cloud / Gen AI
    GOOGLE_GENAI_USE_VERTEXAI: bool = True
    GOOGLE_CLOUD_PROJECT: str | None = None
    GOOGLE_CLOUD_LOCATION: str = "us-central1"
    GOOGLE_API_KEY: str | None = None
    GOOGLE_CLOUD_OUTPUT_GCS_URI: str | None = None

    # 동시성 제한
    MAX_CONCURRENT_TRANSLATIONS: int = 5
    MAX_CONCURRENT_VIDEO_GENERATIONS: int = 2
    MAX_CONCURRENT_FFMPEG_PROCESSES: int = 3

    # FFmpeg
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: str = "ffprobe"
    MEDIA_PROCESSING_TIMEOUT_SECONDS: float = 300.0
    THUMBNAIL_SIZE: str = "1280x720"

    # 작업 폴링 (초 단위)
    POLL_MIN_INTERVAL_SECONDS: float = 2.0
    POLL_MAX_INTERVAL_SECONDS: float = 30.0
    POLL_BACKOFF_FACTOR: float = 1.5
    POLL_MAX_JITTER_SECONDS: float = 1.0
    POLL_TIMEOUT_SECONDS: float = 900.0
    POLL_MAX_CONSECUTIVE_ERRORS: int = 5
    POLL_MAX_RATE_LIMIT_BACKOFF_SECONDS: float = 60.0

    # 생성 재시도
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_RETRY_BASE_DELAY_SECONDS: float = 5.0

    # 서버 시작 시 로컬 파일 동기화
    VIDEO_SYNC_ON_STARTUP: bool = True

    @property
    def videos_dir(self) -> Path:
        return Path(self.PUBLIC_DIR) / "videos"

    @property
    def thumbnails_dir(self) -> Path:
        return Path(self.PUBLIC_DIR) / "thumbnails"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
