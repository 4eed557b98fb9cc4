from datetime import UTC, datetime

from sqlmodel import Field, SQLModel

VIDEO_GENERATION_ENABLED = "video_generation_enabled"

# 최초 DB 초기화 시 한 번만 삽입되는 기본값
DEFAULT_SETTINGS: dict[str, str] = {
    VIDEO_GENERATION_ENABLED: "true",
}


class AdminSetting(SQLModel, table=True):
    __tablename__ = "admin_settings"

    key: str = Field(primary_key=True, max_length=100)
    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
