from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel


class VideoStatus(StrEnum):
    PENDING = "pending"
    TRANSLATING = "translating"
    GENERATING = "generating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (VideoStatus.COMPLETED, VideoStatus.ERROR)

    def can_transition_to(self, target: "VideoStatus") -> bool:
        """상태는 앞으로만 진행한다.

        - 같은 상태로의 전이는 no-op으로 허용 (재시도 루프가 processing에서
          generating으로 되돌아가지 않도록)
        - error는 종료 상태가 아닌 모든 상태에서 진입 가능
        - 단계를 건너뛰는 전이는 불가
        """
        if target == self:
            return True
        if self.is_terminal:
            return False
        if target == VideoStatus.ERROR:
            return True
        return _PIPELINE.index(target) == _PIPELINE.index(self) + 1


_PIPELINE = [
    VideoStatus.PENDING,
    VideoStatus.TRANSLATING,
    VideoStatus.GENERATING,
    VideoStatus.PROCESSING,
    VideoStatus.COMPLETED,
]


class VideoRecord(SQLModel, table=True):
    __tablename__ = "videos"

    id: str = Field(primary_key=True, max_length=255)
    korean_prompt: str
    english_prompt: str = ""
    user_email: str = Field(default="", max_length=255)
    status: str = Field(default=VideoStatus.PENDING, max_length=50, index=True)
    video_url: str | None = None
    thumbnail_url: str | None = None
    gcs_uri: str | None = None
    duration: int | None = None
    resolution: str | None = Field(default=None, max_length=50)
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    completed_at: datetime | None = None
