"""비디오 레코드 / 관리자 설정 저장소 (Status Store).

SQLModel 세션은 동기 API라서 각 메서드는 짧은 세션을 열어
asyncio.to_thread로 실행한다. 이벤트 루프는 DB 대기 중에도 막히지 않는다.

연결 오류(OperationalError)는 StoreUnavailable로 바꿔 던지고 내부 재시도는 하지 않는다.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, col, select

from core.exceptions import DuplicateVideo, InvalidStatusTransition, StoreUnavailable, VideoNotFound
from model.admin_setting import DEFAULT_SETTINGS, VIDEO_GENERATION_ENABLED, AdminSetting
from model.video import VideoRecord, VideoStatus

T = TypeVar("T")

# 외부에서 수정할 수 없는 필드
_IMMUTABLE_FIELDS = {"id", "created_at"}


class VideoRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    async def _run(self, fn: Callable[[Session], T]) -> T:
        def _call() -> T:
            with Session(self.engine, expire_on_commit=False) as session:
                return fn(session)

        try:
            return await asyncio.to_thread(_call)
        except OperationalError as e:
            logger.error(f"Database - connection error: {e}")
            raise StoreUnavailable from e

    # --- 비디오 레코드 ---

    async def create(self, record: VideoRecord) -> VideoRecord:
        def _create(session: Session) -> VideoRecord:
            session.add(record)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise DuplicateVideo(f"이미 존재하는 비디오 ID입니다: {record.id}") from None
            session.refresh(record)
            return record

        created = await self._run(_create)
        logger.debug(f"Database - video record inserted | id={created.id}")
        return created

    async def get(self, video_id: str) -> VideoRecord | None:
        return await self._run(lambda session: session.get(VideoRecord, video_id))

    async def get_or_raise(self, video_id: str) -> VideoRecord:
        record = await self.get(video_id)
        if record is None:
            raise VideoNotFound
        return record

    async def update(self, video_id: str, **fields: Any) -> VideoRecord:
        """필드 일부를 갱신한다 (상태 검증 없음). 레코드가 없으면 VideoNotFound."""
        bad = _IMMUTABLE_FIELDS.intersection(fields)
        if bad:
            raise ValueError(f"immutable fields: {sorted(bad)}")

        def _update(session: Session) -> VideoRecord:
            record = session.get(VideoRecord, video_id)
            if record is None:
                raise VideoNotFound
            for key, value in fields.items():
                setattr(record, key, value)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

        record = await self._run(_update)
        logger.debug(f"Database - video record updated | id={video_id} fields={sorted(fields)}")
        return record

    async def transition(self, video_id: str, status: VideoStatus, **fields: Any) -> VideoRecord:
        """상태 전이 + 필드 갱신을 한 트랜잭션에서 처리한다.

        - 허용되지 않는 전이는 InvalidStatusTransition
        - completed로 처음 들어갈 때만 completed_at을 기록
        - error가 아니면 error_message는 비운다
        """

        def _transition(session: Session) -> VideoRecord:
            record = session.get(VideoRecord, video_id)
            if record is None:
                raise VideoNotFound
            current = VideoStatus(record.status)
            if not current.can_transition_to(status):
                raise InvalidStatusTransition(f"{current} -> {status} (video {video_id})")

            for key, value in fields.items():
                setattr(record, key, value)
            if status == VideoStatus.COMPLETED and record.completed_at is None:
                record.completed_at = datetime.now(UTC)
            if status != VideoStatus.ERROR:
                record.error_message = None
            record.status = status
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

        record = await self._run(_transition)
        logger.debug(f"Database - status transition | id={video_id} status={status}")
        return record

    async def list_by_status(self, status: VideoStatus) -> list[VideoRecord]:
        def _list(session: Session) -> list[VideoRecord]:
            stmt = (
                select(VideoRecord)
                .where(VideoRecord.status == status)
                .order_by(col(VideoRecord.created_at).desc())
            )
            return list(session.exec(stmt).all())

        return await self._run(_list)

    async def list_recent(self, limit: int = 50, offset: int = 0) -> list[VideoRecord]:
        def _list(session: Session) -> list[VideoRecord]:
            stmt = (
                select(VideoRecord)
                .order_by(col(VideoRecord.created_at).desc())
                .offset(offset)
                .limit(limit)
            )
            return list(session.exec(stmt).all())

        return await self._run(_list)

    async def list_by_ids(self, ids: list[str]) -> list[VideoRecord]:
        if not ids:
            return []

        def _list(session: Session) -> list[VideoRecord]:
            stmt = (
                select(VideoRecord)
                .where(col(VideoRecord.id).in_(ids))
                .order_by(col(VideoRecord.created_at).desc())
            )
            return list(session.exec(stmt).all())

        return await self._run(_list)

    async def delete(self, video_id: str) -> bool:
        def _delete(session: Session) -> bool:
            record = session.get(VideoRecord, video_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

        deleted = await self._run(_delete)
        if not deleted:
            logger.warning(f"Database - no video record found to delete | id={video_id}")
        return deleted

    async def delete_many(self, ids: list[str]) -> int:
        if not ids:
            return 0

        def _delete(session: Session) -> int:
            records = session.exec(select(VideoRecord).where(col(VideoRecord.id).in_(ids))).all()
            for record in records:
                session.delete(record)
            session.commit()
            return len(records)

        count = await self._run(_delete)
        logger.info(f"Database - video records deleted | count={count} requested={len(ids)}")
        return count

    async def clear_all(self) -> int:
        def _clear(session: Session) -> int:
            records = session.exec(select(VideoRecord)).all()
            for record in records:
                session.delete(record)
            session.commit()
            return len(records)

        count = await self._run(_clear)
        logger.info(f"Database - all video records cleared | count={count}")
        return count

    async def stats(self) -> dict[str, int]:
        def _stats(session: Session) -> dict[str, int]:
            rows = session.exec(
                select(VideoRecord.status, func.count()).group_by(VideoRecord.status)
            ).all()
            counts = {status: count for status, count in rows}
            return {
                "totalVideos": sum(counts.values()),
                "completedVideos": counts.get(VideoStatus.COMPLETED, 0),
                "errorVideos": counts.get(VideoStatus.ERROR, 0),
            }

        return await self._run(_stats)

    # --- 관리자 설정 ---

    async def seed_defaults(self) -> None:
        """기본 설정을 없을 때만 넣는다. 기존 값은 건드리지 않는다."""

        def _seed(session: Session) -> list[str]:
            inserted = []
            for key, value in DEFAULT_SETTINGS.items():
                if session.get(AdminSetting, key) is None:
                    session.add(AdminSetting(key=key, value=value))
                    inserted.append(key)
            session.commit()
            return inserted

        inserted = await self._run(_seed)
        if inserted:
            logger.info(f"Database - default admin settings created | keys={inserted}")

    async def get_setting(self, key: str, default: str | None = None) -> str | None:
        setting = await self._run(lambda session: session.get(AdminSetting, key))
        return setting.value if setting else default

    async def set_setting(self, key: str, value: str) -> None:
        def _set(session: Session) -> None:
            setting = session.get(AdminSetting, key)
            if setting is None:
                setting = AdminSetting(key=key, value=value)
            else:
                setting.value = value
                setting.updated_at = datetime.now(UTC)
            session.add(setting)
            session.commit()

        await self._run(_set)
        logger.info(f"Database - admin setting updated | {key}={value}")

    async def is_generation_enabled(self) -> bool:
        value = await self.get_setting(VIDEO_GENERATION_ENABLED, DEFAULT_SETTINGS[VIDEO_GENERATION_ENABLED])
        return str(value).lower() == "true"

    async def set_generation_enabled(self, enabled: bool) -> None:
        await self.set_setting(VIDEO_GENERATION_ENABLED, "true" if enabled else "false")
