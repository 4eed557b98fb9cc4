"""DB에 저장하기 전 메타데이터 값 검증."""

import re

from loguru import logger

RESOLUTION_PATTERN = re.compile(r"[0-9]+x[0-9]+")


def validate_resolution(resolution: str | None, video_id: str = "") -> str | None:
    """WxH 형식의 해상도만 통과시킨다.

    형식이 맞지 않으면 오류 대신 None을 반환하고 경고만 남긴다.
    """
    if not resolution:
        return None
    if not RESOLUTION_PATTERN.fullmatch(resolution):
        logger.warning(f"Invalid resolution dropped | video_id={video_id} resolution={resolution!r}")
        return None
    return resolution


def validate_duration(duration: float | int | None) -> int | None:
    """양의 정수 초만 허용한다."""
    if duration is None:
        return None
    seconds = round(duration)
    if seconds <= 0:
        return None
    return seconds
