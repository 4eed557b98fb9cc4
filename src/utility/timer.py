"""처리 시간 측정 유틸리티."""

import time
from contextlib import contextmanager

from loguru import logger


@contextmanager
def timer(label: str = ""):
    """컨텍스트 매니저: 블록 실행 시간을 측정한다.

    블록 안에서도 t.elapsed_ms로 지금까지의 경과 시간을 읽을 수 있어서
    실패 로그에 단계별 소요 시간을 남길 때 쓴다.

    사용법:
        with timer("video generation") as t:
            ...
            logger.warning(f"failed after {t.elapsed_ms}ms")
    """
    t = _TimerResult(time.perf_counter())
    try:
        yield t
    finally:
        t.stop()
        if label:
            logger.info(f"[{label}] {t.elapsed:.3f}s")


class _TimerResult:
    def __init__(self, start: float):
        self._start = start
        self._end: float | None = None

    def stop(self) -> None:
        self._end = time.perf_counter()

    @property
    def elapsed(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return end - self._start

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)
