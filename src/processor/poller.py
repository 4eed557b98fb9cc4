"""장시간 실행 작업(Long-Running Operation) 폴러.

"시작 후 폴링" 방식의 비동기 작업 API를 결과 하나를 기다리는 코루틴으로 바꾼다.

대기 간격:
    min_interval * backoff_factor ** (check_count // checks_per_step)
    를 max_interval로 자르고 0~max_jitter 사이의 지터를 더한다.

폴링 중 일시적 오류:
    - 레이트 리밋(429 / RESOURCE_EXHAUSTED)이면
      min(max_rate_limit_backoff, min_interval * 2**consecutive_errors) 만큼 쉬고
      연속 오류 카운트를 다시 하나 줄인다.
    - 그 외 오류는 min_interval * 2**consecutive_errors 만큼 쉬고 재시도,
      max_consecutive_errors를 넘으면 그대로 다시 던진다.

상태 저장소에는 전혀 접근하지 않는다.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from loguru import logger

from core.exceptions import NoVideosGenerated, PollTimeout

T = TypeVar("T")


class Operation(Protocol):
    done: bool | None


@dataclass(frozen=True)
class PollPolicy:
    min_interval: float = 2.0
    max_interval: float = 30.0
    backoff_factor: float = 1.5
    checks_per_step: int = 5
    max_jitter: float = 1.0
    timeout: float = 15 * 60
    max_consecutive_errors: int = 5
    max_rate_limit_backoff: float = 60.0

    def __post_init__(self):
        if self.min_interval < 2.0:
            raise ValueError("min_interval must be at least 2 seconds")

    def base_delay(self, check_count: int) -> float:
        step = check_count // self.checks_per_step
        return min(self.max_interval, self.min_interval * self.backoff_factor**step)

    def error_backoff(self, consecutive_errors: int) -> float:
        return self.min_interval * 2**consecutive_errors

    def rate_limit_backoff(self, consecutive_errors: int) -> float:
        return min(self.max_rate_limit_backoff, self.error_backoff(consecutive_errors))


def is_rate_limit_error(exc: Exception) -> bool:
    code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if code == 429:
        return True
    text = str(exc).lower()
    return "429" in text or "resource_exhausted" in text or "rate limit" in text or "quota" in text


async def poll_until_done(
    operation: Operation,
    refresh: Callable[[Any], Awaitable[Any]],
    extract: Callable[[Any], Sequence[T] | None],
    policy: PollPolicy = PollPolicy(),
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    jitter: Callable[[float], float] = lambda bound: random.uniform(0, bound),
    label: str = "operation",
) -> list[T]:
    """operation이 done이 될 때까지 refresh로 갱신하고 extract 결과를 반환한다.

    Args:
        operation: done 플래그를 가진 작업 핸들
        refresh: 핸들을 받아 갱신된 핸들을 돌려주는 코루틴 함수
        extract: 완료된 핸들에서 결과 목록을 꺼내는 함수
        policy: 대기/타임아웃 정책
        sleep, clock, jitter: 테스트에서 교체 가능한 시간 관련 함수

    Raises:
        NoVideosGenerated: 완료되었지만 결과가 비어 있을 때
        PollTimeout: policy.timeout 이 지나도 완료되지 않을 때
    """
    if operation.done:
        results = list(extract(operation) or [])
        if not results:
            raise NoVideosGenerated("No videos generated")
        return results

    started = clock()
    check_count = 0
    consecutive_errors = 0

    while True:
        elapsed = clock() - started
        remaining = policy.timeout - elapsed
        if remaining <= 0:
            raise PollTimeout(
                f"{label} did not complete within {policy.timeout:.0f}s (checks={check_count})"
            )

        delay = policy.base_delay(check_count) + jitter(policy.max_jitter)
        await sleep(min(delay, remaining))
        if clock() - started >= policy.timeout:
            continue

        check_count += 1
        try:
            operation = await refresh(operation)
        except Exception as exc:
            consecutive_errors += 1
            if is_rate_limit_error(exc):
                backoff = policy.rate_limit_backoff(consecutive_errors)
                logger.warning(
                    f"{label} rate limited, backing off {backoff:.1f}s | "
                    f"check={check_count} consecutive_errors={consecutive_errors}"
                )
                await sleep(backoff)
                # 레이트 리밋은 연속 오류 예산에서 차감하지 않는다
                consecutive_errors = max(0, consecutive_errors - 1)
                continue

            if consecutive_errors > policy.max_consecutive_errors:
                logger.error(
                    f"{label} polling failed {consecutive_errors} times in a row, giving up | "
                    f"elapsed={clock() - started:.1f}s error={exc}"
                )
                raise
            backoff = policy.error_backoff(consecutive_errors)
            logger.warning(
                f"{label} poll error, retrying in {backoff:.1f}s | "
                f"check={check_count} consecutive_errors={consecutive_errors} error={exc}"
            )
            await sleep(backoff)
            continue

        consecutive_errors = 0
        logger.debug(f"{label} status check | check={check_count} done={bool(operation.done)}")

        if operation.done:
            results = list(extract(operation) or [])
            if not results:
                raise NoVideosGenerated("No videos found")
            logger.info(
                f"{label} completed | checks={check_count} elapsed={clock() - started:.1f}s"
            )
            return results
