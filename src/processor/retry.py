"""명시적인 재시도 정책.

시도 횟수와 대기 곡선을 RetryPolicy 한 곳에 모아두고,
sleep을 주입받아 테스트에서는 실제로 기다리지 않는다.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 5.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_index: int) -> float:
        """retry_index번째(0부터) 재시도 전 대기 시간. 기본값이면 5s, 10s, 20s."""
        return self.base_delay * (2**retry_index)


class RetryExhausted(Exception):
    """모든 재시도가 실패했을 때. 마지막 오류와 재시도 횟수를 담는다."""

    def __init__(self, last_error: Exception, retries: int):
        self.last_error = last_error
        self.retries = retries
        super().__init__(f"{last_error} (after {retries} retries)")


async def run_with_retry(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
    on_failure: Callable[[int, Exception], Awaitable[None]] | None = None,
) -> T:
    """operation(attempt)을 정책에 맞게 반복 호출한다.

    - attempt는 0부터 시작 (0 = 최초 시도)
    - 실패할 때마다 on_failure(attempt, error)를 먼저 호출하고 대기 후 재시도
    - 재시도를 모두 소진하면 RetryExhausted
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation(attempt)
        except Exception as exc:
            if on_failure is not None:
                await on_failure(attempt, exc)
            if attempt >= policy.max_retries:
                raise RetryExhausted(exc, attempt) from exc
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{label} failed, retrying in {delay:.0f}s | "
                f"attempt={attempt + 1}/{policy.max_attempts} error={exc}"
            )
            await sleep(delay)
    raise AssertionError("unreachable")
