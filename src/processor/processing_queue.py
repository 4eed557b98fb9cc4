"""FFmpeg 동시 실행 수를 제한하는 FIFO 큐.

후처리 호출이 몇 개 들어와 있든 실제 미디어 분석은 최대 max_concurrent개만
동시에 실행된다. 나머지는 들어온 순서대로 대기한다.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


class BoundedConcurrencyQueue:
    def __init__(self, max_concurrent: int = 3):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._pending: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._running = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> int:
        return self._running

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        """작업을 넣고 결과를 기다린다.

        task는 인자 없는 코루틴 팩토리. 자리가 있으면 바로 실행되고,
        없으면 FIFO로 대기한다. 성공/실패는 그대로 호출자에게 전달된다.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending.append((task, future))
        if self._running >= self.max_concurrent:
            logger.debug(
                f"Processing queue saturated | running={self._running} pending={len(self._pending)}"
            )
        self._drain()
        return await future

    def _drain(self) -> None:
        while self._running < self.max_concurrent and self._pending:
            task, future = self._pending.popleft()
            if future.cancelled():
                # 호출자가 이미 포기한 작업은 실행하지 않는다
                continue
            self._running += 1
            runner = asyncio.create_task(self._run(task, future))
            self._tasks.add(runner)
            runner.add_done_callback(self._tasks.discard)

    async def _run(self, task: Callable[[], Awaitable[Any]], future: asyncio.Future) -> None:
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            # 실패해도 다음 작업을 꺼낸다
            self._running -= 1
            self._drain()

    async def shutdown(self) -> None:
        """대기 중인 작업을 취소하고 실행 중인 작업을 정리한다."""
        while self._pending:
            _, future = self._pending.popleft()
            future.cancel()
        for runner in list(self._tasks):
            runner.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
