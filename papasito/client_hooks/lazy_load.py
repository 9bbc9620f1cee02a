"""Deferred loading of a value with discard-on-teardown semantics"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadState:
    data: Any = None
    is_loading: bool = True
    error: Optional[BaseException] = None


class LazyLoader:
    """
    Runs `producer` on entry and again whenever `update()` sees new dependencies.

    Only the latest run may publish its outcome, and nothing is published after
    `__aexit__`. A pending `delay` is cancelled on teardown; a producer that is
    already running is left to finish and its result is dropped.
    """

    def __init__(
        self,
        producer: Callable[[], Awaitable[Any]],
        dependencies: Iterable = (),
        delay: float = 0,
    ):
        self.producer = producer
        self.dependencies = tuple(dependencies)
        self.delay = delay
        self.state = LoadState()
        self._run_id = 0
        self._closed = False
        self._timer: Optional[asyncio.Task] = None
        self._tasks: set = set()

    async def __aenter__(self) -> "LazyLoader":
        self._closed = False
        self._start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def update(self, dependencies: Iterable) -> bool:
        """Restart loading if the dependencies changed; returns whether it did"""
        dependencies = tuple(dependencies)
        if dependencies == self.dependencies:
            return False
        self.dependencies = dependencies
        self._start()
        return True

    def close(self) -> None:
        self._closed = True
        self._cancel_timer()

    async def settle(self) -> LoadState:
        """Wait for the pending delay and every started producer, then return the state"""
        while True:
            self._tasks = {task for task in self._tasks if not task.done()}
            pending = set(self._tasks)
            if self._timer is not None and not self._timer.done():
                pending.add(self._timer)
            if not pending:
                return self.state
            await asyncio.wait(pending)

    def _start(self) -> None:
        self._cancel_timer()
        self._run_id += 1
        self.state = replace(self.state, is_loading=True, error=None)

        if self.delay > 0:
            self._timer = asyncio.ensure_future(self._launch_later(self._run_id))
        else:
            self._launch(self._run_id)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _launch_later(self, run_id: int) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._launch(run_id)

    def _launch(self, run_id: int) -> None:
        task = asyncio.ensure_future(self._load(run_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, run_id: int) -> bool:
        return not self._closed and run_id == self._run_id

    async def _load(self, run_id: int) -> None:
        try:
            result = await self.producer()
        except Exception as e:
            if self._is_current(run_id):
                self.state = replace(self.state, is_loading=False, error=e)
            else:
                logger.debug(f"Discarded error from superseded load: {e}")
            return

        if self._is_current(run_id):
            self.state = LoadState(data=result, is_loading=False, error=None)
