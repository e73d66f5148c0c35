import asyncio
import datetime
from typing import Awaitable, Callable, Optional, Set

from loguru import logger

from db import LocalStorageRepository

ACTIVE_WORKOUT_KEY = "fitness_active_workout"
WORKOUT_DATA_KEY = "fitness_workout_data"
HEALTH_DATA_KEY = "fitness_health_data"
CUSTOM_EXERCISES_KEY = "custom_exercises"
MIGRATED_FLAG_KEY = "fitness_migrated_to_cloud"

Clock = Callable[[], datetime.datetime]


async def _run_after(previous: Optional[asyncio.Task], coro: Awaitable) -> None:
    if previous is not None:
        await asyncio.wait({previous})
    await coro


class LocalFirstStore:
    """Shared plumbing for stores that update local state before the remote backend.

    Remote writes are dispatched without waiting on them when an event loop is
    running, each one starting after the write issued before it. Outside a
    loop they run to completion. Either way a failure is logged and otherwise
    ignored.
    """

    def __init__(
        self,
        local: LocalStorageRepository,
        user_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.local = local
        self.user_id = user_id
        self.clock: Clock = clock or datetime.datetime.now
        self._pending: Set[asyncio.Task] = set()
        self._last: Optional[asyncio.Task] = None

    @property
    def remote_enabled(self) -> bool:
        return self.user_id is not None

    def _dispatch(self, label: str, coro: Awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is None:
            try:
                asyncio.run(coro)
            except Exception:
                logger.exception("Remote {} failed", label)
            return

        previous = self._last
        if previous is not None and (previous.done() or previous.get_loop() is not loop):
            previous = None
        task = loop.create_task(_run_after(previous, coro))
        self._pending.add(task)
        self._last = task

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if self._last is t:
                self._last = None
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.opt(exception=exc).error("Remote {} failed", label)

        task.add_done_callback(_done)

    async def flush(self) -> None:
        """Wait for remote writes that are still in flight."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
