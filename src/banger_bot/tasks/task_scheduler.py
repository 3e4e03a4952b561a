# src/banger_bot/tasks/task_scheduler.py

"""
Repost scheduler.

One asyncio task ("driver") per active RepostTask:
- waits until next_fire_time, in steps no longer than max_delay_ms,
- fires: starts the publish action in the background, decrements the count,
  advances next_fire_time and persists (or removes the finished task),
- loops until the task is done.

Startup runs a recovery pass first: every task that fell due while the process
was down fires once, and only then are drivers armed.

Publishing is fire-and-forget. The schedule never waits on, retries or rolls
back because of the network.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from .task_models import RepostTask
from .task_store import TaskStore

logger = logging.getLogger(__name__)

# 30 days, well below the 2**31 ms ceiling of common timer APIs.
DEFAULT_MAX_DELAY_MS = 30 * 24 * 60 * 60 * 1000

FireAction = Callable[[RepostTask], Awaitable[Any]]
Clock = Callable[[], int]
Sleeper = Callable[[float], Awaitable[None]]


def now_ms() -> int:
    return int(time.time() * 1000)


class TaskScheduler:
    def __init__(
        self,
        store: TaskStore,
        on_fire: FireAction,
        *,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
        on_fault: Callable[[BaseException], None] | None = None,
    ) -> None:
        if max_delay_ms <= 0:
            raise ValueError("max_delay_ms must be positive")
        self._store = store
        self._on_fire = on_fire
        self._max_delay_ms = int(max_delay_ms)
        self._clock = clock or now_ms
        self._sleep = sleep or asyncio.sleep
        self._on_fault = on_fault

        self._drivers: dict[str, asyncio.Task[None]] = {}
        self._publishes: set[asyncio.Future[Any]] = set()
        self._stopped = False

    # ---- introspection ----

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._drivers.values() if not t.done())

    def is_scheduled(self, target_id: str) -> bool:
        driver = self._drivers.get(target_id)
        return driver is not None and not driver.done()

    # ---- lifecycle ----

    async def start(self) -> None:
        """Recovery pass, then arm one driver per remaining task."""
        now = self._clock()
        due = [t for t in self._store.tasks if t.next_fire_time <= now]
        for task in due:
            logger.info(
                "Processing missed task target=%s next_fire_time=%d", task.target_id, task.next_fire_time
            )
            self._fire(task, next_fire_time=now + task.interval.period_ms)

        for task in self._store.tasks:
            self.schedule(task)

        logger.info("Scheduler started: recovered=%d armed=%d", len(due), self.active_count)

    def schedule(self, task: RepostTask) -> None:
        """Arm a driver for the task unless one is already running for its target."""
        if self._stopped:
            logger.warning("Scheduler stopped; not arming target=%s", task.target_id)
            return
        if self.is_scheduled(task.target_id):
            return

        driver = asyncio.create_task(self._drive(task), name=f"repost:{task.target_id}")
        self._drivers[task.target_id] = driver
        driver.add_done_callback(lambda d, key=task.target_id: self._driver_done(key, d))

    async def stop(self) -> None:
        """Cancel every pending wait and in-flight publish. Nothing is persisted."""
        self._stopped = True
        pending = [*self._drivers.values(), *self._publishes]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._drivers.clear()
        self._publishes.clear()
        logger.info("Scheduler stopped (cancelled=%d)", len(pending))

    # ---- internals ----

    async def _drive(self, task: RepostTask) -> None:
        while True:
            now = self._clock()
            delay = task.next_fire_time - now

            if delay > self._max_delay_ms:
                # Bridge only; the task is left untouched.
                await self._sleep(self._max_delay_ms / 1000.0)
                continue

            if delay <= 0:
                logger.info("Executing missed or due task target=%s", task.target_id)
                if not self._fire(task, next_fire_time=now + task.interval.period_ms):
                    return
                continue

            await self._sleep(delay / 1000.0)
            logger.info("Executing scheduled task target=%s", task.target_id)
            if not self._fire(task, next_fire_time=task.next_fire_time + task.interval.period_ms):
                return

    def _fire(self, task: RepostTask, *, next_fire_time: int) -> bool:
        """
        Perform one firing. Returns True while the task has reposts left.

        Runs without awaiting so no other firing can interleave.
        """
        self._spawn_publish(replace(task))

        remaining = task.remaining_count - 1
        if remaining <= 0:
            self._store.remove(task)
            task.remaining_count = 0
            logger.info("Task finished target=%s", task.target_id)
            return False

        def advance(t: RepostTask) -> None:
            t.remaining_count = remaining
            t.next_fire_time = max(next_fire_time, t.next_fire_time)

        self._store.mutate(task, advance)
        logger.debug(
            "Task target=%s remaining=%d next_fire_time=%d",
            task.target_id,
            task.remaining_count,
            task.next_fire_time,
        )
        return True

    def _spawn_publish(self, snapshot: RepostTask) -> None:
        try:
            pub = asyncio.ensure_future(self._on_fire(snapshot))
        except Exception:
            logger.exception("Repost action failed to start target=%s", snapshot.target_id)
            return
        self._publishes.add(pub)
        pub.add_done_callback(lambda p, s=snapshot: self._publish_done(s, p))

    def _publish_done(self, snapshot: RepostTask, pub: asyncio.Future[Any]) -> None:
        self._publishes.discard(pub)
        if pub.cancelled():
            return
        exc = pub.exception()
        if exc is not None:
            logger.error(
                "Repost publish failed target=%s", snapshot.target_id, exc_info=exc
            )

    def _driver_done(self, key: str, driver: asyncio.Task[None]) -> None:
        if self._drivers.get(key) is driver:
            del self._drivers[key]
        if driver.cancelled():
            return
        exc = driver.exception()
        if exc is None:
            return
        logger.error("Scheduler driver crashed target=%s", key, exc_info=exc)
        if self._on_fault is not None:
            self._on_fault(exc)
