"""Minute-tick scheduler dispatching due tasks to worker threads.

Each tick re-reads the configuration store, picks enabled tasks whose HH:MM
equals the current local time, and launches one dispatch group running every
due task in its own thread. The tick never waits for the group, so slow
portal calls cannot delay the next tick. Groups are kept until they finish so
callers can await them.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from autocheckin.config import CheckinConfig, get_config
from autocheckin.executor import TaskExecutor
from autocheckin.logging import get_logger
from autocheckin.models import Task, WeComConfig
from autocheckin.store import ConfigStore

logger = get_logger(__name__)


def due_tasks(tasks: list[Task], now: datetime) -> list[Task]:
    """Enabled tasks whose trigger time is the current minute."""
    current = now.strftime("%H:%M")
    return [task for task in tasks if task.enable and task.time == current]


class Scheduler:
    def __init__(
        self,
        store: ConfigStore,
        settings: CheckinConfig | None = None,
        executor_factory: Callable[[WeComConfig], TaskExecutor] | None = None,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.settings = settings or get_config()
        self.executor_factory = executor_factory or (
            lambda wecom: TaskExecutor(wecom, settings=self.settings)
        )
        self.clock = clock
        self.monotonic = monotonic
        self.sleep = sleep
        self._groups: set[asyncio.Task] = set()

    async def run_forever(self) -> None:
        """Tick every tick_interval_seconds until the process ends.

        Ticks are scheduled against fixed deadlines, so time spent inside a
        tick does not push later ticks back. After a stall longer than one
        interval the schedule restarts from now instead of firing a burst of
        catch-up ticks in the same minute.
        """
        interval = self.settings.tick_interval_seconds
        logger.info("scheduler_started", interval=interval)
        next_at = self.monotonic()
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.error("scheduler_tick_failed", error=str(e), exc_info=True)

            next_at += interval
            now = self.monotonic()
            if next_at < now:
                logger.warning("scheduler_behind", late_by=round(now - next_at, 3))
                next_at = now
            await self.sleep(next_at - now)

    def tick(self, now: datetime | None = None) -> asyncio.Task | None:
        """Launch the tasks due this minute. Must run inside an event loop.

        Returns:
            The dispatch group, or None when nothing is due.
        """
        now = now or self.clock()
        logger.info("scheduler_tick", time=now.strftime("%H:%M"))

        # Fresh snapshot per tick; executions never see later edits
        config = self.store.load()
        tasks = due_tasks(config.tasks, now)
        if not tasks:
            return None

        logger.info("scheduler_dispatch", count=len(tasks), tasks=[t.name for t in tasks])
        executor = self.executor_factory(config.global_.wecom)
        group = asyncio.create_task(self._dispatch(executor, tasks))
        self._groups.add(group)
        group.add_done_callback(self._groups.discard)
        return group

    async def _dispatch(self, executor: TaskExecutor, tasks: list[Task]) -> list:
        results = await asyncio.gather(
            *(asyncio.to_thread(executor.execute, task) for task in tasks),
            return_exceptions=True,
        )
        for task, result in zip(tasks, results):
            if isinstance(result, BaseException):
                logger.error(
                    "task_crashed",
                    task=task.name,
                    error=str(result),
                    type=type(result).__name__,
                )
        return results

    async def join(self) -> None:
        """Wait for every dispatch group still running."""
        if self._groups:
            await asyncio.gather(*list(self._groups), return_exceptions=True)
