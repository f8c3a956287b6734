"""Durable periodic task scheduler."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.sql import func, select
from tzlocal import get_localzone

from metachan import log
from metachan.config.database import db
from metachan.exceptions import TaskAlreadyRegisteredError, TaskNotFoundError
from metachan.models.db.task_log import TaskLog, TaskOutcome

__all__ = ["Task", "TaskManager", "TaskStatus"]


@dataclass(frozen=True, slots=True)
class Task:
    """A named coroutine to run on a fixed interval."""

    name: str
    interval: timedelta
    execute: Callable[[], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class TaskStatus:
    """Point-in-time view of a task."""

    name: str
    registered: bool
    running: bool
    last_run: datetime | None
    next_run: datetime | None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskManager:
    """Registers, time-gates, executes and logs periodic background tasks.

    Whether a task is due is decided from the `task_log` table when the task is
    started, so restarts do not re-run a task whose interval has not elapsed.
    Once started, the task's timer executes it on every interval tick without
    consulting the log again. Every execution appends a success or failure row.

    Stopping a task only cancels its timer; an execution already in flight is
    shielded and runs to completion.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize the task manager.

        Args:
            clock (Callable[[], datetime]): Returns the current aware datetime.
        """
        self.clock = clock
        self._tasks: dict[str, Task] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._executions: set[asyncio.Task] = set()  # Prevents early GC

    def register_task(self, task: Task) -> None:
        """Register a task.

        Raises:
            TaskAlreadyRegisteredError: If a task with the same name exists.
        """
        if task.name in self._tasks:
            raise TaskAlreadyRegisteredError(
                f"Task '{task.name}' is already registered"
            )
        self._tasks[task.name] = task
        log.debug(f"Registered task $$'{task.name}'$$ every {task.interval}")

    def _get_task(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskNotFoundError(f"Task '{name}' is not registered") from None

    def _last_run(self, name: str) -> datetime | None:
        with db() as ctx:
            return ctx.session.scalar(
                select(func.max(TaskLog.executed_at)).where(TaskLog.task_name == name)
            )

    def _record(self, name: str, status: TaskOutcome, error: str | None = None) -> None:
        with db() as ctx:
            ctx.session.add(
                TaskLog(
                    task_name=name,
                    status=status,
                    error=error,
                    executed_at=self.clock(),
                )
            )
            ctx.session.commit()

    def time_until_due(self, task: Task) -> timedelta:
        """Time left until the task's interval elapses since its last logged run.

        Returns:
            timedelta: Zero when the task is due now.
        """
        last_run = self._last_run(task.name)
        if last_run is None:
            return timedelta(0)
        return max(last_run + task.interval - self.clock(), timedelta(0))

    async def _run(self, task: Task) -> None:
        log.info(f"Running task $$'{task.name}'$$")
        try:
            await task.execute()
        except Exception as e:
            log.error(f"Task $$'{task.name}'$$ failed: {e}", exc_info=True)
            self._record(task.name, TaskOutcome.FAILURE, str(e) or repr(e))
            return

        self._record(task.name, TaskOutcome.SUCCESS)
        log.success(f"Task $$'{task.name}'$$ completed")

    async def _execute(self, task: Task) -> None:
        execution = asyncio.ensure_future(self._run(task))
        self._executions.add(execution)
        execution.add_done_callback(self._executions.discard)
        await asyncio.shield(execution)

    async def _timer(self, task: Task, first_delay: timedelta) -> None:
        delay = first_delay
        while True:
            next_run = self.clock() + delay
            log.debug(
                f"Next run of $$'{task.name}'$$ scheduled for "
                f"{next_run.astimezone(get_localzone())}"
            )
            await asyncio.sleep(max(delay.total_seconds(), 0))
            await self._execute(task)
            delay = task.interval

    async def start_task(self, name: str) -> None:
        """Start a task, executing it first if it is due.

        When the task is not due, the first tick is delayed by the time remaining
        until its interval elapses.

        Raises:
            TaskNotFoundError: If the task is not registered.
        """
        task = self._get_task(name)
        self.stop_task(name)

        remaining = self.time_until_due(task)
        if remaining <= timedelta(0):
            await self._execute(task)
            first_delay = task.interval
        else:
            first_delay = remaining
            log.info(f"Skipping $$'{task.name}'$$, not due for another {remaining}")

        timer = asyncio.create_task(self._timer(task, first_delay))
        self._timers[name] = timer

    def stop_task(self, name: str) -> None:
        """Cancel a task's timer.

        Raises:
            TaskNotFoundError: If the task is not registered.
        """
        self._get_task(name)
        timer = self._timers.pop(name, None)
        if timer is not None and not timer.done():
            timer.cancel()
            log.debug(f"Stopped task $$'{name}'$$")

    async def start_all_tasks(self) -> None:
        """Start every registered task."""
        for name in list(self._tasks):
            await self.start_task(name)

    def stop_all_tasks(self) -> None:
        """Cancel every task timer."""
        for name in list(self._timers):
            self.stop_task(name)

    async def wait_for_executions(self) -> None:
        """Wait for executions that are still in flight."""
        if self._executions:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*self._executions, return_exceptions=True)

    def get_task_status(self, name: str) -> TaskStatus:
        """Get the status of a task.

        Unknown names are reported as unregistered and not running, with any
        run still recorded in the log.
        """
        task = self._tasks.get(name)
        timer = self._timers.get(name)
        last_run = self._last_run(name)
        return TaskStatus(
            name=name,
            registered=task is not None,
            running=timer is not None and not timer.done(),
            last_run=last_run,
            next_run=last_run + task.interval if task and last_run else None,
        )

    def get_all_task_statuses(self) -> dict[str, TaskStatus]:
        """Get the status of every registered task."""
        return {name: self.get_task_status(name) for name in self._tasks}
