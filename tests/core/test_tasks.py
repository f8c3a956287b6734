"""Tests for the durable task scheduler."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.sql import select

import metachan.core.tasks.manager as manager_module
from metachan.core.tasks import Task, TaskManager, TaskStatus
from metachan.exceptions import TaskAlreadyRegisteredError, TaskNotFoundError
from metachan.models.db.task_log import TaskLog, TaskOutcome

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
WEEK = timedelta(days=7)

_yield = asyncio.sleep


class CountingTask:
    """Task body that counts executions and can be told to fail."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def __call__(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


@pytest.fixture
def manager(in_memory_db, monkeypatch: pytest.MonkeyPatch):
    """TaskManager with a fixed clock whose timers never fire."""
    never = asyncio.Event()

    async def _blocked_sleep(_delay: float) -> None:
        await never.wait()

    monkeypatch.setattr(manager_module.asyncio, "sleep", _blocked_sleep)
    task_manager = TaskManager(clock=lambda: NOW)
    yield task_manager
    task_manager.stop_all_tasks()


def _log_run(db, name: str, executed_at: datetime) -> None:
    with db as ctx:
        ctx.session.add(
            TaskLog(task_name=name, status=TaskOutcome.SUCCESS, executed_at=executed_at)
        )
        ctx.session.commit()


def _logs(db, name: str) -> list[TaskLog]:
    with db as ctx:
        return list(
            ctx.session.scalars(
                select(TaskLog).where(TaskLog.task_name == name).order_by(TaskLog.id)
            ).all()
        )


@pytest.mark.asyncio
async def test_task_not_due_is_not_executed(manager, in_memory_db):
    """A task last run three days ago with a weekly interval is not run."""
    body = CountingTask()
    manager.register_task(Task(name="sync", interval=WEEK, execute=body))
    _log_run(in_memory_db, "sync", NOW - timedelta(days=3))

    await manager.start_task("sync")

    assert body.calls == 0
    assert len(_logs(in_memory_db, "sync")) == 1
    assert manager.get_task_status("sync").running


@pytest.mark.asyncio
async def test_task_past_due_is_executed(manager, in_memory_db):
    """A task last run eight days ago with a weekly interval is run and logged."""
    body = CountingTask()
    manager.register_task(Task(name="sync", interval=WEEK, execute=body))
    _log_run(in_memory_db, "sync", NOW - timedelta(days=8))

    await manager.start_task("sync")

    assert body.calls == 1
    logs = _logs(in_memory_db, "sync")
    assert len(logs) == 2
    assert logs[-1].status == TaskOutcome.SUCCESS
    assert logs[-1].executed_at == NOW


@pytest.mark.asyncio
async def test_never_run_task_is_executed(manager, in_memory_db):
    """A task without any log rows is due."""
    body = CountingTask()
    manager.register_task(Task(name="fresh", interval=WEEK, execute=body))

    await manager.start_all_tasks()

    assert body.calls == 1


@pytest.mark.asyncio
async def test_failed_execution_is_logged(manager, in_memory_db):
    """A failing task records a failure row with the error message."""
    body = CountingTask(error=RuntimeError("upstream down"))
    manager.register_task(Task(name="broken", interval=WEEK, execute=body))

    await manager.start_task("broken")

    logs = _logs(in_memory_db, "broken")
    assert len(logs) == 1
    assert logs[0].status == TaskOutcome.FAILURE
    assert logs[0].error == "upstream down"


def test_duplicate_registration_is_rejected(manager):
    """Registering the same name twice raises."""
    manager.register_task(Task(name="sync", interval=WEEK, execute=CountingTask()))

    with pytest.raises(TaskAlreadyRegisteredError):
        manager.register_task(Task(name="sync", interval=WEEK, execute=CountingTask()))


@pytest.mark.asyncio
async def test_unknown_task_is_rejected(manager):
    """Starting or stopping an unknown task raises."""
    with pytest.raises(TaskNotFoundError):
        await manager.start_task("missing")
    with pytest.raises(TaskNotFoundError):
        manager.stop_task("missing")


def test_unknown_task_status_is_unregistered(manager, in_memory_db):
    """Unknown names report as unregistered, keeping any logged run."""
    assert manager.get_task_status("missing") == TaskStatus(
        name="missing", registered=False, running=False, last_run=None, next_run=None
    )

    last = NOW - timedelta(days=3)
    _log_run(in_memory_db, "retired", last)
    status = manager.get_task_status("retired")
    assert not status.registered
    assert status.last_run == last
    assert status.next_run is None


@pytest.mark.asyncio
async def test_task_status_reports_next_run(manager, in_memory_db):
    """Status exposes the last run and the next run one interval later."""
    manager.register_task(Task(name="sync", interval=WEEK, execute=CountingTask()))
    last = NOW - timedelta(days=3)
    _log_run(in_memory_db, "sync", last)

    status = manager.get_task_status("sync")
    assert status.registered
    assert not status.running
    assert status.last_run == last
    assert status.next_run == last + WEEK

    await manager.start_task("sync")
    assert manager.get_all_task_statuses()["sync"].running

    manager.stop_task("sync")
    assert not manager.get_task_status("sync").running


class Ticker:
    """Stands in for `asyncio.sleep`, letting a fixed number of ticks through."""

    def __init__(self) -> None:
        self.ticks = 0
        self.delays: list[float] = []
        self.exhausted = asyncio.Event()
        self._never = asyncio.Event()

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        if self.ticks == 0:
            self.exhausted.set()
            await self._never.wait()
        self.ticks -= 1


class GatedTask:
    """Task body that blocks until released."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.finished = False

    async def __call__(self) -> None:
        self.started.set()
        await self.release.wait()
        self.finished = True


@pytest.fixture
def ticker(monkeypatch: pytest.MonkeyPatch) -> Ticker:
    """Replace timer sleeps with a Ticker."""
    fake = Ticker()
    monkeypatch.setattr(manager_module.asyncio, "sleep", fake.sleep)
    return fake


@pytest.fixture
def ticking_manager(in_memory_db, ticker):
    """TaskManager with a fixed clock whose timers fire as the ticker allows."""
    task_manager = TaskManager(clock=lambda: NOW)
    yield task_manager
    task_manager.stop_all_tasks()


@pytest.mark.asyncio
async def test_first_tick_waits_for_remaining_time(ticking_manager, ticker, in_memory_db):
    """A task that is not due fires once the rest of its interval has passed."""
    body = CountingTask()
    ticking_manager.register_task(Task(name="sync", interval=WEEK, execute=body))
    _log_run(in_memory_db, "sync", NOW - timedelta(days=3))
    ticker.ticks = 1

    await ticking_manager.start_task("sync")
    await asyncio.wait_for(ticker.exhausted.wait(), timeout=1)

    assert ticker.delays == [
        timedelta(days=4).total_seconds(),
        WEEK.total_seconds(),
    ]
    assert body.calls == 1
    assert len(_logs(in_memory_db, "sync")) == 2


@pytest.mark.asyncio
async def test_armed_timer_runs_every_tick(ticking_manager, ticker, in_memory_db):
    """Each tick executes the task even though the log shows it just ran."""
    body = CountingTask()
    ticking_manager.register_task(Task(name="sync", interval=WEEK, execute=body))
    ticker.ticks = 2

    await ticking_manager.start_task("sync")
    await asyncio.wait_for(ticker.exhausted.wait(), timeout=1)

    assert body.calls == 3
    assert ticker.delays == [WEEK.total_seconds()] * 3
    logs = _logs(in_memory_db, "sync")
    assert [row.executed_at for row in logs] == [NOW] * 3


@pytest.mark.asyncio
async def test_stop_does_not_interrupt_running_execution(
    ticking_manager, ticker, in_memory_db
):
    """Stopping a task mid-run cancels the timer but lets the run finish."""
    body = GatedTask()
    ticking_manager.register_task(Task(name="sync", interval=WEEK, execute=body))
    _log_run(in_memory_db, "sync", NOW - timedelta(days=3))
    ticker.ticks = 1

    await ticking_manager.start_task("sync")
    await asyncio.wait_for(body.started.wait(), timeout=1)
    ticking_manager.stop_task("sync")
    await _yield(0)

    assert not ticking_manager.get_task_status("sync").running
    assert not body.finished

    waiter = asyncio.ensure_future(ticking_manager.wait_for_executions())
    await _yield(0)
    assert not waiter.done()

    body.release.set()
    await asyncio.wait_for(waiter, timeout=1)

    assert body.finished
    logs = _logs(in_memory_db, "sync")
    assert len(logs) == 2
    assert logs[-1].status == TaskOutcome.SUCCESS


@pytest.mark.asyncio
async def test_wait_for_executions_without_runs_returns(ticking_manager):
    """Waiting with nothing in flight returns immediately."""
    await asyncio.wait_for(ticking_manager.wait_for_executions(), timeout=1)
