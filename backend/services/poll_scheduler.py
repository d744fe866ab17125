"""
Fixed-interval poll scheduler with one IDLE/RUNNING state machine per task.

Rules:
- A task goes IDLE -> RUNNING when its timer fires or it is triggered
  externally (e.g. on reconnect), and back to IDLE when the run ends,
  successfully or not.
- A tick that arrives while the same task is RUNNING is dropped; the
  in-flight run is left to finish and publish.
- A failing job is logged and counted; other tasks keep their schedule.
- While disconnected no run is started and finished runs do not publish,
  but whatever was published before stays in place.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from utils.clock import utcnow
from utils.logger import scheduler_logger as logger


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class CycleEvent:
    """Emitted to listeners after every run of a task."""

    task: str
    ok: bool
    started_at: datetime
    finished_at: datetime
    published: bool = False
    error: Optional[str] = None


@dataclass
class PollTask:
    name: str
    interval_seconds: float
    job: Callable[[], Awaitable[Any]]
    publish: Optional[Callable[[Any], Any]] = None
    state: TaskState = TaskState.IDLE
    runs: int = 0
    failures: int = 0
    skipped_ticks: int = 0
    discarded_results: int = 0
    last_error: Optional[str] = None
    last_run_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    timer: Optional[asyncio.Task] = field(default=None, repr=False)
    current: Optional[asyncio.Task] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "failures": self.failures,
            "skipped_ticks": self.skipped_ticks,
            "discarded_results": self.discarded_results,
            "last_error": self.last_error,
            "last_run_at": self.last_run_at.isoformat() + "Z" if self.last_run_at else None,
            "last_success_at": (
                self.last_success_at.isoformat() + "Z" if self.last_success_at else None
            ),
        }


def _exception_text(exc: BaseException) -> str:
    text = str(exc).strip()
    return text if text else repr(exc)


class PollScheduler:
    def __init__(self):
        self._tasks: dict[str, PollTask] = {}
        self._listeners: list[Callable] = []
        self._running = False
        self._connected = True

    # ==================== REGISTRATION ====================

    def register(
        self,
        name: str,
        interval_seconds: float,
        job: Callable[[], Awaitable[Any]],
        publish: Optional[Callable[[Any], Any]] = None,
    ) -> PollTask:
        """Add a task. ``publish`` receives the job's result while connected."""
        if name in self._tasks:
            raise ValueError(f"Task already registered: {name}")
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive for task {name}")
        task = PollTask(name=name, interval_seconds=interval_seconds, job=job, publish=publish)
        self._tasks[name] = task
        if self._running:
            task.timer = asyncio.create_task(self._timer_loop(task))
        return task

    def add_listener(self, callback: Callable) -> None:
        """Register a sync or async callable receiving each CycleEvent."""
        self._listeners.append(callback)

    def task(self, name: str) -> PollTask:
        return self._tasks[name]

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def running(self) -> bool:
        return self._running

    # ==================== LIFECYCLE ====================

    async def start(self, run_immediately: bool = True) -> None:
        """Start every task's timer; optionally run each task once right away."""
        if self._running:
            logger.warning("Poll scheduler already running")
            return
        self._running = True
        for task in self._tasks.values():
            task.timer = asyncio.create_task(self._timer_loop(task))
        logger.info(
            "Poll scheduler started",
            tasks={name: t.interval_seconds for name, t in self._tasks.items()},
        )
        if run_immediately:
            self.trigger_all()

    async def stop(self) -> None:
        """Cancel timers and any in-flight runs."""
        self._running = False
        pending: list[asyncio.Task] = []
        for task in self._tasks.values():
            for handle in (task.timer, task.current):
                if handle is not None and not handle.done():
                    handle.cancel()
                    pending.append(handle)
            task.timer = None
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Poll scheduler stopped", status=self.get_status())

    async def wait_idle(self) -> None:
        """Wait until no task has a run in flight."""
        while True:
            in_flight = [
                t.current for t in self._tasks.values() if t.current is not None and not t.current.done()
            ]
            if not in_flight:
                return
            await asyncio.gather(*in_flight, return_exceptions=True)

    # ==================== CONNECTIVITY ====================

    def disconnect(self) -> None:
        """Provider became unavailable: stop producing state, keep what was published."""
        if not self._connected:
            return
        self._connected = False
        logger.warning("Provider disconnected, polling paused")

    def reconnect(self) -> None:
        """Provider is back: resume and refresh every task immediately."""
        if self._connected:
            return
        self._connected = True
        logger.info("Provider reconnected, refreshing all tasks")
        self.trigger_all()

    # ==================== TRIGGERS ====================

    def trigger(self, name: str) -> bool:
        """Start a run of ``name`` unless it is already running or we are offline.

        Returns True when a run was started.
        """
        task = self._tasks[name]
        if not self._connected:
            return False
        if task.state is TaskState.RUNNING:
            task.skipped_ticks += 1
            logger.debug("Skipped overlapping tick", task=name, skipped=task.skipped_ticks)
            return False
        task.state = TaskState.RUNNING
        task.current = asyncio.create_task(self._run(task))
        return True

    def trigger_all(self) -> None:
        for name in self._tasks:
            self.trigger(name)

    async def _timer_loop(self, task: PollTask) -> None:
        try:
            while self._running:
                await asyncio.sleep(task.interval_seconds)
                if self._running:
                    self.trigger(task.name)
        except asyncio.CancelledError:
            logger.debug("Timer cancelled", task=task.name)

    # ==================== RUNS ====================

    async def _run(self, task: PollTask) -> None:
        started_at = utcnow()
        ok = False
        published = False
        error: Optional[str] = None
        try:
            result = await task.job()
            if self._connected:
                if task.publish is not None:
                    outcome = task.publish(result)
                    if asyncio.iscoroutine(outcome):
                        await outcome
                published = True
            else:
                task.discarded_results += 1
                logger.info("Discarded result produced while disconnected", task=task.name)
            ok = True
        except asyncio.CancelledError:
            task.state = TaskState.IDLE
            raise
        except Exception as e:
            task.failures += 1
            error = _exception_text(e)
            logger.warning(
                "Poll task failed",
                task=task.name,
                error_type=type(e).__name__,
                error=error,
                failures=task.failures,
            )
        finished_at = utcnow()
        task.state = TaskState.IDLE
        task.runs += 1
        task.last_run_at = finished_at
        task.last_error = error
        if ok:
            task.last_success_at = finished_at

        await self._emit(
            CycleEvent(
                task=task.name,
                ok=ok,
                started_at=started_at,
                finished_at=finished_at,
                published=published,
                error=error,
            )
        )

    async def _emit(self, event: CycleEvent) -> None:
        for callback in self._listeners:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Cycle listener error",
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                    callback=getattr(callback, "__name__", str(callback)),
                )

    # ==================== STATUS ====================

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "connected": self._connected,
            "tasks": {name: task.to_dict() for name, task in self._tasks.items()},
        }
