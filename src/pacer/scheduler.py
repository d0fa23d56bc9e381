"""Core Scheduler class."""

from __future__ import annotations

import asyncio
import heapq
import inspect
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol

from pacer.backoff import delay_for, status_of
from pacer.config import SchedulerConfig
from pacer.errors import ConfigurationError, SchedulerStoppedError
from pacer.models import Failure, Job, JobState, Outcome, SchedulerStats, Success, Task
from pacer.reservoir import Reservoir


class SchedulerLogger(Protocol):
    """Anything with the four logging methods, e.g. a ``logging.Logger``."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


class _EventKind(str, Enum):
    RETRY_READY = "retry_ready"
    RESERVOIR_REFRESH = "reservoir_refresh"


@dataclass(order=True)
class _Event:
    fire_at: float
    seq: int
    kind: _EventKind = field(compare=False)
    job: Job | None = field(default=None, compare=False)


class Scheduler:
    """
    Throttles and sequences outbound work for one site.

    The scheduler decides WHEN a task runs. The task decides WHAT it does.

    Jobs start in FIFO order, at most ``max_concurrent`` at a time, no closer
    than ``min_time`` ms apart, and only while the reservoir has tokens.
    Failed attempts are retried with exponential backoff and re-enter at the
    back of the queue; only the last error of an exhausted job reaches the
    caller.

    Timed work (retry delays and reservoir refreshes) lives in a single
    min-heap ordered by fire time. One drive loop pops due events and then
    admits as many queued jobs as the limits allow. The loop exits on its
    own once there is nothing left to wait for.

    Example:
        scheduler = Scheduler(SchedulerConfig(max_concurrent=2, min_time=500))

        async def fetch():
            async with httpx.AsyncClient() as client:
                resp = await client.get("https://example.com", timeout=15)
                resp.raise_for_status()
                return resp.text

        page = await scheduler.schedule(fetch)
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        name: str = "default",
        logger: SchedulerLogger | None = None,
        **options: Any,
    ) -> None:
        if config is not None and options:
            raise ConfigurationError("Pass either a SchedulerConfig or keyword options, not both")
        self.config = config if config is not None else SchedulerConfig(**options)
        self.name = name
        self.logger: SchedulerLogger = logger or logging.getLogger(f"pacer.{name}")

        self._reservoir: Reservoir | None = None
        if self.config.reservoir is not None:
            self._reservoir = Reservoir(self.config.reservoir, self.config.refresh_amount)

        # Work storage
        self._queue: deque[Job] = deque()
        self._running: dict[int, Job] = {}
        self._retrying: dict[int, Job] = {}
        self._ids = itertools.count(1)

        # Counters
        self._succeeded = 0
        self._failed = 0
        self._cancelled = 0

        # Timed events and admission spacing
        self._events: list[_Event] = []
        self._event_seq = itertools.count()
        self._refresh_pending = False
        self._last_start: float | None = None

        # Drive loop state, bound to one event loop at a time
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_task: asyncio.Task | None = None
        self._job_tasks: set[asyncio.Task] = set()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopped = False

    def __repr__(self) -> str:
        return (
            f"Scheduler(name={self.name!r}, running={len(self._running)}, "
            f"queued={len(self._queue)}, retrying={len(self._retrying)})"
        )

    # --- Public API ---

    def schedule(self, task: Task) -> asyncio.Future:
        """
        Queue a zero-argument task and return a future for its outcome.

        The task may return a value or an awaitable; a raised exception and a
        failed awaitable are treated the same. The future resolves with the
        result of the first successful attempt, or raises the error of the
        final attempt once retries are exhausted.

        Must be called from a running event loop. Never raises: every problem
        is delivered through the returned future.
        """
        loop = asyncio.get_running_loop()
        job = Job(
            id=next(self._ids),
            task=task,
            future=loop.create_future(),
            enqueued_at=time.time(),
        )

        if self._stopped:
            self._finish(job, JobState.FAILED, error=SchedulerStoppedError(f"Scheduler {self.name!r} is stopped"))
            return job.future
        if not callable(task):
            self._finish(job, JobState.FAILED, error=TypeError(f"task must be callable, got {type(task).__name__}"))
            return job.future
        if not self._bind(loop):
            self._finish(job, JobState.FAILED, error=RuntimeError(f"Scheduler {self.name!r} has work on another event loop"))
            return job.future

        self._queue.append(job)
        self._idle.clear()
        self.start()
        self._wake()
        return job.future

    def start(self) -> None:
        """
        Start the drive loop if it is not running.

        Called automatically by ``schedule``.
        """
        if self._stopped or (self._loop_task is not None and not self._loop_task.done()):
            return
        loop = asyncio.get_running_loop()
        self._ensure_refresh_event(loop.time())
        self._loop_task = loop.create_task(self._drive())

    async def drain(self) -> None:
        """Wait until no job is queued, retrying or running."""
        self._bind(asyncio.get_running_loop())
        await self._idle.wait()

    def update_settings(self, **changes: Any) -> SchedulerConfig:
        """
        Change limits at runtime and return the new config.

        Accepts any ``SchedulerConfig`` field. The new values are validated
        as a whole before anything is applied. Setting ``reservoir`` resets
        the current token level to the new value; other reservoir fields keep
        the level and only change how it refills. Queued jobs are re-checked
        against the new limits immediately.
        """
        config = replace(self.config, **changes)
        self.config = config

        if config.reservoir is None:
            self._reservoir = None
        elif self._reservoir is None or "reservoir" in changes:
            self._reservoir = Reservoir(config.reservoir, config.refresh_amount)
        else:
            self._reservoir.refresh_amount = config.refresh_amount

        if changes.keys() & {"reservoir", "reservoir_refresh_interval", "reservoir_refresh_amount"}:
            # Refresh cadence restarts from now under the new settings
            self._events = [e for e in self._events if e.kind is not _EventKind.RESERVOIR_REFRESH]
            heapq.heapify(self._events)
            self._refresh_pending = False
            if self._loop_task is not None and not self._loop_task.done():
                self._ensure_refresh_event(self._loop_task.get_loop().time())

        self.logger.info("Scheduler %s settings updated: %s", self.name, changes)
        self._wake()
        return config

    async def stop(self, drop_waiting: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            drop_waiting: Reject queued and retrying jobs with
                ``SchedulerStoppedError`` instead of draining them first.

        Running jobs always finish. Further ``schedule`` calls are rejected.
        """
        if not drop_waiting:
            await self.drain()

        self._stopped = True
        dropped = list(self._queue) + list(self._retrying.values())
        self._queue.clear()
        self._retrying.clear()
        self._events.clear()
        self._refresh_pending = False
        for job in dropped:
            if job.future.cancelled():
                self._finish(job, JobState.CANCELLED)
            else:
                self._finish(job, JobState.FAILED, error=SchedulerStoppedError(f"Scheduler {self.name!r} stopped"))
        if dropped:
            self.logger.info("Scheduler %s stopped, dropped %d waiting jobs", self.name, len(dropped))

        loop_task = self._loop_task
        if loop_task is not None and not loop_task.done():
            # The loop checks _stopped on every pass
            self._wake()
            await loop_task
        self._loop_task = None

        if self._job_tasks:
            await asyncio.gather(*self._job_tasks, return_exceptions=True)
        self._update_idle()

    def is_at_capacity(self) -> bool:
        """True when no further job could start on concurrency or budget grounds."""
        if len(self._running) >= self.config.max_concurrent:
            return True
        return self._reservoir is not None and self._reservoir.empty

    def get_stats(self) -> SchedulerStats:
        return SchedulerStats(
            running=len(self._running),
            queued=len(self._queue),
            done=self._succeeded + self._failed + self._cancelled,
            capacity=self.config.max_concurrent,
            reservoir=self._reservoir.level if self._reservoir is not None else None,
            retrying=len(self._retrying),
            succeeded=self._succeeded,
            failed=self._failed,
            name=self.name,
        )

    def delay_for(self, retry_index: int, status: int | None = None) -> float:
        """Backoff in ms before retry ``retry_index`` (0-based) under this config."""
        return delay_for(retry_index, status, retry_delay=self.config.retry_delay)

    def get_retry_delay_for_status(self, status: int, attempt: int = 0) -> float:
        """Expected backoff in ms for a failure with ``status`` on retry ``attempt``."""
        return self.delay_for(attempt, status)

    # --- Drive loop ---

    async def _drive(self) -> None:
        """Pop due events, admit jobs, sleep until the next trigger."""
        loop = asyncio.get_running_loop()
        while not self._stopped:
            self._wakeup.clear()
            now = loop.time()
            self._fire_due_events(now)
            self._admit(now)

            if self._can_exit():
                self._events.clear()
                self._refresh_pending = False
                break

            timeout = self._next_deadline(now)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except asyncio.TimeoutError:
                pass
        if self._loop_task is asyncio.current_task():
            self._loop_task = None

    def _wake(self) -> None:
        self._wakeup.set()

    def _bind(self, loop: asyncio.AbstractEventLoop) -> bool:
        """
        Attach to ``loop``, resetting loop-bound state if it changed.

        A scheduler serves one event loop at a time. Moving to another loop
        is only possible while idle; returns False otherwise.
        """
        if self._loop is loop:
            return True
        if self._queue or self._running or self._retrying:
            return False
        self._loop = loop
        self._loop_task = None
        self._job_tasks = set()
        self._events.clear()
        self._refresh_pending = False
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        return True

    def _fire_due_events(self, now: float) -> None:
        while self._events and self._events[0].fire_at <= now:
            event = heapq.heappop(self._events)
            if event.kind is _EventKind.RETRY_READY:
                self._requeue(event.job)
            elif event.kind is _EventKind.RESERVOIR_REFRESH:
                self._refresh_pending = False
                added = self._reservoir.refill()
                self.logger.debug(
                    "Reservoir %s refreshed +%d (%d/%d)",
                    self.name, added, self._reservoir.level, self._reservoir.capacity,
                )
                # Fixed cadence from the previous fire time, not from now
                self._push_refresh(event.fire_at)

    def _admit(self, now: float) -> None:
        while self._queue:
            job = self._queue[0]
            if job.future.cancelled():
                self._queue.popleft()
                self._finish(job, JobState.CANCELLED)
                continue
            if not self._can_admit(now):
                break
            self._queue.popleft()
            self._start_job(job, now)

    def _can_admit(self, now: float) -> bool:
        if len(self._running) >= self.config.max_concurrent:
            return False
        if self._reservoir is not None and self._reservoir.empty:
            return False
        if self._last_start is not None and now - self._last_start < self.config.min_time / 1000:
            return False
        return True

    def _next_deadline(self, now: float) -> float | None:
        """Seconds until the next timed trigger, or None to wait for a wakeup."""
        deadlines = []
        if self._events:
            deadlines.append(self._events[0].fire_at)
        if self._queue and self._last_start is not None and len(self._running) < self.config.max_concurrent:
            if self._reservoir is None or not self._reservoir.empty:
                deadlines.append(self._last_start + self.config.min_time / 1000)
        if not deadlines:
            return None
        return max(0.0, min(deadlines) - now)

    def _can_exit(self) -> bool:
        if self._stopped:
            return True
        if self._queue or self._running or self._retrying:
            return False
        # A reservoir that is still refilling keeps the loop alive
        return (
            self._reservoir is None
            or self._reservoir.full
            or self._reservoir.refresh_amount is None
        )

    # --- Timed events ---

    def _push_event(self, fire_at: float, kind: _EventKind, job: Job | None = None) -> None:
        heapq.heappush(self._events, _Event(fire_at, next(self._event_seq), kind, job))

    def _push_refresh(self, after: float) -> None:
        interval = self.config.reservoir_refresh_interval
        if interval is None or self._reservoir is None:
            return
        self._push_event(after + interval / 1000, _EventKind.RESERVOIR_REFRESH)
        self._refresh_pending = True

    def _ensure_refresh_event(self, now: float) -> None:
        if not self._refresh_pending:
            self._push_refresh(now)

    # --- Job execution ---

    def _start_job(self, job: Job, now: float) -> None:
        job.state = JobState.RUNNING
        job.attempt += 1
        job.started_at = time.time()
        self._running[job.id] = job
        if self._reservoir is not None:
            self._reservoir.take()
        self._last_start = now

        self.logger.debug(
            "Starting job %d on %s (attempt %d/%d)",
            job.id, self.name, job.attempt, 1 + self.config.max_retries,
        )
        task = asyncio.create_task(self._run_job(job))
        self._job_tasks.add(task)
        task.add_done_callback(self._job_tasks.discard)

    async def _run_job(self, job: Job) -> None:
        try:
            outcome = await self._attempt(job.task)
        except asyncio.CancelledError:
            # The job task itself was cancelled, e.g. at event loop shutdown
            self._running.pop(job.id, None)
            job.future.cancel()
            self._finish(job, JobState.CANCELLED)
            raise
        except BaseException as e:
            self._running.pop(job.id, None)
            self._finish(job, JobState.FAILED, error=e)
            raise
        else:
            self._settle(job, outcome)
        finally:
            self._wake()

    @staticmethod
    async def _attempt(task: Task) -> Outcome:
        """Run one attempt, folding sync raises and awaited failures into a Failure."""
        try:
            result = task()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError as e:
            # Cancellation from inside the task is a failure like any other;
            # cancellation of the job task is not
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return Failure(e)
        except Exception as e:
            return Failure(e)
        return Success(result)

    def _settle(self, job: Job, outcome: Outcome) -> None:
        self._running.pop(job.id, None)

        if isinstance(outcome, Success):
            self._finish(job, JobState.SUCCEEDED, result=outcome.value)
            return

        error = outcome.error
        job.last_error = error
        max_attempts = 1 + self.config.max_retries

        if job.future.cancelled():
            self._finish(job, JobState.CANCELLED)
        elif job.attempt < max_attempts and not self._stopped:
            status = status_of(error)
            delay = self.delay_for(job.attempt - 1, status)
            job.state = JobState.RETRYING
            self._retrying[job.id] = job
            loop = asyncio.get_running_loop()
            self._push_event(loop.time() + delay / 1000, _EventKind.RETRY_READY, job)
            self.logger.warning(
                "Job %d on %s failed (attempt %d/%d, status=%s), retrying in %.0fms: %s",
                job.id, self.name, job.attempt, max_attempts, status, delay, error,
            )
        else:
            self.logger.error(
                "Job %d on %s failed after %d attempts: %s",
                job.id, self.name, job.attempt, error,
            )
            self._finish(job, JobState.FAILED, error=error)

    def _requeue(self, job: Job | None) -> None:
        if job is None or self._retrying.pop(job.id, None) is None:
            return
        if job.future.cancelled():
            self._finish(job, JobState.CANCELLED)
            return
        job.state = JobState.QUEUED
        self._queue.append(job)

    def _finish(
        self,
        job: Job,
        state: JobState,
        *,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        """Move a job to a terminal state and settle its future."""
        job.state = state
        if state is JobState.SUCCEEDED:
            self._succeeded += 1
        elif state is JobState.FAILED:
            self._failed += 1
        else:
            self._cancelled += 1

        if not job.future.done():
            if error is not None:
                job.future.set_exception(error)
            elif state is JobState.SUCCEEDED:
                job.future.set_result(result)
        self._update_idle()

    def _update_idle(self) -> None:
        if not self._queue and not self._running and not self._retrying:
            self._idle.set()
        else:
            self._idle.clear()
