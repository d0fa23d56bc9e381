"""Core data models for pacer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

T = TypeVar("T")

# A zero-argument callable returning a value or an awaitable of one
Task = Callable[[], Union[T, Awaitable[T]]]


class JobState(str, Enum):
    """Possible states for a job."""

    QUEUED = "queued"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


@dataclass
class Job:
    """One submission to a scheduler."""

    id: int
    task: Task
    future: asyncio.Future
    state: JobState = JobState.QUEUED
    attempt: int = 0
    enqueued_at: float = 0.0
    started_at: float | None = None
    last_error: BaseException | None = None


@dataclass(frozen=True)
class Success(Generic[T]):
    """A task attempt that produced a value."""

    value: T
    ok = True


@dataclass(frozen=True)
class Failure:
    """A task attempt that raised, whether synchronously or when awaited."""

    error: Exception
    ok = False


Outcome = Union[Success[Any], Failure]


@dataclass(frozen=True)
class SchedulerStats:
    """
    Point-in-time snapshot of a scheduler.

    ``reservoir`` is None when the scheduler has no request budget.
    """

    running: int
    queued: int
    done: int
    capacity: int
    reservoir: int | None
    retrying: int = 0
    succeeded: int = 0
    failed: int = 0
    name: str = field(default="", compare=False)
