"""Exceptions raised by pacer."""

from __future__ import annotations


class PacerError(Exception):
    """Base class for pacer errors."""


class ConfigurationError(PacerError, ValueError):
    """Invalid scheduler configuration, raised at construction."""


class SchedulerStoppedError(PacerError, RuntimeError):
    """The scheduler was stopped before the job could run."""
