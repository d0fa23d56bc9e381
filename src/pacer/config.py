"""Scheduler configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pacer.errors import ConfigurationError

MINUTE_MS = 60_000

# Defaults for polite, unattended scraping of a single site
SITE_MAX_RETRIES = 3
SITE_RETRY_DELAY_MS = 2_000
SITE_MAX_CONCURRENT = 2


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Limits for one scheduler. All durations are in milliseconds.

    Attributes:
        max_concurrent: Upper bound on simultaneously running jobs.
        min_time: Minimum spacing between two job starts.
        max_retries: Retries after the first failure (attempts = 1 + max_retries).
        retry_delay: Base delay for the exponential backoff.
        reservoir: Initial and maximum token count. None disables the budget.
        reservoir_refresh_interval: Time between replenishments.
        reservoir_refresh_amount: Tokens restored per replenishment, capped at
            ``reservoir``. Defaults to the full ceiling.
    """

    max_concurrent: int = 1
    min_time: float = 0
    max_retries: int = 0
    retry_delay: float = 1_000
    reservoir: int | None = None
    reservoir_refresh_interval: float | None = None
    reservoir_refresh_amount: int | None = None

    def __post_init__(self) -> None:
        if not _is_count(self.max_concurrent) or self.max_concurrent < 1:
            raise ConfigurationError(
                f"max_concurrent must be a positive integer, got {self.max_concurrent!r}"
            )
        if self.min_time < 0:
            raise ConfigurationError(f"min_time must be >= 0, got {self.min_time!r}")
        if not _is_count(self.max_retries) or self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be a non-negative integer, got {self.max_retries!r}"
            )
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay must be >= 0, got {self.retry_delay!r}")

        if self.reservoir is None:
            if self.reservoir_refresh_interval is not None or self.reservoir_refresh_amount is not None:
                raise ConfigurationError("reservoir refresh settings require a reservoir")
            return

        if not _is_count(self.reservoir) or self.reservoir < 0:
            raise ConfigurationError(f"reservoir must be an integer >= 0, got {self.reservoir!r}")
        if self.reservoir_refresh_interval is not None and self.reservoir_refresh_interval <= 0:
            raise ConfigurationError(
                f"reservoir_refresh_interval must be > 0, got {self.reservoir_refresh_interval!r}"
            )
        if self.reservoir_refresh_amount is not None:
            if not _is_count(self.reservoir_refresh_amount) or self.reservoir_refresh_amount < 1:
                raise ConfigurationError(
                    f"reservoir_refresh_amount must be >= 1, got {self.reservoir_refresh_amount!r}"
                )
            if self.reservoir_refresh_interval is None:
                raise ConfigurationError("reservoir_refresh_amount requires reservoir_refresh_interval")

    @property
    def has_reservoir(self) -> bool:
        return self.reservoir is not None

    @property
    def refresh_amount(self) -> int | None:
        """Tokens restored per refresh, or None when the reservoir never refreshes."""
        if self.reservoir is None or self.reservoir_refresh_interval is None:
            return None
        if self.reservoir_refresh_amount is None:
            return self.reservoir
        return self.reservoir_refresh_amount

    @classmethod
    def for_site(
        cls,
        requests_per_minute: int,
        max_concurrent: int = SITE_MAX_CONCURRENT,
        *,
        max_retries: int = SITE_MAX_RETRIES,
        retry_delay: float = SITE_RETRY_DELAY_MS,
    ) -> SchedulerConfig:
        """
        Derive limits from a requests-per-minute budget.

        Starts are spaced ``ceil(60000 / requests_per_minute)`` ms apart and a
        reservoir of ``requests_per_minute`` tokens refills every minute.
        """
        if requests_per_minute <= 0:
            raise ConfigurationError(
                f"requests_per_minute must be positive, got {requests_per_minute!r}"
            )
        return cls(
            max_concurrent=max_concurrent,
            min_time=math.ceil(MINUTE_MS / requests_per_minute),
            max_retries=max_retries,
            retry_delay=retry_delay,
            reservoir=requests_per_minute,
            reservoir_refresh_interval=MINUTE_MS,
            reservoir_refresh_amount=requests_per_minute,
        )


def parse_rate(rate: str) -> int:
    """
    Parse a rate string like '20/min' into requests per minute.

    Accepts 'N/sec', 'N/min' and 'N/hour'. Hourly rates below one per
    minute round up to 1.
    """
    parts = rate.split("/")
    if len(parts) != 2:
        raise ConfigurationError(f"Invalid rate format: {rate}. Use 'N/min', 'N/hour', 'N/sec'.")

    try:
        count = int(parts[0])
    except ValueError:
        raise ConfigurationError(f"Invalid rate count: {parts[0]!r}") from None
    if count <= 0:
        raise ConfigurationError(f"Rate count must be positive: {rate}")

    unit = parts[1].strip().lower()
    if unit in ("s", "sec", "second"):
        return count * 60
    if unit in ("m", "min", "minute"):
        return count
    if unit in ("h", "hr", "hour"):
        return max(1, math.ceil(count / 60))
    raise ConfigurationError(f"Unknown rate unit: {unit}. Use 'sec', 'min', or 'hour'.")
