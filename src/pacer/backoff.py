"""Retry backoff policy.

Delays are in milliseconds. The base delay is raised to a status-specific
floor (rate limited or unavailable responses), then doubled per retry:

    delay = max(retry_delay, floor(status)) * 2 ** retry_index

Taking the max of base and floor keeps the floor from stacking on top of
the configured delay while still guaranteeing strict growth per retry.
"""

from __future__ import annotations

import httpx

TOO_MANY_REQUESTS = 429
SERVICE_UNAVAILABLE = 503

STATUS_FLOORS_MS: dict[int, float] = {
    TOO_MANY_REQUESTS: 5_000,
    SERVICE_UNAVAILABLE: 3_000,
}

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504, 520, 521, 522, 524})


def delay_for(retry_index: int, status: int | None = None, *, retry_delay: float) -> float:
    """Milliseconds to wait before retry number ``retry_index`` (0-based)."""
    if retry_index < 0:
        raise ValueError(f"retry_index must be >= 0, got {retry_index}")
    base = max(retry_delay, STATUS_FLOORS_MS.get(status, 0)) if status is not None else retry_delay
    return base * (2 ** retry_index)


def should_retry_for_status(status: int) -> bool:
    """Whether an HTTP status usually indicates a transient failure."""
    return status in RETRYABLE_STATUSES


def status_of(error: BaseException) -> int | None:
    """
    Extract an HTTP-like status code from a task failure.

    Understands ``httpx.HTTPStatusError`` and any exception carrying an
    integer ``status_code`` or ``status`` attribute.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None
