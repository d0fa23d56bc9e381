"""Request budget that refills on a fixed interval."""

from __future__ import annotations


class Reservoir:
    """
    Bounded token counter.

    One token is taken per job start. ``refill`` is called by the owning
    scheduler each refresh interval; the level never exceeds ``capacity``.
    """

    def __init__(self, capacity: int, refresh_amount: int | None = None) -> None:
        self.capacity = capacity
        self.refresh_amount = refresh_amount
        self.level = capacity

    def __repr__(self) -> str:
        return f"Reservoir(level={self.level}, capacity={self.capacity})"

    @property
    def empty(self) -> bool:
        return self.level <= 0

    @property
    def full(self) -> bool:
        return self.level >= self.capacity

    def take(self) -> None:
        if self.level <= 0:
            raise RuntimeError("reservoir is empty")
        self.level -= 1

    def refill(self) -> int:
        """Restore one refresh worth of tokens. Returns how many were added."""
        if self.refresh_amount is None:
            return 0
        before = self.level
        self.level = min(self.capacity, self.level + self.refresh_amount)
        return self.level - before
