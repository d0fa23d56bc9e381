"""Per-site scheduler construction."""

from __future__ import annotations

import asyncio
import logging

from pacer.config import (
    SITE_MAX_CONCURRENT,
    SITE_MAX_RETRIES,
    SITE_RETRY_DELAY_MS,
    SchedulerConfig,
    parse_rate,
)
from pacer.models import SchedulerStats
from pacer.scheduler import Scheduler, SchedulerLogger


def create_for_site(
    site_name: str,
    requests_per_minute: int,
    max_concurrent: int = SITE_MAX_CONCURRENT,
    *,
    max_retries: int = SITE_MAX_RETRIES,
    retry_delay: float = SITE_RETRY_DELAY_MS,
    logger: SchedulerLogger | None = None,
) -> Scheduler:
    """
    Build an independent scheduler for one external site.

    ``site_name`` only labels the scheduler (and its default logger,
    ``pacer.site.<site_name>``); two calls never share state.

    Example:
        listings = create_for_site("listings", requests_per_minute=20, max_concurrent=2)
        page = await listings.schedule(fetch_listing)
    """
    config = SchedulerConfig.for_site(
        requests_per_minute,
        max_concurrent,
        max_retries=max_retries,
        retry_delay=retry_delay,
    )
    return Scheduler(
        config,
        name=site_name,
        logger=logger or logging.getLogger(f"pacer.site.{site_name}"),
    )


class SiteRegistry:
    """
    One scheduler per external site.

    Example:
        sites = SiteRegistry()
        sites.register("listings", rate="20/min", concurrent=2)
        sites.register("reviews", rate="15/min", concurrent=1)

        page = await sites.get("listings").schedule(fetch_listing)
        await sites.stop()
    """

    def __init__(self) -> None:
        self._sites: dict[str, Scheduler] = {}

    def __contains__(self, site_name: str) -> bool:
        return site_name in self._sites

    def __iter__(self):
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)

    def register(
        self,
        site_name: str,
        *,
        rate: str,
        concurrent: int = SITE_MAX_CONCURRENT,
        max_retries: int = SITE_MAX_RETRIES,
        retry_delay: float = SITE_RETRY_DELAY_MS,
        logger: SchedulerLogger | None = None,
    ) -> Scheduler:
        """
        Register a rate-limited site.

        Args:
            site_name: Unique site identifier.
            rate: Rate limit string, e.g. "20/min", "1/sec", "600/hour".
            concurrent: Maximum simultaneous requests.
            max_retries: Retries after the first failed attempt.
            retry_delay: Base backoff in milliseconds.

        Raises:
            ValueError: If the site is already registered or the rate is invalid.
        """
        if site_name in self._sites:
            raise ValueError(f"Site already registered: {site_name}")
        scheduler = create_for_site(
            site_name,
            parse_rate(rate),
            concurrent,
            max_retries=max_retries,
            retry_delay=retry_delay,
            logger=logger,
        )
        self._sites[site_name] = scheduler
        return scheduler

    def get(self, site_name: str) -> Scheduler:
        try:
            return self._sites[site_name]
        except KeyError:
            raise KeyError(f"Unknown site: {site_name}") from None

    def stats(self) -> dict[str, SchedulerStats]:
        return {name: scheduler.get_stats() for name, scheduler in self._sites.items()}

    async def drain(self) -> None:
        """Wait until every site is idle."""
        await asyncio.gather(*(s.drain() for s in self._sites.values()))

    async def stop(self, drop_waiting: bool = False) -> None:
        await asyncio.gather(*(s.stop(drop_waiting) for s in self._sites.values()))
