"""Tests for the site factory and registry."""

import asyncio
import logging

import pytest

import pacer
from pacer import ConfigurationError, SiteRegistry, create_for_site


class TestCreateForSite:
    """create_for_site derives a scheduler from requests per minute."""

    def test_min_time_from_rate(self):
        scheduler = create_for_site("example", 30, 1)
        assert scheduler.config.min_time == 2000
        assert scheduler.config.max_concurrent == 1

    def test_defaults(self):
        scheduler = create_for_site("listings", 20)
        assert scheduler.config.max_concurrent == 2
        assert scheduler.config.max_retries == 3
        assert scheduler.config.retry_delay == 2000
        assert scheduler.config.reservoir == 20
        assert scheduler.get_stats().reservoir == 20

    def test_retry_overrides(self):
        scheduler = create_for_site("listings", 20, max_retries=1, retry_delay=500)
        assert scheduler.config.max_retries == 1
        assert scheduler.config.retry_delay == 500

    def test_name_labels_scheduler(self):
        scheduler = create_for_site("reviews", 15, 1)
        assert scheduler.name == "reviews"
        assert scheduler.get_stats().name == "reviews"
        assert isinstance(scheduler.logger, logging.Logger)
        assert scheduler.logger.name == "pacer.site.reviews"

    def test_injected_logger(self):
        logger = logging.getLogger("tests.sites")
        scheduler = create_for_site("reviews", 15, 1, logger=logger)
        assert scheduler.logger is logger

    def test_invalid_rate(self):
        with pytest.raises(ConfigurationError):
            create_for_site("broken", 0)

    async def test_same_name_yields_independent_schedulers(self):
        first = create_for_site("example", 600, 1)
        second = create_for_site("example", 600, 1)
        assert first is not second

        await first.schedule(lambda: None)
        assert first.get_stats().done == 1
        assert second.get_stats().done == 0
        assert second.get_stats().reservoir == 600
        await first.stop()

    async def test_stop_right_after_a_job(self):
        """stop finishes even when the last job settled in the same tick."""
        scheduler = create_for_site("listings", 600, 1)
        await scheduler.schedule(lambda: None)

        await asyncio.wait_for(scheduler.stop(), timeout=1.0)
        assert scheduler.get_stats().done == 1


class TestSiteRegistry:
    """SiteRegistry holds one scheduler per site."""

    def test_register_and_get(self):
        sites = SiteRegistry()
        listings = sites.register("listings", rate="20/min", concurrent=2)
        reviews = sites.register("reviews", rate="15/min", concurrent=1)

        assert sites.get("listings") is listings
        assert sites.get("reviews") is reviews
        assert listings.config.min_time == 3000
        assert reviews.config.min_time == 4000
        assert reviews.config.max_concurrent == 1
        assert len(sites) == 2
        assert "listings" in sites
        assert list(sites) == ["listings", "reviews"]

    def test_duplicate_site(self):
        sites = SiteRegistry()
        sites.register("listings", rate="20/min")
        with pytest.raises(ValueError, match="already registered"):
            sites.register("listings", rate="10/min")

    def test_unknown_site(self):
        sites = SiteRegistry()
        with pytest.raises(KeyError, match="Unknown site"):
            sites.get("missing")

    def test_invalid_rate(self):
        sites = SiteRegistry()
        with pytest.raises(ConfigurationError):
            sites.register("listings", rate="20 per minute")

    def test_stats_per_site(self):
        sites = SiteRegistry()
        sites.register("listings", rate="20/min", concurrent=2)
        sites.register("reviews", rate="15/min", concurrent=1)

        stats = sites.stats()
        assert set(stats) == {"listings", "reviews"}
        assert stats["listings"].capacity == 2
        assert stats["reviews"].reservoir == 15

    async def test_drain_and_stop(self):
        sites = SiteRegistry()
        fast = sites.register("fast", rate="6000/min", concurrent=3)
        slow = sites.register("slow", rate="1200/min", concurrent=1)

        handles = [fast.schedule(lambda: "f") for _ in range(3)]
        handles += [slow.schedule(lambda: "s") for _ in range(3)]

        await sites.drain()
        assert all(h.done() for h in handles)
        assert sites.stats()["slow"].done == 3

        await sites.stop()
        with pytest.raises(pacer.SchedulerStoppedError):
            await fast.schedule(lambda: None)

    async def test_sites_throttle_independently(self):
        """A saturated site does not hold back another."""
        sites = SiteRegistry()
        blocked = sites.register("blocked", rate="600/min", concurrent=1)
        free = sites.register("free", rate="6000/min", concurrent=2)
        release = asyncio.Event()

        async def wait():
            await release.wait()

        stuck = [blocked.schedule(wait) for _ in range(2)]
        results = await asyncio.gather(*(free.schedule(lambda: 1) for _ in range(3)))

        assert results == [1, 1, 1]
        assert blocked.is_at_capacity()
        release.set()
        await asyncio.gather(*stuck)
        await sites.stop()

    async def test_stop_with_refilling_reservoirs(self):
        """stop returns while part-used reservoirs are still refilling."""
        sites = SiteRegistry()
        listings = sites.register("listings", rate="600/min", concurrent=1)
        reviews = sites.register("reviews", rate="600/min", concurrent=1)

        await listings.schedule(lambda: "l")
        await reviews.schedule(lambda: "r")
        assert listings.get_stats().reservoir == 599

        await asyncio.wait_for(sites.stop(), timeout=1.0)
        assert listings.get_stats().done == 1
        assert reviews.get_stats().done == 1
