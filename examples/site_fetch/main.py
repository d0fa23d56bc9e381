#!/usr/bin/env python3
"""
Site Fetch

Polls two public APIs through per-site schedulers and writes what came
back to output/.

APIs used:
- Spaceflight News API: https://api.spaceflightnewsapi.net/v4/docs/
- The Space Devs Launch Library 2: https://ll.thespacedevs.com/

Demonstrates:
- One scheduler per site with its own rate and concurrency
- Retries with status-aware backoff on 429/503 responses
- Reading scheduler stats while work is in flight
"""

import asyncio
import json
import logging
from pathlib import Path

import httpx

import pacer

OUTPUT_DIR = Path("output")
PAGES = 4


async def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    OUTPUT_DIR.mkdir(exist_ok=True)

    sites = pacer.SiteRegistry()
    news = sites.register("spaceflight_news", rate="30/min", concurrent=2)
    launches = sites.register("spacedevs", rate="15/min", concurrent=1)

    async with httpx.AsyncClient(timeout=15) as client:

        def fetch_json(url, params):
            async def fetch():
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
            return fetch

        article_pages = [
            news.schedule(fetch_json(
                "https://api.spaceflightnewsapi.net/v4/articles/",
                {"limit": 5, "offset": page * 5, "ordering": "-published_at"},
            ))
            for page in range(PAGES)
        ]
        upcoming = launches.schedule(fetch_json(
            "https://ll.thespacedevs.com/2.2.0/launch/upcoming/",
            {"limit": 5},
        ))

        while news.get_stats().done < PAGES:
            for name, stats in sites.stats().items():
                print(f"  {name:<18} running={stats.running} queued={stats.queued} "
                      f"retrying={stats.retrying} done={stats.done} reservoir={stats.reservoir}")
            await asyncio.sleep(1)

        results = await asyncio.gather(*article_pages, upcoming, return_exceptions=True)

    articles = []
    for page in results[:-1]:
        if isinstance(page, Exception):
            print(f"  ✗ article page failed: {page}")
            continue
        articles.extend(page.get("results", []))
    (OUTPUT_DIR / "articles.json").write_text(json.dumps(articles, indent=2))
    print(f"  ✓ {len(articles)} articles")

    if isinstance(results[-1], Exception):
        print(f"  ✗ launches failed: {results[-1]}")
    else:
        (OUTPUT_DIR / "launches.json").write_text(json.dumps(results[-1].get("results", []), indent=2))
        print("  ✓ upcoming launches")

    await sites.stop()


if __name__ == "__main__":
    asyncio.run(main())
