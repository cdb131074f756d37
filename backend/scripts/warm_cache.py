#!/usr/bin/env python3
"""Pre-warm the directory cache snapshot.

Run from the backend/ directory before starting the API, or from cron:

    python3 scripts/warm_cache.py [--dry-run] [--snapshot PATH] [--verbose]

Fetches the full employee directory and the departments / work titles / sites
named lists, enriches every employee and writes the snapshot the API loads at
startup. With --dry-run nothing is written.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections import Counter
from datetime import timedelta

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from hrdirectory.core.config import Settings  # noqa: E402
from hrdirectory.models.employee import EnrichedEmployeeRecord  # noqa: E402
from hrdirectory.services.directory_cache import DirectoryCache, RefreshPolicy  # noqa: E402
from hrdirectory.services.directory_client import DirectoryClient  # noqa: E402
from hrdirectory.services.snapshot_store import JsonSnapshotStore  # noqa: E402

logger = logging.getLogger(__name__)


def summarize(records: list[EnrichedEmployeeRecord]) -> dict[str, int]:
    """Count how many employees have each category resolved to a named-list id."""
    counts: Counter[str] = Counter()
    for record in records:
        counts["employees"] += 1
        if record.department_id:
            counts["with_department_id"] += 1
        if record.title_id:
            counts["with_title_id"] += 1
        if record.site_id:
            counts["with_site_id"] += 1
        if not record.team:
            counts["without_team"] += 1
    return dict(counts)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch the full HR directory and write the cache snapshot",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and enrich without writing the snapshot",
    )
    parser.add_argument(
        "--snapshot",
        default=None,
        help="Snapshot path (default: CACHE_SNAPSHOT_PATH)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


async def warm(args: argparse.Namespace, settings: Settings | None = None) -> int:
    settings = settings or Settings()
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")

    credentials = settings.credentials()
    if credentials is None:
        logger.error("DIRECTORY_API_TOKEN is not set. Exiting.")
        return 1

    store = None if args.dry_run else JsonSnapshotStore(args.snapshot or settings.CACHE_SNAPSHOT_PATH)
    cache = DirectoryCache(
        DirectoryClient.from_settings(settings),
        store,
        credentials=credentials,
        ttl=timedelta(hours=settings.CACHE_TTL_HOURS),
        policy=RefreshPolicy(settings.CACHE_REFRESH_POLICY),
    )

    logger.info("Fetching directory from %s...", credentials.base_url)
    if not await cache.refresh_all():
        logger.error("Directory refresh failed. Snapshot not written.")
        return 1

    for name, count in sorted(summarize(cache.cached_employees()).items()):
        logger.info("%s: %d", name, count)

    await cache.close()
    if args.dry_run:
        logger.info("[DRY RUN] Snapshot was not written.")
    else:
        logger.info("Snapshot written to %s", store.path)
    return 0


def main() -> None:
    args = parse_args()
    sys.exit(asyncio.run(warm(args)))


if __name__ == "__main__":
    main()
