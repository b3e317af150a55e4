#!/usr/bin/env python3
"""
Script to sync upcoming fixtures from SportMonks into the matches table.

Usage:
    python scripts/sync_fixtures.py --days 7

Meant for cron; exits non-zero if the provider could not be reached.
"""

import asyncio
import sys
import argparse
import os
import logging
from pathlib import Path

# Add the project root to the path so we can import fannax modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fannax.database import db
from fannax.services.errors import PipelineError
from fannax.services.fixture_ingest_service import FixtureIngestor
from fannax.services.sportmonks_client import SportMonksClient
from fannax.utils.constants import DEFAULT_SYNC_DAYS_AHEAD, MAX_SYNC_DAYS_AHEAD


async def sync_fixtures(days: int) -> int:
    """Run one fixture sync and print the counts."""
    try:
        async with SportMonksClient() as client:
            stats = await FixtureIngestor(client).sync(days)
    except PipelineError as e:
        print(f"❌ Fixture sync failed: {e}")
        return 1
    finally:
        await db.close_database()

    print(f"✅ Synced fixtures for the next {days} day(s)")
    print(f"   Created: {stats['created']}")
    print(f"   Updated: {stats['updated']}")
    print(f"   Errors:  {stats['errors']}")
    print(f"   Total:   {stats['total']}")
    return 0


async def main():
    parser = argparse.ArgumentParser(description="Sync upcoming fixtures from SportMonks")
    parser.add_argument(
        "--days",
        type=int,
        help=f"Days ahead to sync (1-{MAX_SYNC_DAYS_AHEAD})",
        default=int(os.getenv("FIXTURE_SYNC_DAYS_AHEAD", str(DEFAULT_SYNC_DAYS_AHEAD))),
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return await sync_fixtures(args.days)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
