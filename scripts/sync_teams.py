#!/usr/bin/env python3
"""
Script to import the SportMonks team catalogue and reserve team usernames.

Usage:
    python scripts/sync_teams.py
"""

import asyncio
import sys
import logging
import os
from pathlib import Path

# Add the project root to the path so we can import fannax modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fannax.database import db
from fannax.services.fixture_ingest_service import FixtureIngestor
from fannax.services.sportmonks_client import SportMonksClient


async def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        async with SportMonksClient() as client:
            stats = await FixtureIngestor(client).sync_teams()
    finally:
        await db.close_database()

    print("✅ Team sync finished")
    print(f"   Created: {stats['created']}")
    print(f"   Updated: {stats['updated']}")
    print(f"   Errors:  {stats['errors']}")
    return 1 if stats["errors"] else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
