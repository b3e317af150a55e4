#!/usr/bin/env python3
"""
Script to settle pending predictions on finished matches.

Usage:
    python scripts/settle_predictions.py

Safe to run repeatedly or alongside the API's background worker: already
settled predictions are skipped.
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
from fannax.services.settlement_service import SettlementService


async def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        stats = await SettlementService().settle()
    finally:
        await db.close_database()

    print("✅ Settlement finished")
    print(f"   Matches processed:  {stats['matches_processed']}")
    print(f"   Predictions scored: {stats['predictions_scored']}")
    print(f"   Errors:             {stats['errors']}")
    return 1 if stats["errors"] else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
