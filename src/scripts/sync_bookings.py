#!/usr/bin/env python3
"""
Sync booking appointments from MS Graph into the local booking store.

By default only stale months are refetched (6 months back, 12 ahead).

Usage:
    uv run python src/scripts/sync_bookings.py
    uv run python src/scripts/sync_bookings.py --force
    uv run python src/scripts/sync_bookings.py --month 2025-03
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DB_PATH
from core.database import BookingStore
from core.logging import setup_logging
from services.sync import BookingSyncService


def print_progress(progress: dict):
    print(f"  [{progress['current']}/{progress['total']}] {progress['month_key']}")


async def run(args: argparse.Namespace) -> bool:
    store = BookingStore(DB_PATH)
    store.init_schema()
    service = BookingSyncService(store)

    if args.month:
        result = await service.force_sync_month(args.month)
        print(f"\n{args.month}: {'ok' if result['success'] else 'failed'}, {result['count']} bookings")
        return result["success"]

    if args.force:
        result = await service.force_full_sync(on_progress=print_progress)
    else:
        result = await service.sync_all_needed(on_progress=print_progress)

    if not result["success"]:
        print(f"\nSync failed: {result['error']}")
        return False

    print(f"\nSynced {result['months_synced']} months, {result['total_count']} bookings")
    return True


def main():
    parser = argparse.ArgumentParser(description="Sync booking appointments from MS Graph")
    parser.add_argument("--force", action="store_true", help="Clear the store and resync all months")
    parser.add_argument("--month", help="Sync a single month (YYYY-MM) regardless of age")

    args = parser.parse_args()
    setup_logging()

    try:
        ok = asyncio.run(run(args))
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
