#!/usr/bin/env python3
"""
List room resources and booking businesses visible to the app in MS365.

Usage:
    uv run python src/scripts/list_rooms.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.graph_client import get_graph_client
from services.bookings import list_booking_businesses
from services.rooms import fetch_rooms


async def main():
    """List rooms and booking businesses."""
    graph = get_graph_client()

    print("Fetching rooms from MS365...\n")
    try:
        rooms = await fetch_rooms(graph)
    except Exception as e:
        print(f"  Error fetching rooms: {e}")
        rooms = []

    print(f"Found {len(rooms)} rooms\n")
    print("=" * 80)
    for room in rooms:
        print(f"\nRoom: {room['name']}")
        print(f"  Email: {room['email']}")
        print(f"  Capacity: {room['capacity']}")
        print(f"  Floor: {room['floor']}")
    print("-" * 80)

    print("\nFetching booking businesses...\n")
    try:
        businesses = await list_booking_businesses(graph)
    except Exception as e:
        print(f"  Error fetching booking businesses: {e}")
        businesses = []

    for business in businesses:
        print(f"  - {business['display_name']}")
        print(f"    ID: {business['id']}")

    print("\nDone!")


if __name__ == "__main__":
    asyncio.run(main())
