"""
Room directory: rooms from the MS Graph places API with a static fallback.
"""

import logging

from core.config import COLOR_PALETTE, HIDDEN_ROOMS_SETTING_KEY, ROOMS_CONFIG
from core.database import BookingStore
from models.events import Room

logger = logging.getLogger(__name__)


async def fetch_rooms(graph) -> list[Room]:
    """
    List room resources from MS Graph.

    The room mailbox address is used as the stable id.
    """
    response = await graph.places.graph_room.get()
    places = response.value if response and response.value else []

    rooms: list[Room] = []
    for place in places:
        email = getattr(place, "email_address", None)
        if not email:
            continue
        rooms.append(
            {
                "id": email,
                "name": getattr(place, "display_name", None) or email,
                "email": email,
                "capacity": getattr(place, "capacity", None) or 0,
                "color": COLOR_PALETTE[len(rooms) % len(COLOR_PALETTE)],
                "floor": getattr(place, "floor_label", None) or "N/A",
                "amenities": list(getattr(place, "tags", None) or []),
            }
        )
    return rooms


async def load_rooms(graph) -> list[Room]:
    """Rooms from MS Graph, or the configured list if that fails or is empty."""
    try:
        rooms = await fetch_rooms(graph)
    except Exception as e:
        logger.error("Failed to fetch rooms, using configured list: %s", e)
        return [dict(room) for room in ROOMS_CONFIG]

    if not rooms:
        logger.warning("No rooms returned by MS Graph, using configured list")
        return [dict(room) for room in ROOMS_CONFIG]
    return rooms


def get_hidden_room_ids(store: BookingStore) -> list[str]:
    """Room ids hidden by an administrator."""
    setting = store.get_setting(HIDDEN_ROOMS_SETTING_KEY)
    if not setting or not isinstance(setting["value"], dict):
        return []
    return list(setting["value"].get("hiddenRoomIds") or [])


def visible_rooms(rooms: list[Room], hidden_ids: list[str]) -> list[Room]:
    hidden = set(hidden_ids)
    return [room for room in rooms if room["id"] not in hidden]
