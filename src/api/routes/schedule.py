"""Rooms and enriched room events."""

import asyncio

from fastapi import APIRouter, Depends

from api.dependencies import get_graph, get_store, get_sync_service
from api.models.bookings import EnrichedEventModel, RoomModel
from api.routes.bookings import parse_range
from core.database import BookingStore
from services.rooms import get_hidden_room_ids, load_rooms, visible_rooms
from services.schedule import load_enriched_events
from services.sync import BookingSyncService

router = APIRouter()


@router.get("/rooms", response_model=list[RoomModel])
async def list_rooms(graph=Depends(get_graph), store: BookingStore = Depends(get_store)):
    """Rooms not hidden by an administrator."""
    rooms = await load_rooms(graph)
    hidden = await asyncio.to_thread(get_hidden_room_ids, store)
    return [RoomModel.from_room(room) for room in visible_rooms(rooms, hidden)]


@router.get("/events", response_model=list[EnrichedEventModel])
async def list_events(
    start: str | None = None,
    end: str | None = None,
    graph=Depends(get_graph),
    store: BookingStore = Depends(get_store),
    service: BookingSyncService = Depends(get_sync_service),
):
    """Room events in [start, end] with booking details attached."""
    range_start, range_end = parse_range(start, end)
    rooms = await load_rooms(graph)
    hidden = await asyncio.to_thread(get_hidden_room_ids, store)
    events = await load_enriched_events(
        graph,
        store,
        visible_rooms(rooms, hidden),
        range_start,
        range_end,
        sync_service=service,
    )
    return [EnrichedEventModel.from_event(event) for event in events]
