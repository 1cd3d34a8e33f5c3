"""Global settings (rooms hidden by an administrator)."""

import asyncio
import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_store, verify_api_key
from api.models.responses import SettingsRequest, SettingsResponse
from core.config import HIDDEN_ROOMS_SETTING_KEY
from core.database import BookingStore
from core.dates import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings", response_model=SettingsResponse, response_model_exclude_none=True)
async def get_settings(store: BookingStore = Depends(get_store)):
    setting = await asyncio.to_thread(store.get_setting, HIDDEN_ROOMS_SETTING_KEY)
    if not setting or not isinstance(setting["value"], dict):
        return SettingsResponse()
    return SettingsResponse.model_validate(setting["value"])


@router.post("/settings", response_model=SettingsResponse)
async def save_settings(
    body: SettingsRequest,
    store: BookingStore = Depends(get_store),
    _api_key: str | None = Depends(verify_api_key),
):
    settings = SettingsResponse(
        hidden_room_ids=body.hidden_room_ids,
        last_updated=utc_now().isoformat(),
        updated_by=body.updated_by or "unknown",
    )
    await asyncio.to_thread(
        store.save_setting,
        HIDDEN_ROOMS_SETTING_KEY,
        settings.model_dump(by_alias=True),
        settings.updated_by,
    )
    logger.info("Saved settings: %d hidden rooms", len(body.hidden_room_ids))
    return settings
