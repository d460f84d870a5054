"""
Baruc Webhook.

The WhatsApp bridge POSTs lifecycle events and inbound messages here.
Messages are handled in background tasks owned by the bot, so the bridge
gets its 202 immediately.
"""

import logging

from fastapi import APIRouter, Depends

from baruc.deps import BotDep, verify_bridge_token
from baruc.whatsapp import BridgeEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"], dependencies=[Depends(verify_bridge_token)])


@router.post("/whatsapp", status_code=202)
async def whatsapp_event(event: BridgeEvent, bot: BotDep) -> dict:
    if event.event != "message":
        logger.info(f"Bridge event: {event.event}")
    bot.handle_event(event)
    return {"accepted": True, "event": event.event}
