"""
Baruc - Dependency Injection.

FastAPI dependencies for the bot instance and webhook auth.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from baruc.bot import BarucBot
from baruc.config import Settings, get_settings
from baruc.exceptions import BarucException


# =============================================================================
# Bot
# =============================================================================


def get_bot(request: Request) -> BarucBot:
    """The BarucBot created by the app lifespan."""
    bot = getattr(request.app.state, "bot", None)
    if bot is None:
        raise BarucException(code="BOT_NOT_STARTED", message="Bot is not running", status_code=503)
    return bot


BotDep = Annotated[BarucBot, Depends(get_bot)]


# =============================================================================
# Webhook auth
# =============================================================================


def verify_bridge_token(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """When a bridge token is configured, webhook calls must carry it as a Bearer token."""
    expected = settings.whatsapp.bridge_token
    if not expected:
        return
    if authorization != f"Bearer {expected}":
        raise BarucException(code="UNAUTHORIZED", message="Invalid bridge token", status_code=401)
