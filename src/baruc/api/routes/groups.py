"""
Baruc Groups - Read-only view of the bot's WhatsApp groups.
"""

from fastapi import APIRouter, Query

from baruc.bot import BarucBot
from baruc.deps import BotDep
from baruc.exceptions import TransportNotReadyException
from baruc.schemas import ErrorResponse

router = APIRouter(prefix="/api/groups", tags=["groups"], responses={503: {"model": ErrorResponse}})


async def _require_ready(bot: BarucBot) -> None:
    if bot.client_state.is_ready():
        return
    if not await bot.client_state.wait_for_ready(bot.settings.whatsapp.ready_timeout_seconds):
        raise TransportNotReadyException()


def _is_group(chat: dict) -> bool:
    if "isGroup" in chat:
        return bool(chat["isGroup"])
    return str(chat.get("id", "")).endswith("@g.us")


@router.get("")
async def list_groups(bot: BotDep) -> list[dict]:
    await _require_ready(bot)
    chats = await bot.transport.get_chats()
    return [{"id": chat.get("id"), "name": chat.get("name")} for chat in chats if _is_group(chat)]


@router.get("/{group_id}/messages")
async def group_messages(
    group_id: str,
    bot: BotDep,
    limit: int = Query(default=50, ge=1, le=500),
) -> list[dict]:
    """``group_id`` may omit the ``@g.us`` suffix."""
    await _require_ready(bot)
    chat_id = group_id if group_id.endswith("@g.us") else f"{group_id}@g.us"
    messages = await bot.transport.get_chat_messages(chat_id, limit)
    return [
        {
            "from": m.get("from"),
            "author": m.get("author"),
            "body": m.get("body"),
            "timestamp": m.get("timestamp"),
        }
        for m in messages
    ]
