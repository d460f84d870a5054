"""
Baruc Contexts - Debug view of conversation state per chat.
"""

from fastapi import APIRouter

from baruc.deps import BotDep
from baruc.exceptions import NotFoundException
from baruc.schemas import ErrorResponse

router = APIRouter(prefix="/api/contexts", tags=["debug"], responses={404: {"model": ErrorResponse}})


@router.get("")
async def list_contexts(bot: BotDep) -> list[dict]:
    return bot.store.snapshot()


@router.get("/{chat_id}")
async def get_context(chat_id: str, bot: BotDep) -> dict:
    context = bot.store.get(chat_id)
    if context is None:
        raise NotFoundException("Conversation context", chat_id)
    dispatcher = bot.dispatcher
    return {
        **context.to_dict(),
        "has_state": dispatcher.has_state(chat_id),
        "is_executing": bot.store.is_executing(chat_id),
        "is_generating_charts": bot.store.is_generating_charts(chat_id),
        "is_analyzing_mltv": dispatcher.is_analyzing_mltv(chat_id),
        "is_analyzing_op_zones": dispatcher.is_analyzing_op_zones(chat_id),
    }


@router.delete("/{chat_id}")
async def clear_context(chat_id: str, bot: BotDep) -> dict:
    if not bot.dispatcher.clear_context(chat_id):
        raise NotFoundException("Conversation context", chat_id)
    return {"cleared": chat_id}
