"""Tests for BarucBot wiring and lifecycle."""

import asyncio

import pytest

from conftest import GROUP, FakeCharts, FakeReport, FakeTransport, group_message, make_settings

from baruc.bot import BarucBot
from baruc.core.conversation import ConversationStore, vocabulary
from baruc.core.dedupe import SeenMessageCache
from baruc.whatsapp import BridgeEvent
from baruc.workflows import ChartsService


def build_bot(transport: FakeTransport) -> BarucBot:
    return BarucBot(
        make_settings(),
        transport=transport,
        charts=FakeCharts(),
        mltv=FakeReport(),
        op_zones=FakeReport(),
        seen=SeenMessageCache(),
    )


@pytest.mark.asyncio
async def test_without_gemini_only_charts_are_built(transport):
    bot = BarucBot(make_settings(), transport=transport)

    assert bot.classifier.backend == "keywords"
    assert isinstance(bot.dispatcher.charts, ChartsService)
    assert bot.dispatcher.mltv is None
    assert bot.dispatcher.op_zones is None
    await bot.stop()


@pytest.mark.asyncio
async def test_injected_store_and_seen_cache_are_used(transport):
    store = ConversationStore(clock=lambda: 0.0)
    seen = SeenMessageCache()

    bot = BarucBot(
        make_settings(),
        transport=transport,
        charts=FakeCharts(),
        mltv=FakeReport(),
        op_zones=FakeReport(),
        seen=seen,
        store=store,
    )

    assert bot.store is store
    assert bot.machine.store is store
    assert bot.dispatcher.seen is seen


@pytest.mark.asyncio
async def test_start_and_stop_background_tasks(transport):
    bot = build_bot(transport)

    await bot.start()
    assert bot.sweeper.running
    assert bot.seen_reset.running

    await bot.stop()
    assert not bot.sweeper.running
    assert not bot.seen_reset.running


@pytest.mark.asyncio
async def test_lifecycle_events_update_client_state(transport):
    bot = build_bot(transport)

    assert bot.handle_event(BridgeEvent(event="ready")) is None
    bot.handle_event(BridgeEvent(event="authenticated"))

    assert bot.client_state.is_ready()


@pytest.mark.asyncio
async def test_message_event_is_handled_in_a_task(transport):
    bot = build_bot(transport)
    bot.client_state.set_ready(True)
    bot.client_state.set_authenticated(True)

    task = bot.handle_event(BridgeEvent(event="message", message=group_message("baruc", 1)))
    await task

    assert transport.texts()[0] in vocabulary.GREETINGS


@pytest.mark.asyncio
async def test_handle_message_directly(transport):
    bot = build_bot(transport)
    bot.client_state.set_ready(True)
    bot.client_state.set_authenticated(True)

    await bot.handle_message(group_message("baruc graficas de gasto", 2))

    assert transport.texts() == [vocabulary.FIELD_QUESTIONS["periodo"]]
    assert bot.store.get(GROUP).waiting_for == "periodo"


@pytest.mark.asyncio
async def test_request_qr_waits_for_qr_event(transport):
    bot = build_bot(transport)

    task = asyncio.create_task(bot.request_qr())
    await asyncio.sleep(0)
    bot.handle_event(BridgeEvent(event="qr", qr="2@late"))

    assert await task == "2@late"


@pytest.mark.asyncio
async def test_logout_resets_state(transport):
    bot = build_bot(transport)
    bot.client_state.set_ready(True)
    bot.client_state.set_authenticated(True)

    await bot.logout()

    assert transport.logged_out
    assert not bot.client_state.is_ready()
