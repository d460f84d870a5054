"""Tests for the outbound delivery guard."""

import asyncio

import pytest

from conftest import GROUP, ready_state

from baruc.config import DeliverySettings
from baruc.exceptions import TransportException
from baruc.observability import get_metrics_store
from baruc.whatsapp.sender import DeliveryGuard
from baruc.whatsapp.transport import ClientState, MediaPayload

SERIALIZE_ERROR = "Evaluation failed: TypeError: Cannot read properties of undefined (reading 'serialize')"
MODEL_ERROR = "Evaluation failed: window.Store.Msg.get(...).getMessageModel is not a function"

ZERO_DELAYS = DeliverySettings(
    pre_send_delay_seconds=0,
    media_pre_send_delay_seconds=0,
    serialization_grace_seconds=0,
    backoff_seconds=0,
    ready_wait_seconds=0.05,
    media_ready_wait_seconds=0.05,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def image() -> MediaPayload:
    return MediaPayload(mimetype="image/png", data="aGVsbG8=", filename="chart.png")


class TestTextDelivery:
    """send_text behaviour."""

    @pytest.mark.asyncio
    async def test_send_success(self, transport):
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_text(GROUP, "hola") is True
        assert transport.texts() == ["hola"]
        assert get_metrics_store().get_counter("replies_sent") == 1

    @pytest.mark.asyncio
    async def test_duplicate_within_window_short_circuits(self, transport):
        clock = FakeClock()
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS, clock=clock)

        assert await guard.send_text(GROUP, "reporte listo") is True
        clock.now += 5
        assert await guard.send_text(GROUP, "reporte listo") is True

        assert transport.calls == 1
        assert get_metrics_store().get_counter("sends_deduplicated") == 1

    @pytest.mark.asyncio
    async def test_same_text_after_window_is_sent_again(self, transport):
        clock = FakeClock()
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS, clock=clock)

        await guard.send_text(GROUP, "reporte listo")
        clock.now += 11
        await guard.send_text(GROUP, "reporte listo")

        assert transport.calls == 2

    @pytest.mark.asyncio
    async def test_dedupe_uses_first_100_chars(self, transport):
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS, clock=FakeClock())
        prefix = "x" * 100

        await guard.send_text(GROUP, prefix + "A")
        await guard.send_text(GROUP, prefix + "B")

        assert transport.calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_send_to_same_chat_is_rejected(self, transport):
        transport.gate = asyncio.Event()
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        first = asyncio.create_task(guard.send_text(GROUP, "primero"))
        for _ in range(100):
            if guard.is_sending(GROUP) and transport.calls:
                break
            await asyncio.sleep(0)

        assert await guard.send_text(GROUP, "segundo") is False
        transport.gate.set()
        assert await first is True
        assert transport.texts() == ["primero"]
        assert not guard.is_sending(GROUP)

    @pytest.mark.asyncio
    async def test_serialization_fault_with_ready_client_counts_as_delivered(self, transport):
        transport.errors = [TransportException(SERIALIZE_ERROR)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_text(GROUP, "hola", max_retries=2) is True
        assert transport.calls == 1
        assert get_metrics_store().get_counter("sends_assumed_delivered") == 1

    @pytest.mark.asyncio
    async def test_get_message_model_fault_is_also_recognised(self, transport):
        transport.errors = [TransportException(MODEL_ERROR)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_text(GROUP, "hola") is True

    @pytest.mark.asyncio
    async def test_serialization_fault_with_client_down_is_a_failure(self, transport):
        state = ClientState()
        transport.errors = [TransportException(SERIALIZE_ERROR), TransportException(SERIALIZE_ERROR)]
        guard = DeliveryGuard(transport, state, ZERO_DELAYS)

        assert await guard.send_text(GROUP, "hola", max_retries=2) is False
        assert transport.calls == 2
        assert get_metrics_store().get_counter("send_failures") == 1

    @pytest.mark.asyncio
    async def test_other_errors_are_retried(self, transport):
        transport.errors = [TransportException("Bridge unreachable", status_code=503)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_text(GROUP, "hola", max_retries=2) is True
        assert transport.calls == 2

    @pytest.mark.asyncio
    async def test_retry_backoff_increases(self, transport, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        transport.errors = [TransportException("Bridge unreachable", status_code=503) for _ in range(3)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS.model_copy(update={"backoff_seconds": 1.0}))

        assert await guard.send_text(GROUP, "hola", max_retries=3) is False
        assert [s for s in sleeps if s] == [1.0, 2.0]


class TestMediaDelivery:
    """send_media never trusts a serialization fault."""

    @pytest.mark.asyncio
    async def test_media_success(self, transport):
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_media(GROUP, image()) is True
        assert len(transport.media()) == 1

    @pytest.mark.asyncio
    async def test_media_serialization_fault_is_retried(self, transport):
        transport.errors = [TransportException(SERIALIZE_ERROR)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_media(GROUP, image(), max_retries=2) is True
        assert transport.calls == 2

    @pytest.mark.asyncio
    async def test_media_serialization_fault_fails_without_retries(self, transport):
        transport.errors = [TransportException(SERIALIZE_ERROR)]
        guard = DeliveryGuard(transport, ready_state(), ZERO_DELAYS)

        assert await guard.send_media(GROUP, image()) is False
        assert transport.media() == []

    @pytest.mark.asyncio
    async def test_media_skips_attempt_while_not_ready(self, transport):
        guard = DeliveryGuard(transport, ClientState(), ZERO_DELAYS)

        assert await guard.send_media(GROUP, image(), max_retries=2) is False
        assert transport.calls == 0
