"""Tests for the Gemini text oracle and the periodic task loop."""

import asyncio
from types import SimpleNamespace

import pytest

from baruc.core.gemini import GeminiService, has_api_key
from baruc.core.periodic import PeriodicTask
from baruc.exceptions import ExternalServiceException


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def fake_client(models: FakeModels):
    return SimpleNamespace(aio=SimpleNamespace(models=models))


class TestGeminiService:
    @pytest.mark.asyncio
    async def test_generate_strips_text_and_passes_temperature(self):
        models = FakeModels(text="  {\"intent\": {}}\n")
        service = GeminiService(model="gemini-test", client=fake_client(models))

        assert await service.generate("hola", temperature=0.3) == '{"intent": {}}'
        assert models.calls[0]["model"] == "gemini-test"
        assert models.calls[0]["config"].temperature == 0.3

    @pytest.mark.asyncio
    async def test_empty_response_is_empty_string(self):
        service = GeminiService(model="gemini-test", client=fake_client(FakeModels(text=None)))

        assert await service.generate("hola") == ""

    @pytest.mark.asyncio
    async def test_api_errors_are_wrapped(self):
        service = GeminiService(model="gemini-test", client=fake_client(FakeModels(error=RuntimeError("429 quota"))))

        with pytest.raises(ExternalServiceException) as exc:
            await service.generate("hola")
        assert "429 quota" in exc.value.message

    def test_has_api_key(self, monkeypatch):
        assert has_api_key() is False

        monkeypatch.setenv("GEMINI_API_KEY", "key")
        assert has_api_key() is True


class TestPeriodicTask:
    @pytest.mark.asyncio
    async def test_loop_runs_until_stopped(self):
        calls = []
        task = PeriodicTask("tick", 0.001, lambda: calls.append(1))

        task.start()
        for _ in range(200):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.001)
        await task.stop()

        assert len(calls) >= 2
        assert not task.running

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        task = PeriodicTask("flaky", 0.001, flaky)
        task.start()
        for _ in range(200):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.001)
        await task.stop()

        assert len(calls) >= 2
