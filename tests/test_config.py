"""
Tests for configuration module.
"""

import pytest


class TestFeatureFlags:
    """Feature flags tests."""

    def test_default_features_enabled(self):
        """Test all workflows are enabled by default."""
        from baruc.config import FeatureFlags

        flags = FeatureFlags()
        assert flags.charts is True
        assert flags.mltv is True
        assert flags.op_zones is True

    def test_to_dict(self):
        from baruc.config import FeatureFlags

        result = FeatureFlags().to_dict()

        assert result == {"charts": True, "mltv": True, "op_zones": True}

    def test_env_disables_feature(self, monkeypatch):
        from baruc.config import FeatureFlags

        monkeypatch.setenv("FEATURE_MLTV", "false")

        assert FeatureFlags().mltv is False


class TestSettings:
    """Nested settings groups read their own env prefixes."""

    def test_defaults(self):
        from baruc.config import Settings

        settings = Settings()
        assert settings.whatsapp.wake_word == "baruc"
        assert settings.conversation.context_timeout_seconds == 1800
        assert settings.conversation.max_messages == 10
        assert settings.delivery.dedupe_window_seconds == 10.0
        assert settings.dedupe_backend == "memory"

    def test_env_prefixes(self, monkeypatch):
        from baruc.config import Settings

        monkeypatch.setenv("WHATSAPP_WAKE_WORD", "rappi")
        monkeypatch.setenv("DELIVERY_BACKOFF_SECONDS", "0.5")
        monkeypatch.setenv("SHEETS_SPREADSHEET_ID", "sheet-1")
        monkeypatch.setenv("DEDUPE_BACKEND", "redis")

        settings = Settings()
        assert settings.whatsapp.wake_word == "rappi"
        assert settings.delivery.backoff_seconds == 0.5
        assert settings.sheets.spreadsheet_id == "sheet-1"
        assert settings.dedupe_backend == "redis"

    def test_get_settings_is_cached(self):
        from baruc.config import get_settings

        assert get_settings() is get_settings()

    def test_max_messages_must_be_positive(self):
        from pydantic import ValidationError

        from baruc.config import ConversationSettings

        with pytest.raises(ValidationError):
            ConversationSettings(max_messages=0)


class TestExceptions:
    """Exception tests."""

    def test_not_found_exception(self):
        from baruc.exceptions import NotFoundException

        exc = NotFoundException("Conversation context", "g@g.us")
        assert exc.status_code == 404
        assert exc.code == "NOT_FOUND"
        assert "Conversation context" in exc.message

    def test_external_service_exception(self):
        from baruc.exceptions import ExternalServiceException

        exc = ExternalServiceException("Gemini API", "quota exceeded")
        assert exc.status_code == 502
        assert exc.message == "Gemini API error: quota exceeded"
        assert exc.details == {"service": "Gemini API"}

    def test_transport_not_ready_exception(self):
        from baruc.exceptions import TransportNotReadyException

        exc = TransportNotReadyException()
        assert exc.status_code == 503
        assert exc.code == "TRANSPORT_NOT_READY"

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Evaluation failed: TypeError: Cannot read properties of undefined (reading 'serialize')", True),
            ("window.Store.Msg.get(...).getMessageModel is not a function", True),
            ("Bridge unreachable: connection refused", False),
            ("", False),
        ],
    )
    def test_serialization_fault_detection(self, text, expected):
        from baruc.exceptions import TransportException, is_serialization_fault

        assert is_serialization_fault(text) is expected
        assert TransportException(text).is_serialization_fault is expected
