"""
Baruc Configuration Module.

Handles all application settings, feature flags, and environment configuration.
Uses pydantic-settings for validation and type safety.

Every delay used by the conversation core lives here so tests can run with
zero waits.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    """Feature flags for enabling/disabling workflows."""

    model_config = SettingsConfigDict(env_prefix="FEATURE_")

    charts: bool = True
    mltv: bool = True
    op_zones: bool = True

    def to_dict(self) -> dict[str, bool]:
        """Return feature flags as dictionary for health endpoint."""
        return {
            "charts": self.charts,
            "mltv": self.mltv,
            "op_zones": self.op_zones,
        }


class GeminiSettings(BaseSettings):
    """Gemini API configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_")

    api_key: str = Field(default="", description="Gemini API Key (empty = offline keyword classifier)")
    model: str = Field(default="gemini-2.0-flash", description="Model used for classification and reports")


class WhatsAppSettings(BaseSettings):
    """WhatsApp bridge configuration."""

    model_config = SettingsConfigDict(env_prefix="WHATSAPP_")

    bridge_url: str = Field(default="http://localhost:3001", description="Base URL of the WhatsApp bridge sidecar")
    bridge_token: str = Field(default="", description="Bearer token for the bridge API")
    bridge_timeout_seconds: float = Field(default=30.0)
    wake_word: str = Field(default="baruc", description="Word that opens a new conversation")
    groups_only: bool = Field(default=True, description="Only react to group chats (@g.us)")
    ready_timeout_seconds: float = Field(default=3.0, description="Wait for readiness before replying")
    qr_timeout_seconds: float = Field(default=20.0, description="Wait for a pairing QR code")
    ready_stale_seconds: float = Field(default=120.0, description="Re-confirm readiness after this long")


class ConversationSettings(BaseSettings):
    """Conversation context configuration."""

    model_config = SettingsConfigDict(env_prefix="CONVERSATION_")

    context_timeout_seconds: float = Field(default=30 * 60)
    max_messages: int = Field(default=10, ge=1)
    sweep_interval_seconds: float = Field(default=5 * 60)
    ai_greetings: bool = Field(default=False, description="Generate greetings with Gemini instead of templates")


class DeliverySettings(BaseSettings):
    """Outbound delivery guard configuration."""

    model_config = SettingsConfigDict(env_prefix="DELIVERY_")

    dedupe_window_seconds: float = 10.0
    dedupe_retention_seconds: float = 120.0
    pre_send_delay_seconds: float = 1.0
    media_pre_send_delay_seconds: float = 2.0
    serialization_grace_seconds: float = 2.0
    backoff_seconds: float = 3.0
    ready_wait_seconds: float = 10.0
    media_ready_wait_seconds: float = 5.0


class DispatchSettings(BaseSettings):
    """Inbound dispatcher configuration."""

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    seen_reset_seconds: float = Field(default=5 * 60, description="Processed-message cache lifetime")
    workflow_delay_seconds: float = Field(default=2.0, description="Settle time between reply and workflow")
    media_gap_seconds: float = Field(default=1.0, description="Gap between chart images")


class SheetsSettings(BaseSettings):
    """Google Sheets data source configuration."""

    model_config = SettingsConfigDict(env_prefix="SHEETS_")

    spreadsheet_id: str = Field(default="", description="Spreadsheet holding orders, MLTV and OP ZONES tabs")
    api_key: str = Field(default="", description="Google API key with Sheets read access")
    base_url: str = Field(default="https://sheets.googleapis.com/v4/spreadsheets")
    timeout_seconds: float = 30.0


class CloudinarySettings(BaseSettings):
    """Cloudinary configuration (CSV hosting for the chart renderer)."""

    model_config = SettingsConfigDict(env_prefix="CLOUDINARY_")

    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    timeout_seconds: float = 30.0


class ChartsSettings(BaseSettings):
    """Chart renderer microservice configuration."""

    model_config = SettingsConfigDict(env_prefix="CHARTS_")

    endpoint_url: str = Field(default="", description="POST endpoint of the chart renderer")
    timeout_seconds: float = Field(default=120.0)


class RedisSettings(BaseSettings):
    """Redis configuration (shared processed-message cache)."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    seen_key_prefix: str = Field(
        default="baruc:seen:",
        description="Redis key prefix for processed inbound messages (key = prefix + <dedupe key>)",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_log_level: str = "INFO"

    dedupe_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Where processed inbound message keys are kept. Use redis when running several instances.",
    )

    # Nested settings
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    whatsapp: WhatsAppSettings = Field(default_factory=WhatsAppSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    sheets: SheetsSettings = Field(default_factory=SheetsSettings)
    cloudinary: CloudinarySettings = Field(default_factory=CloudinarySettings)
    charts: ChartsSettings = Field(default_factory=ChartsSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
