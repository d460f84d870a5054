"""
Baruc - Common Schemas.

Shared Pydantic models used by the HTTP surface.
"""

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Error Responses
# =============================================================================


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional context")
    request_id: str | None = Field(default=None, description="Request ID for tracing")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail


# =============================================================================
# Health
# =============================================================================


class ClientStatus(BaseModel):
    """WhatsApp client readiness snapshot."""

    is_ready: bool
    is_authenticated: bool
    seconds_since_ready: float | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    features: dict[str, bool]
    app_env: str
    classifier: str = Field(..., description="'gemini' or 'keywords'")
    client: ClientStatus
    open_contexts: int = 0
