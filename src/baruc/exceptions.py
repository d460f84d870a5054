"""
Baruc - Custom Exceptions.

Centralized exception handling with standardized error responses.
"""

from typing import Any


class BarucException(Exception):
    """Base exception for Baruc application."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundException(BarucException):
    """Raised when a resource is not found."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource_type} not found: {resource_id}",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ExternalServiceException(BarucException):
    """Raised when an external service fails."""

    def __init__(self, service_name: str, message: str):
        super().__init__(
            code="EXTERNAL_SERVICE_ERROR",
            message=f"{service_name} error: {message}",
            status_code=502,
            details={"service": service_name},
        )


class TransportNotReadyException(BarucException):
    """Raised when the WhatsApp client is not ready/authenticated."""

    def __init__(self, message: str = "WhatsApp client is not ready"):
        super().__init__(
            code="TRANSPORT_NOT_READY",
            message=message,
            status_code=503,
        )


class TransportException(BarucException):
    """Raised when the WhatsApp bridge rejects or fails a call.

    ``message`` keeps the bridge's raw error text; the delivery guard inspects
    it to recognise serialization faults.
    """

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(
            code="TRANSPORT_ERROR",
            message=message,
            status_code=status_code,
        )

    @property
    def is_serialization_fault(self) -> bool:
        return is_serialization_fault(self.message)


SERIALIZATION_MARKERS = ("serialize", "getMessageModel")


def is_serialization_fault(error_text: str) -> bool:
    """True when an error text matches the bridge's post-send serialization quirk."""
    return any(marker in (error_text or "") for marker in SERIALIZATION_MARKERS)
