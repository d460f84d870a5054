"""
Baruc WhatsApp - Bridge transport, delivery guard and message dispatcher.
"""

from baruc.whatsapp.sender import DeliveryGuard
from baruc.whatsapp.transport import (
    BridgeEvent,
    ClientState,
    HttpBridgeTransport,
    InboundMessage,
    MediaPayload,
    Transport,
)

__all__ = [
    "BridgeEvent",
    "ClientState",
    "DeliveryGuard",
    "HttpBridgeTransport",
    "InboundMessage",
    "MediaPayload",
    "Transport",
]
