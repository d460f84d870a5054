"""Baruc - WhatsApp data assistant."""

__version__ = "0.3.0"
