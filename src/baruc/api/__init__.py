"""Baruc HTTP API."""
