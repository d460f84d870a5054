"""Baruc API routers."""
