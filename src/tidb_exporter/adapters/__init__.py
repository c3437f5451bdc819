"""Adapters connecting the core to drivers and web frameworks."""
