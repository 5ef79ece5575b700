"""Shared helpers: logging setup and filesystem layout."""
