"""Shared configuration."""

from .config import Settings, settings, reload_settings

__all__ = [
    "Settings",
    "settings",
    "reload_settings",
]
