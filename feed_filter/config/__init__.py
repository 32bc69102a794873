"""Configuration module for the feed filter."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
