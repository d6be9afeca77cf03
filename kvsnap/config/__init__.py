"""Configuration module for KV-Snapshot."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
