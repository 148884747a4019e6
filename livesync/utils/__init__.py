"""Shared utilities for livesync."""
from livesync.utils.logger import configure, get_logger

__all__ = ["configure", "get_logger"]
