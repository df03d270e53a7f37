"""Core utilities shared by all ai-base commands."""

from .log import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
