"""Core module for reMIND."""

from remind.core.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
