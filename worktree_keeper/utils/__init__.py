"""Utility functions for worktree-keeper.

This package provides utility modules:
- logging: Logging configuration and logger creation
- paths: Path resolution helpers shared by the services
"""

from .logging import setup_logging, get_logger, ColoredFormatter
from .paths import resolve_path, is_within

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
    # Paths
    "resolve_path",
    "is_within",
]
