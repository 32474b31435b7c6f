"""
clipstab Utilities Package
"""

from .logging import (
    LogConfig,
    ClipStabLogger,
    configure_logging,
    get_logger,
    get_config,
    set_level,
)

__all__ = [
    "LogConfig",
    "ClipStabLogger",
    "configure_logging",
    "get_logger",
    "get_config",
    "set_level",
]
