"""Structured logging utilities for clipstab.

This module provides configurable, structured logging with support for:
- JSON format for machine parsing
- Human-readable text format for development
- Component-specific log levels
- Log rotation for file output

Library modules log through ``logging.getLogger(__name__)``; applications
call :func:`configure_logging` once at startup.

Example usage:
    >>> from clipstab.utils.logging import get_logger, LogConfig, configure_logging
    >>>
    >>> configure_logging(LogConfig(log_level="DEBUG", log_format="json"))
    >>> logger = get_logger("cli")
    >>> logger.info("Analyzed clip", frames=240, window=30)
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Literal, Optional

# Type aliases
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

ROOT_LOGGER = "clipstab"
VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class LogConfig:
    """Configuration for clipstab logging.

    Attributes:
        log_level: Default log level for all components
        log_format: Output format ('text' for human-readable, 'json' for structured)
        log_file: Optional file path for log output
        component_levels: Dictionary of component-specific log levels
        max_file_size_mb: Maximum log file size before rotation (default: 10MB)
        backup_count: Number of rotated log files to keep (default: 5)
        include_timestamp: Whether to include timestamps in output
    """

    log_level: LogLevel = "INFO"
    log_format: LogFormat = "text"
    log_file: Optional[str] = None
    component_levels: Dict[str, LogLevel] = field(default_factory=dict)
    max_file_size_mb: int = 10
    backup_count: int = 5
    include_timestamp: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.log_level.upper() not in VALID_LEVELS:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. "
                f"Must be one of: {VALID_LEVELS}"
            )
        if self.log_format not in ("text", "json"):
            raise ValueError(
                f"Invalid log_format '{self.log_format}'. "
                "Must be 'text' or 'json'"
            )
        for component, level in self.component_levels.items():
            if level.upper() not in VALID_LEVELS:
                raise ValueError(
                    f"Invalid log level '{level}' for component '{component}'. "
                    f"Must be one of: {VALID_LEVELS}"
                )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        """Create LogConfig from dictionary."""
        return cls(
            log_level=data.get("log_level", "INFO"),
            log_format=data.get("log_format", "text"),
            log_file=data.get("log_file"),
            component_levels=data.get("component_levels", {}),
            max_file_size_mb=data.get("max_file_size_mb", 10),
            backup_count=data.get("backup_count", 5),
            include_timestamp=data.get("include_timestamp", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_file": self.log_file,
            "component_levels": dict(self.component_levels),
            "max_file_size_mb": self.max_file_size_mb,
            "backup_count": self.backup_count,
            "include_timestamp": self.include_timestamp,
        }


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs log records as JSON objects:
    {
        "timestamp": "2024-12-29T10:30:45.123Z",
        "level": "INFO",
        "component": "stabilization_store",
        "message": "Saved stabilization data",
        "frames": 240
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "component": record.name.split(".")[-1],
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    Outputs log records in format:
    2024-12-29 10:30:45 | INFO     | clipstab.cli | Analyzed clip [frames=240]
    """

    def __init__(self, include_timestamp: bool = True) -> None:
        if include_timestamp:
            fmt = "%(asctime)s | %(levelname)-8s | %(name)-12s | %(message)s"
        else:
            fmt = "%(levelname)-8s | %(name)-12s | %(message)s"

        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text string."""
        message = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            extra_str = ", ".join(f"{k}={v}" for k, v in extra_fields.items())
            message = f"{message} [{extra_str}]"
        return message


class ClipStabLogger(logging.LoggerAdapter):
    """Logger adapter accepting structured keyword fields.

    Keyword arguments other than the standard logging ones are attached
    to the record and rendered by the configured formatter.
    """

    def __init__(
        self,
        logger: logging.Logger,
        component: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(logger, extra or {})
        self.component = component

    def process(
        self,
        msg: str,
        kwargs: Dict[str, Any],
    ) -> tuple:
        """Move structured fields into the record's extra data."""
        extra_fields = {}
        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra_fields[key] = kwargs.pop(key)

        if self.extra:
            extra_fields.update(self.extra)

        kwargs.setdefault("extra", {})
        kwargs["extra"]["extra_fields"] = extra_fields

        return msg, kwargs


# Global configuration
_log_config: Optional[LogConfig] = None
_configured_loggers: Dict[str, ClipStabLogger] = {}


def _make_formatter(config: LogConfig) -> logging.Formatter:
    if config.log_format == "json":
        return JSONFormatter()
    return TextFormatter(include_timestamp=config.include_timestamp)


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure global logging settings.

    This should be called once at application startup to set up
    logging handlers and formatters.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    global _log_config

    if config is None:
        config = LogConfig()

    _log_config = config
    level = getattr(logging, config.log_level.upper())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = _make_formatter(config)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    for component, component_level in config.component_levels.items():
        component_logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
        component_logger.setLevel(getattr(logging, component_level.upper()))

    # Prevent propagation to root logger
    root_logger.propagate = False


def get_logger(component: str) -> ClipStabLogger:
    """Get a structured logger for a specific component.

    Args:
        component: Component name (e.g., 'cli', 'processors.stabilization')

    Returns:
        ClipStabLogger instance
    """
    if component in _configured_loggers:
        return _configured_loggers[component]

    base_logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")

    if _log_config and component in _log_config.component_levels:
        level = _log_config.component_levels[component]
        base_logger.setLevel(getattr(logging, level.upper()))

    logger = ClipStabLogger(base_logger, component)
    _configured_loggers[component] = logger

    return logger


def get_config() -> Optional[LogConfig]:
    """Get current logging configuration."""
    return _log_config


def set_level(level: LogLevel, component: Optional[str] = None) -> None:
    """Set log level dynamically.

    Args:
        level: New log level
        component: Component to set level for (None for root)
    """
    if component:
        logger = logging.getLogger(f"{ROOT_LOGGER}.{component}")
    else:
        logger = logging.getLogger(ROOT_LOGGER)

    logger.setLevel(getattr(logging, level.upper()))
