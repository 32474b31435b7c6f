"""Configuration module for clipstab.

Settings can be given in code or loaded from a YAML file:

    stabilization:
      smoothing_window: 30
      zoom: 1.04
      border_mode: constant
    logging:
      log_level: INFO
      log_format: text
    data_suffix: .stab
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .errors import ConfigurationError
from .processors.stabilization import StabilizationConfig
from .utils.logging import LogConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_SUFFIX = ".stab"


@dataclass
class Config:
    """Configuration for the clipstab tools.

    Attributes:
        stabilization: Analysis and rendering settings.
        logging: Logging settings.
        data_suffix: File suffix for stabilization data written next to
            the analyzed video.
    """

    stabilization: StabilizationConfig = field(default_factory=StabilizationConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    data_suffix: str = DEFAULT_DATA_SUFFIX

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.data_suffix.startswith("."):
            raise ConfigurationError("data_suffix must start with '.'")

    def data_path_for(self, video_path: Union[str, Path]) -> Path:
        """Default stabilization data path for a video."""
        return Path(video_path).with_suffix(self.data_suffix)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from a dictionary.

        Raises:
            ConfigurationError: If a section is not a mapping or a value
                is invalid.
        """
        stabilization = data.get("stabilization") or {}
        log_settings = data.get("logging") or {}
        if not isinstance(stabilization, dict) or not isinstance(log_settings, dict):
            raise ConfigurationError("'stabilization' and 'logging' must be mappings")

        try:
            stabilization_config = StabilizationConfig.from_dict(stabilization)
            log_config = LogConfig.from_dict(log_settings)
        except (TypeError, AttributeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        return cls(
            stabilization=stabilization_config,
            logging=log_config,
            data_suffix=data.get("data_suffix", DEFAULT_DATA_SUFFIX),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "stabilization": self.stabilization.to_dict(),
            "logging": self.logging.to_dict(),
            "data_suffix": self.data_suffix,
        }

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Config":
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
