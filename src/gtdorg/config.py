"""Configuration management with lazy validation."""

import os
from pathlib import Path
from functools import cached_property
from typing import Optional

from gtdorg.models.config import Config, GtdConfig, IdentityConfig, OutlineConfig
from gtdorg.utils.logging import get_logger


logger = get_logger(__name__)


def default_config_path() -> Path:
    """Config file path: GTDORG_CONFIG, or ~/.config/gtdorg/config.yaml."""
    override = os.environ.get("GTDORG_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "gtdorg" / "config.yaml"


class ConfigManager:
    """
    Configuration manager with lazy section access.

    Example:
        >>> config_mgr = ConfigManager.load_default(allow_missing=True)
        >>> config_mgr.gtd.root_path
        PosixPath('/home/me/Documents/GTD')
    """

    def __init__(self, config: Config, path: Optional[Path] = None):
        """
        Initialize config manager with loaded config.

        Args:
            config: Loaded and validated Config instance
            path: File the config was read from (None for built-in defaults)
        """
        self._config = config
        self.path = path

    @classmethod
    def load_default(cls, allow_missing: bool = False) -> "ConfigManager":
        """
        Load configuration from default_config_path().

        Args:
            allow_missing: Fall back to built-in defaults when the file is absent

        Raises:
            FileNotFoundError: If config file doesn't exist and allow_missing is False
            ValueError: If config is invalid
        """
        return cls.load_from_path(default_config_path(), allow_missing=allow_missing)

    @classmethod
    def load_from_path(cls, path: Path, allow_missing: bool = False) -> "ConfigManager":
        """
        Load configuration from specific path.

        Args:
            path: Path to config.yaml file
            allow_missing: Fall back to built-in defaults when the file is absent

        Returns:
            ConfigManager instance with loaded config

        Raises:
            FileNotFoundError: If config file doesn't exist and allow_missing is False
            ValueError: If config is invalid
        """
        logger.info("config_loading", path=str(path))

        if allow_missing and not path.exists():
            logger.info("config_defaults_used", path=str(path))
            return cls(Config(), path=None)

        try:
            config = Config.load(path)
            logger.info("config_loaded", path=str(path))
            return cls(config, path=path)

        except FileNotFoundError as e:
            logger.error("config_not_found", path=str(path), error=str(e))
            raise

        except Exception as e:
            logger.error("config_validation_error", path=str(path), error=str(e))
            raise ValueError(f"Configuration validation failed: {e}") from e

    @cached_property
    def gtd(self) -> GtdConfig:
        """Document tree settings."""
        return self._config.gtd

    @cached_property
    def outline(self) -> OutlineConfig:
        """State keyword settings."""
        return self._config.outline

    @cached_property
    def identity(self) -> IdentityConfig:
        """Identifier settings."""
        return self._config.identity
