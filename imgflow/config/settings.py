"""
Environment-driven settings for the imgflow upload layer.

Settings are read from the process environment, optionally seeded from a
``.env`` file through python-dotenv. Values already present in the environment
always win over the file.

Recognized variables:
- IMGFLOW_UPLOAD_ROOT: default upload root directory
- IMGFLOW_MAX_CONTENT_LENGTH: maximum request body size in bytes for Flask
- IMGFLOW_MAX_IMAGE_PIXELS: Pillow decompression bomb threshold
- IMGFLOW_OVERWRITE: whether saved files may replace existing ones
- LOG_LEVEL / LOG_FORMAT: structlog configuration
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv

from imgflow.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_ROOT = "uploads"
DEFAULT_MAX_CONTENT_LENGTH = 20 * 1024 * 1024
DEFAULT_MAX_IMAGE_PIXELS = 40_000_000


class EnvironmentManager:
    """
    Environment variable loading using python-dotenv with typed accessors.
    """

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize environment manager and load the .env file if present.

        Args:
            env_file: Optional path to .env file, defaults to auto-discovery
        """
        self.env_file = env_file or find_dotenv(usecwd=True)
        self.logger = logging.getLogger(f"{__name__}.EnvironmentManager")
        if self.env_file:
            # override=False preserves values already set in the environment
            load_dotenv(self.env_file, override=False)
            self.logger.debug("Environment variables loaded from %s", self.env_file)

    def get_optional_env(self, key: str, default: Any = None, var_type: type = str) -> Any:
        """
        Get optional environment variable with default value and type conversion.

        Args:
            key: Environment variable name
            default: Default value if variable is not set
            var_type: Expected variable type

        Returns:
            Environment variable value or default
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default

        try:
            if var_type == bool:
                return value.strip().lower() in ('true', '1', 'yes', 'on')
            elif var_type == int:
                return int(value)
            elif var_type == float:
                return float(value)
            else:
                return var_type(value)
        except (ValueError, TypeError):
            self.logger.warning("Invalid type for '%s', using default: %s", key, default)
            return default


@dataclass(frozen=True)
class UploadSettings:
    """Resolved imgflow settings."""

    upload_root: str = DEFAULT_UPLOAD_ROOT
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH
    max_image_pixels: int = DEFAULT_MAX_IMAGE_PIXELS
    overwrite: bool = False
    log_level: str = "INFO"
    log_format: str = "json"

    def validate(self) -> None:
        """
        Validate setting values.

        Raises:
            ConfigurationError: When a value is out of range
        """
        if not self.upload_root:
            raise ConfigurationError("IMGFLOW_UPLOAD_ROOT must not be empty")
        if self.max_content_length <= 0:
            raise ConfigurationError("IMGFLOW_MAX_CONTENT_LENGTH must be positive")
        if self.max_image_pixels <= 0:
            raise ConfigurationError("IMGFLOW_MAX_IMAGE_PIXELS must be positive")
        if self.log_format not in ('json', 'console'):
            raise ConfigurationError(f"Unsupported LOG_FORMAT '{self.log_format}'")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "UploadSettings":
        """Build and validate settings from the environment."""
        env = EnvironmentManager(env_file)
        settings = cls(
            upload_root=env.get_optional_env('IMGFLOW_UPLOAD_ROOT', DEFAULT_UPLOAD_ROOT),
            max_content_length=env.get_optional_env(
                'IMGFLOW_MAX_CONTENT_LENGTH', DEFAULT_MAX_CONTENT_LENGTH, int
            ),
            max_image_pixels=env.get_optional_env(
                'IMGFLOW_MAX_IMAGE_PIXELS', DEFAULT_MAX_IMAGE_PIXELS, int
            ),
            overwrite=env.get_optional_env('IMGFLOW_OVERWRITE', False, bool),
            log_level=env.get_optional_env('LOG_LEVEL', 'INFO').upper(),
            log_format=env.get_optional_env('LOG_FORMAT', 'json').lower(),
        )
        settings.validate()
        return settings


_settings: Optional[UploadSettings] = None


def get_settings() -> UploadSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = UploadSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings`` reloads them."""
    global _settings
    _settings = None


__all__ = [
    'EnvironmentManager',
    'UploadSettings',
    'get_settings',
    'reset_settings',
    'DEFAULT_UPLOAD_ROOT',
    'DEFAULT_MAX_CONTENT_LENGTH',
    'DEFAULT_MAX_IMAGE_PIXELS'
]
