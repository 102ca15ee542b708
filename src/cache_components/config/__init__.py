"""Config – 12-factor settings and loaders."""

from cache_components.config.errors import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
)
from cache_components.config.settings import (
    CacheSettings,
    EnvSettingsLoader,
    Settings,
    SettingsLoader,
)

__all__ = [
    "CacheSettings",
    "ConfigError",
    "EnvSettingsLoader",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "Settings",
    "SettingsLoader",
]
