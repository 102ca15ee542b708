"""Config settings – 12-factor env-based configuration."""
from cache_components.config.settings.base import Settings
from cache_components.config.settings.cache import CacheSettings
from cache_components.config.settings.loaders import EnvSettingsLoader, SettingsLoader

__all__ = ["CacheSettings", "EnvSettingsLoader", "Settings", "SettingsLoader"]
