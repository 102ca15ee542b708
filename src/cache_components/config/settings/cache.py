"""Config settings – CacheSettings for the cache engine."""
from __future__ import annotations

import dataclasses

from cache_components.config.errors import InvalidSettingValueError
from cache_components.config.settings.base import Settings


@dataclasses.dataclass(frozen=True)
class CacheSettings(Settings):
    """Tunables of a :class:`~cache_components.application.cache.CacheEngine`.

    Loaded from ``CACHE_COMPONENTS_*`` environment variables, e.g.
    ``CACHE_COMPONENTS_DEFAULT_PROFILE=hours``.

    ``sweep_interval_seconds`` and ``wait_timeout_seconds`` use ``0`` to
    mean "disabled".
    """

    _prefix: dataclasses.ClassVar[str] = "CACHE_COMPONENTS"

    default_profile: str = "default"
    refresh_on_stale_read: bool = True
    sweep_interval_seconds: float = 60.0
    wait_timeout_seconds: float = 0.0
    max_tags_per_entry: int = 128
    max_tag_length: int = 256

    def _validate(self) -> None:
        if not self.default_profile:
            raise InvalidSettingValueError("default_profile", self.default_profile, "must not be empty")
        if self.sweep_interval_seconds < 0:
            raise InvalidSettingValueError(
                "sweep_interval_seconds", self.sweep_interval_seconds, "must be >= 0"
            )
        if self.wait_timeout_seconds < 0:
            raise InvalidSettingValueError(
                "wait_timeout_seconds", self.wait_timeout_seconds, "must be >= 0"
            )
        if self.max_tags_per_entry < 1:
            raise InvalidSettingValueError("max_tags_per_entry", self.max_tags_per_entry, "must be >= 1")
        if self.max_tag_length < 1:
            raise InvalidSettingValueError("max_tag_length", self.max_tag_length, "must be >= 1")

    @property
    def wait_timeout(self) -> float | None:
        return self.wait_timeout_seconds or None


__all__ = ["CacheSettings"]
