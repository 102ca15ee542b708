"""Application cache – lifetime profiles (``cacheLife``) and their resolution."""
from __future__ import annotations

import dataclasses
import enum
import math
import threading
from datetime import timedelta

from cache_components.application.cache.errors import UnknownProfileError
from cache_components.kernel.errors import ValidationError

__all__ = [
    "BUILTIN_PROFILES",
    "INFINITE",
    "LifetimePolicy",
    "LifetimeProfile",
    "RevalidateMode",
]

INFINITE = math.inf


class RevalidateMode(str, enum.Enum):
    """What a read does once an entry's stale window has elapsed."""

    BACKGROUND = "background"  # serve stale, refresh once in the background
    BLOCKING = "blocking"      # recompute before answering


def _seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclasses.dataclass(frozen=True)
class LifetimeProfile:
    """A named pair of windows, in seconds, measured from computation time.

    ``stale_window`` is when a background refresh becomes permitted,
    ``expire_window`` is when the value may no longer be served.
    """

    name: str
    stale_window: float
    expire_window: float
    revalidate_mode: RevalidateMode = RevalidateMode.BACKGROUND

    def __post_init__(self) -> None:
        object.__setattr__(self, "stale_window", _seconds(self.stale_window))
        object.__setattr__(self, "expire_window", _seconds(self.expire_window))
        errors = []
        if not self.name:
            errors.append({"field": "name", "error": "must not be empty"})
        if self.stale_window < 0 or math.isnan(self.stale_window):
            errors.append({"field": "stale_window", "error": "must be >= 0"})
        if self.expire_window < 0 or math.isnan(self.expire_window):
            errors.append({"field": "expire_window", "error": "must be >= 0"})
        if not errors and self.stale_window > self.expire_window:
            errors.append({"field": "stale_window", "error": "must not exceed expire_window"})
        if errors:
            raise ValidationError(f"Invalid lifetime profile {self.name!r}", errors=errors)

    @property
    def never_stale(self) -> bool:
        return math.isinf(self.stale_window)

    @property
    def never_expires(self) -> bool:
        return math.isinf(self.expire_window)

    def narrowed(self, other: LifetimeProfile) -> LifetimeProfile:
        """Return the shorter of both windows; used when scopes nest."""
        if other is self:
            return self
        stale = min(self.stale_window, other.stale_window)
        expire = min(self.expire_window, other.expire_window)
        if (stale, expire) == (self.stale_window, self.expire_window):
            return self
        if (stale, expire) == (other.stale_window, other.expire_window):
            return other
        mode = (
            RevalidateMode.BLOCKING
            if RevalidateMode.BLOCKING in (self.revalidate_mode, other.revalidate_mode)
            else RevalidateMode.BACKGROUND
        )
        return LifetimeProfile(f"{self.name}+{other.name}", stale, expire, mode)


_MINUTE = 60.0
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY

BUILTIN_PROFILES: tuple[LifetimeProfile, ...] = (
    LifetimeProfile("seconds", stale_window=1.0, expire_window=_MINUTE),
    LifetimeProfile("minutes", stale_window=_MINUTE, expire_window=_HOUR),
    LifetimeProfile("hours", stale_window=_HOUR, expire_window=_DAY),
    LifetimeProfile("days", stale_window=_DAY, expire_window=_WEEK),
    LifetimeProfile("weeks", stale_window=_WEEK, expire_window=30 * _DAY),
    LifetimeProfile("max", stale_window=INFINITE, expire_window=INFINITE),
    LifetimeProfile("default", stale_window=15 * _MINUTE, expire_window=INFINITE),
)


class LifetimePolicy:
    """Registry resolving profile names to :class:`LifetimeProfile` objects.

    Starts with the built-in profiles; :meth:`register` adds custom ones or
    replaces a built-in, the way a project-level ``cacheLife`` config does.
    """

    def __init__(self, profiles: list[LifetimeProfile] | None = None) -> None:
        self._profiles: dict[str, LifetimeProfile] = {p.name: p for p in BUILTIN_PROFILES}
        self._lock = threading.Lock()
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: LifetimeProfile) -> None:
        with self._lock:
            self._profiles[profile.name] = profile

    def resolve(self, profile: str | LifetimeProfile) -> LifetimeProfile:
        if isinstance(profile, LifetimeProfile):
            return profile
        try:
            return self._profiles[profile]
        except KeyError:
            raise UnknownProfileError(profile, known=list(self._profiles)) from None

    def names(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles
