"""Config settings – Settings base class."""
from __future__ import annotations

import dataclasses
from typing import Any, TypeVar

S = TypeVar("S", bound="Settings")


@dataclasses.dataclass(frozen=True)
class Settings:
    """Base class for 12-factor settings.

    Subclasses declare fields with defaults and set ``_prefix`` to the
    environment variable namespace they are loaded from.
    """

    _prefix: dataclasses.ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""

    def replace(self: S, **changes: Any) -> S:
        """Return a copy with *changes* applied (re-validated)."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def env_key(cls, field_name: str) -> str:
        return f"{cls._prefix}_{field_name}".upper().lstrip("_")


__all__ = ["Settings"]
