"""Domain errors: bad input to the cache model and broken internal state."""

from __future__ import annotations

from typing import Any

from cache_components.kernel.errors.base import BaseError


class DomainError(BaseError):
    """A rule of the cache model was broken."""

    default_code = "domain_error"


class InvariantViolationError(DomainError):
    """Internal state is inconsistent; always a library defect, never caller input."""

    default_code = "invariant_violation"


class ValidationError(DomainError):
    """Caller input (a tag, a profile, an expire override) was rejected.

    ``errors`` holds one ``{"field": ..., "error": ...}`` dict per problem.
    """

    default_code = "validation_error"

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.errors: list[dict[str, Any]] = list(errors or [])

    @classmethod
    def for_field(cls, field: str, error: str, message: str | None = None) -> ValidationError:
        return cls(message or f"Invalid {field}: {error}", errors=[{"field": field, "error": error}])

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors if "field" in e]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


__all__ = ["DomainError", "InvariantViolationError", "ValidationError"]
