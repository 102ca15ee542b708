"""Root error class for the cache-components error hierarchy."""

from __future__ import annotations

import json
from typing import Any, ClassVar


class BaseError(Exception):
    """Root of the error hierarchy.

    Args:
        message: Human-readable description.
        code: Machine-readable slug (defaults to ``default_code``).
        detail: Extra context, e.g. the cache key or tag involved.
        cause: Original exception; also set as ``__cause__``.

    ``retryable`` tells callers whether repeating the same cache operation
    can succeed without any change on their side.
    """

    default_code: ClassVar[str] = "base_error"
    retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.detail: dict[str, Any] = dict(detail) if detail else {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_detail(self, **extra: Any) -> BaseError:
        """Merge *extra* into ``detail`` and return ``self`` for re-raising."""
        self.detail.update(extra)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form used in structured log records."""
        data: dict[str, Any] = {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "detail": self.detail,
        }
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"


__all__ = ["BaseError"]
