"""Application errors: an operation could not be completed for its caller."""

from __future__ import annotations

from typing import Any

from cache_components.kernel.errors.base import BaseError


class ApplicationError(BaseError):
    default_code = "application_error"


class TimeoutError(ApplicationError):  # noqa: A001
    """A caller stopped waiting; the work it waited on may still finish."""

    default_code = "timeout"
    retryable = True

    def __init__(self, message: str, *, timeout: float | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout = timeout
        if timeout is not None:
            self.detail.setdefault("timeout", timeout)


__all__ = ["ApplicationError", "TimeoutError"]
