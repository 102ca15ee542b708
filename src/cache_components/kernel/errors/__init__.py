"""Kernel error hierarchy: the public import surface.

Hierarchy::

    BaseError
    ├── DomainError          (domain.py)
    │   ├── InvariantViolationError
    │   └── ValidationError
    └── ApplicationError     (application.py)
        └── TimeoutError

Cache-specific errors extend these in
:mod:`cache_components.application.cache.errors`.
"""

from cache_components.kernel.errors.application import ApplicationError, TimeoutError
from cache_components.kernel.errors.base import BaseError
from cache_components.kernel.errors.domain import (
    DomainError,
    InvariantViolationError,
    ValidationError,
)

__all__ = [
    "ApplicationError",
    "BaseError",
    "DomainError",
    "InvariantViolationError",
    "TimeoutError",
    "ValidationError",
]
