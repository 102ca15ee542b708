"""Application cache – cache scopes and the request-bound access guard.

A :class:`ScopeContext` brackets one cacheable computation. It is passed
explicitly to the computation (never looked up ambiently) and serves two
purposes:

* guard: :meth:`ScopeTracker.assert_cacheable` rejects request-bound reads
  (cookies, headers, ...) while the scope is active, so per-request data can
  never be captured in a shared cache entry;
* collection: the computation may attach extra tags (:meth:`ScopeContext.tag`)
  or pick its lifetime (:meth:`ScopeContext.life`), and nested cached
  computations report their tags and lifetime back to the enclosing scope.

Nested scopes inherit every restriction of their ancestors.
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from cache_components.application.cache.errors import NonCacheableAccessError
from cache_components.application.cache.lifetime import LifetimePolicy, LifetimeProfile
from cache_components.kernel.errors import InvariantViolationError

__all__ = [
    "DEFAULT_REQUEST_BOUND",
    "RequestData",
    "ScopeContext",
    "ScopeTracker",
]

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_BOUND: frozenset[str] = frozenset(
    {"cookies", "headers", "search_params", "connection", "draft_mode"}
)

_ids = itertools.count(1)


class ScopeContext:
    """Marker for one cacheable evaluation in progress."""

    def __init__(
        self,
        tracker: ScopeTracker,
        *,
        parent: ScopeContext | None,
        forbidden: frozenset[str],
        lifetime: LifetimeProfile | None,
    ) -> None:
        self.id = next(_ids)
        self.parent = parent
        self.forbidden = forbidden
        self._tracker = tracker
        self._active = True
        self._children = 0
        self._tags: set[str] = set()
        self._base_lifetime = lifetime
        self._explicit_lifetime: LifetimeProfile | None = None
        self._nested_lifetime: LifetimeProfile | None = None

    def __repr__(self) -> str:
        return f"ScopeContext(id={self.id}, active={self._active}, tags={sorted(self._tags)})"

    @property
    def active(self) -> bool:
        return self._active

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    @property
    def tags(self) -> frozenset[str]:
        return frozenset(self._tags)

    @property
    def lifetime(self) -> LifetimeProfile | None:
        """Explicit lifetime (or the one given on entry), narrowed by nested results."""
        chosen = self._explicit_lifetime or self._base_lifetime
        if chosen is None:
            return self._nested_lifetime
        if self._nested_lifetime is None:
            return chosen
        return chosen.narrowed(self._nested_lifetime)

    def _require_active(self, action: str) -> None:
        if not self._active:
            raise InvariantViolationError(f"Cannot {action} on an exited cache scope", detail={"scope": self.id})

    def tag(self, *tags: str) -> None:
        """Attach *tags* to the entry this scope is computing (``cacheTag``)."""
        self._require_active("tag")
        self._tags.update(tags)

    def life(self, profile: str | LifetimeProfile) -> LifetimeProfile:
        """Choose the lifetime of the entry this scope is computing (``cacheLife``)."""
        self._require_active("set lifetime")
        self._explicit_lifetime = self._tracker.resolve_lifetime(profile)
        return self._explicit_lifetime

    def absorb(self, tags: Iterable[str], lifetime: LifetimeProfile | None) -> None:
        """Fold a nested cached result into this scope: its tags and a shorter lifetime."""
        if not self._active:
            return
        self._tags.update(tags)
        if lifetime is not None:
            self._nested_lifetime = (
                lifetime if self._nested_lifetime is None else self._nested_lifetime.narrowed(lifetime)
            )

    def assert_cacheable(self, operation: str) -> None:
        self._tracker.assert_cacheable(operation, self)

    def enter(self, *, forbid: Iterable[str] = ()) -> ScopeContext:
        return self._tracker.enter(self, forbid=forbid)

    def __enter__(self) -> ScopeContext:
        return self

    def __exit__(self, *_: Any) -> None:
        if self._active:
            self._tracker.exit(self)


class ScopeTracker:
    """Creates scopes and decides which operations they forbid.

    *request_bound* names the ambient, per-request operations that must
    never be read inside a scope; each scope may forbid more on top.
    """

    def __init__(
        self,
        request_bound: Iterable[str] | None = None,
        *,
        policy: LifetimePolicy | None = None,
    ) -> None:
        self._request_bound = frozenset(request_bound) if request_bound is not None else DEFAULT_REQUEST_BOUND
        self._policy = policy or LifetimePolicy()
        self._active = 0

    @property
    def request_bound(self) -> frozenset[str]:
        return self._request_bound

    @property
    def active_count(self) -> int:
        return self._active

    def is_request_bound(self, operation: str) -> bool:
        return operation in self._request_bound

    def resolve_lifetime(self, profile: str | LifetimeProfile) -> LifetimeProfile:
        return self._policy.resolve(profile)

    def enter(
        self,
        parent: ScopeContext | None = None,
        *,
        forbid: Iterable[str] = (),
        lifetime: LifetimeProfile | None = None,
    ) -> ScopeContext:
        if parent is not None:
            parent._require_active("enter a nested scope")
        forbidden = self._request_bound | frozenset(forbid)
        if parent is not None:
            forbidden |= parent.forbidden
        ctx = ScopeContext(self, parent=parent, forbidden=forbidden, lifetime=lifetime)
        if parent is not None:
            parent._children += 1
        self._active += 1
        return ctx

    def exit(self, ctx: ScopeContext) -> None:
        ctx._require_active("exit")
        if ctx._children:
            raise InvariantViolationError(
                "Cannot exit a cache scope while nested scopes are still active",
                detail={"scope": ctx.id, "children": ctx._children},
            )
        ctx._active = False
        if ctx.parent is not None:
            ctx.parent._children -= 1
        self._active -= 1

    def assert_cacheable(
        self,
        operation: str,
        ctx: ScopeContext | None = None,
        *,
        request_bound: bool = False,
    ) -> None:
        """Raise :class:`NonCacheableAccessError` for request-bound reads inside *ctx*.

        Outside any scope (``ctx`` is ``None`` or already exited) every
        operation is allowed. ``request_bound=True`` forces the check for
        operations the tracker does not know by name.
        """
        if ctx is None or not ctx.active:
            return
        if request_bound or operation in ctx.forbidden:
            logger.warning("cache.scope.non_cacheable_access operation=%s scope=%d", operation, ctx.id)
            raise NonCacheableAccessError(operation)


class RequestData:
    """Per-request values that may only be read outside cache scopes.

    The surrounding request layer builds one per request and passes the
    values a computation needs as explicit arguments; reading through this
    object from inside a scope fails fast.
    """

    def __init__(self, tracker: ScopeTracker, values: Mapping[str, Any] | None = None) -> None:
        self._tracker = tracker
        self._values = dict(values or {})

    def get(self, name: str, scope: ScopeContext | None = None, default: Any = None) -> Any:
        self._tracker.assert_cacheable(name, scope, request_bound=True)
        return self._values.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._values
