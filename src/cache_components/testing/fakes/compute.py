"""Testing fakes – ComputeProbe, a controllable recomputation function."""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from cache_components.application.cache.scope import ScopeContext


class ComputeProbe:
    """Async callable usable as ``compute`` that records every invocation.

    * ``results`` are returned in order (the last one repeats);
    * an ``Exception`` instance among them is raised instead of returned;
    * when ``gated`` the call suspends until :meth:`release` so tests can
      observe a computation while it is in flight.
    """

    def __init__(self, *results: Any, gated: bool = False, tags: Iterable[str] = ()) -> None:
        self._results = list(results) or [None]
        self._gate = asyncio.Event() if gated else None
        self._tags = tuple(tags)
        self.calls = 0
        self.scopes: list[ScopeContext] = []
        self.started = asyncio.Event()

    async def __call__(self, scope: ScopeContext) -> Any:
        index = min(self.calls, len(self._results) - 1)
        self.calls += 1
        self.scopes.append(scope)
        if self._tags:
            scope.tag(*self._tags)
        self.started.set()
        if self._gate is not None:
            await self._gate.wait()
        result = self._results[index]
        if isinstance(result, Exception):
            raise result
        return result

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()


__all__ = ["ComputeProbe"]
