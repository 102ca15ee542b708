"""Application cache – TagIndex, the inverted tag → keys index."""
from __future__ import annotations

from collections.abc import Iterable, Iterator

__all__ = ["TagIndex"]


class TagIndex:
    """Maps each tag to the set of cache keys carrying it.

    Not synchronised on its own: :class:`EntryStore` owns the index and
    applies every mutation under its lock, together with the entry write.
    A tag whose key set becomes empty is dropped so one-off tags do not
    accumulate.
    """

    def __init__(self) -> None:
        self._keys: dict[str, set[str]] = {}

    def index(self, tag: str, key: str) -> None:
        self._keys.setdefault(tag, set()).add(key)

    def deindex(self, tag: str, key: str) -> None:
        keys = self._keys.get(tag)
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del self._keys[tag]

    def index_all(self, tags: Iterable[str], key: str) -> None:
        for tag in tags:
            self.index(tag, key)

    def deindex_all(self, tags: Iterable[str], key: str) -> None:
        for tag in tags:
            self.deindex(tag, key)

    def keys_for_tag(self, tag: str) -> frozenset[str]:
        return frozenset(self._keys.get(tag, ()))

    def tags(self) -> list[str]:
        return sorted(self._keys)

    def __contains__(self, tag: object) -> bool:
        return tag in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tags())
