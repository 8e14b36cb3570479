from types import MappingProxyType
from typing import Iterable, Mapping, Optional


class DocIndex:
    """Documentation keyed by ``(scope, name)``.

    ``scope`` is ``""`` for package-level declarations and the owning type
    name for methods. Missing entries are not an error: they read as "".
    """

    def __init__(self, entries: Optional[Mapping[tuple[str, str], str]] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_items(cls, items: Iterable[tuple[str, str, str]]) -> "DocIndex":
        return cls({(scope, name): doc for scope, name, doc in items if doc})

    def lookup(self, scope: Optional[str], name: str) -> str:
        return self._entries.get((scope or "", name), "")

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
