"""
Ordered search-path lists (PYTHONPATH, PATH) with set-membership edits.

Entries are compared as whole strings, so removing `/a/b` never touches
`/a/bc`, and adding an entry that is already present is a no-op.
"""

from typing import Iterable, List, Optional

DELIMITER = ":"


class SearchPath:

    def __init__(self, entries: Optional[Iterable[str]] = None):
        self._entries: List[str] = [e for e in (entries or []) if e]

    @classmethod
    def parse(cls, value: Optional[str]) -> "SearchPath":
        if not value:
            return cls()
        return cls(value.split(DELIMITER))

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, entry: str) -> bool:
        return entry in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SearchPath):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"SearchPath({self._entries!r})"

    def prepend(self, entry: str) -> "SearchPath":
        """Add entry at the front unless already present"""
        if not entry or entry in self._entries:
            return SearchPath(self._entries)
        return SearchPath([entry] + self._entries)

    def append(self, entry: str) -> "SearchPath":
        """Add entry at the end unless already present"""
        if not entry or entry in self._entries:
            return SearchPath(self._entries)
        return SearchPath(self._entries + [entry])

    def remove(self, entry: str) -> "SearchPath":
        """Drop every occurrence of entry"""
        return SearchPath(e for e in self._entries if e != entry)

    def render(self) -> str:
        return DELIMITER.join(self._entries)
