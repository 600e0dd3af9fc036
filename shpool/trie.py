"""A small trie used to match input sequences such as keybindings."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, Iterable, TypeVar

__all__ = ["CursorKind", "TrieCursor", "Trie"]

V = TypeVar("V")

_MISSING: Any = object()


class CursorKind(enum.Enum):
    """The state a :class:`TrieCursor` is in."""

    START = "start"
    MATCH = "match"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class TrieCursor:
    """Position of an in-progress match.

    A default-constructed cursor is the start state. ``idx`` and
    ``is_partial`` are only meaningful for ``MATCH`` cursors.
    """

    kind: CursorKind = CursorKind.START
    idx: int = 0
    is_partial: bool = False


@dataclass
class _Node:
    value: Any = _MISSING
    tab: dict = field(default_factory=dict)

    @property
    def has_value(self) -> bool:
        return self.value is not _MISSING


class Trie(Generic[V]):
    """Maps symbol sequences to values and supports stepwise matching."""

    def __init__(self) -> None:
        # The first node is the root; the order of the rest is undefined.
        self._nodes: list[_Node] = [_Node()]

    def insert(self, seq: Iterable[Hashable], value: V) -> None:
        """Associate ``value`` with the sequence ``seq``."""
        current = 0
        for sym in seq:
            nxt = self._nodes[current].tab.get(sym)
            if nxt is None:
                nxt = len(self._nodes)
                self._nodes.append(_Node())
                self._nodes[current].tab[sym] = nxt
            current = nxt
        self._nodes[current].value = value

    def contains(self, seq: Iterable[Hashable]) -> bool:
        """Return whether ``seq`` was inserted as a complete sequence."""
        cursor = TrieCursor()
        for sym in seq:
            cursor = self.advance(cursor, sym)
            if cursor.kind is CursorKind.NO_MATCH:
                return False
        if cursor.kind is CursorKind.START:
            return self._nodes[0].has_value
        return cursor.kind is CursorKind.MATCH and not cursor.is_partial

    def advance(self, cursor: TrieCursor, sym: Hashable) -> TrieCursor:
        """Consume one symbol and return the resulting cursor."""
        if cursor.kind is CursorKind.NO_MATCH:
            return cursor
        node = self._nodes[0] if cursor.kind is CursorKind.START else self._nodes[cursor.idx]
        idx = node.tab.get(sym)
        if idx is None:
            return TrieCursor(CursorKind.NO_MATCH)
        return TrieCursor(
            CursorKind.MATCH, idx=idx, is_partial=not self._nodes[idx].has_value
        )

    def get(self, cursor: TrieCursor) -> V | None:
        """Return the value stored at a match cursor, or ``None``."""
        if cursor.kind is not CursorKind.MATCH:
            return None
        node = self._nodes[cursor.idx]
        return node.value if node.has_value else None