"""Bounded rendering of long sequences with an expand/collapse toggle."""
from __future__ import annotations

from typing import Generic, Sequence, Tuple, TypeVar

T = TypeVar("T")


class ProgressiveList(Generic[T]):
    """Expose a capped prefix of ``items``; ``toggle`` reveals or hides the rest."""

    def __init__(self, items: Sequence[T], limit: int, *, expanded: bool = False) -> None:
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        self._items: Tuple[T, ...] = tuple(items)
        self.limit = limit
        self.expanded = expanded

    @property
    def items(self) -> Tuple[T, ...]:
        return self._items

    @property
    def visible(self) -> Tuple[T, ...]:
        if self.expanded:
            return self._items
        return self._items[: self.limit]

    @property
    def has_more(self) -> bool:
        return len(self._items) > self.limit

    @property
    def hidden_count(self) -> int:
        return len(self._items) - len(self.visible)

    def toggle(self) -> bool:
        self.expanded = not self.expanded
        return self.expanded

    def __len__(self) -> int:
        return len(self._items)


def view(items: Sequence[T], limit: int) -> ProgressiveList[T]:
    return ProgressiveList(items, limit)
