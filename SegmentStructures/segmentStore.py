"""
Ordered stores used as the backing buffer of a ContiguousSegments.

- SegmentStore: the protocol the engine talks to
- ListStore: growable, wraps a plain python list (the default)
- BoundedStore: same thing but with a fixed capacity, raises when full

The engine never touches the buffer directly, it only goes through these
methods, so anything shaped like this protocol can be dropped in.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from typing import Callable, Generic, Iterator, List, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

# --- Configuration ---
DEFAULT_CAPACITY: int = 64  # BoundedStore size when no capacity is given


class SegmentStore(Protocol[E]):
    def __len__(self) -> int: ...
    def __getitem__(self, index: int) -> E: ...
    def __iter__(self) -> Iterator[E]: ...
    def get(self, index: int) -> Optional[E]: ...
    def last(self) -> Optional[E]: ...
    def push(self, element: E) -> None: ...
    def pop(self) -> Optional[E]: ...
    def insert(self, index: int, element: E) -> None: ...
    def remove(self, index: int) -> E: ...
    def drain(self, start: int, stop: int) -> None: ...
    def retain(self, pred: Callable[[E], bool]) -> None: ...  # pred sees items front to back
    def truncate(self, length: int) -> None: ...
    def clear(self) -> None: ...
    def partition_point(self, pred: Callable[[E], bool]) -> int: ...
    def copy(self) -> SegmentStore[E]: ...


class ListStore(Generic[E]):
    """Growable store on top of a list."""

    def __init__(self, items=None):
        self._items: List[E] = list(items) if items is not None else []

    def __len__(self):
        return len(self._items)

    def __getitem__(self, index: int) -> E:
        # negative indexes are not a thing here
        if index < 0 or index >= len(self._items):
            raise IndexError("store index out of range")
        return self._items[index]

    def __iter__(self) -> Iterator[E]:
        return iter(self._items)

    def __repr__(self):
        return f"{type(self).__name__}({self._items!r})"

    def get(self, index: int) -> Optional[E]:
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def last(self) -> Optional[E]:
        return self._items[-1] if self._items else None

    def push(self, element: E):
        self._items.append(element)

    def pop(self) -> Optional[E]:
        if not self._items:
            return None
        return self._items.pop()

    def insert(self, index: int, element: E):
        # list.insert clamps silently, we want it loud
        if index < 0 or index > len(self._items):
            raise IndexError("insert index out of range")
        self._items.insert(index, element)

    def remove(self, index: int) -> E:
        if index < 0 or index >= len(self._items):
            raise IndexError("remove index out of range")
        return self._items.pop(index)

    def drain(self, start: int, stop: int):
        """Drop items in [start, stop) without handing them back."""
        if start < 0 or stop > len(self._items) or start > stop:
            raise IndexError("drain range out of bounds")
        del self._items[start:stop]

    def retain(self, pred: Callable[[E], bool]):
        self._items[:] = [item for item in self._items if pred(item)]

    def truncate(self, length: int):
        # no-op when already shorter
        if length < 0:
            raise ValueError("truncate length must be >= 0")
        del self._items[length:]

    def clear(self):
        self._items.clear()

    def partition_point(self, pred: Callable[[E], bool]) -> int:
        """
        Index of the first item for which pred is False.
        pred has to be True for a prefix of the store and False after it.
        """
        return bisect_left(self._items, True, key=lambda item: not pred(item))

    def copy(self) -> ListStore[E]:
        return type(self)(self._items)


class BoundedStore(ListStore[E]):
    """ListStore that refuses to grow past a fixed capacity."""

    def __init__(self, items=None, capacity: int = DEFAULT_CAPACITY):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        super().__init__(items)
        if len(self._items) > capacity:
            raise OverflowError(f"{len(self._items)} items do not fit in capacity {capacity}")

    def __repr__(self):
        return f"{type(self).__name__}({self._items!r}, capacity={self.capacity})"

    def _check_room(self):
        if len(self._items) >= self.capacity:
            logger.debug("bounded store full at capacity %d", self.capacity)
            raise OverflowError(f"store is full (capacity {self.capacity})")

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def push(self, element: E):
        self._check_room()
        super().push(element)

    def insert(self, index: int, element: E):
        if index < 0 or index > len(self._items):
            raise IndexError("insert index out of range")
        self._check_room()
        super().insert(index, element)

    def copy(self) -> BoundedStore[E]:
        return type(self)(self._items, capacity=self.capacity)


# list-backed unless the caller hands one in
DEFAULT_STORE = ListStore
