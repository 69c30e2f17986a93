"""
Contiguous segments (a float "timeline" chopped into valued pieces)

- Segment: (length, value), not placed anywhere yet
- AlignedSegment: a Segment that knows where it starts in the whole (alignment)
- ContiguousSegments: ordered list of AlignedSegments with no gaps and no overlaps
    segment i covers [alignment, alignment + length)
    alignment of segment i+1 == alignment + length of segment i
    total_length == end of the last segment (0.0 when empty)

alignment and total_length are caches, only this module writes them.
Lookups by position are a binary search on those caches, edits touch the
few segments involved and then realign whatever comes after.

Operations:
- get_at(pos) / get_index_at(pos) / ...  -> which segment covers pos
- push / pop / insert / insert_at / set_length / truncate / truncate_at
- split_at(pos) -> cut the covering segment in two
- set_range(start, end, value) -> overwrite [start, end) with value
- merge() -> glue neighbours with equal values
- clean() -> drop segments with junk lengths (0, nan, inf, negative)
"""

from __future__ import annotations

import copy
import logging
import math
import sys
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from SegmentStructures.segmentStore import DEFAULT_STORE, SegmentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _valid_length(length: float) -> bool:
    # positive, finite and not subnormal
    return math.isfinite(length) and length >= sys.float_info.min


@dataclass
class Segment(Generic[T]):
    length: float
    value: T

    def into_inner(self) -> T:
        return self.value


class AlignedSegment(Generic[T]):
    """A segment sitting inside a ContiguousSegments, value is the only writable bit."""

    __slots__ = ("_alignment", "_length", "value")

    def __init__(self, alignment: float, length: float, value: T):
        self._alignment = alignment
        self._length = length
        self.value = value

    @property
    def alignment(self) -> float:
        return self._alignment

    @property
    def length(self) -> float:
        return self._length

    @property
    def end(self) -> float:
        return self._alignment + self._length

    def to_segment(self) -> Segment[T]:
        return Segment(self._length, self.value)

    def __eq__(self, other):
        if not isinstance(other, AlignedSegment):
            return NotImplemented
        return (self._alignment, self._length, self.value) == (other._alignment, other._length, other.value)

    def __repr__(self):
        return f"AlignedSegment(alignment={self._alignment!r}, length={self._length!r}, value={self.value!r})"


class IndexedSegment(Generic[T]):
    """Read-only view of a stored segment plus its index. Stale after any structural edit."""

    __slots__ = ("_index", "_segment")

    def __init__(self, index: int, segment: AlignedSegment[T]):
        self._index = index
        self._segment = segment

    @property
    def index(self) -> int:
        return self._index

    @property
    def alignment(self) -> float:
        return self._segment._alignment

    @property
    def length(self) -> float:
        return self._segment._length

    @property
    def end(self) -> float:
        return self._segment.end

    @property
    def value(self) -> T:
        return self._segment.value

    def to_aligned(self) -> AlignedSegment[T]:
        seg = self._segment
        return AlignedSegment(seg._alignment, seg._length, copy.copy(seg.value))

    def __repr__(self):
        return f"{type(self).__name__}(index={self._index}, segment={self._segment!r})"


class IndexedSegmentMut(IndexedSegment[T]):
    """Same as IndexedSegment but the value can be swapped out in place."""

    __slots__ = ()

    @IndexedSegment.value.setter
    def value(self, value: T):
        self._segment.value = value


class ContiguousSegments(Generic[T]):
    def __init__(self, store: Optional[SegmentStore[AlignedSegment[T]]] = None):
        self._segments: SegmentStore[AlignedSegment[T]] = store if store is not None else DEFAULT_STORE()
        self._total_length = 0.0
        # a prefilled store gets its caches rebuilt
        if len(self._segments):
            self.realign()

    @classmethod
    def from_segment(cls, segment: Segment[T], store=None) -> ContiguousSegments[T]:
        contig = cls(store)
        contig.push(segment)
        return contig

    @classmethod
    def from_segments(cls, segments: Iterable[Segment[T]], store=None) -> ContiguousSegments[T]:
        contig = cls(store)
        for segment in segments:
            contig.push(segment)
        return contig

    # ---------------- basic access ----------------

    @property
    def total_length(self) -> float:
        return self._total_length

    def count(self) -> int:
        """Number of segments making up the whole."""
        return len(self._segments)

    def __len__(self):
        return len(self._segments)

    def __iter__(self) -> Iterator[AlignedSegment[T]]:
        return iter(self._segments)

    def __getitem__(self, index: int) -> IndexedSegment[T]:
        return IndexedSegment(index, self._segments[index])

    def __repr__(self):
        return f"ContiguousSegments(total_length={self._total_length!r}, segments={self.as_list()!r})"

    def get(self, index: int) -> Optional[IndexedSegment[T]]:
        seg = self._segments.get(index)
        return IndexedSegment(index, seg) if seg is not None else None

    def get_mut(self, index: int) -> Optional[IndexedSegmentMut[T]]:
        seg = self._segments.get(index)
        return IndexedSegmentMut(index, seg) if seg is not None else None

    def get_alignment(self, index: int) -> Optional[float]:
        """Where the segment at index starts in the whole."""
        seg = self._segments.get(index)
        return seg._alignment if seg is not None else None

    def get_length(self, index: int) -> float:
        return self._segments[index]._length

    def as_list(self) -> List[AlignedSegment[T]]:
        return list(self._segments)

    def debug_segments(self) -> List[Tuple[float, float, T]]:
        return [(s._alignment, s._length, s.value) for s in self._segments]

    # ---------------- lookup by position ----------------

    def partition_point(self, length: float) -> int:
        """Index of the first segment that ends after `length`."""
        return self._segments.partition_point(lambda seg: seg._alignment + seg._length <= length)

    def get_at(self, length: float) -> Optional[IndexedSegment[T]]:
        return self.get(self.partition_point(length))

    def get_mut_at(self, length: float) -> Optional[IndexedSegmentMut[T]]:
        return self.get_mut(self.partition_point(length))

    def get_alignment_at(self, length: float) -> Optional[float]:
        return self.get_alignment(self.partition_point(length))

    def get_ia_at(self, length: float) -> Optional[Tuple[int, float]]:
        """(index, alignment) of the segment covering `length`."""
        index = self.partition_point(length)
        seg = self._segments.get(index)
        if seg is None:
            return None
        return index, seg._alignment

    def get_index_at(self, length: float) -> Optional[int]:
        index = self.partition_point(length)
        return index if index < len(self._segments) else None

    # ---------------- structural edits ----------------

    def push(self, segment: Segment[T]):
        self._segments.push(AlignedSegment(self._total_length, segment.length, segment.value))
        self._total_length += segment.length

    def pop(self) -> Optional[Segment[T]]:
        popped = self._segments.pop()
        if popped is None:
            return None
        self._total_length = popped._alignment
        return popped.to_segment()

    def insert(self, index: int, segment: Segment[T]):
        if index < 0 or index > len(self._segments):
            raise IndexError("insert index out of range")
        self._segments.insert(index, AlignedSegment(0.0, segment.length, segment.value))
        self.realign_from(index)

    def insert_at(self, length: float, segment: Segment[T]) -> int:
        """Insert before the segment covering `length` (or at the end). Returns the new index."""
        index = self.partition_point(length)
        if index == len(self._segments):
            self.push(segment)
        else:
            self.insert(index, segment)
        return index

    def set_length(self, index: int, length: float):
        seg = self._segments[index]
        seg._length = length
        if index == len(self._segments) - 1:
            # last one, nothing after it to shift
            self._total_length = seg._alignment + length
            return
        self.realign_from(index + 1)

    def truncate(self, count: int):
        if count < 0:
            raise ValueError("truncate count must be >= 0")
        self._segments.truncate(count)
        last = self._segments.last()
        self._total_length = last.end if last is not None else 0.0

    def truncate_at(self, length: float):
        """Cut the whole down to `length`, shortening the segment it lands in."""
        if math.isnan(length):
            raise ValueError("truncate position is nan")
        if length >= self._total_length:
            return
        if length <= 0:
            self.clear()
            return
        index = self.partition_point(length)
        seg = self._segments[index]
        if length == seg._alignment:
            # lands on a boundary, the covering segment goes entirely
            self.truncate(index)
            return
        seg._length = length - seg._alignment
        self._segments.truncate(index + 1)
        self.realign_from(index)

    def clear(self):
        self._segments.clear()
        self._total_length = 0.0

    def set_whole(self, value: T) -> Optional[int]:
        """Collapse everything into one segment spanning total_length."""
        if not len(self._segments):
            return None
        self._segments.truncate(1)
        seg = self._segments[0]
        seg._length = self._total_length
        seg.value = value
        return 0

    def split_at(self, length: float) -> Optional[Tuple[IndexedSegment[T], IndexedSegment[T]]]:
        """
        Cut the segment covering `length` in two, the upper half gets a copy of the value.
        If `length` is already a boundary nothing changes and the two segments around it come back.
        """
        if math.isnan(length):
            raise ValueError("split position is nan")
        low_index = self.get_index_at(length)
        if low_index is None:
            return None
        low = self._segments[low_index]
        if length <= low._alignment:
            if low_index == 0:
                return None
            return self[low_index - 1], self[low_index]
        high = AlignedSegment(length, low.end - length, copy.copy(low.value))
        self._segments.insert(low_index + 1, high)
        low._length = length - low._alignment
        self.realign_from(low_index)
        return IndexedSegment(low_index, low), IndexedSegment(low_index + 1, high)

    def merge(self):
        """Combine neighbouring segments that hold equal values."""
        count = len(self._segments)
        if count < 2:
            return
        head = None

        def keep(seg):
            nonlocal head
            if head is not None and seg.value == head.value:
                head._length += seg._length
                return False
            head = seg
            return True

        self._segments.retain(keep)
        self.realign()
        if len(self._segments) != count:
            logger.debug("merge coalesced %d segments into %d", count, len(self._segments))

    def clean(self):
        """Remove segments with invalid lengths and realign."""
        count = len(self._segments)
        self._segments.retain(lambda seg: _valid_length(seg._length))
        self.realign()
        if len(self._segments) != count:
            logger.debug("clean dropped %d degenerate segments", count - len(self._segments))

    def copy(self) -> ContiguousSegments[T]:
        store = self._segments.copy()
        store.clear()
        for seg in self._segments:
            store.push(AlignedSegment(seg._alignment, seg._length, copy.copy(seg.value)))
        return type(self)(store)

    __copy__ = copy

    # ---------------- realignment ----------------

    def realign(self):
        """Recompute every alignment and the total length."""
        running = 0.0
        for seg in self._segments:
            seg._alignment = running
            running += seg._length
        self._total_length = running

    def realign_from(self, start: int):
        """Realign from `start` (inclusive), trusting everything before it."""
        if start <= 0:
            self.realign()
            return
        count = len(self._segments)
        if start >= count:
            return
        running = self._segments[start - 1].end
        for index in range(start, count):
            seg = self._segments[index]
            seg._alignment = running
            running += seg._length
        self._total_length = running

    # ---------------- range overwrite ----------------

    def set_range(self, start: Optional[float], end: Optional[float], value: T) -> Optional[int]:
        """
        Overwrite [start, end) with `value`. None on either side means unbounded.
        Returns the index of the segment now holding `value`, None if there were no segments.

        start has to land in [0, total_length]. An end past total_length grows the whole.
        Bounds must be finite and end must come after start, so an open end with
        start == total_length is an empty range and raises ValueError.
        """
        for bound in (start, end):
            if bound is not None and not math.isfinite(bound):
                raise ValueError("range bounds must be finite")
        if start is None and end is None:
            return self.set_whole(value)
        if not len(self._segments):
            return None
        if start is None:
            start = 0.0
        if end is None:
            end = self._total_length
        if start < 0 or start > self._total_length:
            raise IndexError("range start out of range")
        if not end > start:
            raise ValueError("range end must come after its start")

        if start == self._total_length:
            # nothing to splice, just grow the tail
            self.push(Segment(end - start, value))
            logger.debug("set_range %r..%r: appended past the end", start, end)
            return len(self._segments) - 1

        start_index, start_alignment = self.get_ia_at(start)
        end_located = self.get_ia_at(end)
        if end_located is None:
            return self._set_tail(start_index, start_alignment, start, end, value)
        end_index, _ = end_located
        if start_index == end_index:
            return self._set_within(start_index, start_alignment, start, end, value)
        return self._set_across(start_index, start_alignment, end_index, start, end, value)

    def _set_tail(self, si, sa, start, end, value):
        # end is at or past total_length, everything from start on is replaced
        seg = self._segments[si]
        if start == sa:
            self._segments.truncate(si + 1)
            seg._length = end - start
            seg.value = value
            self.realign_from(si)
            logger.debug("set_range %r..%r: took over segment %d to the end", start, end, si)
            return si

        nxt = self._segments.get(si + 1)
        if nxt is None:
            self._segments.push(AlignedSegment(start, end - start, value))
        else:
            self._segments.truncate(si + 2)
            nxt._alignment = start
            nxt._length = end - start
            nxt.value = value
        seg._length = start - sa
        self.realign_from(si)
        logger.debug("set_range %r..%r: cut segment %d, new tail after it", start, end, si)
        return si + 1

    def _set_within(self, si, sa, start, end, value):
        # start and end both inside one segment
        seg = self._segments[si]
        seg_end = seg.end
        if start == sa:
            # two-way split, new piece in front
            self._segments.insert(si, AlignedSegment(start, end - start, value))
            seg._alignment = end
            seg._length = seg_end - end
            self.realign_from(si)
            logger.debug("set_range %r..%r: two-way split of segment %d", start, end, si)
            return si

        # three-way split, remainder keeps a copy of the old value
        self._segments.insert(si + 1, AlignedSegment(end, seg_end - end, copy.copy(seg.value)))
        try:
            self._segments.insert(si + 1, AlignedSegment(start, end - start, value))
        except OverflowError:
            self._segments.remove(si + 1)
            raise
        seg._length = start - sa
        self.realign_from(si)
        logger.debug("set_range %r..%r: three-way split of segment %d", start, end, si)
        return si + 1

    def _set_across(self, si, sa, ei, start, end, value):
        # start and end in different segments
        start_seg = self._segments[si]
        end_seg = self._segments[ei]
        end_seg_end = end_seg.end

        if start == sa:
            self._segments.drain(si + 1, ei)
            start_seg._length = end - start
            start_seg.value = value
            result = si
        elif ei - si == 1:
            # neighbours, new segment goes in between
            self._segments.insert(si + 1, AlignedSegment(start, end - start, value))
            start_seg._length = start - sa
            result = si + 1
        else:
            # reuse the first segment in the gap, drop the others
            self._segments.drain(si + 2, ei)
            middle = self._segments[si + 1]
            middle._alignment = start
            middle._length = end - start
            middle.value = value
            start_seg._length = start - sa
            result = si + 1

        end_seg._alignment = end
        end_seg._length = end_seg_end - end
        self.realign_from(si)
        logger.debug("set_range %r..%r: spliced segments %d..%d", start, end, si, ei)
        return result


# -------------------------
# Example usage
if __name__ == "__main__":
    track = ContiguousSegments.from_segments([Segment(3.0, "intro"), Segment(5.0, "verse"), Segment(2.0, "outro")])
    print("Segments:", track.debug_segments())
    print("At 4.0:", track.get_at(4.0))                 # verse, index 1
    print("At 10.0:", track.get_at(10.0))               # None, off the end

    track.set_range(4.0, 6.0, "solo")
    print("After set_range:", track.debug_segments())   # verse cut around the solo

    track.split_at(1.0)
    print("After split:", track.debug_segments())
    track.merge()
    print("After merge:", track.debug_segments())       # intro back in one piece

    track.truncate_at(7.0)
    print("After truncate_at:", track.debug_segments(), track.total_length)
