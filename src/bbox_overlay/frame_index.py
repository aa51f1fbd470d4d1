"""bbox_overlay.frame_index — frame id -> byte offset of the first detection line

Built once per stream with a single sequential pass over the log, then
read-only. Frames with nothing recorded hold NO_ENTRY.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

import numpy as np

from .detections import ParseFailure, frame_id_for, parse_frame_number
from .errors import AllocationError, MalformedLineError
from .log_reader import LineReader

logger = logging.getLogger(__name__)

NO_ENTRY = -1

MalformedHandler = Callable[[MalformedLineError], None]


class FrameIndex:
    """Fixed-length, bounds-checked offset table."""

    def __init__(self, offsets: np.ndarray):
        self._offsets = offsets
        self._offsets.flags.writeable = False

    @classmethod
    def allocate(cls, frame_count: int) -> np.ndarray:
        """Return a writable offsets array for the builder, filled with NO_ENTRY."""
        if int(frame_count) <= 0:
            raise AllocationError(f"frame count must be positive, got {frame_count}")
        try:
            return np.full(int(frame_count), NO_ENTRY, dtype=np.int64)
        except (MemoryError, ValueError) as e:
            raise AllocationError(f"cannot allocate index for {frame_count} frames: {e}") from e

    def __len__(self) -> int:
        return int(self._offsets.shape[0])

    def __getitem__(self, frame_id: int) -> int:
        if not 0 <= frame_id < len(self):
            raise IndexError(f"frame id {frame_id} outside [0, {len(self)})")
        return int(self._offsets[frame_id])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FrameIndex):
            return NotImplemented
        return np.array_equal(self._offsets, other._offsets)

    def lookup(self, frame_id: int) -> Optional[int]:
        """Offset of the first line for frame_id, or None (no entry / out of range)."""
        if not 0 <= frame_id < len(self):
            return None
        offset = int(self._offsets[frame_id])
        return None if offset == NO_ENTRY else offset

    def indexed_frames(self) -> Iterator[int]:
        for frame_id in np.flatnonzero(self._offsets != NO_ENTRY):
            yield int(frame_id)


def build_frame_index(
    reader: LineReader,
    frame_count: int,
    frame_offset: int = 0,
    on_malformed: Optional[MalformedHandler] = None,
) -> FrameIndex:
    """
    Single forward scan from the reader's current position (offset 0).

    Only the leading frame number of each line is parsed. An offset is stored
    whenever the frame id changes and is non-negative; the scan stops at the
    first id past the end of the index.
    """
    offsets = FrameIndex.allocate(frame_count)
    last_id: Optional[int] = None
    lines = 0

    while True:
        try:
            item = reader.read_line()
        except MalformedLineError as e:
            if on_malformed:
                on_malformed(e)
            continue
        if item is None:
            break

        pos, text = item
        if not text.strip():
            continue

        number = parse_frame_number(text)
        if isinstance(number, ParseFailure):
            if on_malformed:
                on_malformed(MalformedLineError(pos, number.reason))
            continue

        frame_id = frame_id_for(number, frame_offset)
        if frame_id >= frame_count:
            logger.debug("frame id %d past frame count %d at byte %d, stopping", frame_id, frame_count, pos)
            break

        if frame_id != last_id and frame_id >= 0:
            offsets[frame_id] = pos

        last_id = frame_id
        lines += 1

    logger.debug("indexed %d lines", lines)
    return FrameIndex(offsets)
