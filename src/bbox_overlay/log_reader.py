"""
bbox_overlay.log_reader — byte-offset line reader + trailer parsing.

Key behaviours:
- Every line comes back with the byte offset it started at, so the index can
  store it and the cursor can seek straight back to it.
- Lines are read with a bounded readline(); a line over the limit is drained
  and reported instead of being silently truncated.
- The frame count is read from the last bytes of the log, without a scan.
"""

from __future__ import annotations

import math
import os
from typing import BinaryIO, Optional, Tuple

from .errors import LineTooLongError, LogFormatError

DEFAULT_MAX_LINE_LENGTH = 4096
TRAILER_TAIL_BYTES = 90


class LineReader:
    """
    Line-oriented view of a binary, seekable log file.

    Usage:
        reader = LineReader(fh)
        item = reader.read_line()   # (offset, text) or None at EOF
    """

    def __init__(
        self,
        fh: BinaryIO,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        end: Optional[int] = None,
    ) -> None:
        self._fh = fh
        self.max_line_length = max(1, int(max_line_length))
        self.end = end  # lines starting at or past this offset read as EOF

    def seek(self, offset: int) -> None:
        self._fh.seek(offset, os.SEEK_SET)

    def tell(self) -> int:
        return self._fh.tell()

    def _drain(self) -> None:
        while True:
            chunk = self._fh.readline(self.max_line_length)
            if not chunk or chunk.endswith(b"\n"):
                return

    def read_line(self) -> Optional[Tuple[int, str]]:
        offset = self._fh.tell()
        if self.end is not None and offset >= self.end:
            return None
        # room for the content plus a "\r\n" terminator
        raw = self._fh.readline(self.max_line_length + 2)
        if not raw:
            return None

        content = raw.rstrip(b"\r\n")
        if len(content) > self.max_line_length:
            if not raw.endswith(b"\n"):
                self._drain()
            raise LineTooLongError(offset, self.max_line_length)

        return offset, content.decode("utf-8", errors="replace")


def read_frame_count(fh: BinaryIO) -> int:
    """Read the total frame count from the trailer at the end of the log.

    The last TRAILER_TAIL_BYTES bytes are read, and the number right after the
    first line break in them is taken as the frame count. The file is left at
    offset 0 on success.
    """
    fh.seek(0, os.SEEK_END)
    size = fh.tell()
    fh.seek(max(0, size - TRAILER_TAIL_BYTES), os.SEEK_SET)
    tail = fh.read(TRAILER_TAIL_BYTES)

    newline = tail.find(b"\n")
    if newline < 0:
        raise LogFormatError(f"no line break in the last {TRAILER_TAIL_BYTES} bytes of the log")

    tokens = tail[newline + 1:].decode("ascii", errors="replace").split()
    if not tokens:
        raise LogFormatError("frame count missing after the last line break")

    try:
        value = float(tokens[0])
    except ValueError:
        raise LogFormatError(f"frame count is not a number: {tokens[0]!r}") from None

    if not math.isfinite(value) or int(value) <= 0:
        raise LogFormatError(f"frame count must be positive, got {tokens[0]!r}")

    fh.seek(0, os.SEEK_SET)
    return int(value)


def read_trailer_offset(fh: BinaryIO) -> int:
    """Byte offset where the trailer (the last non-empty line) starts."""
    fh.seek(0, os.SEEK_END)
    size = fh.tell()
    start = max(0, size - TRAILER_TAIL_BYTES)
    fh.seek(start, os.SEEK_SET)
    tail = fh.read(TRAILER_TAIL_BYTES).rstrip()
    fh.seek(0, os.SEEK_SET)

    newline = tail.rfind(b"\n")
    if newline < 0:
        raise LogFormatError(f"no line break in the last {TRAILER_TAIL_BYTES} bytes of the log")
    return start + newline + 1
