"""bbox_overlay.cursor — read one frame's run of detection lines

Each call seeks from the index; no position is carried between frames.
"""

from __future__ import annotations

from typing import List, Optional

from .detections import (
    DetectionRecord,
    ParseFailure,
    corrected_frame_id,
    parse_frame_number,
    parse_line,
)
from .errors import MalformedLineError
from .frame_index import FrameIndex, MalformedHandler
from .log_reader import LineReader


class FrameCursor:
    def __init__(
        self,
        reader: LineReader,
        index: FrameIndex,
        frame_offset: int = 0,
        on_malformed: Optional[MalformedHandler] = None,
    ) -> None:
        self._reader = reader
        self._index = index
        self.frame_offset = int(frame_offset)
        self._on_malformed = on_malformed

    def _report(self, error: MalformedLineError) -> None:
        if self._on_malformed:
            self._on_malformed(error)

    def read_frame(self, frame_id: int) -> List[DetectionRecord]:
        """Records whose corrected frame id equals frame_id, in log order.

        Reading stops at EOF or at the first line of another frame; that
        line's remaining fields are not parsed.
        """
        start = self._index.lookup(frame_id)
        if start is None:
            return []

        self._reader.seek(start)
        records: List[DetectionRecord] = []
        while True:
            try:
                item = self._reader.read_line()
            except MalformedLineError as e:
                self._report(e)
                continue
            if item is None:
                break

            pos, text = item
            if not text.strip():
                continue

            number = parse_frame_number(text)
            if isinstance(number, ParseFailure):
                self._report(MalformedLineError(pos, number.reason))
                continue

            if corrected_frame_id(number, self.frame_offset) != frame_id:
                break

            record = parse_line(text)
            if isinstance(record, ParseFailure):
                self._report(MalformedLineError(pos, record.reason))
                continue
            records.append(record)

        return records
