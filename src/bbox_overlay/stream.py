"""
bbox_overlay.stream — one annotated video stream.

Lifecycle:
    stream = AnnotationStream(cfg)        # open log, read trailer, build index
    stream.configure(geometry)            # resolve threshold / line width
    stream.process_frame(n, frame)        # per frame, in decode order
    stream.close()

The log handle, the frame index and the painter belong to this instance only.
Frames must be delivered one at a time from a single thread.
"""

from __future__ import annotations

import logging
import time
from typing import BinaryIO, List, Optional

import numpy as np

from .config import StreamConfig, parse_color
from .cursor import FrameCursor
from .detections import DetectionRecord, filter_by_threshold
from .errors import ConfigError, LogIOError, MalformedLineError
from .expressions import FrameGeometry, ResolvedParams, resolve_stream_params
from .frame_index import FrameIndex, build_frame_index
from .log_reader import LineReader, read_frame_count, read_trailer_offset
from .overlay import OverlayPainter

logger = logging.getLogger(__name__)


class AnnotationStream:
    def __init__(self, config: StreamConfig) -> None:
        self.config = config
        self.malformed_lines = 0
        self.params: Optional[ResolvedParams] = None

        color = parse_color(config.color)
        if not config.log_path:
            raise ConfigError("log path must be set")

        try:
            self._fh: Optional[BinaryIO] = open(config.log_path, "rb")
        except OSError as e:
            raise LogIOError(config.log_path, e) from e

        try:
            t0 = time.monotonic()
            self.frame_count = read_frame_count(self._fh)
            trailer = read_trailer_offset(self._fh)
            self._reader = LineReader(self._fh, config.max_line_length, end=trailer)
            self.index: Optional[FrameIndex] = build_frame_index(
                self._reader, self.frame_count, config.frame_offset, self._on_malformed
            )
        except BaseException:
            self._fh.close()
            self._fh = None
            raise

        self._cursor = FrameCursor(self._reader, self.index, config.frame_offset, self._on_malformed)
        self._painter: Optional[OverlayPainter] = OverlayPainter(color)
        logger.info(
            "%s: %d frames, %d with detections (indexed in %.3fs)",
            config.log_path,
            self.frame_count,
            sum(1 for _ in self.index.indexed_frames()),
            time.monotonic() - t0,
        )

    def __enter__(self) -> "AnnotationStream":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._fh is None

    def _on_malformed(self, error: MalformedLineError) -> None:
        self.malformed_lines += 1
        logger.warning("%s: skipping malformed line at %s", self.config.log_path, error)

    def configure(self, geometry: FrameGeometry) -> ResolvedParams:
        self.params = resolve_stream_params(self.config.line_width_expr, self.config.threshold_expr, geometry)
        if self._painter is not None:
            self._painter.line_width = self.params.line_width
        logger.debug("%dx%d: threshold=%g line_width=%g", geometry.width, geometry.height,
                     self.params.threshold, self.params.line_width)
        return self.params

    def detections_for(self, frame_number: int) -> List[DetectionRecord]:
        """Unfiltered records logged for frame_number (zero-based)."""
        if self.closed:
            raise ValueError("stream is closed")
        return self._cursor.read_frame(frame_number)

    def process_frame(self, frame_number: int, frame: np.ndarray) -> List[DetectionRecord]:
        """Draw the detections of frame_number onto frame; returns what was drawn.

        A frame with no surviving detection is left untouched.
        """
        if self.params is None:
            self.configure(FrameGeometry.from_frame(frame))

        records = self.detections_for(frame_number)
        if not records:
            return []

        kept = filter_by_threshold(records, self.params.threshold)
        logger.debug("frame %d: %d detections, %d above threshold", frame_number, len(records), len(kept))
        if kept:
            self._painter.draw(frame, kept)
        return kept

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
        self._fh = None
        self.index = None
        self._painter = None
