"""bbox_overlay.overlay — drawing helpers

Goal:
- Keep drawing code isolated so the retrieval side never touches pixels.
- One OverlayPainter per stream; nothing drawing-related is shared.

Draws, per detection:
- bbox from box_min to box_max
- probability label just above the top-left corner
"""

from __future__ import annotations

from typing import Iterable, Tuple

import cv2
import numpy as np

from .config import Color
from .detections import DetectionRecord


# Box geometry is not validated; keep coordinates inside what cv2 accepts.
COORD_LIMIT = 1 << 24
MAX_THICKNESS = 32767


def _point(x: float, y: float) -> Tuple[int, int]:
    return (
        int(np.clip(x, -COORD_LIMIT, COORD_LIMIT)),
        int(np.clip(y, -COORD_LIMIT, COORD_LIMIT)),
    )


class OverlayPainter:
    """Per-stream drawing resource (font + color + stroke)."""

    font_face = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = 0.5
    font_thickness = 1
    line_type = cv2.LINE_8
    label_lift = 3

    def __init__(self, color: Color, line_width: float = 3.0):
        self.color = color
        self.line_width = line_width

    @property
    def thickness(self) -> int:
        return min(MAX_THICKNESS, max(1, int(self.line_width)))

    def _paint(self, canvas: np.ndarray, record: DetectionRecord, color) -> None:
        (xmin, ymin), (xmax, ymax) = record.box_min, record.box_max
        cv2.rectangle(canvas, _point(xmin, ymin), _point(xmax, ymax), color, self.thickness, self.line_type)
        cv2.putText(
            canvas,
            f"{record.probability:f}",
            _point(xmin, ymin - self.label_lift),
            self.font_face,
            self.font_scale,
            color,
            self.font_thickness,
            self.line_type,
        )

    def draw(self, frame: np.ndarray, records: Iterable[DetectionRecord]) -> int:
        """Draw records onto frame in place. Returns the number drawn.

        Parameters:
            frame: uint8 buffer, HxW (gray), HxWx3 (BGR) or HxWx4 (BGRA)
            records: detections already filtered by confidence
        """
        records = list(records)
        if not records:
            return 0

        if self.color.invert:
            self._draw_inverted(frame, records)
            return len(records)

        channels = 1 if frame.ndim == 2 else frame.shape[2]
        color = self.color.for_channels(channels)
        for record in records:
            self._paint(frame, record, color)
        return len(records)

    def _draw_inverted(self, frame: np.ndarray, records) -> None:
        mask = np.zeros(frame.shape[:2], dtype=np.uint8)
        for record in records:
            self._paint(mask, record, 255)
        hit = mask.astype(bool)
        if frame.ndim == 2:
            frame[hit] = 255 - frame[hit]
        else:
            # alpha channel stays as is
            frame[hit, :3] = 255 - frame[hit, :3]
