"""bbox_overlay.logging_utils — console logging + CSV export

Targets:
- rich console logging for the CLI (library modules only use getLogger)
- rate-limited progress lines
- optional CSV export of drawn detections (frame, probability, box)
"""

from __future__ import annotations

import csv
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from .detections import DetectionRecord


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
        force=True,
    )


def hz_to_dt(hz: float, min_hz: float = 0.1) -> float:
    """Convert a frequency (Hz) into a minimum interval (seconds)."""
    return 1.0 / max(float(min_hz), float(hz))


def rate_limited_log(logger: logging.Logger, msg: str, hz: float, state: dict) -> bool:
    """Log `msg` at INFO at most `hz` times per second.

    `state` is a mutable dict that stores timing between calls, e.g.:
        state = {}
        rate_limited_log(logger, "frame 10", 2.0, state)
    """
    t = time.monotonic()
    last = float(state.get("last_t", -1e9))
    if (t - last) < hz_to_dt(hz):
        return False
    logger.info(msg)
    state["last_t"] = t
    return True


@dataclass
class CsvLogger:
    """Append-only CSV export of drawn detections.

    Columns:
        frame, probability, xmin, ymin, xmax, ymax
    """
    path: Path
    enabled: bool = False
    _fh: Optional[object] = None
    _writer: Optional[csv.writer] = None

    def open(self) -> None:
        if not self.enabled:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.path, "a", newline="")
        self._writer = csv.writer(self._fh)
        if self._fh.tell() == 0:
            self._writer.writerow(["frame", "probability", "xmin", "ymin", "xmax", "ymax"])
            self._fh.flush()

    def log(self, frame_number: int, record: DetectionRecord) -> None:
        if not self._writer or not self._fh:
            return
        (xmin, ymin), (xmax, ymax) = record.box_min, record.box_max
        self._writer.writerow([int(frame_number), f"{record.probability:.4f}", xmin, ymin, xmax, ymax])
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            try:
                self._fh.close()
            finally:
                self._fh = None
                self._writer = None
