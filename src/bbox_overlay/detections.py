"""bbox_overlay.detections — log line parsing & confidence filtering

One line of the detection log:

    <frameNumber> <probability> <xmin> <ymin> <xmax> <ymax>

The tokenizer returns either a complete DetectionRecord or a ParseFailure;
there is no partially parsed record.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

FIELDS_PER_LINE = 6


@dataclass(frozen=True)
class DetectionRecord:
    """
    Single detection read from the log.

    frame_number: raw (one-based) frame number as written by the detector
    probability: detector confidence
    box_min / box_max: corners in frame pixel coordinates
    """
    frame_number: int
    probability: float
    box_min: Tuple[float, float]
    box_max: Tuple[float, float]


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    line: str


def _to_float(token: str) -> Union[float, None]:
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_frame_number(text: str) -> Union[float, ParseFailure]:
    """Parse only the leading field (the frame number) of a log line."""
    tokens = text.split(None, 1)
    if not tokens:
        return ParseFailure("empty line", text)
    value = _to_float(tokens[0])
    if value is None:
        return ParseFailure(f"bad frame number {tokens[0]!r}", text)
    return value


def parse_line(text: str) -> Union[DetectionRecord, ParseFailure]:
    tokens = text.split()
    if len(tokens) != FIELDS_PER_LINE:
        return ParseFailure(f"expected {FIELDS_PER_LINE} fields, got {len(tokens)}", text)

    values: List[float] = []
    for token in tokens:
        value = _to_float(token)
        if value is None:
            return ParseFailure(f"bad number {token!r}", text)
        values.append(value)

    frame_number, prob, xmin, ymin, xmax, ymax = values
    return DetectionRecord(
        frame_number=int(frame_number),
        probability=prob,
        box_min=(xmin, ymin),
        box_max=(xmax, ymax),
    )


def frame_id_for(frame_number: float, frame_offset: int) -> int:
    """Zero-based frame id before clipping; may be negative."""
    return int(frame_number) - 1 + int(frame_offset)


def corrected_frame_id(frame_number: float, frame_offset: int) -> int:
    return max(0, frame_id_for(frame_number, frame_offset))


def passes_threshold(record: DetectionRecord, threshold: float) -> bool:
    return record.probability >= threshold


def filter_by_threshold(records: Iterable[DetectionRecord], threshold: float) -> List[DetectionRecord]:
    return [r for r in records if passes_threshold(r, threshold)]
