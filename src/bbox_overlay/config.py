"""bbox_overlay.config — stream configuration + color parsing

Rules:
- One StreamConfig per stream; expressions stay strings until the frame
  geometry is known.
- Option names from the command line (t, w, c, o, f) are accepted as JSON keys.

Loader behaviour:
- missing config file -> defaults
- unknown keys -> ignored
- values that do not coerce -> that field's default
- invalid JSON -> ConfigError (the stream must not start on a broken file)
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from PIL import ImageColor

from .errors import ConfigError
from .log_reader import DEFAULT_MAX_LINE_LENGTH

INVERT = "invert"


@dataclass(frozen=True)
class StreamConfig:
    """
    Per-stream configuration.

    Notes:
    - `threshold_expr` and `line_width_expr` are expressions, resolved when
      the frame geometry is known (see expressions.resolve_stream_params).
    - `color` is a color name / hex string, or "invert".
    - `frame_offset` is added to every zero-based log frame id before matching.
    - `log_path` is required; it is opened read-only at stream start.
    """
    threshold_expr: str = "0.0"
    line_width_expr: str = "3"
    color: str = "black"
    frame_offset: int = 0
    log_path: Optional[str] = None
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH


# JSON keys accepted for each field; the short forms match the filter options.
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "threshold_expr": ("threshold_expr", "threshold", "t"),
    "line_width_expr": ("line_width_expr", "width", "w"),
    "color": ("color", "c"),
    "frame_offset": ("frame_offset", "offset", "o"),
    "log_path": ("log_path", "filename", "f"),
    "max_line_length": ("max_line_length",),
}


def _coerce_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return default


def _coerce_expr(v: Any, default: str) -> str:
    # Plain numbers in JSON are valid expressions too.
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return repr(v)
    if isinstance(v, str) and v.strip():
        return v
    return default


def _lookup(data: Dict[str, Any], field: str) -> Any:
    for key in _ALIASES[field]:
        if key in data:
            return data[key]
    return None


def load_config(path: Path) -> StreamConfig:
    """
    Load config JSON. Unknown keys are ignored.
    Missing file -> defaults.
    """
    if not path.exists():
        return StreamConfig()

    try:
        data: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")

    d = StreamConfig()
    log_path = _lookup(data, "log_path")
    color = _lookup(data, "color")
    return StreamConfig(
        threshold_expr=_coerce_expr(_lookup(data, "threshold_expr"), d.threshold_expr),
        line_width_expr=_coerce_expr(_lookup(data, "line_width_expr"), d.line_width_expr),
        color=str(color) if color else d.color,
        frame_offset=_coerce_int(_lookup(data, "frame_offset"), d.frame_offset),
        log_path=str(log_path) if log_path else None,
        max_line_length=_coerce_int(_lookup(data, "max_line_length"), d.max_line_length),
    )


@dataclass(frozen=True)
class Color:
    """Resolved box color. `invert` means draw by inverting pixels instead."""
    rgba: Tuple[int, int, int, int] = (0, 0, 0, 255)
    invert: bool = False

    def for_channels(self, channels: int) -> Tuple[int, ...]:
        """cv2 color scalar for a gray8 (1), BGR24 (3) or BGRA (4) buffer."""
        r, g, b, a = self.rgba
        if channels == 1:
            return (int(round(0.299 * r + 0.587 * g + 0.114 * b)),)
        if channels == 4:
            return (b, g, r, a)
        return (b, g, r)


def _parse_alpha(text: str) -> int:
    try:
        alpha = float(text)
    except ValueError:
        raise ConfigError(f"invalid alpha {text!r}") from None
    if not 0.0 <= alpha <= 1.0 or math.isnan(alpha):
        raise ConfigError(f"alpha {text!r} must be between 0 and 1")
    return int(round(alpha * 255))


def parse_color(spec: str) -> Color:
    """
    Parse a color string:
    - "invert"
    - any name or form PIL.ImageColor understands ("red", "#00ff00", "rgb(0,0,255)")
    - "0xRRGGBB" / "0xRRGGBBAA"
    - optional "@alpha" suffix, e.g. "red@0.5"
    """
    text = (spec or "").strip()
    if text == INVERT:
        return Color(invert=True)
    if not text:
        raise ConfigError("empty color")

    alpha: Optional[int] = None
    if "@" in text:
        text, alpha_text = text.rsplit("@", 1)
        alpha = _parse_alpha(alpha_text)

    if text.lower().startswith("0x"):
        text = "#" + text[2:]

    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        raise ConfigError(f"invalid color {spec!r}") from None

    r, g, b = rgb[0], rgb[1], rgb[2]
    a = rgb[3] if len(rgb) == 4 else 255
    if alpha is not None:
        a = alpha
    return Color(rgba=(r, g, b, a))
