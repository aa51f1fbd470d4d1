"""bbox_overlay.errors — exception types

Stream-open errors (config, I/O, format, allocation) are fatal: the stream is
never constructed. Malformed log lines are raised by the line reader only and
are always handled by the index builder and the cursor.
"""

from __future__ import annotations


class OverlayError(Exception):
    """Base class for every error raised by bbox_overlay."""


class ConfigError(OverlayError):
    """Invalid color, missing log path, or an expression that never resolved."""


class LogIOError(OverlayError):
    """The detection log could not be opened."""

    def __init__(self, path: str, cause: OSError):
        super().__init__(f"{path}: {cause.strerror or cause}")
        self.path = path
        self.cause = cause


class LogFormatError(OverlayError):
    """The trailer with the frame count could not be read."""


class AllocationError(OverlayError):
    """The frame index could not be sized."""


class MalformedLineError(OverlayError):
    """A log line that cannot be decoded."""

    def __init__(self, offset: int, reason: str):
        super().__init__(f"byte {offset}: {reason}")
        self.offset = offset
        self.reason = reason


class LineTooLongError(MalformedLineError):
    def __init__(self, offset: int, max_line_length: int):
        super().__init__(offset, f"line longer than {max_line_length} bytes")
        self.max_line_length = max_line_length
