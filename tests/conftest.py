import sys
from pathlib import Path

import pytest

# Add src/ to sys.path so 'bbox_overlay' can be imported without installing
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


SCENARIO_LOG = "1 0.9 10 10 50 50\n2 0.95 0 0 5 5\n2"


@pytest.fixture
def write_log(tmp_path):
    """Write a detection log and return its path."""
    def _write(text, name="detections.txt"):
        path = tmp_path / name
        path.write_bytes(text.encode("utf-8") if isinstance(text, str) else text)
        return path
    return _write


@pytest.fixture
def scenario_log(write_log):
    return write_log(SCENARIO_LOG)
