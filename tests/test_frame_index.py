import io

import numpy as np
import pytest

from bbox_overlay.detections import corrected_frame_id, parse_frame_number
from bbox_overlay.errors import AllocationError
from bbox_overlay.frame_index import NO_ENTRY, FrameIndex, build_frame_index
from bbox_overlay.log_reader import LineReader

SCENARIO = b"1 0.9 10 10 50 50\n2 0.95 0 0 5 5\n2"

SPARSE = (
    b"1 0.9 10 10 50 50\n"
    b"1 0.8 20 20 60 60\n"
    b"4 0.7 1 1 2 2\n"
    b"4 0.6 3 3 4 4\n"
    b"4 0.5 5 5 6 6\n"
    b"9 0.4 7 7 8 8\n"
)


def _build(data, frame_count, offset=0, errors=None):
    reader = LineReader(io.BytesIO(data))
    return build_frame_index(reader, frame_count, offset, errors.append if errors is not None else None)


def _offsets(index):
    return [index.lookup(f) for f in range(len(index))]


class TestBuildFrameIndex:
    def test_scenario_offsets(self):
        index = _build(SCENARIO, 2)
        assert _offsets(index) == [0, 18]

    def test_first_line_of_each_run_is_indexed(self):
        index = _build(SPARSE, 10)
        assert index.lookup(0) == 0
        assert index.lookup(3) == SPARSE.index(b"4 0.7")
        assert index.lookup(8) == SPARSE.index(b"9 0.4")
        assert list(index.indexed_frames()) == [0, 3, 8]

    def test_sparse_frames_have_no_entry(self):
        index = _build(SPARSE, 10)
        for frame_id in (1, 2, 4, 5, 6, 7, 9):
            assert index.lookup(frame_id) is None
            assert index[frame_id] == NO_ENTRY

    def test_positive_offset_shifts_ids(self):
        index = _build(SPARSE, 12, offset=2)
        assert list(index.indexed_frames()) == [2, 5, 10]

    def test_negative_ids_are_not_stored(self):
        index = _build(SCENARIO, 2, offset=-1)
        assert index.lookup(0) == 18
        assert index.lookup(1) is None

    def test_scan_stops_past_frame_count(self):
        index = _build(SPARSE, 5)
        assert len(index) == 5
        assert list(index.indexed_frames()) == [0, 3]

    def test_no_in_range_detections(self):
        index = _build(SPARSE, 3, offset=-20)
        assert list(index.indexed_frames()) == []

    def test_malformed_leading_field_is_reported(self):
        errors = []
        data = b"1 0.9 1 1 2 2\nxx 0.9 1 1 2 2\n\n3 0.9 1 1 2 2\n"
        index = _build(data, 4, errors=errors)
        assert list(index.indexed_frames()) == [0, 2]
        assert len(errors) == 1
        assert errors[0].offset == data.index(b"xx")

    def test_deterministic(self):
        assert _build(SPARSE, 10, offset=1) == _build(SPARSE, 10, offset=1)

    def test_every_entry_points_at_its_frame(self):
        data = SPARSE
        for offset in (-1, 0, 3):
            index = _build(data, 12, offset=offset)
            for frame_id in index.indexed_frames():
                pos = index[frame_id]
                line = data[pos:data.index(b"\n", pos)].decode()
                assert corrected_frame_id(parse_frame_number(line), offset) == frame_id


class TestFrameIndex:
    def test_read_only(self):
        index = _build(SCENARIO, 2)
        with pytest.raises(ValueError):
            index._offsets[0] = 5

    def test_bounds(self):
        index = FrameIndex(FrameIndex.allocate(3))
        assert index.lookup(-1) is None
        assert index.lookup(3) is None
        with pytest.raises(IndexError):
            index[3]
        with pytest.raises(IndexError):
            index[-1]

    @pytest.mark.parametrize("count", [0, -5])
    def test_allocate_rejects_non_positive(self, count):
        with pytest.raises(AllocationError):
            FrameIndex.allocate(count)

    def test_allocate_default(self):
        offsets = FrameIndex.allocate(4)
        assert offsets.dtype == np.int64
        assert (offsets == NO_ENTRY).all()
