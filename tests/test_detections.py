"""
Unit tests for log line parsing and the confidence filter.

Run: pytest tests/test_detections.py -v
"""

import pytest

from bbox_overlay.detections import (
    DetectionRecord,
    ParseFailure,
    corrected_frame_id,
    filter_by_threshold,
    frame_id_for,
    parse_frame_number,
    parse_line,
    passes_threshold,
)


def _record(prob):
    return DetectionRecord(frame_number=1, probability=prob, box_min=(0.0, 0.0), box_max=(1.0, 1.0))


class TestParseLine:
    def test_full_line(self):
        rec = parse_line("1 0.9 10 10 50 50")
        assert rec == DetectionRecord(frame_number=1, probability=0.9, box_min=(10.0, 10.0), box_max=(50.0, 50.0))

    def test_fractional_frame_number_truncates(self):
        rec = parse_line("3.7 0.5 1 2 3 4\n")
        assert rec.frame_number == 3

    def test_extra_whitespace(self):
        rec = parse_line("  2\t0.95   0 0  5 5  ")
        assert isinstance(rec, DetectionRecord)
        assert rec.box_max == (5.0, 5.0)

    @pytest.mark.parametrize("line", [
        "",
        "1 0.9 10 10 50",
        "1 0.9 10 10 50 50 7",
        "1 0.9 10 ten 50 50",
        "1 nan 10 10 50 50",
        "2",
    ])
    def test_failures_are_explicit(self, line):
        result = parse_line(line)
        assert isinstance(result, ParseFailure)
        assert result.line == line
        assert result.reason


class TestParseFrameNumber:
    def test_only_leading_field_is_parsed(self):
        assert parse_frame_number("7 garbage follows") == 7.0

    def test_bad_leading_field(self):
        assert isinstance(parse_frame_number("x 0.9"), ParseFailure)

    def test_empty(self):
        assert isinstance(parse_frame_number("   "), ParseFailure)


class TestFrameIds:
    @pytest.mark.parametrize("raw,offset,expected", [
        (1, 0, 0),
        (5, 0, 4),
        (5, 3, 7),
        (5, -2, 2),
        (1, -1, 0),
        (1, -10, 0),
    ])
    def test_corrected_frame_id(self, raw, offset, expected):
        assert corrected_frame_id(raw, offset) == expected
        assert expected == max(0, raw - 1 + offset)

    def test_unclipped_id_can_be_negative(self):
        assert frame_id_for(1, -1) == -1


class TestThreshold:
    def test_boundary_is_inclusive(self):
        assert passes_threshold(_record(0.5), 0.5)

    def test_below_is_dropped(self):
        assert not passes_threshold(_record(0.49), 0.5)

    def test_filter_keeps_order(self):
        records = [_record(0.9), _record(0.1), _record(0.6)]
        kept = filter_by_threshold(records, 0.5)
        assert [r.probability for r in kept] == [0.9, 0.6]
