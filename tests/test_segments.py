"""
Tests for the Segment Model.
"""

from types import SimpleNamespace

import pytest

from captioner.errors import CaptionError, InvalidSegment
from captioner.segments import Segment, normalize


class TestNormalize:

    def test_sorts_and_drops_blank_text(self):
        raw = [
            {"start": 2, "end": 4, "text": "b"},
            {"start": 0, "end": 1, "text": "a"},
            {"start": 6, "end": 7, "text": "  "},
        ]
        result = normalize(raw)
        assert [s.text for s in result] == ["a", "b"]
        assert result[0] == Segment(0.0, 1.0, "a")

    def test_zero_length_segment_is_rejected(self):
        raw = [
            {"start": 2, "end": 4, "text": "b"},
            {"start": 0, "end": 1, "text": "a"},
            {"start": 5, "end": 5, "text": "x"},
            {"start": 6, "end": 7, "text": "  "},
        ]
        with pytest.raises(InvalidSegment):
            normalize(raw)

    def test_blank_text_dropped_before_timing_check(self):
        result = normalize([{"start": 5, "end": 1, "text": ""}, (0, 1, "ok")])
        assert result == (Segment(0.0, 1.0, "ok"),)

    def test_text_is_trimmed(self):
        (seg,) = normalize([{"start": 0, "end": 1, "text": "  hello \n"}])
        assert seg.text == "hello"

    def test_accepts_tuples_and_objects(self):
        raw = [(1.0, 2.0, "tuple"), SimpleNamespace(start=0.0, end=0.5, text="object")]
        assert [s.text for s in normalize(raw)] == ["object", "tuple"]

    def test_stable_on_equal_starts(self):
        raw = [(1, 2, "first"), (1, 3, "second"), (0, 1, "zero")]
        assert [s.text for s in normalize(raw)] == ["zero", "first", "second"]

    def test_overlap_is_allowed(self):
        result = normalize([(0, 5, "A"), (1, 2, "B")])
        assert len(result) == 2

    @pytest.mark.parametrize("start,end", [
        (-1, 2), (0, float("nan")), (float("inf"), 5), ("x", 1), (None, 1), (True, 2),
    ])
    def test_rejects_bad_bounds(self, start, end):
        with pytest.raises(InvalidSegment):
            normalize([{"start": start, "end": end, "text": "t"}])

    def test_invalid_segment_is_caption_error(self):
        with pytest.raises(CaptionError):
            normalize([(3, 1, "backwards")])

    def test_empty_input(self):
        assert normalize([]) == ()

    def test_returns_tuple_and_leaves_input_alone(self):
        raw = [{"start": 2, "end": 3, "text": "b"}, {"start": 0, "end": 1, "text": "a"}]
        result = normalize(raw)
        assert isinstance(result, tuple)
        assert raw[0]["text"] == "b"


class TestSegment:

    def test_half_open_interval(self):
        seg = Segment(1.0, 2.0, "x")
        assert seg.contains(1.0)
        assert seg.contains(1.999)
        assert not seg.contains(2.0)

    def test_duration(self):
        assert Segment(0.5, 2.0, "x").duration == pytest.approx(1.5)

    def test_immutable(self):
        seg = Segment(0.0, 1.0, "x")
        with pytest.raises(AttributeError):
            seg.text = "y"
