"""Tests for energy-gate segment detection."""

import pytest

from reelsmith.analyzers.segments import FILLER, SILENCE, detect
from reelsmith.models import LevelSample


def trace(*levels: float, interval: float = 0.1) -> list[LevelSample]:
    return [LevelSample(time=round(i * interval, 6), level_db=lvl) for i, lvl in enumerate(levels)]


class TestSilence:
    def test_single_gap(self):
        t = trace(-20, -20, -50, -50, -50, -50, -20)
        segs = detect(t, threshold_db=-35, min_duration=0.2)
        assert len(segs) == 1
        assert segs[0].start == pytest.approx(0.2)
        assert segs[0].end == pytest.approx(0.6)
        assert segs[0].label == SILENCE

    def test_too_short_is_dropped(self):
        t = trace(-20, -50, -20)
        assert detect(t, threshold_db=-35, min_duration=0.2) == []

    def test_open_at_end_closes_at_last_sample(self):
        t = trace(-20, -50, -50, -50, -50)
        segs = detect(t, threshold_db=-35, min_duration=0.1)
        assert segs[0].start == pytest.approx(0.1)
        assert segs[0].end == pytest.approx(0.4)

    def test_negative_infinity_counts_as_silence(self):
        t = trace(-20, float("-inf"), float("-inf"), float("-inf"), -20)
        assert len(detect(t, threshold_db=-35, min_duration=0.2)) == 1

    def test_threshold_is_strict(self):
        t = trace(-20, -35, -35, -35, -20)
        assert detect(t, threshold_db=-35, min_duration=0.1) == []

    def test_empty_trace(self):
        assert detect([], threshold_db=-35, min_duration=0.1) == []


class TestFiller:
    def test_band_between_threshold_and_upper(self):
        t = trace(-5, -25, -25, -25, -5, -50)
        segs = detect(t, threshold_db=-30, min_duration=0.1, max_duration=2.0, cause=FILLER)
        assert len(segs) == 1
        assert segs[0].label == FILLER
        assert segs[0].start == pytest.approx(0.1)
        assert segs[0].end == pytest.approx(0.4)

    def test_silence_is_not_filler(self):
        t = trace(-5, -50, -50, -50, -5)
        assert detect(t, threshold_db=-30, min_duration=0.1, cause=FILLER) == []

    def test_longer_than_max_is_dropped(self):
        t = trace(-5, *([-25] * 30), -5)
        assert detect(t, threshold_db=-30, min_duration=0.1, max_duration=2.0, cause=FILLER) == []

    def test_custom_upper_bound(self):
        t = trace(-50, -15, -15, -15, -50)
        assert detect(t, threshold_db=-30, min_duration=0.1, cause=FILLER, upper_db=-20) == []
        assert len(detect(t, threshold_db=-30, min_duration=0.1, cause=FILLER, upper_db=-10)) == 1


class TestSegmentsInvariants:
    def test_segments_are_ordered_and_disjoint(self):
        t = trace(-50, -50, -20, -50, -50, -50, -20, -20, -50, -50, -50)
        segs = detect(t, threshold_db=-35, min_duration=0.1)
        assert len(segs) == 3
        for prev, nxt in zip(segs, segs[1:]):
            assert prev.end <= nxt.start
        assert all(s.end > s.start for s in segs)

    def test_unknown_cause(self):
        with pytest.raises(ValueError, match="unknown"):
            detect(trace(-50), threshold_db=-35, min_duration=0.1, cause="music")
