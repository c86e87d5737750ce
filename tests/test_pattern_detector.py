"""Unit tests for chart pattern detection and ranking."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.market_data import Candle
from models.technicals import Pattern, PatternBias, PatternType
from services.pattern_detector import PatternDetector, detect_patterns, rank_patterns


def _candles(highs, lows):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        Candle(
            timestamp=start + timedelta(hours=4 * i),
            open=Decimal(str(lo)), high=Decimal(str(hi)),
            low=Decimal(str(lo)), close=Decimal(str(hi)), volume=Decimal("100"),
        )
        for i, (hi, lo) in enumerate(zip(highs, lows))
    ]


def _rising(n, start, step=0.1):
    return [round(start + i * step, 4) for i in range(n)]


def _with_pivots(n, base, pivots):
    """Flat series at `base` with the given {index: price} pivots."""
    values = [base] * n
    for idx, price in pivots.items():
        values[idx] = price
    return values


def _names(patterns):
    return [p.name for p in patterns]


class TestPreconditions:
    """Each detector yields the zero-confidence sentinel when its window doesn't fit."""

    @pytest.mark.parametrize("method, window", [
        ("_detect_head_and_shoulders", 20),
        ("_detect_inverse_head_and_shoulders", 20),
        ("_detect_double_top", 15),
        ("_detect_double_bottom", 15),
        ("_detect_ascending_triangle", 10),
        ("_detect_descending_triangle", 10),
        ("_detect_symmetrical_triangle", 10),
    ])
    def test_short_series_returns_sentinel(self, method, window):
        n = window - 1
        # Rising lows / flat highs would otherwise match the ascending triangle
        candles = _candles([100] * n, _rising(n, start=90, step=0.5))
        result = getattr(PatternDetector(candles), method)()
        assert result.confidence == 0
        assert not result.detected

    @pytest.mark.parametrize("n", [0, 1, 5, 9])
    def test_detect_patterns_empty_for_tiny_series(self, n):
        assert detect_patterns(_candles([100] * n, _rising(n, start=90, step=0.5))) == []

    def test_fourteen_candles_never_yield_double_patterns(self):
        """A shape that is a double top/bottom at 15 bars is ignored at 14."""
        highs = _with_pivots(15, 90, {4: 100, 10: 101})
        lows = _with_pivots(15, 60, {4: 50, 10: 50.5})
        full = _candles(highs, lows)
        assert PatternDetector(full)._detect_double_top().detected
        assert PatternDetector(full)._detect_double_bottom().detected

        detector = PatternDetector(full[1:])
        assert detector._detect_double_top().confidence == 0
        assert detector._detect_double_bottom().confidence == 0


class TestHeadAndShoulders:
    def test_detects_head_and_shoulders(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 101})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()

        assert result.name == "Head and Shoulders"
        assert result.pattern_type is PatternType.HEAD_AND_SHOULDERS
        assert result.type is PatternBias.BEARISH
        assert result.confidence == pytest.approx(0.95)
        assert result.breakout is False

    def test_ranked_first_among_detected(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 101})
        patterns = detect_patterns(_candles(highs, _rising(20, start=50)))
        assert patterns[0].name == "Head and Shoulders"

    def test_uneven_shoulders_rejected(self):
        """Shoulders 4% apart exceed the 3% tolerance."""
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 104})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert not result.detected

    def test_shoulders_exactly_three_percent_apart_accepted(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 97})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert result.detected
        assert result.confidence == pytest.approx(0.95)

    def test_shoulders_just_over_three_percent_rejected(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 96.99})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert not result.detected

    def test_head_must_be_highest(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 99, 13: 100.5})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert not result.detected

    def test_needs_three_peaks(self):
        highs = _with_pivots(20, 90, {8: 110, 13: 101})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert not result.detected

    def test_later_triple_can_match(self):
        """Triples are consecutive pivots; the second triple qualifies here."""
        highs = _with_pivots(20, 90, {2: 120, 5: 100, 9: 110, 13: 101})
        result = PatternDetector(_candles(highs, _rising(20, start=50)))._detect_head_and_shoulders()
        assert result.detected

    def test_only_trailing_window_is_scanned(self):
        """Pivots older than the last 20 bars are ignored."""
        highs = _with_pivots(30, 90, {3: 100, 8: 110, 13: 101})
        candles = _candles(highs, _rising(30, start=50))
        assert not PatternDetector(candles)._detect_head_and_shoulders().detected


class TestInverseHeadAndShoulders:
    def test_detects_inverse_head_and_shoulders(self):
        lows = _with_pivots(20, 60, {3: 50, 8: 45, 13: 50.5})
        result = PatternDetector(_candles(_rising(20, start=100), lows))._detect_inverse_head_and_shoulders()

        assert result.name == "Inverse Head and Shoulders"
        assert result.type is PatternBias.BULLISH
        assert result.confidence == pytest.approx(0.95)

    def test_head_must_be_lowest(self):
        lows = _with_pivots(20, 60, {3: 50, 8: 52, 13: 50.5})
        result = PatternDetector(_candles(_rising(20, start=100), lows))._detect_inverse_head_and_shoulders()
        assert not result.detected


class TestDoublePatterns:
    def test_double_top(self):
        highs = _with_pivots(15, 90, {4: 100, 10: 101})
        patterns = detect_patterns(_candles(highs, _rising(15, start=50)))

        assert _names(patterns) == ["Double Top"]
        assert patterns[0].type is PatternBias.BEARISH
        assert patterns[0].confidence == pytest.approx(0.8 * (1 - 1 / 101))

    def test_double_bottom(self):
        lows = _with_pivots(15, 60, {4: 50, 10: 50.5})
        result = PatternDetector(_candles(_rising(15, start=100), lows))._detect_double_bottom()

        assert result.name == "Double Bottom"
        assert result.type is PatternBias.BULLISH
        assert result.confidence == pytest.approx(0.8 * (1 - 0.5 / 50.5))

    def test_first_matching_pair_wins(self):
        """(100, 101) is found before the closer (150, 150.5) pair."""
        highs = _with_pivots(15, 90, {2: 100, 5: 150, 8: 101, 11: 150.5})
        result = PatternDetector(_candles(highs, _rising(15, start=50)))._detect_double_top()
        assert result.confidence == pytest.approx(0.8 * (1 - 1 / 101))

    def test_peaks_exactly_two_percent_apart_accepted(self):
        highs = _with_pivots(15, 90, {4: 100, 10: 98})
        result = PatternDetector(_candles(highs, _rising(15, start=50)))._detect_double_top()
        assert result.detected
        assert result.confidence == pytest.approx(0.8 * 0.98)

    def test_troughs_just_over_two_percent_apart_rejected(self):
        lows = _with_pivots(15, 60, {4: 50, 10: 48.99})
        result = PatternDetector(_candles(_rising(15, start=100), lows))._detect_double_bottom()
        assert not result.detected

    def test_peaks_too_far_apart(self):
        highs = _with_pivots(15, 90, {4: 100, 10: 103})
        result = PatternDetector(_candles(highs, _rising(15, start=50)))._detect_double_top()
        assert not result.detected


class TestTriangles:
    def test_ascending_triangle(self):
        """Flat highs and rising lows over exactly ten bars."""
        candles = _candles([100] * 10, _rising(10, start=90, step=0.5))
        patterns = detect_patterns(candles)

        assert _names(patterns) == ["Ascending Triangle"]
        assert patterns[0].type is PatternBias.BULLISH
        assert 0.6 <= patterns[0].confidence <= 0.9

    def test_ascending_confidence_scales_with_low_slope(self):
        candles = _candles([100] * 10, _rising(10, start=90, step=0.005))
        result = PatternDetector(candles)._detect_ascending_triangle()
        assert result.confidence == pytest.approx(0.8)

    def test_descending_triangle(self):
        highs = [110 - 0.5 * i for i in range(10)]
        patterns = detect_patterns(_candles(highs, [90] * 10))

        assert _names(patterns) == ["Descending Triangle"]
        assert patterns[0].type is PatternBias.BEARISH
        assert patterns[0].confidence == pytest.approx(0.9)

    def test_flat_series_matches_no_triangle(self):
        assert detect_patterns(_candles([100] * 10, [90] * 10)) == []

    def test_converging_lines_match_both_directional_triangles(self):
        """Falling highs with rising lows satisfy both flat-side thresholds."""
        highs = [110 - 0.5 * i for i in range(10)]
        patterns = detect_patterns(_candles(highs, _rising(10, start=90, step=0.5)))

        assert _names(patterns) == ["Ascending Triangle", "Descending Triangle"]

    def test_symmetrical_spread_threshold(self):
        """Opposite-signed slopes beyond the flat band are always >= 0.002 apart."""
        highs = [100 - 0.0011 * i for i in range(10)]
        lows = [90 + 0.0011 * i for i in range(10)]
        candles = _candles(highs, lows)
        assert not PatternDetector(candles)._detect_symmetrical_triangle().detected

        # The same window sits just outside the flat band on both sides
        patterns = detect_patterns(candles)
        assert set(_names(patterns)) == {"Ascending Triangle", "Descending Triangle"}
        for p in patterns:
            assert p.confidence == pytest.approx(0.6 + 0.4 * 0.11)

    def test_low_slope_just_under_flat_band_is_not_ascending(self):
        candles = _candles([100] * 10, [90 + 0.0009 * i for i in range(10)])
        assert not PatternDetector(candles)._detect_ascending_triangle().detected
        assert detect_patterns(candles) == []

    def test_low_slope_just_over_flat_band_is_ascending(self):
        candles = _candles([100] * 10, [90 + 0.0011 * i for i in range(10)])
        assert _names(detect_patterns(candles)) == ["Ascending Triangle"]

    def test_high_slope_just_above_negative_band_is_not_descending(self):
        candles = _candles([110 - 0.0009 * i for i in range(10)], [90] * 10)
        assert not PatternDetector(candles)._detect_descending_triangle().detected
        assert detect_patterns(candles) == []

    def test_high_slope_just_below_negative_band_is_descending(self):
        candles = _candles([110 - 0.0011 * i for i in range(10)], [90] * 10)
        assert _names(detect_patterns(candles)) == ["Descending Triangle"]


class TestRankPatterns:
    def test_drops_sentinels_and_sorts_descending(self):
        patterns = [
            Pattern.absent(),
            Pattern(name="b", confidence=0.5),
            Pattern(name="c", confidence=0.9),
            Pattern(name="d", confidence=0.5),
        ]
        assert _names(rank_patterns(patterns)) == ["c", "b", "d"]

    def test_empty(self):
        assert rank_patterns([]) == []

    def test_sentinel(self):
        sentinel = Pattern.absent()
        assert sentinel.confidence == 0
        assert not sentinel.detected


class TestDetectPatterns:
    def _mixed_candles(self):
        highs = _with_pivots(20, 90, {3: 100, 8: 110, 13: 101, 17: 100.5})
        return _candles(highs, _rising(20, start=50))

    def test_names_are_unique_and_confidence_sorted(self):
        patterns = detect_patterns(self._mixed_candles())
        names = _names(patterns)
        assert len(names) == len(set(names))
        confidences = [p.confidence for p in patterns]
        assert confidences == sorted(confidences, reverse=True)

    def test_idempotent(self):
        candles = self._mixed_candles()
        assert detect_patterns(candles) == detect_patterns(candles)

    def test_subset_of_detectors(self):
        candles = _candles([100] * 10, _rising(10, start=90, step=0.5))
        detector = PatternDetector(candles)
        assert detector.detect_patterns([PatternType.DESCENDING_TRIANGLE]) == []
        assert _names(detector.detect_patterns([PatternType.ASCENDING_TRIANGLE])) == ["Ascending Triangle"]
