"""
Chart pattern detection over the trailing bars of a candle series.

Detects: Head & Shoulders (and inverse), Double Top, Double Bottom,
Ascending/Descending/Symmetrical Triangle.

Each detector looks at a fixed trailing window and yields at most one
Pattern; a zero-confidence Pattern means "not found". Reversal patterns take
the FIRST qualifying pivot triple/pair in bar order, not the best one.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from models.market_data import Candle
from models.technicals import Pattern, PatternBias, PatternType, SwingPoint
from services.swing_points import swing_highs, swing_lows
from services.trendline import calculate_slope

logger = logging.getLogger(__name__)

HEAD_AND_SHOULDERS_WINDOW = 20
DOUBLE_PATTERN_WINDOW = 15
TRIANGLE_WINDOW = 10

SHOULDER_TOLERANCE = Decimal("0.03")
DOUBLE_TOLERANCE = Decimal("0.02")

FLAT_SLOPE = 0.001
SLOPE_SPREAD = 0.002


def _relative_diff(a: Decimal, b: Decimal) -> Decimal:
    """|a - b| relative to the larger of the two."""
    denom = max(a, b)
    if denom <= 0:
        return Decimal("Infinity")
    return abs(a - b) / denom


class PatternDetector:
    """Detects chart patterns in a sequence of candles."""

    def __init__(self, candles: Sequence[Candle]):
        self.candles = list(candles)
        self.n = len(self.candles)

    def _recent(self, window: int) -> Optional[list[Candle]]:
        """Trailing `window` candles, or None if the series is shorter."""
        if self.n < window:
            return None
        return self.candles[-window:]

    def detect_patterns(self, patterns: Optional[Iterable[PatternType]] = None) -> list[Pattern]:
        """Run the requested detectors (all by default) and rank what was found."""
        detector_map = {
            PatternType.HEAD_AND_SHOULDERS: self._detect_head_and_shoulders,
            PatternType.INVERSE_HEAD_AND_SHOULDERS: self._detect_inverse_head_and_shoulders,
            PatternType.DOUBLE_TOP: self._detect_double_top,
            PatternType.DOUBLE_BOTTOM: self._detect_double_bottom,
            PatternType.ASCENDING_TRIANGLE: self._detect_ascending_triangle,
            PatternType.DESCENDING_TRIANGLE: self._detect_descending_triangle,
            PatternType.SYMMETRICAL_TRIANGLE: self._detect_symmetrical_triangle,
        }

        requested = set(PatternType) if patterns is None else set(patterns)

        # Iterate in enum order so confidence ties keep a fixed precedence
        results: list[Pattern] = []
        for pattern_type in PatternType:
            if pattern_type not in requested:
                continue
            detected = detector_map[pattern_type]()
            if detected.detected:
                logger.debug(f"Detected {pattern_type.value} ({detected.confidence:.2f})")
            results.append(detected)

        return rank_patterns(results)

    # ---------- Head & Shoulders ----------
    def _match_head_and_shoulders(self, pivots: list[SwingPoint], inverse: bool) -> Optional[Decimal]:
        """Shoulder difference of the first qualifying (left, head, right) triple."""
        for left, head, right in zip(pivots, pivots[1:], pivots[2:]):
            if inverse:
                is_head = head.price < left.price and head.price < right.price
            else:
                is_head = head.price > left.price and head.price > right.price
            if not is_head:
                continue

            shoulder_diff = _relative_diff(left.price, right.price)
            if shoulder_diff <= SHOULDER_TOLERANCE:
                return shoulder_diff

        return None

    def _detect_head_and_shoulders(self) -> Pattern:
        """Three peaks: middle highest, shoulders within 3% of each other."""
        recent = self._recent(HEAD_AND_SHOULDERS_WINDOW)
        if recent is None:
            return Pattern.absent()

        peaks = swing_highs(recent)
        if len(peaks) < 3:
            return Pattern.absent()

        shoulder_diff = self._match_head_and_shoulders(peaks, inverse=False)
        if shoulder_diff is None:
            return Pattern.absent()

        confidence = 0.7 + 0.3 * (1 - float(shoulder_diff))
        return Pattern(
            name="Head and Shoulders",
            pattern_type=PatternType.HEAD_AND_SHOULDERS,
            type=PatternBias.BEARISH,
            confidence=min(confidence, 0.95),
            description="Reversal pattern signalling a bearish trend",
        )

    def _detect_inverse_head_and_shoulders(self) -> Pattern:
        """Three troughs: middle lowest, shoulders within 3% of each other."""
        recent = self._recent(HEAD_AND_SHOULDERS_WINDOW)
        if recent is None:
            return Pattern.absent()

        troughs = swing_lows(recent)
        if len(troughs) < 3:
            return Pattern.absent()

        shoulder_diff = self._match_head_and_shoulders(troughs, inverse=True)
        if shoulder_diff is None:
            return Pattern.absent()

        confidence = 0.7 + 0.3 * (1 - float(shoulder_diff))
        return Pattern(
            name="Inverse Head and Shoulders",
            pattern_type=PatternType.INVERSE_HEAD_AND_SHOULDERS,
            type=PatternBias.BULLISH,
            confidence=min(confidence, 0.95),
            description="Reversal pattern signalling a bullish trend",
        )

    # ---------- Double Top / Bottom ----------
    def _match_pair(self, pivots: list[SwingPoint]) -> Optional[Decimal]:
        """Price difference of the first pivot pair (i < j) within tolerance."""
        for i in range(len(pivots) - 1):
            for j in range(i + 1, len(pivots)):
                diff = _relative_diff(pivots[i].price, pivots[j].price)
                if diff <= DOUBLE_TOLERANCE:
                    return diff
        return None

    def _detect_double_top(self) -> Pattern:
        """Two peaks within 2% of each other."""
        recent = self._recent(DOUBLE_PATTERN_WINDOW)
        if recent is None:
            return Pattern.absent()

        peaks = swing_highs(recent)
        if len(peaks) < 2:
            return Pattern.absent()

        diff = self._match_pair(peaks)
        if diff is None:
            return Pattern.absent()

        return Pattern(
            name="Double Top",
            pattern_type=PatternType.DOUBLE_TOP,
            type=PatternBias.BEARISH,
            confidence=0.8 * (1 - float(diff)),
            description="Reversal pattern signalling strong resistance",
        )

    def _detect_double_bottom(self) -> Pattern:
        """Two troughs within 2% of each other."""
        recent = self._recent(DOUBLE_PATTERN_WINDOW)
        if recent is None:
            return Pattern.absent()

        troughs = swing_lows(recent)
        if len(troughs) < 2:
            return Pattern.absent()

        diff = self._match_pair(troughs)
        if diff is None:
            return Pattern.absent()

        return Pattern(
            name="Double Bottom",
            pattern_type=PatternType.DOUBLE_BOTTOM,
            type=PatternBias.BULLISH,
            confidence=0.8 * (1 - float(diff)),
            description="Reversal pattern signalling strong support",
        )

    # ---------- Triangle Patterns ----------
    def _slopes(self) -> Optional[tuple[float, float]]:
        """(high slope, low slope) over the triangle window."""
        recent = self._recent(TRIANGLE_WINDOW)
        if recent is None:
            return None
        return calculate_slope(recent, use_high=True), calculate_slope(recent, use_high=False)

    def _detect_ascending_triangle(self) -> Pattern:
        """Flat resistance + rising support."""
        slopes = self._slopes()
        if slopes is None:
            return Pattern.absent()
        high_slope, low_slope = slopes

        if not (high_slope < FLAT_SLOPE and low_slope > FLAT_SLOPE):
            return Pattern.absent()

        confidence = 0.6 + 0.4 * min(abs(low_slope), 0.01) / 0.01
        return Pattern(
            name="Ascending Triangle",
            pattern_type=PatternType.ASCENDING_TRIANGLE,
            type=PatternBias.BULLISH,
            confidence=min(confidence, 0.9),
            description="Continuation pattern with a bullish breakout bias",
        )

    def _detect_descending_triangle(self) -> Pattern:
        """Flat support + falling resistance."""
        slopes = self._slopes()
        if slopes is None:
            return Pattern.absent()
        high_slope, low_slope = slopes

        if not (low_slope > -FLAT_SLOPE and high_slope < -FLAT_SLOPE):
            return Pattern.absent()

        confidence = 0.6 + 0.4 * min(abs(high_slope), 0.01) / 0.01
        return Pattern(
            name="Descending Triangle",
            pattern_type=PatternType.DESCENDING_TRIANGLE,
            type=PatternBias.BEARISH,
            confidence=min(confidence, 0.9),
            description="Continuation pattern with a bearish breakout bias",
        )

    def _detect_symmetrical_triangle(self) -> Pattern:
        """Falling highs + rising lows of comparable steepness."""
        slopes = self._slopes()
        if slopes is None:
            return Pattern.absent()
        high_slope, low_slope = slopes

        converging = high_slope < -FLAT_SLOPE and low_slope > FLAT_SLOPE
        if not (converging and abs(high_slope - low_slope) < SLOPE_SPREAD):
            return Pattern.absent()

        confidence = 0.5 + 0.5 * min(abs(high_slope) + abs(low_slope), 0.02) / 0.02
        return Pattern(
            name="Symmetrical Triangle",
            pattern_type=PatternType.SYMMETRICAL_TRIANGLE,
            type=PatternBias.CONTINUATION,
            confidence=min(confidence, 0.85),
            description="Consolidation pattern; the breakout decides direction",
        )


def rank_patterns(patterns: Iterable[Pattern]) -> list[Pattern]:
    """Drop sentinels and sort by confidence, highest first (stable on ties)."""
    detected = [p for p in patterns if p.detected]
    return sorted(detected, key=lambda p: p.confidence, reverse=True)


def detect_patterns(candles: Sequence[Candle]) -> list[Pattern]:
    """All seven detectors over `candles`, ranked by confidence."""
    return PatternDetector(candles).detect_patterns()
