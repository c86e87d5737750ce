"""
Swing point identification.

A swing high is a bar whose high is strictly greater than the highs of the
SWING_ORDER bars on each side; a swing low mirrors this on lows. Bars closer
than SWING_ORDER to either end of the sequence are never candidates.
"""

import numpy as np
from scipy.signal import argrelextrema
from decimal import Decimal
from typing import Sequence

from models.market_data import Candle
from models.technicals import SwingKind, SwingPoint

SWING_ORDER = 2


def _pivot_indices(values: np.ndarray, kind: SwingKind, order: int) -> np.ndarray:
    """Indices of strict local extrema with a full `order` neighbourhood."""
    n = len(values)
    if n < order * 2 + 1:
        return np.array([], dtype=int)

    comparator = np.greater if kind is SwingKind.HIGH else np.less
    idx = argrelextrema(values, comparator, order=order)[0]

    # argrelextrema clips at the edges, so bars 1 and n-2 can pass against
    # duplicated edge values; those have no full neighbourhood.
    return idx[(idx >= order) & (idx < n - order)]


def find_swing_points(
    candles: Sequence[Candle],
    kind: SwingKind,
    order: int = SWING_ORDER,
) -> list[SwingPoint]:
    """Swing highs or lows as (index, price, kind), in bar order."""
    prices: list[Decimal] = [c.high if kind is SwingKind.HIGH else c.low for c in candles]
    # float64 for argrelextrema: Decimals that agree to ~15 significant digits compare as ties
    values = np.array([float(p) for p in prices], dtype=float)

    return [SwingPoint(int(i), prices[i], kind) for i in _pivot_indices(values, kind, order)]


def swing_highs(candles: Sequence[Candle]) -> list[SwingPoint]:
    return find_swing_points(candles, SwingKind.HIGH)


def swing_lows(candles: Sequence[Candle]) -> list[SwingPoint]:
    return find_swing_points(candles, SwingKind.LOW)


def extract_swing_prices(candles: Sequence[Candle]) -> tuple[list[Decimal], list[Decimal]]:
    """Swing high prices and swing low prices, without their indices."""
    highs = [p.price for p in swing_highs(candles)]
    lows = [p.price for p in swing_lows(candles)]
    return highs, lows
