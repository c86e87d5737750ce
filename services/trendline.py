import numpy as np
from typing import Sequence

from models.market_data import Candle


def calculate_slope(candles: Sequence[Candle], use_high: bool) -> float:
    """
    Least-squares slope of highs (or lows) against bar index 0..N-1.

    Callers guarantee N >= 2; the intercept is not needed.
    """
    y = np.array([float(c.high if use_high else c.low) for c in candles], dtype=float)
    x = np.arange(len(y), dtype=float)
    n = float(len(y))

    sum_x, sum_y = x.sum(), y.sum()
    sum_xy, sum_x2 = (x * y).sum(), (x * x).sum()

    return float((n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x))
