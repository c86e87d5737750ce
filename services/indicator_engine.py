import pandas as pd
import pandas_ta as ta
import logging
from typing import Optional, Sequence

from models.market_data import Candle
from models.technicals import IndicatorSnapshot

logger = logging.getLogger(__name__)


class IndicatorEngine:
    """Computes the latest-bar technical snapshot using pandas-ta."""

    @staticmethod
    def snapshot(candles: Sequence[Candle]) -> IndicatorSnapshot:
        """
        Latest values of EMA 5/10/30, Bollinger Bands (20, 2), RSI 14 and MACD (12, 26, 9).

        Args:
            candles: Candle sequence in time order

        Returns:
            IndicatorSnapshot; fields are None where there are too few bars
        """
        if not candles:
            return IndicatorSnapshot()

        close = pd.Series([float(c.close) for c in candles], dtype=float)

        bb_df = ta.bbands(close, length=20, std=2.0)
        macd_df = ta.macd(close, fast=12, slow=26, signal=9)

        return IndicatorSnapshot(
            price=_last(close),
            ema5=_last(ta.ema(close, length=5)),
            ema10=_last(ta.ema(close, length=10)),
            ema30=_last(ta.ema(close, length=30)),
            bb_upper=_last(_column(bb_df, "BBU")),
            bb_middle=_last(_column(bb_df, "BBM")),
            bb_lower=_last(_column(bb_df, "BBL")),
            rsi=_last(ta.rsi(close, length=14), digits=2),
            macd=_last(_column(macd_df, "MACD_")),
            macd_signal=_last(_column(macd_df, "MACDs_")),
            macd_hist=_last(_column(macd_df, "MACDh_")),
        )


def _column(df: Optional[pd.DataFrame], prefix: str) -> Optional[pd.Series]:
    """First column whose name starts with `prefix` (pandas-ta suffixes the parameters)."""
    if df is None or df.empty:
        return None
    for col in df.columns:
        if str(col).startswith(prefix):
            return df[col]
    return None


def _last(series: Optional[pd.Series], digits: int = 4) -> Optional[float]:
    """Last value of a series, rounded, or None if missing."""
    if series is None or series.empty:
        return None
    val = series.iloc[-1]
    return round(float(val), digits) if pd.notna(val) else None
