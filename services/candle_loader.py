"""
Conversion of raw bar payloads into Candle sequences.

Two input shapes are accepted: row dicts (as produced by the market data
service) and exchange kline rows [open_time_ms, open, high, low, close,
volume, ...] with prices as decimal strings.
"""

import pandas as pd
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from models.market_data import Candle

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ("open", "high", "low", "close", "volume")
TIME_COLUMNS = ("timestamp", "date", "time")
KLINE_FIELDS = 6


def _to_decimal(value: Any) -> Decimal:
    """Decimal from str/int/float without carrying float binary expansion."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def _bars_to_dataframe(bars: list[dict]) -> pd.DataFrame:
    """Convert list of bar dicts to a DataFrame with a `timestamp` column."""
    df = pd.DataFrame(bars)
    # Normalize column names
    df.columns = [str(c).lower() for c in df.columns]

    missing = set(PRICE_COLUMNS) - set(df.columns)
    time_col = next((c for c in TIME_COLUMNS if c in df.columns), None)
    if time_col is None:
        missing.add("timestamp")
    if missing:
        raise ValueError(f"Missing columns: {sorted(missing)}")

    # Numeric times are epoch milliseconds, the same as kline open times
    unit = "ms" if pd.api.types.is_numeric_dtype(df[time_col]) else None
    df["timestamp"] = pd.to_datetime(df[time_col], utc=True, unit=unit)
    return df.sort_values("timestamp", kind="stable")


def candles_from_bars(bars: list[dict]) -> list[Candle]:
    """Candles from OHLCV row dicts, sorted by time."""
    if not bars:
        return []

    df = _bars_to_dataframe(bars)
    candles = [
        Candle(
            timestamp=row["timestamp"].to_pydatetime(),
            **{col: _to_decimal(row[col]) for col in PRICE_COLUMNS},
        )
        for row in df.to_dict("records")
    ]
    logger.debug(f"Loaded {len(candles)} candles from bars")
    return candles


def candles_from_klines(rows: Sequence[Sequence[Any]]) -> list[Candle]:
    """Candles from kline rows; open time is epoch milliseconds."""
    candles: list[Candle] = []
    for row in rows:
        if len(row) < KLINE_FIELDS:
            raise ValueError(f"Kline row has {len(row)} fields, expected at least {KLINE_FIELDS}")

        open_time_ms, o, h, l, c, v = row[:KLINE_FIELDS]
        candles.append(Candle(
            timestamp=datetime.fromtimestamp(int(open_time_ms) / 1000, tz=timezone.utc),
            open=_to_decimal(o),
            high=_to_decimal(h),
            low=_to_decimal(l),
            close=_to_decimal(c),
            volume=_to_decimal(v),
        ))

    candles.sort(key=lambda c: c.timestamp)
    logger.debug(f"Loaded {len(candles)} candles from klines")
    return candles


def trim_candles(candles: list[Candle], max_bars: int) -> list[Candle]:
    """Keep the trailing `max_bars` candles."""
    if max_bars <= 0 or len(candles) <= max_bars:
        return candles
    return candles[-max_bars:]
