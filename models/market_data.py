from pydantic import BaseModel, ConfigDict
from datetime import datetime
from decimal import Decimal


class Candle(BaseModel):
    """One OHLCV bar. Prices are Decimal so level comparisons don't drift."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
