from pydantic import BaseModel, Field
from decimal import Decimal
from typing import NamedTuple, Optional
from enum import Enum


class PatternType(str, Enum):
    HEAD_AND_SHOULDERS = "head_and_shoulders"
    INVERSE_HEAD_AND_SHOULDERS = "inverse_head_and_shoulders"
    DOUBLE_TOP = "double_top"
    DOUBLE_BOTTOM = "double_bottom"
    ASCENDING_TRIANGLE = "ascending_triangle"
    DESCENDING_TRIANGLE = "descending_triangle"
    SYMMETRICAL_TRIANGLE = "symmetrical_triangle"


class PatternBias(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    CONTINUATION = "continuation"


class LevelType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"


class SwingKind(str, Enum):
    HIGH = "high"
    LOW = "low"


class SwingPoint(NamedTuple):
    index: int
    price: Decimal
    kind: SwingKind


class LevelCluster(BaseModel):
    """A zone of nearby swing prices. `price` is the running mean of members."""

    price: Decimal
    members: list[Decimal]

    @classmethod
    def seed(cls, price: Decimal) -> "LevelCluster":
        return cls(price=price, members=[price])

    @property
    def count(self) -> int:
        return len(self.members)

    def add(self, price: Decimal) -> None:
        self.members.append(price)
        self.price = sum(self.members) / len(self.members)


class SupportResistanceLevel(BaseModel):
    price: float
    strength: int
    type: LevelType
    touches: int


class Pattern(BaseModel):
    name: str = ""
    pattern_type: Optional[PatternType] = None
    type: Optional[PatternBias] = None
    confidence: float = Field(default=0.0, ge=0, le=1)
    description: str = ""
    breakout: bool = False

    @classmethod
    def absent(cls) -> "Pattern":
        """Zero-confidence sentinel meaning "not detected"."""
        return cls()

    @property
    def detected(self) -> bool:
        return self.confidence > 0


class IndicatorSnapshot(BaseModel):
    price: Optional[float] = None
    ema5: Optional[float] = None
    ema10: Optional[float] = None
    ema30: Optional[float] = None
    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_hist: Optional[float] = None


class AnalysisRequest(BaseModel):
    ticker: str
    bars: Optional[list[dict]] = Field(default=None, description="OHLCV bars as dicts")
    klines: Optional[list[list]] = Field(default=None, description="Exchange kline rows")


class SupportResistanceResponse(BaseModel):
    ticker: str
    levels: list[SupportResistanceLevel]
    error: Optional[str] = None


class PatternDetectionResponse(BaseModel):
    ticker: str
    detected_patterns: list[Pattern]
    patterns_scanned: int
    error: Optional[str] = None


class SnapshotResponse(BaseModel):
    ticker: str
    snapshot: Optional[IndicatorSnapshot] = None
    error: Optional[str] = None


class FullTechnicalResponse(BaseModel):
    ticker: str
    levels: list[SupportResistanceLevel]
    detected_patterns: list[Pattern]
    snapshot: Optional[IndicatorSnapshot] = None
    error: Optional[str] = None
