"""Horizontal support/resistance levels from clustered swing points."""

import logging
from decimal import Decimal
from typing import Sequence

from models.market_data import Candle
from models.technicals import LevelCluster, LevelType, SupportResistanceLevel
from services.level_clusterer import cluster_levels
from services.swing_points import extract_swing_prices

logger = logging.getLogger(__name__)

LEVEL_TOLERANCE = Decimal("0.02")  # 2% zone width around the running mean
MIN_TOUCHES = 2
MAX_LEVELS = 5


def _to_levels(clusters: list[LevelCluster], level_type: LevelType) -> list[SupportResistanceLevel]:
    return [
        SupportResistanceLevel(
            price=float(c.price),
            strength=c.count,
            type=level_type,
            touches=c.count,
        )
        for c in clusters
        if c.count >= MIN_TOUCHES
    ]


def detect_support_resistance(candles: Sequence[Candle]) -> list[SupportResistanceLevel]:
    """
    Strongest support/resistance levels, at most MAX_LEVELS, by touch count.

    Resistances are listed before supports, and the sort is stable, so a
    resistance wins a tie in strength.
    """
    highs, lows = extract_swing_prices(candles)

    levels = _to_levels(cluster_levels(highs, LEVEL_TOLERANCE), LevelType.RESISTANCE)
    levels += _to_levels(cluster_levels(lows, LEVEL_TOLERANCE), LevelType.SUPPORT)

    levels.sort(key=lambda lvl: lvl.strength, reverse=True)

    logger.debug(
        f"Support/resistance: {len(highs)} swing highs, {len(lows)} swing lows, {len(levels)} qualifying levels"
    )
    return levels[:MAX_LEVELS]
