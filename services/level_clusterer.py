"""
Greedy clustering of swing prices into horizontal zones.

Prices are visited in ascending order and each joins the first existing
cluster whose running mean is within `tolerance` (relative). The mean is
recomputed on every join, so it drifts; clusters are never split or merged
afterwards. Output is deterministic for a given multiset of prices.
"""

import logging
from decimal import Decimal
from typing import Iterable

from models.technicals import LevelCluster

logger = logging.getLogger(__name__)

MIN_CLUSTER_MEMBERS = 2


def cluster_levels(prices: Iterable[Decimal], tolerance: Decimal) -> list[LevelCluster]:
    """
    Args:
        prices: Swing prices, any order.
        tolerance: Relative distance to a cluster's mean for a price to join it.

    Returns:
        Clusters with at least MIN_CLUSTER_MEMBERS members, in creation order.
    """
    clusters: list[LevelCluster] = []

    for price in sorted(prices):
        for cluster in clusters:
            # A zero mean has no relative distance; such a cluster takes no members
            if cluster.price and abs(price - cluster.price) / cluster.price <= tolerance:
                cluster.add(price)
                break
        else:
            clusters.append(LevelCluster.seed(price))

    kept = [c for c in clusters if c.count >= MIN_CLUSTER_MEMBERS]
    logger.debug(f"Clustered prices into {len(clusters)} zones, {len(kept)} with >= {MIN_CLUSTER_MEMBERS} members")
    return kept
