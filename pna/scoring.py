"""Composite 0-100 health score from uptime, recency, storage, and version.

Score = weighted sum of four factors, each on a 0-100 scale:

* **uptime**: linear in uptime, saturating at one week.
* **recency**: 100 / 50 / 0 for online / degraded / offline.
* **storage**: 100 below 80% utilization, 70 up to 95%, 30 above.
* **version**: 100 on the latest release, 60 otherwise.

The weighted sum is rounded half-up and clamped to ``[0, 100]``.
"""

import math
from typing import Protocol

from pna.config import LATEST_VERSION, HealthWeights
from pna.models import HealthFactors, NodeStatus

UPTIME_SATURATION = 7 * 24 * 3600

_RECENCY_BY_STATUS = {
    NodeStatus.ONLINE: 100.0,
    NodeStatus.DEGRADED: 50.0,
    NodeStatus.OFFLINE: 0.0,
}

DEFAULT_WEIGHTS = HealthWeights()


class Scorable(Protocol):
    """Fields the scorer reads; satisfied by defaulted raw records."""

    uptime: int
    storage_usage_percent: float
    version: str


def health_factors(
    node: Scorable,
    status: NodeStatus,
    latest_version: str = LATEST_VERSION,
) -> HealthFactors:
    """Compute the four per-factor scores for *node*."""
    uptime = min(node.uptime / UPTIME_SATURATION, 1) * 100

    utilization = node.storage_usage_percent
    if utilization < 80:
        storage = 100.0
    elif utilization <= 95:
        storage = 70.0
    else:
        storage = 30.0

    version = 100.0 if node.version == latest_version else 60.0

    return HealthFactors(
        uptime=max(uptime, 0.0),
        recency=_RECENCY_BY_STATUS[NodeStatus(status)],
        storage=storage,
        version=version,
    )


def health_score(
    node: Scorable,
    status: NodeStatus,
    weights: HealthWeights = DEFAULT_WEIGHTS,
    latest_version: str = LATEST_VERSION,
) -> int:
    """Return the composite health score of *node* as an int in ``[0, 100]``.

    Args:
        node: Record with ``uptime``, ``storage_usage_percent`` and
            ``version`` already defaulted.
        status: Liveness status derived for the same record.
        weights: Factor weights; must sum to 1.0.
        latest_version: Version string earning full version credit.
    """
    factors = health_factors(node, status, latest_version)
    score = (
        factors.uptime * weights.uptime
        + factors.recency * weights.recency
        + factors.storage * weights.storage
        + factors.version * weights.version
    )
    # Half-up, not banker's rounding.
    rounded = math.floor(score + 0.5)
    return min(max(rounded, 0), 100)


def health_score_label(score: int) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Very Good"
    if score >= 70:
        return "Good"
    if score >= 60:
        return "Fair"
    if score >= 50:
        return "Poor"
    return "Critical"
