"""Aggregator: fleet totals, distributions, rankings, and health summary."""

import logging
import math
from collections.abc import Sequence

from pna.config import LATEST_VERSION, PnaConfig
from pna.formatting import calculate_percent
from pna.models import (
    AttentionReport,
    FleetReport,
    HealthSummary,
    NetworkStats,
    NodeStatus,
    NormalizedNode,
    StatusDistributionItem,
    VersionDistributionItem,
)

logger = logging.getLogger(__name__)

LOW_HEALTH_THRESHOLD = 50
HIGH_STORAGE_PERCENT = 90

CRITICAL_OFFLINE_PERCENT = 30
WARNING_OFFLINE_PERCENT = 10
WARNING_ONLINE_PERCENT = 80


def aggregate(nodes: Sequence[NormalizedNode]) -> NetworkStats:
    """Compute fleet-wide statistics from normalized nodes.

    Args:
        nodes: Normalized, scored nodes.

    Returns:
        A ``NetworkStats``; all zeros for an empty collection.
    """
    if not nodes:
        return NetworkStats()

    status_counts = {status: 0 for status in NodeStatus}
    total_committed = 0
    total_used = 0
    total_uptime = 0
    total_score = 0
    version_counts: dict[str, int] = {}

    for node in nodes:
        status_counts[node.status] += 1
        total_committed += node.storage_committed
        total_used += node.storage_used
        total_uptime += node.uptime
        total_score += node.health_score
        version_counts[node.version] = version_counts.get(node.version, 0) + 1

    count = len(nodes)
    return NetworkStats(
        total_nodes=count,
        online_nodes=status_counts[NodeStatus.ONLINE],
        degraded_nodes=status_counts[NodeStatus.DEGRADED],
        offline_nodes=status_counts[NodeStatus.OFFLINE],
        total_storage_committed=total_committed,
        total_storage_used=total_used,
        storage_utilization=calculate_percent(total_used, total_committed),
        average_uptime=math.floor(total_uptime / count + 0.5),
        average_health_score=math.floor(total_score / count + 0.5),
        version_distribution=version_counts,
    )


def version_distribution(
    nodes: Sequence[NormalizedNode],
) -> list[VersionDistributionItem]:
    """Group nodes by version, most common first.

    Versions with equal counts keep the order in which they first appear.
    """
    counts: dict[str, int] = {}
    for node in nodes:
        counts[node.version] = counts.get(node.version, 0) + 1

    total = len(nodes)
    items = [
        VersionDistributionItem(
            version=version,
            count=count,
            percentage=calculate_percent(count, total),
        )
        for version, count in counts.items()
    ]
    return sorted(items, key=lambda item: item.count, reverse=True)


def status_distribution(
    nodes: Sequence[NormalizedNode],
) -> list[StatusDistributionItem]:
    """Count nodes per status; always returns online, degraded, offline."""
    counts = {status: 0 for status in NodeStatus}
    for node in nodes:
        counts[node.status] += 1

    total = len(nodes)
    return [
        StatusDistributionItem(
            status=status,
            count=counts[status],
            percentage=calculate_percent(counts[status], total),
        )
        for status in NodeStatus
    ]


def rank_nodes_by_health(
    nodes: Sequence[NormalizedNode],
) -> list[NormalizedNode]:
    """Sort by health score, highest first; ties keep their input order."""
    return sorted(nodes, key=lambda node: node.health_score, reverse=True)


def top_nodes(
    nodes: Sequence[NormalizedNode], n: int = 10
) -> list[NormalizedNode]:
    return rank_nodes_by_health(nodes)[: max(n, 0)]


def needs_attention(
    nodes: Sequence[NormalizedNode],
    latest_version: str = LATEST_VERSION,
) -> AttentionReport:
    """Flag outdated, low-health, and nearly-full nodes independently."""
    return AttentionReport(
        outdated=[n for n in nodes if n.version != latest_version],
        low_health=[n for n in nodes if n.health_score < LOW_HEALTH_THRESHOLD],
        high_storage=[
            n for n in nodes if n.storage_usage_percent > HIGH_STORAGE_PERCENT
        ],
    )


def health_summary(stats: NetworkStats) -> HealthSummary:
    """Classify fleet health as healthy, warning, or critical.

    * **critical**: more than 30% of nodes offline.
    * **warning**: more than 10% offline, or fewer than 80% online.
    * **healthy**: otherwise.
    """
    online_pct = calculate_percent(stats.online_nodes, stats.total_nodes)
    offline_pct = calculate_percent(stats.offline_nodes, stats.total_nodes)

    if offline_pct > CRITICAL_OFFLINE_PERCENT:
        return HealthSummary(
            status="critical",
            message=f"{offline_pct:.0f}% of nodes are offline",
        )

    if offline_pct > WARNING_OFFLINE_PERCENT or online_pct < WARNING_ONLINE_PERCENT:
        attention = stats.degraded_nodes + stats.offline_nodes
        return HealthSummary(
            status="warning",
            message=f"{attention} nodes need attention",
        )

    return HealthSummary(
        status="healthy",
        message=f"Network is healthy with {online_pct:.0f}% nodes online",
    )


def build_report(
    nodes: Sequence[NormalizedNode],
    config: PnaConfig | None = None,
    top: int = 10,
    invalid_records: int = 0,
) -> FleetReport:
    """Run every aggregation over *nodes* and bundle the results.

    Args:
        nodes: Normalized nodes from one fetch.
        config: Supplies ``latest_version``; defaults if omitted.
        top: How many nodes to include in the top-N ranking.
        invalid_records: Raw records dropped during the fetch.

    Returns:
        A ``FleetReport`` ready for rendering.
    """
    cfg = config or PnaConfig()
    stats = aggregate(nodes)
    summary = health_summary(stats)
    logger.debug(
        "Aggregated %d node(s): %s (%s)",
        stats.total_nodes,
        summary.status,
        summary.message,
    )
    return FleetReport(
        nodes=list(nodes),
        stats=stats,
        versions=version_distribution(nodes),
        statuses=status_distribution(nodes),
        top=top_nodes(nodes, top),
        attention=needs_attention(nodes, cfg.latest_version),
        summary=summary,
        latest_version=cfg.latest_version,
        invalid_records=invalid_records,
    )
