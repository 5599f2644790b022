"""Tests for pna.aggregator: statistics computation."""

from datetime import UTC, datetime

import pytest

from pna.aggregator import (
    aggregate,
    build_report,
    health_summary,
    needs_attention,
    rank_nodes_by_health,
    status_distribution,
    top_nodes,
    version_distribution,
)
from pna.config import PnaConfig
from pna.models import FleetReport, NetworkStats, NodeStatus, NormalizedNode


def _make_node(**overrides: object) -> NormalizedNode:
    """Create a NormalizedNode with sensible defaults, overridable per-field."""
    defaults: dict = {
        "pubkey": "pk",
        "address": "1.2.3.4:9001",
        "last_seen_timestamp": 1_700_000_000,
        "uptime": 3600,
        "storage_committed": 1000,
        "storage_used": 100,
        "storage_usage_percent": 10.0,
        "version": "0.7.3",
        "rpc_port": 6000,
        "is_public": True,
        "ip": "1.2.3.4",
        "gossip_port": 9001,
        "status": NodeStatus.ONLINE,
        "health_score": 80,
        "last_seen": datetime.fromtimestamp(1_700_000_000, UTC),
        "storage_committed_formatted": "1000 B",
        "storage_used_formatted": "100 B",
        "uptime_formatted": "1h 0m",
    }
    defaults.update(overrides)
    return NormalizedNode(**defaults)


# ------------------------------------------------------------------
# aggregate()
# ------------------------------------------------------------------


class TestAggregate:
    """Core aggregation logic."""

    def test_empty_list(self) -> None:
        stats = aggregate([])
        assert stats == NetworkStats()
        assert stats.total_nodes == 0
        assert stats.average_uptime == 0
        assert stats.average_health_score == 0
        assert stats.storage_utilization == 0
        assert stats.version_distribution == {}

    def test_status_counts(self) -> None:
        nodes = [
            _make_node(pubkey="a", status=NodeStatus.ONLINE),
            _make_node(pubkey="b", status=NodeStatus.ONLINE),
            _make_node(pubkey="c", status=NodeStatus.DEGRADED),
            _make_node(pubkey="d", status=NodeStatus.OFFLINE),
        ]
        stats = aggregate(nodes)
        assert stats.total_nodes == 4
        assert stats.online_nodes == 2
        assert stats.degraded_nodes == 1
        assert stats.offline_nodes == 1

    def test_storage_totals_and_utilization(self) -> None:
        nodes = [
            _make_node(storage_committed=1000, storage_used=250),
            _make_node(storage_committed=3000, storage_used=750),
        ]
        stats = aggregate(nodes)
        assert stats.total_storage_committed == 4000
        assert stats.total_storage_used == 1000
        assert stats.storage_utilization == pytest.approx(25.0)

    def test_zero_committed_utilization(self) -> None:
        stats = aggregate([_make_node(storage_committed=0, storage_used=0)])
        assert stats.storage_utilization == 0

    def test_averages_rounded(self) -> None:
        nodes = [
            _make_node(uptime=100, health_score=50),
            _make_node(uptime=101, health_score=51),
        ]
        stats = aggregate(nodes)
        # 100.5 and 50.5 round half-up.
        assert stats.average_uptime == 101
        assert stats.average_health_score == 51

    def test_version_counts(self) -> None:
        nodes = [
            _make_node(version="0.7.3"),
            _make_node(version="0.7.3"),
            _make_node(version="0.6.0"),
        ]
        assert aggregate(nodes).version_distribution == {"0.7.3": 2, "0.6.0": 1}


# ------------------------------------------------------------------
# Distributions
# ------------------------------------------------------------------


class TestVersionDistribution:
    def test_sorted_desc_with_percentages(self) -> None:
        nodes = [
            _make_node(version="0.6.0"),
            _make_node(version="0.7.3"),
            _make_node(version="0.7.3"),
            _make_node(version="0.7.3"),
        ]
        dist = version_distribution(nodes)
        assert [(i.version, i.count) for i in dist] == [("0.7.3", 3), ("0.6.0", 1)]
        assert dist[0].percentage == pytest.approx(75.0)
        assert dist[1].percentage == pytest.approx(25.0)

    def test_percentages_sum_to_100(self) -> None:
        versions = ["a", "b", "c", "a", "b", "a", "d"]
        dist = version_distribution([_make_node(version=v) for v in versions])
        assert sum(i.percentage for i in dist) == pytest.approx(100.0)

    def test_ties_keep_first_seen_order(self) -> None:
        nodes = [_make_node(version=v) for v in ["x", "y", "y", "x"]]
        assert [i.version for i in version_distribution(nodes)] == ["x", "y"]

    def test_empty(self) -> None:
        assert version_distribution([]) == []


class TestStatusDistribution:
    def test_always_three_statuses(self) -> None:
        dist = status_distribution([_make_node(status=NodeStatus.ONLINE)])
        assert [i.status for i in dist] == [
            NodeStatus.ONLINE,
            NodeStatus.DEGRADED,
            NodeStatus.OFFLINE,
        ]
        assert [i.count for i in dist] == [1, 0, 0]
        assert [i.percentage for i in dist] == [100.0, 0.0, 0.0]

    def test_empty_is_zero_filled(self) -> None:
        dist = status_distribution([])
        assert len(dist) == 3
        assert all(i.count == 0 and i.percentage == 0 for i in dist)

    def test_percentages(self) -> None:
        nodes = [
            _make_node(status=NodeStatus.ONLINE),
            _make_node(status=NodeStatus.DEGRADED),
            _make_node(status=NodeStatus.OFFLINE),
            _make_node(status=NodeStatus.OFFLINE),
        ]
        dist = status_distribution(nodes)
        assert [i.percentage for i in dist] == [25.0, 25.0, 50.0]


# ------------------------------------------------------------------
# Ranking
# ------------------------------------------------------------------


class TestRanking:
    def test_rank_descending(self) -> None:
        nodes = [
            _make_node(pubkey="low", health_score=20),
            _make_node(pubkey="high", health_score=95),
            _make_node(pubkey="mid", health_score=60),
        ]
        ranked = rank_nodes_by_health(nodes)
        assert [n.pubkey for n in ranked] == ["high", "mid", "low"]

    def test_ties_are_stable(self) -> None:
        nodes = [
            _make_node(pubkey="first", health_score=70),
            _make_node(pubkey="top", health_score=90),
            _make_node(pubkey="second", health_score=70),
            _make_node(pubkey="third", health_score=70),
        ]
        ranked = rank_nodes_by_health(nodes)
        assert [n.pubkey for n in ranked] == ["top", "first", "second", "third"]

    def test_does_not_mutate_input(self) -> None:
        nodes = [_make_node(pubkey="a", health_score=1), _make_node(pubkey="b", health_score=2)]
        rank_nodes_by_health(nodes)
        assert [n.pubkey for n in nodes] == ["a", "b"]

    def test_top_nodes_truncates(self) -> None:
        nodes = [_make_node(pubkey=str(i), health_score=i) for i in range(20)]
        top = top_nodes(nodes, 3)
        assert [n.pubkey for n in top] == ["19", "18", "17"]

    def test_top_nodes_default_ten(self) -> None:
        nodes = [_make_node(pubkey=str(i), health_score=i) for i in range(20)]
        assert len(top_nodes(nodes)) == 10

    def test_top_nodes_more_than_available(self) -> None:
        assert len(top_nodes([_make_node()], 5)) == 1

    def test_top_zero(self) -> None:
        assert top_nodes([_make_node()], 0) == []


# ------------------------------------------------------------------
# needs_attention()
# ------------------------------------------------------------------


class TestNeedsAttention:
    def test_independent_filters(self) -> None:
        outdated = _make_node(pubkey="outdated", version="0.6.0")
        low = _make_node(pubkey="low", health_score=49)
        full = _make_node(pubkey="full", storage_usage_percent=90.5)
        everything = _make_node(
            pubkey="everything",
            version="0.5.0",
            health_score=10,
            storage_usage_percent=99,
        )
        fine = _make_node(pubkey="fine")

        report = needs_attention([outdated, low, full, everything, fine], "0.7.3")

        assert [n.pubkey for n in report.outdated] == ["outdated", "everything"]
        assert [n.pubkey for n in report.low_health] == ["low", "everything"]
        assert [n.pubkey for n in report.high_storage] == ["full", "everything"]

    def test_thresholds_are_strict(self) -> None:
        node = _make_node(health_score=50, storage_usage_percent=90)
        report = needs_attention([node], "0.7.3")
        assert report.low_health == []
        assert report.high_storage == []

    def test_unknown_version_is_outdated(self) -> None:
        report = needs_attention([_make_node(version="unknown")], "0.7.3")
        assert len(report.outdated) == 1


# ------------------------------------------------------------------
# health_summary()
# ------------------------------------------------------------------


def _stats(online: int, degraded: int, offline: int) -> NetworkStats:
    return NetworkStats(
        total_nodes=online + degraded + offline,
        online_nodes=online,
        degraded_nodes=degraded,
        offline_nodes=offline,
    )


class TestHealthSummary:
    def test_healthy(self) -> None:
        summary = health_summary(_stats(90, 5, 5))
        assert summary.status == "healthy"
        assert summary.message == "Network is healthy with 90% nodes online"

    def test_critical_when_many_offline(self) -> None:
        summary = health_summary(_stats(60, 5, 35))
        assert summary.status == "critical"
        assert summary.message == "35% of nodes are offline"

    def test_offline_exactly_30_is_warning(self) -> None:
        assert health_summary(_stats(70, 0, 30)).status == "warning"

    def test_warning_when_offline_above_10(self) -> None:
        summary = health_summary(_stats(85, 0, 15))
        assert summary.status == "warning"
        assert summary.message == "15 nodes need attention"

    def test_warning_when_online_below_80(self) -> None:
        summary = health_summary(_stats(75, 20, 5))
        assert summary.status == "warning"
        assert summary.message == "25 nodes need attention"

    def test_boundaries_healthy(self) -> None:
        # offline exactly 10% and online exactly 80%
        assert health_summary(_stats(80, 10, 10)).status == "healthy"

    def test_empty_fleet(self) -> None:
        summary = health_summary(NetworkStats())
        assert summary.status == "warning"
        assert summary.message == "0 nodes need attention"


# ------------------------------------------------------------------
# build_report()
# ------------------------------------------------------------------


class TestBuildReport:
    def test_bundles_everything(self) -> None:
        nodes = [
            _make_node(pubkey="a", health_score=90),
            _make_node(pubkey="b", health_score=40, version="0.6.0"),
        ]

        report = build_report(nodes, PnaConfig(), top=1, invalid_records=3)

        assert isinstance(report, FleetReport)
        assert report.stats.total_nodes == 2
        assert [n.pubkey for n in report.top] == ["a"]
        assert [n.pubkey for n in report.attention.outdated] == ["b"]
        assert [n.pubkey for n in report.attention.low_health] == ["b"]
        assert report.summary.status == "healthy"
        assert report.latest_version == "0.7.3"
        assert report.invalid_records == 3
        assert len(report.statuses) == 3

    def test_empty(self) -> None:
        report = build_report([])
        assert report.stats == NetworkStats()
        assert report.top == []
        assert report.versions == []
