"""Data models: wire records, normalized nodes, and aggregate results."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pna.errors import InvalidRecord

logger = logging.getLogger(__name__)


class NodeStatus(StrEnum):
    """Liveness of a node, derived from time since it was last seen."""

    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


# ---------------------------------------------------------------------------
# Wire schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawNodeRecord:
    """One entry of a ``get-pods-with-stats`` result, as sent on the wire.

    Only the identity and liveness fields are guaranteed; everything else
    may be missing or null and is defaulted during normalization.

    Attributes:
        pubkey: Node public key (its identity).
        address: Gossip address, ``"ip:port"``.
        last_seen_timestamp: Epoch seconds when the node was last observed.
        uptime: Seconds the node process has been running.
        storage_committed: Bytes the node has committed to the network.
        storage_used: Bytes actually in use.
        storage_usage_percent: ``storage_used`` as a percentage of committed.
        version: Node software version string.
        rpc_port: Port the node's own pRPC server listens on.
        is_public: Whether the node's pRPC port is publicly reachable.
    """

    pubkey: str
    address: str
    last_seen_timestamp: int
    uptime: int | None = None
    storage_committed: int | None = None
    storage_used: int | None = None
    storage_usage_percent: float | None = None
    version: str | None = None
    rpc_port: int | None = None
    is_public: bool | None = None

    @classmethod
    def from_wire(cls, data: object) -> "RawNodeRecord":
        """Validate and type one raw record.

        Args:
            data: A decoded JSON value from the pods list.

        Returns:
            A ``RawNodeRecord`` with optional fields left as ``None`` when
            absent.

        Raises:
            InvalidRecord: If *data* is not a mapping, or ``pubkey``,
                ``address`` or ``last_seen_timestamp`` is missing or unusable.
        """
        if not isinstance(data, dict):
            raise InvalidRecord(
                f"Expected a mapping, got {type(data).__name__}"
            )

        pubkey = data.get("pubkey")
        if not pubkey or not isinstance(pubkey, str):
            raise InvalidRecord("Record has no pubkey", field="pubkey")

        address = data.get("address")
        if not address or not isinstance(address, str):
            raise InvalidRecord(
                f"Record {pubkey} has no address", field="address"
            )

        last_seen = data.get("last_seen_timestamp")
        if last_seen is None or isinstance(last_seen, bool):
            raise InvalidRecord(
                f"Record {pubkey} has no last_seen_timestamp",
                field="last_seen_timestamp",
            )
        try:
            last_seen = int(last_seen)
        except (TypeError, ValueError, OverflowError) as exc:
            raise InvalidRecord(
                f"Record {pubkey} has a non-numeric last_seen_timestamp: "
                f"{last_seen!r}",
                field="last_seen_timestamp",
            ) from exc

        return cls(
            pubkey=pubkey,
            address=address,
            last_seen_timestamp=last_seen,
            uptime=_optional(data, "uptime", int),
            storage_committed=_optional(data, "storage_committed", int),
            storage_used=_optional(data, "storage_used", int),
            storage_usage_percent=_optional(data, "storage_usage_percent", float),
            version=_optional(data, "version", str),
            rpc_port=_optional(data, "rpc_port", int),
            is_public=_optional(data, "is_public", bool),
        )


def _optional(data: dict, key: str, kind: type) -> Any:
    """Return ``data[key]`` converted to *kind*, or ``None`` if unusable."""
    value = data.get(key)
    if value is None:
        return None
    if kind is bool:
        return value if isinstance(value, bool) else None
    if kind is str:
        return value if isinstance(value, str) else str(value)
    try:
        converted = kind(value)
    except (TypeError, ValueError, OverflowError):
        logger.debug("Ignoring unusable %s=%r", key, value)
        return None
    if kind is float and not math.isfinite(converted):
        logger.debug("Ignoring non-finite %s=%r", key, value)
        return None
    return converted


@dataclass(frozen=True)
class VersionInfo:
    """Result of ``get-version``."""

    version: str
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_wire(cls, result: object) -> "VersionInfo":
        if isinstance(result, str):
            return cls(version=result, raw={"version": result})
        if isinstance(result, dict):
            return cls(version=str(result.get("version") or "unknown"), raw=result)
        return cls(version="unknown")


_STATS_FIELDS = (
    "cpu_percent",
    "memory_percent",
    "memory_used",
    "memory_total",
    "disk_percent",
    "disk_used",
    "disk_total",
    "packets_recv",
    "packets_sent",
    "active_streams",
    "uptime",
)


@dataclass(frozen=True)
class StatsInfo:
    """Result of ``get-stats``: resource usage of the answering node.

    The wire result nests most values under ``stats`` with ``file_size``
    alongside; a flat mapping is accepted too.  Missing values are 0.
    """

    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_used: int = 0
    memory_total: int = 0
    disk_percent: float = 0.0
    disk_used: int = 0
    disk_total: int = 0
    packets_recv: int = 0
    packets_sent: int = 0
    active_streams: int = 0
    uptime: int = 0
    file_size: int = 0
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_wire(cls, result: object) -> "StatsInfo":
        if not isinstance(result, dict):
            return cls()
        stats = result.get("stats")
        if not isinstance(stats, dict):
            stats = result

        kwargs: dict[str, Any] = {}
        for name in _STATS_FIELDS:
            kind = float if name.endswith("_percent") else int
            value = _optional(stats, name, kind)
            if value is not None:
                kwargs[name] = value
        file_size = _optional(result, "file_size", int)
        if file_size is not None:
            kwargs["file_size"] = file_size
        return cls(raw=result, **kwargs)


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizedNode:
    """A fully-populated node record with derived fields.

    Created fresh on every fetch and never mutated.
    """

    pubkey: str
    address: str
    last_seen_timestamp: int
    uptime: int
    storage_committed: int
    storage_used: int
    storage_usage_percent: float
    version: str
    rpc_port: int
    is_public: bool

    # -- Derived --
    ip: str
    gossip_port: int
    status: NodeStatus
    health_score: int
    last_seen: datetime
    storage_committed_formatted: str
    storage_used_formatted: str
    uptime_formatted: str

    @property
    def id(self) -> str:
        return self.pubkey


@dataclass(frozen=True)
class CacheEntry:
    """A cached value stamped with its creation time.

    Attributes:
        data: The cached value.
        timestamp: Creation time in epoch milliseconds.
        ttl: Time-to-live in seconds.
    """

    data: Any
    timestamp: float
    ttl: float

    def is_valid(self, now_ms: float) -> bool:
        return now_ms - self.timestamp < self.ttl * 1000


@dataclass(frozen=True)
class HealthFactors:
    """Per-factor scores (each 0-100) behind a node's health score."""

    uptime: float
    recency: float
    storage: float
    version: float


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass
class NetworkStats:
    """Fleet-wide totals and averages over a node collection."""

    total_nodes: int = 0
    online_nodes: int = 0
    degraded_nodes: int = 0
    offline_nodes: int = 0
    total_storage_committed: int = 0
    total_storage_used: int = 0
    storage_utilization: float = 0.0
    average_uptime: int = 0
    average_health_score: int = 0
    version_distribution: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class VersionDistributionItem:
    version: str
    count: int
    percentage: float


@dataclass(frozen=True)
class StatusDistributionItem:
    status: NodeStatus
    count: int
    percentage: float


@dataclass
class AttentionReport:
    """Nodes flagged by each attention filter.

    The filters are independent, so a node may appear in several lists.
    """

    outdated: list[NormalizedNode] = field(default_factory=list)
    low_health: list[NormalizedNode] = field(default_factory=list)
    high_storage: list[NormalizedNode] = field(default_factory=list)


@dataclass(frozen=True)
class HealthSummary:
    status: Literal["healthy", "warning", "critical"]
    message: str


@dataclass
class FleetReport:
    """Everything the terminal renderer needs from one fetch cycle.

    Attributes:
        nodes: Normalized nodes, in wire order.
        stats: Aggregate statistics over ``nodes``.
        versions: Version distribution, most common first.
        statuses: Status distribution (online, degraded, offline).
        top: Highest-scoring nodes.
        attention: Nodes flagged by the attention filters.
        summary: Three-tier fleet health classification.
        latest_version: Version string treated as current.
        invalid_records: Raw records discarded during the fetch.
    """

    nodes: list[NormalizedNode]
    stats: NetworkStats
    versions: list[VersionDistributionItem]
    statuses: list[StatusDistributionItem]
    top: list[NormalizedNode]
    attention: AttentionReport
    summary: HealthSummary
    latest_version: str
    invalid_records: int = 0
