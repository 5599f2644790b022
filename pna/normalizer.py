"""Node normalizer: raw wire records to fully-populated domain records."""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from pna.config import PnaConfig
from pna.formatting import format_bytes, format_uptime
from pna.models import NodeStatus, NormalizedNode, RawNodeRecord
from pna.scoring import health_score

logger = logging.getLogger(__name__)


def parse_address(address: str, default_port: int = 9001) -> tuple[str, int]:
    """Split ``"ip:port"`` on its final colon.

    IPv6 brackets are stripped (``"[::1]:9001"`` gives ``"::1"``).  When the
    port part is missing or not a positive integer, *default_port* is used.

    Returns:
        ``(ip, port)``
    """
    host, sep, port_text = address.rpartition(":")
    if not sep:
        host, port_text = address, ""

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port = int(port_text)
    except ValueError:
        port = default_port
    if port <= 0:
        port = default_port
    return host, port


def determine_status(
    last_seen_timestamp: int,
    now: int,
    online_threshold: int = 120,
    degraded_threshold: int = 300,
) -> NodeStatus:
    """Classify liveness from seconds elapsed since the node was last seen.

    Each boundary belongs to the healthier class: exactly
    *online_threshold* seconds is online, exactly *degraded_threshold*
    is degraded.
    """
    elapsed = now - last_seen_timestamp
    if elapsed <= online_threshold:
        return NodeStatus.ONLINE
    if elapsed <= degraded_threshold:
        return NodeStatus.DEGRADED
    return NodeStatus.OFFLINE


@dataclass(frozen=True)
class _Defaulted:
    """The scorer's view of a record after null fields are defaulted."""

    uptime: int
    storage_usage_percent: float
    version: str


def normalize(
    raw: RawNodeRecord,
    now: int,
    config: PnaConfig | None = None,
) -> NormalizedNode:
    """Convert a validated raw record into a ``NormalizedNode``.

    Args:
        raw: Record that already passed ``RawNodeRecord.from_wire``.
        now: Epoch seconds used for status classification; pass the same
            value for every record in a batch.
        config: Thresholds, weights, defaults.  ``PnaConfig()`` if omitted.
    """
    cfg = config or PnaConfig()
    ip, gossip_port = parse_address(raw.address, cfg.default_gossip_port)

    uptime = raw.uptime if raw.uptime is not None else 0
    storage_committed = (
        raw.storage_committed if raw.storage_committed is not None else 0
    )
    storage_used = raw.storage_used if raw.storage_used is not None else 0
    usage_percent = (
        raw.storage_usage_percent if raw.storage_usage_percent is not None else 0.0
    )
    version = raw.version if raw.version is not None else "unknown"
    rpc_port = raw.rpc_port if raw.rpc_port is not None else cfg.default_rpc_port
    is_public = raw.is_public if raw.is_public is not None else False

    status = determine_status(
        raw.last_seen_timestamp,
        now,
        cfg.online_threshold,
        cfg.degraded_threshold,
    )
    score = health_score(
        _Defaulted(uptime, usage_percent, version),
        status,
        weights=cfg.health_weights,
        latest_version=cfg.latest_version,
    )

    return NormalizedNode(
        pubkey=raw.pubkey,
        address=raw.address,
        last_seen_timestamp=raw.last_seen_timestamp,
        uptime=uptime,
        storage_committed=storage_committed,
        storage_used=storage_used,
        storage_usage_percent=usage_percent,
        version=version,
        rpc_port=rpc_port,
        is_public=is_public,
        ip=ip,
        gossip_port=gossip_port,
        status=status,
        health_score=score,
        last_seen=datetime.fromtimestamp(raw.last_seen_timestamp, UTC),
        storage_committed_formatted=format_bytes(storage_committed),
        storage_used_formatted=format_bytes(storage_used),
        uptime_formatted=format_uptime(uptime),
    )


def normalize_batch(
    raws: Iterable[RawNodeRecord],
    now: int | None = None,
    config: PnaConfig | None = None,
) -> list[NormalizedNode]:
    """Normalize a batch against a single ``now`` so statuses agree."""
    if now is None:
        now = int(time.time())
    nodes = [normalize(raw, now, config) for raw in raws]
    logger.debug("Normalized %d node(s) at now=%d", len(nodes), now)
    return nodes
