"""YAML configuration file loading."""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".pna"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

DEFAULT_ENDPOINT = "http://45.151.122.71:6000/rpc"
DEFAULT_FALLBACK_ENDPOINTS = (
    "http://192.190.136.36:6000/rpc",
    "http://62.171.135.107:6000/rpc",
    "http://173.212.207.32:6000/rpc",
)

# Latest known stable node release.
LATEST_VERSION = "0.7.3"


class ConfigError(Exception):
    """Raised when a configuration file is malformed or unreadable."""


@dataclass(frozen=True)
class HealthWeights:
    """Relative weight of each health-score factor.  Must sum to 1.0."""

    uptime: float = 0.30
    recency: float = 0.35
    storage: float = 0.20
    version: float = 0.15

    def __post_init__(self) -> None:
        total = self.uptime + self.recency + self.storage + self.version
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ConfigError(f"Health weights must sum to 1.0, got {total:g}")


@dataclass
class PnaConfig:
    """Top-level configuration for the pna tool.

    Every field has a default, so the tool works against the public
    network without a config file.

    Attributes:
        endpoint: Primary pRPC endpoint URL.
        fallback_endpoints: Endpoints tried, in order, after the primary.
        timeout: Per-attempt request timeout in seconds.
        pods_ttl: Cache lifetime of the node list, in seconds.
        version_ttl: Cache lifetime of ``get-version`` results, in seconds.
        stats_ttl: Cache lifetime of ``get-stats`` results, in seconds.
        online_threshold: A node last seen at most this many seconds ago is
            online.
        degraded_threshold: A node last seen at most this many seconds ago
            (and not online) is degraded; anything older is offline.
        health_weights: Weights of the four health-score factors.
        latest_version: Version string that earns full version credit.
        default_rpc_port: ``rpc_port`` used when a record omits it.
        default_gossip_port: Gossip port used when an address has no
            parseable port.
    """

    endpoint: str = DEFAULT_ENDPOINT
    fallback_endpoints: list[str] = field(
        default_factory=lambda: list(DEFAULT_FALLBACK_ENDPOINTS)
    )
    timeout: float = 10.0
    pods_ttl: float = 60
    version_ttl: float = 300
    stats_ttl: float = 30
    online_threshold: int = 120
    degraded_threshold: int = 300
    health_weights: HealthWeights = field(default_factory=HealthWeights)
    latest_version: str = LATEST_VERSION
    default_rpc_port: int = 6000
    default_gossip_port: int = 9001

    @property
    def endpoints(self) -> list[str]:
        """Primary endpoint followed by the fallbacks, in try order."""
        return [self.endpoint, *self.fallback_endpoints]


# Keys in the YAML file that map to scalar PnaConfig fields.
_YAML_KEY_TO_FIELD: dict[str, str] = {
    "endpoint": "endpoint",
    "timeout": "timeout",
    "pods_ttl": "pods_ttl",
    "version_ttl": "version_ttl",
    "stats_ttl": "stats_ttl",
    "online_threshold": "online_threshold",
    "degraded_threshold": "degraded_threshold",
    "latest_version": "latest_version",
    "default_rpc_port": "default_rpc_port",
    "default_gossip_port": "default_gossip_port",
}

# Keys that need structural validation before they become fields.
_STRUCTURED_KEYS = {"fallback_endpoints", "health_weights"}

# Expected type of each scalar key.  ``float`` keys also accept integers.
_SCALAR_KINDS: dict[str, type] = {
    "endpoint": str,
    "timeout": float,
    "pods_ttl": float,
    "version_ttl": float,
    "stats_ttl": float,
    "online_threshold": int,
    "degraded_threshold": int,
    "latest_version": str,
    "default_rpc_port": int,
    "default_gossip_port": int,
}


def load_config(path: Path | str | None = None) -> PnaConfig:
    """Load configuration from a YAML file.

    Args:
        path: Explicit path to a YAML config file.  If ``None``, the
            default location (``~/.pna/config.yaml``) is tried.  If the
            default file doesn't exist, a ``PnaConfig`` with all defaults
            is returned silently.

    Returns:
        A populated ``PnaConfig`` instance.

    Raises:
        FileNotFoundError: If an explicit *path* was given but doesn't exist.
        ConfigError: If the file contains invalid YAML, has an unexpected
            top-level structure, or holds inconsistent values.
    """
    resolved = _resolve_path(path)

    if resolved is None:
        logger.debug("No config file found; using defaults")
        return PnaConfig()

    logger.debug("Loading config from %s", resolved)
    text = resolved.read_text(encoding="utf-8")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    if raw is None:
        # Empty file: all defaults.
        return PnaConfig()

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a YAML mapping at the top level in {resolved}, "
            f"got {type(raw).__name__}"
        )

    return _build_config(raw, source=resolved)


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _resolve_path(path: Path | str | None) -> Path | None:
    """Return a concrete ``Path`` to read, or ``None`` if nothing to read.

    Raises:
        FileNotFoundError: If the caller supplied an explicit path that
            doesn't exist on disk.
    """
    if path is not None:
        p = Path(path).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.is_file():
        return default
    return None


def _build_config(raw: dict, source: Path) -> PnaConfig:
    """Map raw YAML dict to a ``PnaConfig``, ignoring unknown keys."""
    kwargs: dict[str, object] = {}

    for yaml_key, field_name in _YAML_KEY_TO_FIELD.items():
        if yaml_key in raw:
            kwargs[field_name] = _parse_scalar(yaml_key, raw[yaml_key], source)

    if "endpoint" in kwargs:
        _check_url("endpoint", kwargs["endpoint"], source)
    if "timeout" in kwargs and kwargs["timeout"] == 0:
        raise ConfigError(f"timeout must be greater than 0 in {source}")
    for key in ("default_rpc_port", "default_gossip_port"):
        if key in kwargs and not 0 < kwargs[key] <= 65535:
            raise ConfigError(
                f"{key} must be between 1 and 65535 in {source}, got {kwargs[key]}"
            )

    if "fallback_endpoints" in raw:
        kwargs["fallback_endpoints"] = _parse_fallbacks(
            raw["fallback_endpoints"], source
        )

    if "health_weights" in raw:
        kwargs["health_weights"] = _parse_weights(raw["health_weights"], source)

    unknown = set(raw) - set(_YAML_KEY_TO_FIELD) - _STRUCTURED_KEYS
    if unknown:
        logger.warning(
            "Ignoring unknown config keys in %s: %s",
            source,
            ", ".join(sorted(unknown)),
        )

    cfg = PnaConfig(**kwargs)
    if cfg.online_threshold > cfg.degraded_threshold:
        raise ConfigError(
            f"online_threshold ({cfg.online_threshold}) must not exceed "
            f"degraded_threshold ({cfg.degraded_threshold}) in {source}"
        )
    return cfg


def _parse_fallbacks(value: object, source: Path) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(
            f"fallback_endpoints must be a list in {source}, "
            f"got {type(value).__name__}"
        )
    for url in value:
        _check_url("fallback_endpoints", url, source)
    return list(value)


def _parse_scalar(key: str, value: object, source: Path) -> object:
    """Check *value* against the expected type of *key*.

    Numbers must be finite and non-negative.  ``latest_version`` also
    accepts a bare number, since YAML reads ``0.8`` as a float.

    Raises:
        ConfigError: If *value* has the wrong type or range.
    """
    kind = _SCALAR_KINDS[key]

    if kind is str:
        if key == "latest_version" and _is_number(value):
            return str(value)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                f"{key} must be a non-empty string in {source}, got {value!r}"
            )
        return value

    if not _is_number(value) or (kind is int and not isinstance(value, int)):
        expected = "an integer" if kind is int else "a number"
        raise ConfigError(f"{key} must be {expected} in {source}, got {value!r}")
    if not math.isfinite(value) or value < 0:  # type: ignore[arg-type]
        raise ConfigError(
            f"{key} must be a non-negative number in {source}, got {value!r}"
        )
    return kind(value)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_url(key: str, value: object, source: Path) -> None:
    if not isinstance(value, str) or not value.startswith(("http://", "https://")):
        raise ConfigError(
            f"{key} must be an http(s) URL in {source}, got {value!r}"
        )


def _parse_weights(value: object, source: Path) -> HealthWeights:
    if not isinstance(value, dict):
        raise ConfigError(
            f"health_weights must be a mapping in {source}, "
            f"got {type(value).__name__}"
        )
    allowed = {"uptime", "recency", "storage", "version"}
    unknown = set(value) - allowed
    if unknown:
        raise ConfigError(
            f"Unknown health weight(s) in {source}: {', '.join(sorted(unknown))}"
        )
    try:
        weights = {name: float(v) for name, v in value.items()}
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Health weights must be numbers in {source}") from exc
    return HealthWeights(**weights)
