"""pRPC client with ordered endpoint failover and a TTL cache."""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable
from typing import Any

from pna.cache import TTLCache
from pna.config import PnaConfig
from pna.errors import (
    AllEndpointsUnreachable,
    ApplicationError,
    InvalidRecord,
    PrpcError,
)
from pna.models import NormalizedNode, RawNodeRecord, StatsInfo, VersionInfo
from pna.normalizer import normalize_batch
from pna.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)

METHOD_GET_PODS = "get-pods-with-stats"
METHOD_GET_VERSION = "get-version"
METHOD_GET_STATS = "get-stats"

_MISS = object()


class PrpcClient:
    """Fetches and normalizes fleet data from a set of pRPC endpoints.

    Endpoints are tried one at a time in configured order (primary first,
    then each fallback); the first success wins.  Results are cached per
    method and endpoint selection.

    Args:
        config: Endpoints, timeouts, TTLs, and scoring settings.
        transport: Sends single requests.  Defaults to an ``HttpTransport``
            using ``config.timeout``.
        cache: Result cache.  Defaults to a fresh ``TTLCache`` sharing
            *clock*.
        clock: Returns current epoch seconds; used for the cache and for
            status classification.
    """

    def __init__(
        self,
        config: PnaConfig | None = None,
        transport: Transport | None = None,
        cache: TTLCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or PnaConfig()
        self._owns_transport = transport is None
        self.transport = transport or HttpTransport(timeout=self.config.timeout)
        self.cache = cache if cache is not None else TTLCache(clock=clock)
        self._clock = clock
        self._ids = itertools.count(1)
        self.last_invalid_count = 0
        self.invalid_record_count = 0

    # ------------------------------------------------------------------
    # Core request loop
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        params: list[Any] | None = None,
        cache_key: str | None = None,
        ttl: float | None = None,
        endpoint: str | None = None,
        parse: Callable[[Any], Any] | None = None,
    ) -> Any:
        """Call *method*, trying each endpoint in order until one succeeds.

        Args:
            method: pRPC method name.
            params: Positional JSON-RPC params, omitted from the request
                when ``None``.
            cache_key: If given, a fresh cached value is returned without
                any network call, and a successful result is cached.
            ttl: Cache lifetime in seconds.  Required with *cache_key*.
            endpoint: Pin the request to this single endpoint instead of
                the configured list.
            parse: Applied to the raw ``result`` before it is cached and
                returned.

        Returns:
            The ``result`` member of the first successful response, passed
            through *parse* if given.  A ``null`` result is a valid,
            cacheable value.

        Raises:
            AllEndpointsUnreachable: If every endpoint failed.
            ValueError: If *cache_key* is given without *ttl*.
        """
        if cache_key is not None:
            if ttl is None:
                raise ValueError(f"cache_key {cache_key!r} requires a ttl")
            cached = self.cache.get(cache_key, _MISS)
            if cached is not _MISS:
                logger.debug("Cache hit for %s", cache_key)
                return cached

        result = self._call(method, params, endpoint)
        if parse is not None:
            result = parse(result)

        if cache_key is not None:
            self.cache.set(cache_key, result, ttl)
        return result

    def _call(
        self,
        method: str,
        params: list[Any] | None,
        endpoint: str | None,
    ) -> Any:
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        endpoints = [endpoint] if endpoint else self.config.endpoints
        errors: list[tuple[str, Exception]] = []

        for url in endpoints:
            logger.debug("Trying pRPC endpoint %s for %s", url, method)
            try:
                envelope = self.transport.send(url, payload)
                result = _unwrap(envelope, url)
            except PrpcError as exc:
                logger.warning("pRPC endpoint %s failed for %s: %s", url, method, exc)
                errors.append((url, exc))
                continue
            logger.debug("pRPC endpoint %s answered %s", url, method)
            return result

        raise AllEndpointsUnreachable(method, errors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_pods(self, endpoint: str | None = None) -> list[NormalizedNode]:
        """Fetch, validate, and normalize every node in the fleet.

        Records missing ``pubkey``, ``address`` or ``last_seen_timestamp``
        are dropped and counted in ``last_invalid_count``.

        Raises:
            AllEndpointsUnreachable: If every endpoint failed.
        """
        return self.request(
            METHOD_GET_PODS,
            cache_key=f"pods:{endpoint or 'default'}",
            ttl=self.config.pods_ttl,
            endpoint=endpoint,
            parse=self._parse_pods,
        )

    def _parse_pods(self, result: Any) -> list[NormalizedNode]:
        raw_pods = _pods_list(result)

        records: list[RawNodeRecord] = []
        invalid = 0
        for entry in raw_pods:
            try:
                records.append(RawNodeRecord.from_wire(entry))
            except InvalidRecord as exc:
                invalid += 1
                logger.debug("Dropping invalid pod record: %s", exc)

        if invalid:
            logger.warning(
                "Dropped %d of %d pod record(s) missing required fields",
                invalid,
                len(raw_pods),
            )
        self.last_invalid_count = invalid
        self.invalid_record_count += invalid

        nodes = normalize_batch(records, now=int(self._clock()), config=self.config)
        logger.info("Fetched %d node(s)", len(nodes))
        return nodes

    def fetch_version(self, endpoint: str | None = None) -> VersionInfo:
        return self.request(
            METHOD_GET_VERSION,
            cache_key=f"version:{endpoint or 'default'}",
            ttl=self.config.version_ttl,
            endpoint=endpoint,
            parse=VersionInfo.from_wire,
        )

    def fetch_stats(self, endpoint: str | None = None) -> StatsInfo:
        return self.request(
            METHOD_GET_STATS,
            cache_key=f"stats:{endpoint or 'default'}",
            ttl=self.config.stats_ttl,
            endpoint=endpoint,
            parse=StatsInfo.from_wire,
        )

    def fetch_node(
        self, pubkey: str, endpoint: str | None = None
    ) -> NormalizedNode | None:
        """Return the node with *pubkey*, or ``None`` if it isn't listed."""
        for node in self.fetch_pods(endpoint):
            if node.pubkey == pubkey:
                return node
        return None

    def clear_cache(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> PrpcClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _unwrap(envelope: dict[str, Any], url: str) -> Any:
    """Return the ``result`` of a JSON-RPC envelope.

    Raises:
        ApplicationError: If the envelope carries an ``error`` or has no
            ``result``.
    """
    error = envelope.get("error")
    if error is not None:
        if isinstance(error, dict):
            message = error.get("message") or "unknown error"
            code = error.get("code")
        else:
            message, code = str(error), None
        raise ApplicationError(
            f"pRPC error: {message} (code: {code})", code=code, url=url
        )
    if "result" not in envelope:
        raise ApplicationError("No result in pRPC response", url=url)
    return envelope["result"]


def _pods_list(result: Any) -> list[Any]:
    """Resolve the two ``get-pods-with-stats`` result shapes to a list."""
    if isinstance(result, list):
        return result
    if isinstance(result, dict) and isinstance(result.get("pods"), list):
        return result["pods"]
    logger.warning(
        "Unexpected %s result shape (%s); treating as empty",
        METHOD_GET_PODS,
        type(result).__name__,
    )
    return []
