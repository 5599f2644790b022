"""Endpoint transport: one JSON-RPC POST to one endpoint, with a timeout."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from pna.errors import EndpointTimeout, TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Sends a single request to a single endpoint.

    Implementations know nothing about retries, alternate endpoints, or
    caching; failover is the caller's job.
    """

    @abstractmethod
    def send(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST *payload* to *url* and return the decoded response envelope.

        Raises:
            EndpointTimeout: If the endpoint didn't answer in time.
            TransportError: On connection failure, a non-2xx status, or a
                body that isn't a JSON object.
        """

    def close(self) -> None:
        """Release any held resources."""

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class HttpTransport(Transport):
    """``Transport`` over HTTP using ``httpx``.

    Args:
        timeout: Per-request timeout in seconds.
        client: Pre-built ``httpx.Client`` (e.g. with a mock transport in
            tests).  When given, the caller owns it and ``close()`` leaves
            it open.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("POST %s method=%s", url, payload.get("method"))
        try:
            response = self._client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise EndpointTimeout(
                f"Timed out after {self.timeout:g}s: {url}", url=url
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise TransportError(
                f"HTTP error: {status} {exc.response.reason_phrase}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Response from {url} is not JSON", url=url) from exc

        if not isinstance(body, dict):
            raise TransportError(
                f"Expected a JSON object from {url}, got {type(body).__name__}",
                url=url,
            )
        return body

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
