"""Error taxonomy for pRPC communication and wire-record validation."""


class PrpcError(Exception):
    """Base class for failures talking to a pRPC endpoint."""


class TransportError(PrpcError):
    """Network-level failure (connection refused, bad HTTP status, bad body).

    Attributes:
        url: Endpoint the request was sent to.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class EndpointTimeout(TransportError):
    """A single endpoint attempt exceeded its deadline."""


class ApplicationError(PrpcError):
    """The endpoint answered, but the JSON-RPC envelope reports an error.

    Attributes:
        code: JSON-RPC error code, if the envelope carried one.
        url: Endpoint that produced the error.
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.url = url


class AllEndpointsUnreachable(PrpcError):
    """Every configured endpoint failed for a request.

    Attributes:
        method: The pRPC method that was being called.
        errors: ``(url, exception)`` pairs in the order endpoints were tried.
    """

    def __init__(self, method: str, errors: list[tuple[str, Exception]]) -> None:
        self.method = method
        self.errors = errors
        tried = len(errors)
        detail = f": {self.last_error}" if self.last_error else ""
        super().__init__(
            f"All {tried} pRPC endpoint(s) failed for {method!r}{detail}"
        )

    @property
    def last_error(self) -> Exception | None:
        """The failure from the last endpoint tried, for diagnostics."""
        if not self.errors:
            return None
        return self.errors[-1][1]


class InvalidRecord(ValueError):
    """A raw node record lacks a field needed for identity or liveness.

    Attributes:
        field: Name of the offending field.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
