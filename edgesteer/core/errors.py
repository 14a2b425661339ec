"""Exception hierarchy for edgesteer."""

from __future__ import annotations

from edgesteer.datastructures.type_aliases import HttpStatus, UrlString


class EdgeSteerError(Exception):
    """Base exception for edgesteer errors."""

    pass


class DiscoveryError(EdgeSteerError):
    """Raised when the edge discovery response cannot be fetched or parsed."""

    pass


class FetchError(EdgeSteerError):
    """Raised when the transport could not obtain any HTTP response."""

    pass


class FetchTimeoutError(FetchError):
    """Raised when a fetch exceeds its timeout."""

    pass


class EdgeRejectedError(EdgeSteerError):
    """Raised when an edge refuses a request with an authorization status."""

    def __init__(self, status: HttpStatus, uri: UrlString) -> None:
        super().__init__(f"Edge rejected {uri} with HTTP {status}")
        self.status = status
        self.uri = uri
