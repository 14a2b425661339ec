"""
Edgesteer Core Module

Edge registry, latency probing, edge selection, URI rewriting, session
affinity and failover for steering an HLS player across CDN edges.
"""

from .affinity import SessionAffinityTracker
from .config import EdgeSteerSettings
from .errors import (
    DiscoveryError,
    EdgeRejectedError,
    EdgeSteerError,
    FetchError,
    FetchTimeoutError,
)
from .failover import FailoverCoordinator
from .geo import GeographicCoordinate, distance_km
from .prober import LatencyProber, ProbeSummary
from .registry import ClientInfo, DatacenterInfo, Edge, EdgeRegistry, load_registry
from .selector import EdgeSelector
from .session import EdgeSteeringSession, SessionStatistics
from .transport import (
    AiohttpTransport,
    FetchResponse,
    Fetcher,
    HeadlessPlayer,
    PlayerController,
)
from .uri import StreamURI, rewrite_for_edge

__all__ = [
    "AiohttpTransport",
    "ClientInfo",
    "DatacenterInfo",
    "DiscoveryError",
    "Edge",
    "EdgeRegistry",
    "EdgeRejectedError",
    "EdgeSelector",
    "EdgeSteerError",
    "EdgeSteerSettings",
    "EdgeSteeringSession",
    "FailoverCoordinator",
    "FetchError",
    "FetchResponse",
    "FetchTimeoutError",
    "Fetcher",
    "GeographicCoordinate",
    "HeadlessPlayer",
    "LatencyProber",
    "PlayerController",
    "ProbeSummary",
    "SessionAffinityTracker",
    "SessionStatistics",
    "StreamURI",
    "distance_km",
    "load_registry",
    "rewrite_for_edge",
]
