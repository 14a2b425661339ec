"""
Edge registry for a playback session.

A registry is a snapshot of the edge pool returned by the discovery service,
together with the viewer's geolocation. Snapshots are never merged: a refresh
builds a new registry and the owning session swaps its reference. Within one
snapshot, edges are mutated in place by the latency prober (latency and
client distance) and by affinity harvesting and failover (session token).

Two discovery response shapes are accepted::

    {"edges": [{"hostname": ..., "datacenter": {...}}, ...], "client": {...}}
    [{"hostname": ...}, ...]          # legacy, no client geolocation
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from edgesteer.datastructures.type_aliases import (
    CountryCode,
    Degrees,
    DistanceKm,
    Hostname,
    LatencyMs,
    SessionToken,
)

from .errors import DiscoveryError
from .geo import GeographicCoordinate


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """Viewer geolocation reported by the discovery service."""

    latitude: Degrees | None = None
    longitude: Degrees | None = None
    country_code: CountryCode | None = None

    @property
    def coordinates(self) -> GeographicCoordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeographicCoordinate(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class DatacenterInfo:
    """Location of the facility hosting an edge."""

    latitude: Degrees | None = None
    longitude: Degrees | None = None
    country_code: CountryCode | None = None

    @property
    def coordinates(self) -> GeographicCoordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeographicCoordinate(self.latitude, self.longitude)


@dataclass(slots=True)
class Edge:
    """A CDN point of presence able to serve the stream."""

    hostname: Hostname
    datacenter: DatacenterInfo | None = None
    latency_ms: LatencyMs | None = None
    client_distance_km: DistanceKm | None = None
    session_token: SessionToken | None = None
    _distance_resolved: bool = field(default=False, repr=False, compare=False)

    @property
    def is_alive(self) -> bool:
        return self.latency_ms is not None

    def resolve_client_distance(self, client: ClientInfo | None) -> DistanceKm | None:
        """Compute the distance to the viewer once per snapshot.

        The first call settles the value: if either coordinate set is missing
        the distance stays None for the rest of this snapshot.
        """
        if self._distance_resolved or self.client_distance_km is not None:
            return self.client_distance_km
        self._distance_resolved = True

        client_coordinates = client.coordinates if client is not None else None
        dc_coordinates = (
            self.datacenter.coordinates if self.datacenter is not None else None
        )
        if client_coordinates is None or dc_coordinates is None:
            return None

        self.client_distance_km = client_coordinates.distance_to(dc_coordinates)
        return self.client_distance_km

    def matches_host(self, host: Hostname | None) -> bool:
        return host is not None and self.hostname.lower() == host.lower()


@dataclass(frozen=True, slots=True)
class EdgeRegistry:
    """Ordered snapshot of the edge pool plus the viewer's location."""

    edges: tuple[Edge, ...] = ()
    client: ClientInfo | None = None

    def __iter__(self) -> Iterator[Edge]:
        return iter(self.edges)

    def __len__(self) -> int:
        return len(self.edges)

    def find(self, host: Hostname | None) -> Edge | None:
        for edge in self.edges:
            if edge.matches_host(host):
                return edge
        return None

    def alive_edges(self) -> tuple[Edge, ...]:
        return tuple(edge for edge in self.edges if edge.is_alive)

    def resolve_distances(self) -> None:
        for edge in self.edges:
            edge.resolve_client_distance(self.client)

    def reset_session_tokens(self) -> int:
        """Forget every edge's session token; returns how many were set."""
        cleared = 0
        for edge in self.edges:
            if edge.session_token is not None:
                cleared += 1
            edge.session_token = None
        return cleared


def load_registry(discovery_response: str | bytes | Any) -> EdgeRegistry:
    """Parse a discovery response into a new registry.

    Accepts raw JSON text/bytes or an already decoded value. Raises
    ``DiscoveryError`` for malformed JSON or an unrecognised shape.
    """
    if isinstance(discovery_response, (str, bytes, bytearray)):
        try:
            payload = json.loads(discovery_response)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DiscoveryError(f"Malformed discovery response: {e}") from e
    else:
        payload = discovery_response

    client: ClientInfo | None = None
    if isinstance(payload, list):
        edge_descriptors = payload
    elif isinstance(payload, Mapping):
        edge_descriptors = payload.get("edges")
        if not isinstance(edge_descriptors, list):
            raise DiscoveryError("Discovery response has no 'edges' list")
        client = _parse_client(payload.get("client"))
    else:
        raise DiscoveryError(
            f"Unsupported discovery response type: {type(payload).__name__}"
        )

    edges: list[Edge] = []
    seen: set[str] = set()
    for descriptor in edge_descriptors:
        edge = _parse_edge(descriptor)
        key = edge.hostname.lower()
        if key in seen:
            logger.warning(f"Ignoring duplicate edge {edge.hostname}")
            continue
        seen.add(key)
        edges.append(edge)

    logger.debug(
        f"Loaded {len(edges)} edges (client geolocation: {client is not None})"
    )
    return EdgeRegistry(edges=tuple(edges), client=client)


def _parse_edge(descriptor: Any) -> Edge:
    if not isinstance(descriptor, Mapping):
        raise DiscoveryError(f"Edge descriptor is not an object: {descriptor!r}")
    hostname = descriptor.get("hostname")
    if not isinstance(hostname, str) or not hostname:
        raise DiscoveryError(f"Edge descriptor without hostname: {descriptor!r}")

    datacenter = None
    raw_dc = descriptor.get("datacenter")
    if isinstance(raw_dc, Mapping):
        datacenter = DatacenterInfo(
            latitude=_as_float(raw_dc.get("latitude")),
            longitude=_as_float(raw_dc.get("longitude")),
            country_code=_as_country(
                raw_dc.get("countryCode", raw_dc.get("country_code"))
            ),
        )
    return Edge(hostname=hostname, datacenter=datacenter)


def _parse_client(raw: Any) -> ClientInfo | None:
    if not isinstance(raw, Mapping):
        return None
    return ClientInfo(
        latitude=_as_float(raw.get("latitude")),
        longitude=_as_float(raw.get("longitude")),
        country_code=_as_country(raw.get("country_code", raw.get("countryCode"))),
    )


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_country(value: Any) -> CountryCode | None:
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return None
