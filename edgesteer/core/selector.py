"""
Edge selection: geography first, then live latency.

Distance to the datacenter is a proxy for locality. Edges hosted in the same
datacenter report the same distance, so once the closest datacenter is close
enough to trust (within the locality radius, or in the viewer's country) the
choice among its edges is made on measured latency, which reflects current
load. This keeps nearby viewers from piling onto one nominally-closest edge.

Without usable geolocation the selector degrades to the lowest-latency live
edge. Dead edges (no measured latency) are never returned.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from loguru import logger

from edgesteer.datastructures.type_aliases import DistanceKm

from .config import DEFAULT_LOCALITY_RADIUS_KM
from .registry import Edge, EdgeRegistry


def _distance_key(edge: Edge) -> tuple[int, float]:
    if edge.client_distance_km is None:
        return (1, math.inf)
    return (0, edge.client_distance_km)


def _latency_key(edge: Edge) -> tuple[int, float]:
    if edge.latency_ms is None:
        return (1, math.inf)
    return (0, edge.latency_ms)


@dataclass(slots=True)
class EdgeSelector:
    locality_radius_km: DistanceKm = DEFAULT_LOCALITY_RADIUS_KM

    def geo_order(self, registry: EdgeRegistry) -> list[Edge]:
        """All edges by ascending client distance, unknown distances last."""
        registry.resolve_distances()
        return sorted(registry.edges, key=_distance_key)

    def latency_order(self, registry: EdgeRegistry) -> list[Edge]:
        """All edges by ascending latency, dead edges last."""
        return sorted(registry.edges, key=_latency_key)

    def select_best(self, registry: EdgeRegistry) -> Edge | None:
        geo_alive = [edge for edge in self.geo_order(registry) if edge.is_alive]

        if geo_alive and registry.client is not None:
            closest = geo_alive[0]
            if self._is_local(closest, registry):
                group = self._datacenter_group(geo_alive)
                chosen = min(group, key=_latency_key)
                logger.debug(
                    f"Selected {chosen.hostname} from {len(group)} edge(s) in the "
                    f"closest datacenter ({closest.client_distance_km}km)"
                )
                return chosen

        for edge in self.latency_order(registry):
            if edge.is_alive:
                logger.debug(f"Selected {edge.hostname} by latency alone")
                return edge
        return None

    def _is_local(self, closest: Edge, registry: EdgeRegistry) -> bool:
        distance = closest.client_distance_km
        if distance is not None and distance <= self.locality_radius_km:
            return True
        client_country = registry.client.country_code if registry.client else None
        dc_country = closest.datacenter.country_code if closest.datacenter else None
        return client_country is not None and client_country == dc_country

    @staticmethod
    def _datacenter_group(geo_alive: list[Edge]) -> list[Edge]:
        """Maximal prefix sharing the closest edge's distance exactly."""
        reference = geo_alive[0].client_distance_km
        group: list[Edge] = []
        for edge in geo_alive:
            if edge.client_distance_km != reference:
                break
            group.append(edge)
        return group
