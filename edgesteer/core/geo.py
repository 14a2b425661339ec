"""Great-circle distance between viewers and edge datacenters."""

from __future__ import annotations

import math
from dataclasses import dataclass

from edgesteer.datastructures.type_aliases import Degrees, DistanceKm

EARTH_RADIUS_KM = 6371.0


def distance_km(
    lat1: Degrees, lon1: Degrees, lat2: Degrees, lon2: Degrees
) -> DistanceKm:
    """
    Calculate great-circle distance between two coordinates using the
    Haversine formula.

    Callers null-check coordinates before calling; this function assumes
    both pairs are known.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(slots=True, frozen=True)
class GeographicCoordinate:
    """Geographic coordinates for distance-based edge selection."""

    latitude: Degrees
    longitude: Degrees

    def distance_to(self, other: GeographicCoordinate) -> DistanceKm:
        """Distance to another coordinate in kilometers."""
        return distance_km(
            self.latitude, self.longitude, other.latitude, other.longitude
        )
