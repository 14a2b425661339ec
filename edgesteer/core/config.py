from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from edgesteer.datastructures.type_aliases import (
    DistanceKm,
    DurationSeconds,
    QueryKey,
    UrlString,
)

DEFAULT_PROBE_PATH = "/manage/server_status"
DEFAULT_LOCALITY_RADIUS_KM = 1700.0
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class EdgeSteerSettings:
    """Edge steering configuration settings."""

    discovery_url: UrlString | None = None
    auth_refresh_url: UrlString | None = None
    probe_path: str = DEFAULT_PROBE_PATH
    probe_timeout_seconds: DurationSeconds = 5.0
    auth_refresh_timeout_seconds: DurationSeconds = 10.0
    locality_radius_km: DistanceKm = DEFAULT_LOCALITY_RADIUS_KM
    session_token_param: QueryKey = "nimblesessionid"
    auth_signature_param: QueryKey = "wmsAuthSign"
    with_credentials: bool = False
    warm_variant_on_harvest: bool = True
    log_level: str = "INFO"
    debug_scopes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.probe_timeout_seconds <= 0:
            raise ValueError("probe_timeout_seconds must be positive")
        if self.auth_refresh_timeout_seconds <= 0:
            raise ValueError("auth_refresh_timeout_seconds must be positive")
        if self.locality_radius_km < 0:
            raise ValueError("locality_radius_km must not be negative")
        if not self.probe_path.startswith("/"):
            self.probe_path = f"/{self.probe_path}"
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        self.debug_scopes = tuple(self.debug_scopes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EdgeSteerSettings":
        """Build settings from a decoded JSON config file."""
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        return cls(**dict(data))
