"""
Edge steering session context.

``EdgeSteeringSession`` owns the current ``EdgeRegistry`` for one playback
session and wires discovery, probing, selection, affinity harvesting and
failover to the host player. A refresh builds and probes a complete new
registry before publishing it with a single reference assignment, so a
resolver running concurrently sees either the old snapshot or the new one,
never a half-probed mix.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from edgesteer.datastructures.type_aliases import UrlString

from .affinity import SessionAffinityTracker
from .config import EdgeSteerSettings
from .errors import DiscoveryError, EdgeRejectedError
from .failover import FailoverCoordinator
from .prober import LatencyProber, ProbeSummary
from .registry import Edge, EdgeRegistry, load_registry
from .selector import EdgeSelector
from .transport import PlayerController
from .uri import rewrite_for_edge


@dataclass(frozen=True, slots=True)
class SessionStatistics:
    """Point-in-time view of a steering session."""

    total_edges: int
    alive_edges: int
    selected_edge: str | None
    tokens_held: int
    harvests_attempted: int
    harvests_succeeded: int
    harvests_skipped: int
    warmups_failed: int
    failovers: int
    tokens_cleared: int
    refreshes_succeeded: int
    refreshes_failed: int
    refreshes_coalesced: int


@dataclass(slots=True)
class EdgeSteeringSession:
    settings: EdgeSteerSettings
    player: PlayerController
    selector: EdgeSelector = field(init=False)
    prober: LatencyProber = field(init=False)
    affinity: SessionAffinityTracker = field(init=False)
    failover: FailoverCoordinator = field(init=False)
    _registry: EdgeRegistry = field(default_factory=EdgeRegistry)
    _attached: bool = False

    def __post_init__(self) -> None:
        self.selector = EdgeSelector(locality_radius_km=self.settings.locality_radius_km)
        self.prober = LatencyProber(
            fetcher=self.player,
            timeout_seconds=self.settings.probe_timeout_seconds,
            probe_path=self.settings.probe_path,
        )
        self.affinity = SessionAffinityTracker(
            fetcher=self.player,
            token_param=self.settings.session_token_param,
            with_credentials=self.settings.with_credentials,
            warm_variant_on_harvest=self.settings.warm_variant_on_harvest,
        )
        self.failover = FailoverCoordinator(
            player=self.player,
            registry=lambda: self._registry,
            resolve_segment=self._resolve_after_failover,
            auth_refresh_url=self.settings.auth_refresh_url,
            auth_signature_param=self.settings.auth_signature_param,
            refresh_timeout_seconds=self.settings.auth_refresh_timeout_seconds,
        )

    @property
    def registry(self) -> EdgeRegistry:
        return self._registry

    def attach(self) -> None:
        """Register the failover handler with the player (idempotent)."""
        if self._attached:
            return
        self.player.on_segment_rejected(self.failover.handle_segment_rejected)
        self._attached = True

    async def discover(self) -> ProbeSummary:
        """Fetch the edge list, probe it, and publish the new registry."""
        if not self.settings.discovery_url:
            raise DiscoveryError("No discovery URL configured")
        try:
            response = await self.player.fetch(
                self.settings.discovery_url,
                with_credentials=self.settings.with_credentials,
            )
        except Exception as e:
            raise DiscoveryError(f"Discovery request failed: {e}") from e
        if not response.ok:
            raise DiscoveryError(f"Discovery request returned HTTP {response.status}")
        return await self.load(response.body)

    async def load(self, discovery_response: str | bytes | object) -> ProbeSummary:
        """Build a registry from a discovery response, probe it, publish it."""
        registry = load_registry(discovery_response)
        summary = await self.prober.probe_all(registry)
        self._registry = registry
        return summary

    def select_edge(self) -> Edge | None:
        return self.selector.select_best(self._registry)

    def resolve_playlist_uri(self, uri: UrlString) -> UrlString:
        """Point a playlist URI at the selected edge (unchanged if none)."""
        return rewrite_for_edge(uri, self.select_edge())

    async def resolve_segment_uri(self, uri: UrlString) -> UrlString:
        """Point a segment URI at the selected edge and its session.

        Segments are only moved to an edge once that edge's session token is
        known; until then the original URI is returned.
        """
        try:
            return await self._resolve_segment(uri)
        except EdgeRejectedError as e:
            logger.warning(f"{e}; starting failover")
            return await self.failover.handle_segment_rejected(e.uri, retry_uri=uri)

    async def _resolve_after_failover(self, uri: UrlString) -> UrlString:
        try:
            return await self._resolve_segment(uri)
        except EdgeRejectedError as e:
            logger.error(f"{e} again after failover; using original URI")
            return uri

    async def _resolve_segment(self, uri: UrlString) -> UrlString:
        edge = self.select_edge()
        if edge is None:
            return uri
        await self.affinity.ensure_token(edge, self.player.current_master_uri())
        if edge.session_token is None:
            return uri
        return rewrite_for_edge(
            uri, edge, token_param=self.settings.session_token_param
        )

    def statistics(self) -> SessionStatistics:
        registry = self._registry
        selected = self.select_edge()
        affinity = self.affinity.statistics
        failover = self.failover.statistics
        return SessionStatistics(
            total_edges=len(registry),
            alive_edges=len(registry.alive_edges()),
            selected_edge=selected.hostname if selected else None,
            tokens_held=sum(1 for edge in registry if edge.session_token is not None),
            harvests_attempted=affinity.harvests_attempted,
            harvests_succeeded=affinity.harvests_succeeded,
            harvests_skipped=affinity.harvests_skipped,
            warmups_failed=affinity.warmups_failed,
            failovers=failover.failovers,
            tokens_cleared=failover.tokens_cleared,
            refreshes_succeeded=failover.refreshes_succeeded,
            refreshes_failed=failover.refreshes_failed,
            refreshes_coalesced=failover.refreshes_coalesced,
        )

    async def close(self) -> None:
        await self.failover.close()
