"""Concurrent latency probing of the edge pool."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from edgesteer.datastructures.type_aliases import DurationSeconds, UrlString

from .config import DEFAULT_PROBE_PATH
from .registry import Edge, EdgeRegistry
from .transport import Fetcher
from .uri import probe_endpoint


@dataclass(frozen=True, slots=True)
class ProbeSummary:
    """Outcome of one probe pass over a registry."""

    total_edges: int
    alive_edges: int
    dead_edges: int
    duration_seconds: DurationSeconds


@dataclass(slots=True)
class LatencyProber:
    """
    Measure round-trip time to every edge's management endpoint.

    Each edge is probed exactly once per pass, all in parallel. A 2xx, 403
    or 404 answer proves the edge is up. Any other status, a timeout or a
    transport failure leaves the edge's latency unset, which marks it dead
    for selection. Failures are logged, never raised.
    """

    fetcher: Fetcher
    timeout_seconds: DurationSeconds = 5.0
    probe_path: str = DEFAULT_PROBE_PATH
    clock: Callable[[], float] = field(default=time.perf_counter)

    def probe_uri(self, edge: Edge) -> UrlString:
        return f"{probe_endpoint(edge.hostname)}{self.probe_path}"

    async def probe_all(self, registry: EdgeRegistry) -> ProbeSummary:
        started = self.clock()
        async with asyncio.TaskGroup() as group:
            for edge in registry:
                group.create_task(self._probe_edge(edge, registry))

        alive = len(registry.alive_edges())
        summary = ProbeSummary(
            total_edges=len(registry),
            alive_edges=alive,
            dead_edges=len(registry) - alive,
            duration_seconds=self.clock() - started,
        )
        logger.info(
            f"Probed {summary.total_edges} edges: {summary.alive_edges} alive, "
            f"{summary.dead_edges} dead in {summary.duration_seconds:.3f}s"
        )
        return summary

    async def _probe_edge(self, edge: Edge, registry: EdgeRegistry) -> None:
        uri = self.probe_uri(edge)
        started = self.clock()
        try:
            response = await asyncio.wait_for(
                self.fetcher.fetch(uri, timeout=self.timeout_seconds),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                f"Probe of {edge.hostname} timed out after {self.timeout_seconds}s"
            )
            return
        except Exception as e:
            logger.warning(f"Probe of {edge.hostname} failed: {e}")
            return

        if not response.proves_reachability:
            logger.warning(
                f"Probe of {edge.hostname} answered HTTP {response.status}; "
                "treating edge as down"
            )
            return

        edge.latency_ms = (self.clock() - started) * 1000.0
        edge.resolve_client_distance(registry.client)
        logger.debug(
            f"Edge {edge.hostname} answered HTTP {response.status} "
            f"in {edge.latency_ms:.1f}ms"
        )
