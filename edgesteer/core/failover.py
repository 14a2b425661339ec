"""
Recovery after an edge rejects a segment request.

A rejection is taken as evidence that every session token in the pool may
be stale, so all tokens are cleared, not only the offending edge's. The
original request is re-resolved immediately so playback can continue, and
in the background the longer-lived authorization signature on the master
playlist URI is refreshed and a new player session installed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from loguru import logger

from edgesteer.datastructures.type_aliases import (
    AuthSignature,
    DurationSeconds,
    QueryKey,
    UrlString,
)

from .registry import EdgeRegistry
from .transport import PlayerController
from .uri import find_param, hostname, replace_query_param, query_param

RegistryGetter: TypeAlias = Callable[[], EdgeRegistry]
SegmentResolver: TypeAlias = Callable[[UrlString], Awaitable[UrlString]]


@dataclass(slots=True)
class FailoverStatistics:
    failovers: int = 0
    tokens_cleared: int = 0
    refreshes_succeeded: int = 0
    refreshes_failed: int = 0
    refreshes_coalesced: int = 0


@dataclass(slots=True)
class FailoverCoordinator:
    player: PlayerController
    registry: RegistryGetter
    resolve_segment: SegmentResolver
    auth_refresh_url: UrlString | None = None
    auth_signature_param: QueryKey = "wmsAuthSign"
    refresh_timeout_seconds: DurationSeconds = 10.0
    statistics: FailoverStatistics = field(default_factory=FailoverStatistics)
    _refresh_tasks: set[asyncio.Task[None]] = field(default_factory=set)

    async def handle_segment_rejected(
        self, segment_uri: UrlString, *, retry_uri: UrlString | None = None
    ) -> UrlString:
        """Reset affinity pool-wide and return a re-resolved segment URI.

        ``retry_uri`` is the request to re-resolve when it differs from the
        rejected one (a playlist harvest rejected while resolving a segment).
        Rejections that arrive while a signature refresh is running share
        that refresh instead of reloading the player again.
        """
        self.statistics.failovers += 1
        registry = self.registry()

        offending = registry.find(hostname(segment_uri))
        if offending is not None:
            logger.warning(f"Edge {offending.hostname} rejected {segment_uri}")
        else:
            logger.warning(f"Segment rejected by unknown host: {segment_uri}")

        cleared = registry.reset_session_tokens()
        self.statistics.tokens_cleared += cleared
        logger.info(f"Cleared {cleared} session token(s) across {len(registry)} edges")

        if any(not task.done() for task in self._refresh_tasks):
            # One refresh reloads the player; later rejections ride on it.
            self.statistics.refreshes_coalesced += 1
            logger.debug("Authorization refresh already in flight")
        else:
            master_uri = self.player.current_master_uri()
            task = asyncio.create_task(self._refresh_authorization(master_uri))
            self._refresh_tasks.add(task)
            task.add_done_callback(self._refresh_tasks.discard)

        return await self.resolve_segment(retry_uri or segment_uri)

    async def wait_for_refresh(self) -> None:
        """Join any authorization refresh still in flight."""
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._refresh_tasks):
            task.cancel()
        await self.wait_for_refresh()

    async def _refresh_authorization(self, master_uri: UrlString) -> None:
        signature = await self._fetch_signature()
        if signature is None:
            self.statistics.refreshes_failed += 1
            return

        if query_param(master_uri, self.auth_signature_param) is None:
            logger.warning(
                f"Master playlist URI has no {self.auth_signature_param} to refresh"
            )
            self.statistics.refreshes_failed += 1
            return

        new_master_uri = replace_query_param(
            master_uri, self.auth_signature_param, signature
        )
        self.player.install_session(new_master_uri)
        self.statistics.refreshes_succeeded += 1
        logger.info("Installed master playlist session with refreshed signature")

    async def _fetch_signature(self) -> AuthSignature | None:
        if not self.auth_refresh_url:
            logger.warning("No authorization refresh endpoint configured")
            return None
        try:
            response = await asyncio.wait_for(
                self.player.fetch(
                    self.auth_refresh_url,
                    with_credentials=True,
                    timeout=self.refresh_timeout_seconds,
                ),
                timeout=self.refresh_timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                f"Authorization refresh timed out after {self.refresh_timeout_seconds}s"
            )
            return None
        except Exception as e:
            logger.error(f"Authorization refresh failed: {e}")
            return None

        if not response.ok:
            logger.error(f"Authorization refresh returned HTTP {response.status}")
            return None

        signature = find_param(response.text(), self.auth_signature_param)
        if signature is None:
            logger.error(
                f"Authorization refresh response carries no {self.auth_signature_param}"
            )
        return signature
