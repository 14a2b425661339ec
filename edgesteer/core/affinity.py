"""
Sticky-session token harvesting.

Edges bind segment requests to an edge-side streaming session through a
query parameter (``nimblesessionid``) that the edge mints inside its own
playlist response. The only way to learn it is to fetch the master playlist
from that edge once, read the first variant URI, and keep the token for
every later segment rewrite on that edge.

Per edge: UNSET -> SET on harvest, SET -> UNSET on a pool-wide failover
reset. Nothing else changes a token.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import m3u8
from loguru import logger

from edgesteer.datastructures.type_aliases import (
    Hostname,
    QueryKey,
    SessionToken,
    UrlString,
)

from .errors import EdgeRejectedError
from .registry import Edge
from .transport import Fetcher
from .uri import StreamURI, same_host


@dataclass(slots=True)
class AffinityStatistics:
    harvests_attempted: int = 0
    harvests_succeeded: int = 0
    harvests_skipped: int = 0
    warmups_failed: int = 0


@dataclass(slots=True)
class SessionAffinityTracker:
    fetcher: Fetcher
    token_param: QueryKey = "nimblesessionid"
    with_credentials: bool = False
    warm_variant_on_harvest: bool = True
    statistics: AffinityStatistics = field(default_factory=AffinityStatistics)
    _inflight: dict[Hostname, asyncio.Task[SessionToken | None]] = field(
        default_factory=dict
    )

    async def ensure_token(
        self, edge: Edge, master_src_uri: UrlString
    ) -> SessionToken | None:
        """Make sure ``edge`` carries a session token, harvesting it if needed.

        Returns the token, or None when there is nothing to harvest (the
        master playlist is already served by this edge) or the harvest failed.
        Raises ``EdgeRejectedError`` if the edge refuses the playlist request.
        """
        if edge.session_token is not None:
            return edge.session_token

        master = StreamURI.parse(master_src_uri)
        if same_host(edge.hostname, master.host):
            # The player's own loader already holds this edge's playlist.
            self.statistics.harvests_skipped += 1
            return None

        key = edge.hostname.lower()
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._harvest(edge, master))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _harvest(self, edge: Edge, master: StreamURI) -> SessionToken | None:
        self.statistics.harvests_attempted += 1
        edge_playlist_uri = master.with_host(edge.hostname).render()

        try:
            response = await self.fetcher.fetch(
                edge_playlist_uri, with_credentials=self.with_credentials
            )
        except Exception as e:
            logger.warning(f"Session harvest from {edge.hostname} failed: {e}")
            return None

        if response.is_authorization_rejection:
            raise EdgeRejectedError(response.status, edge_playlist_uri)
        if not response.ok:
            logger.warning(
                f"Session harvest from {edge.hostname} got HTTP {response.status}"
            )
            return None

        variant = self._first_variant(response.text(), edge_playlist_uri)
        if variant is None:
            logger.warning(f"Playlist from {edge.hostname} lists no variants")
            return None

        token = StreamURI.parse(variant.uri).param(self.token_param)
        if token is None:
            logger.warning(
                f"First variant from {edge.hostname} carries no {self.token_param}"
            )
            return None

        edge.session_token = token
        self.statistics.harvests_succeeded += 1
        logger.info(f"Harvested session token for {edge.hostname}")

        if self.warm_variant_on_harvest:
            await self._warm_variant(edge, variant.absolute_uri)
        return token

    @staticmethod
    def _first_variant(content: str, base_uri: UrlString) -> m3u8.Playlist | None:
        try:
            playlist = m3u8.loads(content, uri=base_uri)
        except Exception as e:
            logger.warning(f"Unparseable playlist from {base_uri}: {e}")
            return None
        if not playlist.is_variant or not playlist.playlists:
            return None
        return playlist.playlists[0]

    async def _warm_variant(self, edge: Edge, variant_uri: UrlString) -> None:
        """Request the first variant once so the edge-side session is live."""
        try:
            await self.fetcher.fetch(variant_uri, with_credentials=self.with_credentials)
        except Exception as e:
            self.statistics.warmups_failed += 1
            logger.debug(f"Variant warm-up on {edge.hostname} failed: {e}")
