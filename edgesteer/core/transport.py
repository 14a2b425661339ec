"""HTTP transport and player collaborator interfaces."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, TypeAlias

import aiohttp
from loguru import logger

from edgesteer.datastructures.type_aliases import (
    DurationSeconds,
    HttpStatus,
    UrlString,
)

from .errors import FetchError, FetchTimeoutError

AUTHORIZATION_STATUSES = frozenset({401, 403})
# Non-2xx answers that still prove an edge is up and serving.
REACHABLE_ERROR_STATUSES = frozenset({403, 404})

SegmentRejectedHandler: TypeAlias = Callable[[UrlString], Awaitable[UrlString]]


@dataclass(frozen=True, slots=True)
class FetchResponse:
    """HTTP-level response: any status, including rejections."""

    status: HttpStatus
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_authorization_rejection(self) -> bool:
        return self.status in AUTHORIZATION_STATUSES

    @property
    def proves_reachability(self) -> bool:
        return self.ok or self.status in REACHABLE_ERROR_STATUSES

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")


class Fetcher(Protocol):
    async def fetch(
        self,
        uri: UrlString,
        *,
        with_credentials: bool = False,
        timeout: DurationSeconds | None = None,
    ) -> FetchResponse: ...


class PlayerController(Protocol):
    """Host player surface used by edge steering.

    The player owns the active playlist session; edge steering only reads
    the current master URI and asks the player to install a new one.
    """

    def current_master_uri(self) -> UrlString: ...

    def install_session(self, uri: UrlString) -> None: ...

    async def fetch(
        self,
        uri: UrlString,
        *,
        with_credentials: bool = False,
        timeout: DurationSeconds | None = None,
    ) -> FetchResponse: ...

    def on_segment_rejected(self, handler: SegmentRejectedHandler) -> None: ...


@dataclass(slots=True)
class AiohttpTransport:
    """Fetcher backed by a shared ``aiohttp.ClientSession``.

    ``with_credentials`` mirrors the browser flag: cookies collected by the
    session are only kept for credentialed requests.
    """

    default_timeout: DurationSeconds = 10.0
    headers: dict[str, str] = field(default_factory=dict)
    _session: aiohttp.ClientSession | None = None
    _anonymous_session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> AiohttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _session_for(self, with_credentials: bool) -> aiohttp.ClientSession:
        if with_credentials:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(headers=self.headers)
            return self._session
        if self._anonymous_session is None or self._anonymous_session.closed:
            self._anonymous_session = aiohttp.ClientSession(
                headers=self.headers, cookie_jar=aiohttp.DummyCookieJar()
            )
        return self._anonymous_session

    async def fetch(
        self,
        uri: UrlString,
        *,
        with_credentials: bool = False,
        timeout: DurationSeconds | None = None,
    ) -> FetchResponse:
        session = self._session_for(with_credentials)
        total = timeout if timeout is not None else self.default_timeout
        try:
            async with session.get(
                uri, timeout=aiohttp.ClientTimeout(total=total)
            ) as response:
                body = await response.read()
                return FetchResponse(status=response.status, body=body)
        except TimeoutError as e:
            raise FetchTimeoutError(f"GET {uri} timed out after {total}s") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"GET {uri} failed: {e}") from e

    async def close(self) -> None:
        for session in (self._session, self._anonymous_session):
            if session is not None and not session.closed:
                await session.close()
        self._session = None
        self._anonymous_session = None


@dataclass(slots=True)
class HeadlessPlayer:
    """Minimal ``PlayerController`` for command-line use.

    There is no real playback: installing a session just records the new
    master URI, and rejection handlers are kept so callers can trigger them.
    """

    master_uri: UrlString
    transport: AiohttpTransport = field(default_factory=AiohttpTransport)
    installed: list[UrlString] = field(default_factory=list)
    _handlers: list[SegmentRejectedHandler] = field(default_factory=list)

    def current_master_uri(self) -> UrlString:
        return self.master_uri

    def install_session(self, uri: UrlString) -> None:
        logger.info(f"Installing new master playlist session: {uri}")
        self.master_uri = uri
        self.installed.append(uri)

    async def fetch(
        self,
        uri: UrlString,
        *,
        with_credentials: bool = False,
        timeout: DurationSeconds | None = None,
    ) -> FetchResponse:
        return await self.transport.fetch(
            uri, with_credentials=with_credentials, timeout=timeout
        )

    def on_segment_rejected(self, handler: SegmentRejectedHandler) -> None:
        self._handlers.append(handler)

    async def close(self) -> None:
        await self.transport.close()
