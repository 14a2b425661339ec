"""
URI rewriting primitives for edge steering.

Playlist and segment URIs are rewritten so that the player fetches from the
selected edge. All operations work on the raw text: nothing is decoded or
re-encoded, so the parts of a URI that are not being replaced come back out
byte-for-byte identical.

``StreamURI`` is the structured form; the module-level functions are thin
string-in/string-out wrappers around it for callers that only hold text.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from edgesteer.datastructures.type_aliases import (
    Hostname,
    PortString,
    QueryKey,
    QueryValue,
    UrlString,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .registry import Edge

SCHEME_SEPARATOR = "://"
PROBE_LABEL_SUFFIX = "-query"


@dataclass(frozen=True, slots=True)
class StreamURI:
    """Structured view of an absolute or relative URI.

    ``None`` means the component is absent, while an empty string means it is
    present but empty (``"https://h/p?"`` has an empty query). Keeping the two
    apart is what makes ``parse(text).render() == text`` hold for any input.
    """

    scheme: str | None
    userinfo: str | None
    host: Hostname | None
    port: PortString | None
    path: str
    query: str | None
    fragment: str | None

    @classmethod
    def parse(cls, text: UrlString) -> StreamURI:
        remainder = text
        scheme: str | None = None
        userinfo: str | None = None
        host: str | None = None
        port: str | None = None

        scheme_end = text.find(SCHEME_SEPARATOR)
        if scheme_end != -1:
            scheme = text[:scheme_end]
            rest = text[scheme_end + len(SCHEME_SEPARATOR) :]
            authority_end = len(rest)
            for delimiter in ("/", "?", "#"):
                index = rest.find(delimiter)
                if index != -1:
                    authority_end = min(authority_end, index)
            authority = rest[:authority_end]
            remainder = rest[authority_end:]

            if "@" in authority:
                userinfo, authority = authority.rsplit("@", 1)
            host, port = _split_host_port(authority)

        fragment: str | None = None
        if "#" in remainder:
            remainder, fragment = remainder.split("#", 1)
        query: str | None = None
        if "?" in remainder:
            remainder, query = remainder.split("?", 1)

        return cls(
            scheme=scheme,
            userinfo=userinfo,
            host=host,
            port=port,
            path=remainder,
            query=query,
            fragment=fragment,
        )

    def render(self) -> UrlString:
        parts: list[str] = []
        if self.scheme is not None:
            parts.append(self.scheme)
            parts.append(SCHEME_SEPARATOR)
            if self.userinfo is not None:
                parts.append(f"{self.userinfo}@")
            parts.append(self.host or "")
            if self.port is not None:
                parts.append(f":{self.port}")
        parts.append(self.path)
        if self.query is not None:
            parts.append(f"?{self.query}")
        if self.fragment is not None:
            parts.append(f"#{self.fragment}")
        return "".join(parts)

    def __str__(self) -> str:
        return self.render()

    @property
    def is_absolute(self) -> bool:
        return self.scheme is not None

    def with_host(self, host: Hostname) -> StreamURI:
        """Replace the host, leaving port, path and query untouched.

        Relative URIs have no host to replace and are returned as-is.
        """
        if not self.is_absolute:
            return self
        return replace(self, host=host)

    def without_port(self) -> StreamURI:
        return replace(self, port=None)

    def query_pairs(self) -> list[tuple[QueryKey, QueryValue | None]]:
        """Raw ``(key, value)`` pairs in order; ``value`` is None for bare keys."""
        if not self.query:
            return []
        pairs: list[tuple[QueryKey, QueryValue | None]] = []
        for piece in self.query.split("&"):
            key, sep, value = piece.partition("=")
            pairs.append((key, value if sep else None))
        return pairs

    def param(self, key: QueryKey) -> QueryValue | None:
        """Raw value of the first ``key=value`` pair, or None when absent."""
        for pair_key, value in self.query_pairs():
            if pair_key == key and value is not None:
                return value
        return None

    def with_param(self, key: QueryKey, value: QueryValue) -> StreamURI:
        """Replace the value of the first ``key=`` pair; no-op if absent."""
        if not self.query:
            return self
        pieces = self.query.split("&")
        for index, piece in enumerate(pieces):
            pair_key, sep, _ = piece.partition("=")
            if pair_key == key and sep:
                pieces[index] = f"{key}={value}"
                return replace(self, query="&".join(pieces))
        return self


def _split_host_port(authority: str) -> tuple[Hostname, PortString | None]:
    if authority.startswith("["):
        closing = authority.find("]")
        if closing != -1:
            host = authority[: closing + 1]
            after = authority[closing + 1 :]
            if after.startswith(":"):
                return host, after[1:]
            return host, None
    if ":" in authority:
        host, port = authority.rsplit(":", 1)
        return host, port
    return authority, None


def hostname(uri: UrlString) -> Hostname | None:
    """Host part of ``uri`` without the port, or None for relative URIs."""
    return StreamURI.parse(uri).host


def port(uri: UrlString) -> PortString | None:
    return StreamURI.parse(uri).port


def strip_port(uri: UrlString) -> UrlString:
    parsed = StreamURI.parse(uri)
    if parsed.port is None:
        return uri
    return parsed.without_port().render()


def replace_hostname(uri: UrlString, new_host: Hostname) -> UrlString:
    return StreamURI.parse(uri).with_host(new_host).render()


def query_param(uri: UrlString, key: QueryKey) -> QueryValue | None:
    return StreamURI.parse(uri).param(key)


def replace_query_param(uri: UrlString, key: QueryKey, value: QueryValue) -> UrlString:
    parsed = StreamURI.parse(uri)
    updated = parsed.with_param(key, value)
    if updated is parsed:
        return uri
    return updated.render()


def find_param(text: str, key: QueryKey) -> QueryValue | None:
    """Extract ``key=value`` from arbitrary text such as a response body.

    The value runs up to the next ``&``, whitespace or end of text. Returns
    None when the key does not appear or its value is empty.
    """
    needle = f"{key}="
    start = text.find(needle)
    if start == -1:
        return None
    start += len(needle)
    end = start
    while end < len(text) and text[end] != "&" and not text[end].isspace():
        end += 1
    value = text[start:end]
    return value or None


def same_host(left: Hostname | None, right: Hostname | None) -> bool:
    if left is None or right is None:
        return False
    return left.lower() == right.lower()


def probe_endpoint(host: Hostname) -> UrlString:
    """Management endpoint base for an edge.

    ``edge1.example.com`` becomes ``https://edge1-query.example.com``; a
    hostname without a dot is used unsuffixed.
    """
    label, sep, rest = host.partition(".")
    if not sep:
        return f"https://{host}"
    return f"https://{label}{PROBE_LABEL_SUFFIX}.{rest}"


def rewrite_for_edge(
    uri: UrlString,
    edge: Edge | None,
    *,
    token_param: QueryKey | None = None,
) -> UrlString:
    """Point ``uri`` at ``edge``.

    With no edge the original URI is returned unchanged. When ``token_param``
    is given and the edge holds a session token, that parameter's value is
    replaced too.
    """
    if edge is None:
        return uri
    parsed = StreamURI.parse(uri)
    rewritten = parsed.with_host(edge.hostname)
    if token_param is not None and edge.session_token is not None:
        rewritten = rewritten.with_param(token_param, edge.session_token)
    if rewritten == parsed:
        return uri
    return rewritten.render()
