from edgesteer.core.registry import Edge
from edgesteer.core.uri import (
    StreamURI,
    find_param,
    hostname,
    port,
    probe_endpoint,
    query_param,
    replace_hostname,
    replace_query_param,
    rewrite_for_edge,
    same_host,
    strip_port,
)

SEGMENT = "https://origin.example.com:443/path/seg.ts?nimblesessionid=OLD&x=1"


def test_hostname_excludes_port() -> None:
    assert hostname(SEGMENT) == "origin.example.com"
    assert hostname("https://edge1.example.com/live/a.m3u8") == "edge1.example.com"


def test_hostname_without_path() -> None:
    assert hostname("https://edge1.example.com") == "edge1.example.com"
    assert hostname("https://edge1.example.com?x=1") == "edge1.example.com"


def test_hostname_of_relative_uri_is_none() -> None:
    assert hostname("chunks.m3u8?nimblesessionid=1") is None


def test_port_and_strip_port() -> None:
    assert port(SEGMENT) == "443"
    assert port("https://edge1.example.com/a") is None
    assert strip_port(SEGMENT) == (
        "https://origin.example.com/path/seg.ts?nimblesessionid=OLD&x=1"
    )
    assert strip_port("https://edge1.example.com/a") == "https://edge1.example.com/a"


def test_colon_in_path_is_not_a_port() -> None:
    uri = "https://origin.example.com/live/smil:stream.smil/playlist.m3u8"
    assert port(uri) is None
    assert hostname(uri) == "origin.example.com"


def test_replace_hostname_preserves_port_path_and_query() -> None:
    assert replace_hostname(SEGMENT, "edge2.example.com") == (
        "https://edge2.example.com:443/path/seg.ts?nimblesessionid=OLD&x=1"
    )


def test_replace_hostname_only_touches_authority() -> None:
    uri = "https://cdn.example.com/mirror/cdn.example.com/seg.ts"
    assert replace_hostname(uri, "edge1.example.com") == (
        "https://edge1.example.com/mirror/cdn.example.com/seg.ts"
    )


def test_replace_hostname_on_relative_uri_is_noop() -> None:
    assert replace_hostname("seg.ts?x=1", "edge1.example.com") == "seg.ts?x=1"


def test_query_param_returns_raw_value() -> None:
    assert query_param(SEGMENT, "nimblesessionid") == "OLD"
    assert query_param(SEGMENT, "x") == "1"
    assert query_param("https://h/a?sig=a%2Fb", "sig") == "a%2Fb"
    assert query_param(SEGMENT, "missing") is None


def test_query_param_first_occurrence_wins() -> None:
    assert query_param("https://h/a?k=1&k=2", "k") == "1"


def test_replace_query_param() -> None:
    assert replace_query_param(SEGMENT, "nimblesessionid", "NEW") == (
        "https://origin.example.com:443/path/seg.ts?nimblesessionid=NEW&x=1"
    )


def test_replace_query_param_absent_key_is_noop() -> None:
    assert replace_query_param(SEGMENT, "wmsAuthSign", "SIG") == SEGMENT
    assert replace_query_param("https://h/a", "k", "v") == "https://h/a"


def test_find_param_in_response_body() -> None:
    body = "https://cdn.example.com/v.m3u8?wmsAuthSign=c2VydmVy&x=1\n"
    assert find_param(body, "wmsAuthSign") == "c2VydmVy"
    assert find_param("wmsAuthSign=abc\n", "wmsAuthSign") == "abc"
    assert find_param("nothing here", "wmsAuthSign") is None
    assert find_param("wmsAuthSign=&x=1", "wmsAuthSign") is None


def test_probe_endpoint_suffixes_first_label() -> None:
    assert probe_endpoint("edge1.example.com") == "https://edge1-query.example.com"


def test_probe_endpoint_dotless_hostname() -> None:
    assert probe_endpoint("localhost") == "https://localhost"


def test_same_host_is_case_insensitive() -> None:
    assert same_host("Edge1.Example.com", "edge1.example.com")
    assert not same_host("edge1.example.com", None)


def test_rewrite_for_edge_without_edge_returns_original() -> None:
    assert rewrite_for_edge(SEGMENT, None) is SEGMENT


def test_rewrite_for_edge_injects_session_token() -> None:
    edge = Edge(hostname="edge2.example.com", session_token="NEW")
    assert rewrite_for_edge(SEGMENT, edge, token_param="nimblesessionid") == (
        "https://edge2.example.com:443/path/seg.ts?nimblesessionid=NEW&x=1"
    )


def test_rewrite_for_edge_without_token_param_keeps_query() -> None:
    edge = Edge(hostname="edge2.example.com", session_token="NEW")
    assert rewrite_for_edge(SEGMENT, edge) == (
        "https://edge2.example.com:443/path/seg.ts?nimblesessionid=OLD&x=1"
    )


def test_stream_uri_render_round_trips_raw_text() -> None:
    for text in (
        SEGMENT,
        "https://user:pw@h.example.com:8443/a/b?x=1&y#frag",
        "https://h/p?",
        "https://[::1]:8080/a",
        "chunks.m3u8?nimblesessionid=1",
        "",
    ):
        assert StreamURI.parse(text).render() == text


def test_stream_uri_ipv6_host_and_port() -> None:
    parsed = StreamURI.parse("https://[::1]:8080/a")
    assert parsed.host == "[::1]"
    assert parsed.port == "8080"
