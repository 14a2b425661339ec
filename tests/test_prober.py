import asyncio
import time

import pytest

from edgesteer.core.errors import FetchTimeoutError
from edgesteer.core.prober import LatencyProber
from edgesteer.core.registry import load_registry
from tests.fakes import FakePlayer, Hang, ok, probe_url

EDGES = [
    {"hostname": "edge1.example.com"},
    {"hostname": "edge2.example.com"},
    {"hostname": "edge3.example.com"},
    {"hostname": "edge4.example.com"},
]


def test_probe_uri_uses_query_host_and_management_path(player: FakePlayer) -> None:
    prober = LatencyProber(fetcher=player)
    registry = load_registry([{"hostname": "edge1.example.com"}, {"hostname": "solo"}])
    assert prober.probe_uri(registry.edges[0]) == (
        "https://edge1-query.example.com/manage/server_status"
    )
    assert prober.probe_uri(registry.edges[1]) == "https://solo/manage/server_status"


@pytest.mark.asyncio
async def test_success_forbidden_and_not_found_mark_edge_alive(
    player: FakePlayer,
) -> None:
    player.routes = {
        probe_url("edge1.example.com"): ok(),
        probe_url("edge2.example.com"): ok(status=403),
        probe_url("edge3.example.com"): ok(status=404),
        probe_url("edge4.example.com"): ok(status=204),
    }
    registry = load_registry(EDGES)

    summary = await LatencyProber(fetcher=player).probe_all(registry)

    assert summary.alive_edges == 4
    assert summary.dead_edges == 0
    assert all(edge.latency_ms is not None for edge in registry)
    assert all(edge.latency_ms >= 0 for edge in registry)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 500, 502, 503])
async def test_other_statuses_mark_edge_dead(player: FakePlayer, status: int) -> None:
    player.routes = {
        probe_url("edge1.example.com"): ok(status=status),
        probe_url("edge2.example.com"): ok(),
    }
    registry = load_registry(EDGES[:2])

    summary = await LatencyProber(fetcher=player).probe_all(registry)

    assert [edge.is_alive for edge in registry] == [False, True]
    assert summary.dead_edges == 1
    assert registry.edges[0].client_distance_km is None


@pytest.mark.asyncio
async def test_failures_leave_latency_unset(player: FakePlayer) -> None:
    player.routes = {
        probe_url("edge1.example.com"): ok(),
        probe_url("edge2.example.com"): FetchTimeoutError("timed out"),
        probe_url("edge3.example.com"): RuntimeError("boom"),
        # edge4 has no route: the fake refuses the connection
    }
    registry = load_registry(EDGES)

    summary = await LatencyProber(fetcher=player).probe_all(registry)

    assert summary.alive_edges == 1
    assert summary.dead_edges == 3
    assert [edge.is_alive for edge in registry] == [True, False, False, False]


@pytest.mark.asyncio
async def test_hanging_probe_times_out_without_delaying_others(
    player: FakePlayer,
) -> None:
    player.routes = {
        probe_url("edge1.example.com"): Hang(),
        probe_url("edge2.example.com"): ok(),
        probe_url("edge3.example.com"): Hang(),
        probe_url("edge4.example.com"): ok(status=404),
    }
    registry = load_registry(EDGES)
    prober = LatencyProber(fetcher=player, timeout_seconds=0.2)

    started = time.perf_counter()
    summary = await prober.probe_all(registry)
    elapsed = time.perf_counter() - started

    assert [edge.is_alive for edge in registry] == [False, True, False, True]
    assert summary.alive_edges == 2
    # Probes run in parallel: two hanging edges cost one timeout, not two.
    assert elapsed < 0.35


@pytest.mark.asyncio
async def test_probes_are_issued_once_each(player: FakePlayer) -> None:
    player.routes = {probe_url(edge["hostname"]): ok() for edge in EDGES}
    registry = load_registry(EDGES)

    await LatencyProber(fetcher=player).probe_all(registry)

    assert sorted(uri for uri, _ in player.fetched) == sorted(player.routes)


@pytest.mark.asyncio
async def test_latency_measured_with_clock(player: FakePlayer) -> None:
    ticks = iter([0.0, 10.0, 10.250, 20.0])
    player.routes = {probe_url("edge1.example.com"): ok()}
    registry = load_registry([{"hostname": "edge1.example.com"}])
    prober = LatencyProber(fetcher=player, clock=lambda: next(ticks))

    summary = await prober.probe_all(registry)

    assert registry.edges[0].latency_ms == pytest.approx(250.0)
    assert summary.duration_seconds == pytest.approx(20.0)


@pytest.mark.asyncio
async def test_probe_resolves_client_distance(player: FakePlayer) -> None:
    player.routes = {probe_url("edge1.example.com"): ok()}
    registry = load_registry(
        {
            "edges": [
                {
                    "hostname": "edge1.example.com",
                    "datacenter": {"latitude": 48.8566, "longitude": 2.3522},
                }
            ],
            "client": {"latitude": 51.5074, "longitude": -0.1278},
        }
    )

    await LatencyProber(fetcher=player).probe_all(registry)

    assert registry.edges[0].client_distance_km == pytest.approx(343.5, abs=1.0)


@pytest.mark.asyncio
async def test_probe_all_does_not_leak_cancelled_tasks(player: FakePlayer) -> None:
    player.routes = {probe_url("edge1.example.com"): Hang()}
    registry = load_registry([{"hostname": "edge1.example.com"}])

    await LatencyProber(fetcher=player, timeout_seconds=0.05).probe_all(registry)

    pending = [
        task
        for task in asyncio.all_tasks()
        if task is not asyncio.current_task() and not task.done()
    ]
    assert pending == []
