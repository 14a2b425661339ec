import json
import sys
from collections.abc import Iterator

import click
import pytest
from click.testing import CliRunner
from loguru import logger

from edgesteer.cli import main as cli_main
from tests.fakes import DISCOVERY_URL, MASTER_URI, FakePlayer, ok, probe_url

DISCOVERY = [
    {"hostname": "edge1.example.com"},
    {"hostname": "edge2.example.com"},
]


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    yield
    # The CLI points loguru at the runner's captured stderr.
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def fake_player(monkeypatch: pytest.MonkeyPatch) -> FakePlayer:
    player = FakePlayer(
        routes={
            DISCOVERY_URL: ok(json.dumps(DISCOVERY)),
            probe_url("edge2.example.com"): ok(status=404),
        }
    )

    def _factory(master_uri: str = "", **_: object) -> FakePlayer:
        player.master_uri = master_uri
        return player

    monkeypatch.setattr(cli_main, "HeadlessPlayer", _factory)
    return player


def test_probe_json_output(fake_player: FakePlayer) -> None:
    result = CliRunner().invoke(
        cli_main.cli, ["probe", "--discovery-url", DISCOVERY_URL, "-o", "json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["selected"] == "edge2.example.com"
    assert [edge["hostname"] for edge in payload["edges"]] == [
        "edge1.example.com",
        "edge2.example.com",
    ]
    assert payload["edges"][0]["latency_ms"] is None


def test_probe_table_output(fake_player: FakePlayer) -> None:
    result = CliRunner().invoke(
        cli_main.cli, ["probe", "--discovery-url", DISCOVERY_URL]
    )

    assert result.exit_code == 0, result.output
    assert "edge2.example.com" in result.stdout
    assert "1/2 edges alive" in result.stdout


def test_probe_exits_non_zero_without_live_edge(fake_player: FakePlayer) -> None:
    fake_player.routes.pop(probe_url("edge2.example.com"))

    result = CliRunner().invoke(
        cli_main.cli, ["probe", "--discovery-url", DISCOVERY_URL, "-o", "json"]
    )

    assert result.exit_code == 1


def test_resolve_playlist(fake_player: FakePlayer) -> None:
    result = CliRunner().invoke(
        cli_main.cli, ["resolve", MASTER_URI, "--discovery-url", DISCOVERY_URL]
    )

    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == MASTER_URI.replace(
        "origin.example.com", "edge2.example.com"
    )


def test_load_settings_from_config_file(tmp_path) -> None:
    config = tmp_path / "edgesteer.json"
    config.write_text(json.dumps({"discovery_url": DISCOVERY_URL, "log_level": "DEBUG"}))

    settings = cli_main.load_settings(str(config), None, "https://auth.example.com/")

    assert settings.discovery_url == DISCOVERY_URL
    assert settings.auth_refresh_url == "https://auth.example.com/"
    assert settings.log_level == "DEBUG"


def test_load_settings_requires_discovery_url() -> None:
    with pytest.raises(click.UsageError):
        cli_main.load_settings(None, None)


@pytest.fixture
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[object, bool]]:
    calls: list[tuple[object, bool]] = []

    def _record(settings, *, verbose: bool = False, colorize: bool = False) -> int:
        calls.append((settings, verbose))
        return 0

    monkeypatch.setattr(cli_main, "configure_logging", _record)
    return calls


def test_config_file_drives_logging(
    fake_player: FakePlayer, logging_calls: list, tmp_path
) -> None:
    config = tmp_path / "edgesteer.json"
    config.write_text(
        json.dumps(
            {
                "discovery_url": DISCOVERY_URL,
                "log_level": "warning",
                "debug_scopes": ["prober"],
            }
        )
    )

    result = CliRunner().invoke(
        cli_main.cli, ["probe", "--config", str(config), "-o", "json"]
    )

    assert result.exit_code == 0, result.output
    [(settings, verbose)] = logging_calls
    assert settings.log_level == "WARNING"
    assert settings.debug_scopes == ("prober",)
    assert verbose is False


def test_verbose_flag_reaches_logging(
    fake_player: FakePlayer, logging_calls: list
) -> None:
    result = CliRunner().invoke(
        cli_main.cli,
        ["--verbose", "resolve", MASTER_URI, "--discovery-url", DISCOVERY_URL],
    )

    assert result.exit_code == 0, result.output
    [(_, verbose)] = logging_calls
    assert verbose is True


def test_invalid_config_file_is_a_usage_error(tmp_path) -> None:
    config = tmp_path / "edgesteer.json"
    config.write_text(json.dumps({"log_level": "LOUD"}))

    with pytest.raises(click.UsageError, match="log_level"):
        cli_main.load_settings(str(config), DISCOVERY_URL)
