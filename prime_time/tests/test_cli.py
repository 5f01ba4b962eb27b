from __future__ import annotations

import json
import socket
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

import prime_time.server.cli as cli_module
from prime_time.core.config import ServerSettings
from prime_time.server.cli import prime_time_cli
from prime_time.server.listener import PrimeTimeServer


@pytest.fixture
def server() -> Iterator[PrimeTimeServer]:
    srv = PrimeTimeServer(settings=ServerSettings(host="127.0.0.1", port=0))
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


@pytest.fixture
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    cfg = tmp_path / "config.json"
    monkeypatch.setenv("PRIME_TIME_CONFIG_PATH", str(cfg))
    monkeypatch.setattr(cli_module.signal, "signal", lambda *_a, **_kw: None)
    monkeypatch.setattr(cli_module, "configure_logging", lambda _settings: None)
    return cfg


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(prime_time_cli, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output
    assert "check" in result.output


def test_check_prints_answers(server: PrimeTimeServer) -> None:
    host, port = server.address
    result = CliRunner().invoke(
        prime_time_cli,
        ["check", "--host", host, "--port", str(port), "7", "8", "7.0"],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [d["number"] for d in data] == ["7", "8", "7.0"]
    assert [d["prime"] for d in data] == [True, False, True]


def test_check_negative_number_after_separator(server: PrimeTimeServer) -> None:
    host, port = server.address
    result = CliRunner().invoke(
        prime_time_cli, ["check", "--host", host, "--port", str(port), "--", "-7"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)[0]["prime"] is False


def test_check_exits_nonzero_on_malformed(server: PrimeTimeServer) -> None:
    host, port = server.address
    result = CliRunner().invoke(
        prime_time_cli, ["check", "--host", host, "--port", str(port), '"5"']
    )
    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data[0]["ok"] is False
    assert data[0]["raw"] == "malformed"


def test_check_connect_failed() -> None:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    result = CliRunner().invoke(
        prime_time_cli, ["check", "--port", str(port), "--timeout", "1", "3"]
    )
    assert result.exit_code == 1
    assert json.loads(result.output)[0]["error"] == "connect_failed"


def test_serve_rejects_invalid_settings(isolated_config: Path) -> None:
    result = CliRunner().invoke(prime_time_cli, ["serve", "--port", "70000"])
    assert result.exit_code == 2
    assert "Invalid server settings" in result.output


def test_serve_exits_when_port_is_taken(
    isolated_config: Path, server: PrimeTimeServer
) -> None:
    host, port = server.address
    result = CliRunner().invoke(
        prime_time_cli, ["serve", "--host", host, "--port", str(port)]
    )
    assert result.exit_code == 1


def test_serve_reads_config_file(
    isolated_config: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    isolated_config.write_text(
        json.dumps({"server": {"host": "127.0.0.1", "port": 0, "malformed_reply": ""}})
    )
    seen: list[ServerSettings] = []

    class _Recorder:
        def __init__(self, *, settings: ServerSettings) -> None:
            seen.append(settings)

        def request_stop(self) -> None:
            pass

        def serve_forever(self) -> None:
            pass

    monkeypatch.setattr(cli_module, "PrimeTimeServer", _Recorder)
    result = CliRunner().invoke(prime_time_cli, ["serve", "--log-level", "debug"])
    assert result.exit_code == 0, result.output
    assert seen[0].host == "127.0.0.1"
    assert seen[0].malformed_reply == ""
    assert seen[0].log_level == "DEBUG"
