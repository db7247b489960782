"""Tests for the click CLI against a file-backed JSON store."""

import pytest
from click.testing import CliRunner

from app import cli as cli_module
from app.db.json_gateway import JsonDocumentGateway, JsonGatewaySource


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    path = tmp_path / "store.json"
    monkeypatch.setattr(cli_module, "build_gateway_source", lambda _settings: JsonGatewaySource(path))
    return path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_init_db(runner, store_path):
    result = runner.invoke(cli_module.cli, ["init-db"])
    assert result.exit_code == 0
    assert "Schema ready" in result.output


def test_seed_then_refuse_then_force(runner, store_path):
    result = runner.invoke(cli_module.cli, ["seed"])
    assert result.exit_code == 0
    assert "Seeded 2 sites" in result.output
    assert "manager@demo.com" in result.output

    result = runner.invoke(cli_module.cli, ["seed"])
    assert result.exit_code == 0
    assert "already has data" in result.output

    gw = JsonDocumentGateway(store_path)
    gw.delete_site("site-1002")

    result = runner.invoke(cli_module.cli, ["seed", "--force"])
    assert result.exit_code == 0
    assert "Seeded 2 sites" in result.output
    assert JsonDocumentGateway(store_path).get_site("site-1002") is not None


def test_simulate_reports_each_tick(runner, store_path):
    runner.invoke(cli_module.cli, ["seed"])

    result = runner.invoke(cli_module.cli, ["simulate", "--ticks", "2", "--seed", "7"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert [line.split(":")[0] for line in lines] == ["tick 1", "tick 2"]
    assert all("drifted=5" in line for line in lines)


def test_simulate_rejects_zero_ticks(runner, store_path):
    result = runner.invoke(cli_module.cli, ["simulate", "--ticks", "0"])
    assert result.exit_code != 0
