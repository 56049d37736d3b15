"""Tests for the termlink command line."""

import json

import pytest
import yaml
from click.testing import CliRunner

import termlink.__main__ as cli_module
import termlink.config as config_module
from termlink.config import SettingsManager
from termlink.__main__ import cli


@pytest.fixture
def config(tmp_path):
    hosts = tmp_path / "hosts.yaml"
    hosts.write_text(yaml.safe_dump({"hosts": [
        {"name": "web-1", "ip": "10.0.0.5", "username": "deploy"},
        {"name": "db-1", "ip": "10.0.0.9", "username": "postgres", "port": 2222},
    ]}))
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"hosts_file": str(hosts)}))
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestHostsCommand:

    def test_table(self, runner, config):
        result = runner.invoke(cli, ["-c", str(config), "hosts"], obj={})

        assert result.exit_code == 0
        assert "web-1" in result.output
        assert "2 host(s)" in result.output

    def test_json(self, runner, config):
        result = runner.invoke(cli, ["--json", "-c", str(config), "hosts"], obj={})

        data = json.loads(result.output)
        assert [h["name"] for h in data] == ["db-1", "web-1"]
        assert data[0]["port"] == 2222


class TestSettingsCommand:

    def test_json(self, runner, config):
        result = runner.invoke(cli, ["--json", "-c", str(config), "settings"], obj={})

        data = json.loads(result.output)
        assert data["connect_timeout"] == 35.0
        assert data["hosts_file"].endswith("hosts.yaml")

    def test_text(self, runner, config):
        result = runner.invoke(cli, ["-c", str(config), "settings"], obj={})
        assert "heartbeat_interval" in result.output

    def test_default_uses_shared_manager(self, runner, config, monkeypatch):
        shared = SettingsManager(config)
        monkeypatch.setattr(config_module, "_manager", shared)

        result = runner.invoke(cli, ["--json", "settings"], obj={})

        assert result.exit_code == 0
        assert json.loads(result.output)["hosts_file"] == shared.settings.hosts_file


class TestConnectCommand:

    def test_unknown_host(self, runner, config):
        result = runner.invoke(cli, ["-c", str(config), "connect", "nope"], obj={})

        assert result.exit_code == 1
        assert "Unknown host: nope" in result.output

    def test_runs_session(self, runner, config, monkeypatch):
        calls = []

        def fake_run(host, settings, token):
            calls.append((host, settings, token))
            return 0

        monkeypatch.setattr(cli_module, "run_console_session", fake_run)
        result = runner.invoke(
            cli,
            ["-c", str(config), "connect", "web-1", "--url", "ws://other/ssh/websocket/"],
            obj={},
            env={"TERMLINK_TOKEN": "jwt-from-env"},
        )

        assert result.exit_code == 0
        host, settings, token = calls[0]
        assert host.ip == "10.0.0.5"
        assert settings.server_url == "ws://other/ssh/websocket/"
        assert token == "jwt-from-env"

    def test_exit_status_propagates(self, runner, config, monkeypatch):
        monkeypatch.setattr(cli_module, "run_console_session", lambda host, settings, token: 1)
        result = runner.invoke(cli, ["-c", str(config), "connect", "web-1", "--token", "t"], obj={})

        assert result.exit_code == 1
