"""Tests for persisted session settings."""

import json

from termlink.config import SessionSettings, SettingsManager


class TestSessionSettings:

    def test_defaults(self):
        settings = SessionSettings()

        assert settings.connect_timeout == 35.0
        assert settings.auth_timeout == 180.0
        assert settings.heartbeat_interval == 30.0
        assert settings.resize_debounce == 0.14
        assert settings.reconnect_max_attempts == 3
        assert (settings.reconnect_base_delay, settings.reconnect_max_delay) == (2.0, 8.0)
        assert (settings.sudo_cooldown, settings.sudo_reset_ceiling) == (3.0, 15.0)

    def test_from_dict_ignores_unknown_keys(self):
        settings = SessionSettings.from_dict({"connect_timeout": 10, "theme": "dark"})
        assert settings.connect_timeout == 10


class TestSettingsManager:

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = SettingsManager(tmp_path / "config.json")
        assert manager.settings == SessionSettings()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "dir" / "config.json"
        manager = SettingsManager(path)
        manager.settings.server_url = "wss://gw.example/ssh/websocket/"
        manager.save()

        assert json.loads(path.read_text())["server_url"] == "wss://gw.example/ssh/websocket/"
        assert SettingsManager(path).settings.server_url == "wss://gw.example/ssh/websocket/"

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert SettingsManager(path).settings == SessionSettings()

    def test_reset(self, tmp_path):
        manager = SettingsManager(tmp_path / "config.json")
        manager.settings.connect_timeout = 1.0
        assert manager.reset().connect_timeout == 35.0
