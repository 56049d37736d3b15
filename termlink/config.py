"""
Persistent session settings for termlink.
Stored in ~/.termlink/config.json
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_DIR = Path.home() / ".termlink"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"
DEFAULT_HOSTS_FILE = DEFAULT_CONFIG_DIR / "hosts.yaml"


@dataclass
class SessionSettings:
    """
    Timing and endpoint settings for terminal sessions.

    All durations are in seconds.
    """
    # Endpoint
    server_url: str = "ws://127.0.0.1:30002/ssh/websocket/"

    # Handshake
    connect_timeout: float = 35.0
    auth_timeout: float = 180.0
    keyboard_interactive_timeout: float = 180.0
    totp_attempts: int = 3

    # Connected
    heartbeat_interval: float = 30.0
    post_connect_delay: float = 0.1
    resize_debounce: float = 0.14

    # Reconnect
    reconnect_base_delay: float = 2.0
    reconnect_max_delay: float = 8.0
    reconnect_max_attempts: int = 3

    # Sudo auto-fill guard
    sudo_cooldown: float = 3.0
    sudo_reset_ceiling: float = 15.0

    hosts_file: str = str(DEFAULT_HOSTS_FILE)

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SessionSettings:
        """Deserialize from dict, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)


class SettingsManager:
    """
    Manages loading and saving session settings.

    Usage:
        manager = SettingsManager()
        settings = manager.settings

        settings.connect_timeout = 20.0
        manager.save()
    """

    def __init__(self, config_path: Path = None):
        self._config_path = config_path or DEFAULT_CONFIG_FILE
        self._settings: Optional[SessionSettings] = None

    @property
    def settings(self) -> SessionSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> SessionSettings:
        """Load settings from disk, or return defaults."""
        if self._config_path.exists():
            try:
                data = json.loads(self._config_path.read_text())
                logger.debug(f"Loaded settings from {self._config_path}")
                return SessionSettings.from_dict(data)
            except (json.JSONDecodeError, TypeError, AttributeError) as e:
                logger.warning(f"Failed to load settings: {e}, using defaults")
                return SessionSettings()
        else:
            logger.debug("No settings file found, using defaults")
            return SessionSettings()

    def save(self) -> None:
        """Save current settings to disk."""
        if self._settings is None:
            return

        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._config_path.write_text(
                json.dumps(self._settings.to_dict(), indent=2)
            )
            logger.debug(f"Saved settings to {self._config_path}")
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")

    def reset(self) -> SessionSettings:
        """Reset to default settings (does not save automatically)."""
        self._settings = SessionSettings()
        return self._settings


# Global instance for convenience
_manager: Optional[SettingsManager] = None


def get_settings_manager() -> SettingsManager:
    """Get the global settings manager instance."""
    global _manager
    if _manager is None:
        _manager = SettingsManager()
    return _manager


def get_settings() -> SessionSettings:
    """Convenience function to get current settings."""
    return get_settings_manager().settings


def save_settings() -> None:
    """Convenience function to save current settings."""
    get_settings_manager().save()
