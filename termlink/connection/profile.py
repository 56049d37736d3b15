"""
Host configuration - what a session connects to.

Hosts are stored as YAML and are read-only to the session manager.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

AUTH_TYPES = ("password", "key", "credential", "none")


@dataclass(frozen=True)
class EnvironmentVariable:
    """Variable exported into the remote shell after connect."""
    key: str
    value: str


@dataclass(frozen=True)
class TerminalBehavior:
    """Per-host terminal flags."""
    sudo_password_autofill: bool = False
    sudo_password: Optional[str] = None
    environment_variables: tuple[EnvironmentVariable, ...] = ()
    startup_snippet_id: Optional[int] = None
    auto_mosh: bool = False
    mosh_command: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> TerminalBehavior:
        """Deserialize from dict, ignoring unknown keys."""
        if not data:
            return cls()
        valid_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        env = filtered.get("environment_variables") or ()
        filtered["environment_variables"] = tuple(
            item if isinstance(item, EnvironmentVariable)
            else EnvironmentVariable(str(item.get("key", "")), str(item.get("value", "")))
            for item in env
        )
        return cls(**filtered)

    def to_dict(self) -> dict:
        return {
            "sudo_password_autofill": self.sudo_password_autofill,
            "sudo_password": self.sudo_password,
            "environment_variables": [
                {"key": e.key, "value": e.value} for e in self.environment_variables
            ],
            "startup_snippet_id": self.startup_snippet_id,
            "auto_mosh": self.auto_mosh,
            "mosh_command": self.mosh_command,
        }


@dataclass(frozen=True)
class HostConfig:
    """
    Connection parameters for one host.

    Immutable for the life of a connection attempt.
    """
    name: str
    ip: str
    username: str = ""
    port: int = 22
    id: Optional[int] = None
    auth_type: str = "password"
    password: Optional[str] = None
    key: Optional[str] = None
    key_password: Optional[str] = None
    credential_id: Optional[int] = None
    initial_path: Optional[str] = None
    execute_command: Optional[str] = None
    terminal: TerminalBehavior = field(default_factory=TerminalBehavior)

    def __post_init__(self):
        if self.auth_type not in AUTH_TYPES:
            raise ValueError(
                f"Unknown auth_type {self.auth_type!r}, expected one of {AUTH_TYPES}"
            )

    @property
    def display_name(self) -> str:
        return self.name or f"{self.username}@{self.ip}"

    @property
    def stored_sudo_password(self) -> Optional[str]:
        """Password used to answer sudo prompts, if any."""
        return self.terminal.sudo_password or self.password

    def with_credentials(
        self,
        password: Optional[str] = None,
        key: Optional[str] = None,
        key_password: Optional[str] = None,
    ) -> HostConfig:
        """Copy of this host carrying user-supplied secrets."""
        auth_type = self.auth_type
        if password:
            auth_type = "password"
        elif key:
            auth_type = "key"
        return replace(
            self,
            password=password,
            key=key,
            key_password=key_password,
            auth_type=auth_type,
        )

    def to_wire(self) -> dict:
        """Host object as the server expects it inside connectToHost."""
        wire = {
            "id": self.id,
            "name": self.name,
            "ip": self.ip,
            "port": self.port,
            "username": self.username,
            "authType": self.auth_type,
            "password": self.password,
            "key": self.key,
            "keyPassword": self.key_password,
            "credentialId": self.credential_id,
            "defaultPath": self.initial_path,
            "terminalConfig": {
                "sudoPasswordAutoFill": self.terminal.sudo_password_autofill,
                "sudoPassword": self.terminal.sudo_password,
                "environmentVariables": [
                    {"key": e.key, "value": e.value}
                    for e in self.terminal.environment_variables
                ],
                "startupSnippetId": self.terminal.startup_snippet_id,
                "autoMosh": self.terminal.auto_mosh,
                "moshCommand": self.terminal.mosh_command,
            },
        }
        return {k: v for k, v in wire.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> HostConfig:
        """Deserialize from dict, ignoring unknown keys."""
        valid_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        filtered["terminal"] = TerminalBehavior.from_dict(data.get("terminal"))
        return cls(**filtered)

    def to_dict(self) -> dict:
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "terminal"
        }
        data["terminal"] = self.terminal.to_dict()
        return data


class HostStore:
    """
    YAML-backed host list.

    File layout:
        hosts:
          - name: web-1
            ip: 10.0.0.5
            username: deploy
            terminal:
              sudo_password_autofill: true
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._hosts: dict[str, HostConfig] = {}
        self._loaded = False

    def load(self) -> None:
        """Read hosts from disk. A missing file is an empty store."""
        self._hosts.clear()
        self._loaded = True
        if not self.path.exists():
            logger.debug(f"No hosts file at {self.path}")
            return

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse {self.path}: {e}, no hosts loaded")
            return

        if not isinstance(data, dict):
            logger.warning(f"Expected a mapping with a 'hosts' key in {self.path}")
            return
        entries = data.get("hosts") or []
        if not isinstance(entries, list):
            logger.warning(f"'hosts' in {self.path} is not a list")
            return

        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping host entry that is not a mapping: {entry!r}")
                continue
            try:
                host = HostConfig.from_dict(entry)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid host entry {entry!r}: {e}")
                continue
            self._hosts[host.name] = host
        logger.debug(f"Loaded {len(self._hosts)} hosts from {self.path}")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def names(self) -> list[str]:
        self._ensure_loaded()
        return sorted(self._hosts)

    def hosts(self) -> list[HostConfig]:
        self._ensure_loaded()
        return [self._hosts[name] for name in sorted(self._hosts)]

    def get(self, name: str) -> Optional[HostConfig]:
        self._ensure_loaded()
        return self._hosts.get(name)

    def add(self, host: HostConfig) -> None:
        self._ensure_loaded()
        self._hosts[host.name] = host

    def save(self) -> None:
        """Write hosts back to YAML."""
        self._ensure_loaded()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"hosts": [h.to_dict() for h in self.hosts()]}
        with open(self.path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
