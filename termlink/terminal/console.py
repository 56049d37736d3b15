"""
Line-mode console session for the command line.

Lines typed on stdin are sent as input. Auth challenges and sudo
confirmations are asked on the console.
"""

from __future__ import annotations
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import click
from PyQt6.QtCore import QObject, QCoreApplication, QSocketNotifier, QTimer

from ..config import SessionSettings
from ..connection.profile import HostConfig
from ..errors import AuthChallengeError
from ..session.base import ConnectionState, ChallengeKind, CloseReason
from ..session.manager import SessionConnectionManager
from .controller import TerminalController
from .surface import ConsoleSurface

logger = logging.getLogger(__name__)

# Close reasons that end the CLI with status 0
CLEAN_EXITS = (CloseReason.USER_REQUESTED, CloseReason.SERVER_DISCONNECTED)


class ConsoleSession(QObject):
    """Runs one session against stdin/stdout on a Qt event loop."""

    def __init__(
        self,
        host: HostConfig,
        settings: SessionSettings,
        token: Optional[str] = None,
        stdin: TextIO = None,
        parent: QObject = None,
    ):
        super().__init__(parent)
        self.host = host
        self.exit_code = 0
        self._stdin = stdin or sys.stdin

        self.manager = SessionConnectionManager.for_qt(
            settings,
            parent=self,
            token_provider=(lambda: token) if token else None,
        )
        self.controller = TerminalController(ConsoleSurface(), parent=self)
        self.controller.attach_session(self.manager)

        self.controller.session_state_changed.connect(self._on_state_changed)
        self.controller.auth_challenge.connect(self._on_auth_challenge)
        self.controller.reconnect_scheduled.connect(self._on_reconnect_scheduled)
        self.controller.sudo_confirmation_requested.connect(self._on_sudo_prompt)
        self.controller.notice.connect(self._on_notice)
        self.controller.session_closed.connect(self._on_closed)

        self._notifier = QSocketNotifier(
            self._stdin.fileno(), QSocketNotifier.Type.Read, self
        )
        self._notifier.activated.connect(self._on_stdin)

    def start(self) -> None:
        self.controller.connect_host(self.host)

    def _on_stdin(self, *args) -> None:
        line = self._stdin.readline()
        if not line:
            logger.debug("stdin closed")
            self._notifier.setEnabled(False)
            self.manager.disconnect()
            return
        self.controller.send_input(line)

    def _on_state_changed(self, state: ConnectionState, message: str) -> None:
        if state == ConnectionState.CONNECTED:
            click.echo(f"Connected to {self.host.display_name}", err=True)
        elif state == ConnectionState.CONNECTING:
            logger.info(f"Connecting to {self.host.display_name} {message}")

    def _on_reconnect_scheduled(self, attempt: int, max_attempts: int, delay: float) -> None:
        click.echo(
            f"Connection lost, reconnecting in {delay:.0f}s "
            f"(attempt {attempt}/{max_attempts})",
            err=True,
        )

    def _on_notice(self, level: str, message: str) -> None:
        click.echo(f"[{level}] {message}", err=True)

    def _on_auth_challenge(self, kind: str, prompt: str) -> None:
        # Prompting blocks; let the manager finish dispatching first
        QTimer.singleShot(0, lambda: self._prompt_challenge(ChallengeKind(kind), prompt))

    def _prompt_challenge(self, kind: ChallengeKind, prompt: str) -> None:
        pending = self.manager.pending_challenge
        if pending is None or pending.kind is not kind:
            logger.debug(f"{kind.value} challenge no longer open, not prompting")
            return
        self._notifier.setEnabled(False)
        try:
            self._answer_challenge(kind, prompt)
        except (click.Abort, EOFError, KeyboardInterrupt):
            self.manager.cancel_auth()
        except AuthChallengeError as e:
            logger.warning(f"Could not answer challenge: {e}")
        finally:
            self._notifier.setEnabled(True)

    def _answer_challenge(self, kind: ChallengeKind, prompt: str) -> None:
        if kind == ChallengeKind.KEYBOARD_INTERACTIVE:
            # Answered through the terminal stream itself
            click.echo(prompt, err=True)
            return

        if kind == ChallengeKind.CREDENTIALS:
            click.echo(prompt, err=True)
            password = getpass.getpass("Password (leave empty to use a key file): ")
            if password:
                self.manager.submit_credentials(password=password)
                return
            key_path = click.prompt("Private key file", type=click.Path(exists=True, dir_okay=False))
            key_password = getpass.getpass("Key passphrase (optional): ") or None
            self.manager.submit_credentials(
                ssh_key=Path(key_path).read_text(), key_password=key_password
            )
            return

        code = getpass.getpass(f"{prompt}: ")
        if not code:
            self.manager.cancel_auth()
            return
        self.manager.submit_auth(code)

    def _on_sudo_prompt(self, prompt: str) -> None:
        QTimer.singleShot(0, self._confirm_sudo)

    def _confirm_sudo(self) -> None:
        if not self.manager.is_connected:
            return
        self._notifier.setEnabled(False)
        try:
            if click.confirm(f"\nSend stored sudo password for {self.host.display_name}?", default=True):
                self.manager.confirm_sudo_password()
            else:
                self.manager.decline_sudo_password()
        except click.Abort:
            self.manager.decline_sudo_password()
        finally:
            self._notifier.setEnabled(True)

    def _on_closed(self, reason: CloseReason, message: str) -> None:
        self._notifier.setEnabled(False)
        self.exit_code = 0 if reason in CLEAN_EXITS else 1
        if message:
            click.echo(f"Session closed: {message}", err=True)
        app = QCoreApplication.instance()
        if app is not None:
            app.exit(self.exit_code)


def run_console_session(
    host: HostConfig,
    settings: SessionSettings,
    token: Optional[str] = None,
) -> int:
    """Connect to host and block until the session closes. Returns exit status."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    session = ConsoleSession(host, settings, token)
    QTimer.singleShot(0, session.start)
    try:
        app.exec()
    except KeyboardInterrupt:
        session.manager.disconnect()
    return session.exit_code
