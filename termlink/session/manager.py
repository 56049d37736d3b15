"""
Websocket terminal session - connection lifecycle state machine.

Everything that can change session state arrives as an event on one
queue: socket events, timer expiries and user commands. Socket and timer
events carry the attempt id that was live when they were subscribed or
armed, and events from a superseded attempt are dropped unprocessed.
"""

from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, Callable
from urllib.parse import quote

from PyQt6.QtCore import QObject

from ..config import SessionSettings
from ..connection.profile import HostConfig
from ..errors import AuthChallengeError, ProtocolError
from . import protocol
from .auth import AuthChallengeHandler, PendingChallenge
from .base import (
    Session, ConnectionState, ChallengeKind, CloseReason, SessionEvent,
    DataReceived, StateChanged, AuthChallengeRequired, AuthRetry,
    ReconnectScheduled, Notice, SudoPasswordRequested, SessionClosed,
)
from .protocol import MessageType, ErrorKind, InboundMessage, AUTH_FAILURE_CLOSE_CODE
from .reconnect import ReconnectPolicy
from .resize import ResizeCoordinator
from .scanner import OutputScanner
from .timers import (
    TimerSet, QtTimerSet,
    CONNECT_TIMEOUT, HEARTBEAT, RECONNECT_DELAY, POST_CONNECT,
)
from .transport import (
    Transport, QtWebSocketTransport, TransportEvent,
    TransportOpened, TextReceived, TransportClosed, TransportError,
)

logger = logging.getLogger(__name__)

LIVE_STATES = (
    ConnectionState.CONNECTING,
    ConnectionState.AWAITING_AUTH,
    ConnectionState.CONNECTED,
    ConnectionState.RECONNECTING,
)

CHALLENGE_LABELS = {
    ChallengeKind.TOTP: "Verification code",
    ChallengeKind.PASSWORD: "Password",
    ChallengeKind.KEYBOARD_INTERACTIVE: "Keyboard-interactive",
    ChallengeKind.CREDENTIALS: "Credentials",
}

# States in which the socket of the current attempt is expected to be up
SOCKET_STATES = (
    ConnectionState.CONNECTING,
    ConnectionState.AWAITING_AUTH,
    ConnectionState.CONNECTED,
)


@dataclass
class SessionRecord:
    """One logical session, from connect() to CLOSED."""
    host: HostConfig
    cols: int
    rows: int
    attempt_id: int = 0
    state: ConnectionState = ConnectionState.IDLE
    auth_kind: Optional[ChallengeKind] = None
    close_reason: Optional[CloseReason] = None
    transport: Optional[Transport] = None
    graceful_disconnect: bool = False
    torn_down: bool = False
    credentials: Optional[HostConfig] = None
    activity_logged: bool = False

    @property
    def effective_host(self) -> HostConfig:
        """Host as sent to the server, with any user-supplied secrets."""
        return self.credentials or self.host


# Commands and internal events queued onto the dispatcher

@dataclass
class _Connect:
    host: HostConfig
    cols: int
    rows: int


@dataclass
class _Disconnect:
    pass


@dataclass
class _SubmitCode:
    code: str


@dataclass
class _SubmitCredentials:
    password: Optional[str]
    ssh_key: Optional[str]
    key_password: Optional[str]


@dataclass
class _CancelAuth:
    pass


@dataclass
class _ConfirmSudo:
    pass


@dataclass
class _DeclineSudo:
    pass


@dataclass
class _TimerFired:
    name: str


@dataclass
class _AuthExpired:
    kind: ChallengeKind


class SessionConnectionManager(Session):
    """
    Client side of one interactive terminal session over a websocket.

    Single-threaded: drive it from one event loop. Transports come from
    transport_factory, one per attempt. All waits are named timers in
    the supplied TimerSet.
    """

    def __init__(
        self,
        transport_factory: Callable[[], Transport],
        timers: TimerSet,
        settings: Optional[SessionSettings] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        invalidate_token: Optional[Callable[[], None]] = None,
        activity_logger: Optional[Callable[[HostConfig], None]] = None,
        snippet_provider: Optional[Callable[[int], Optional[str]]] = None,
    ):
        self.settings = settings or SessionSettings()
        self._transport_factory = transport_factory
        self._timers = timers
        self._token_provider = token_provider
        self._invalidate_token = invalidate_token
        self._activity_logger = activity_logger
        self._snippet_provider = snippet_provider

        s = self.settings
        self._reconnect = ReconnectPolicy(
            base_delay=s.reconnect_base_delay,
            max_delay=s.reconnect_max_delay,
            max_attempts=s.reconnect_max_attempts,
        )
        self._auth = AuthChallengeHandler(
            timers,
            timeout=s.auth_timeout,
            keyboard_interactive_timeout=s.keyboard_interactive_timeout,
            totp_attempts=s.totp_attempts,
            on_expired=self._on_challenge_expired,
        )
        self._resize = ResizeCoordinator(timers, self.send, quiet_period=s.resize_debounce)
        self._scanner = OutputScanner(
            timers, cooldown=s.sudo_cooldown, reset_ceiling=s.sudo_reset_ceiling
        )

        self._session: Optional[SessionRecord] = None
        self._attempt_counter = 0
        self._event_handler: Optional[Callable[[SessionEvent], None]] = None

        self._queue: deque = deque()
        self._dispatching = False

        self._handlers = {
            _Connect: self._handle_connect,
            _Disconnect: self._handle_disconnect,
            _SubmitCode: self._handle_submit_code,
            _SubmitCredentials: self._handle_submit_credentials,
            _CancelAuth: self._handle_cancel_auth,
            _ConfirmSudo: self._handle_confirm_sudo,
            _DeclineSudo: self._handle_decline_sudo,
            TransportOpened: self._on_opened,
            TextReceived: self._on_text,
            TransportClosed: self._on_closed,
            TransportError: self._on_error,
            _TimerFired: self._on_timer,
            _AuthExpired: self._on_auth_expired,
        }
        self._message_handlers = {
            MessageType.DATA.value: self._msg_data,
            MessageType.ERROR.value: self._msg_error,
            MessageType.CONNECTED.value: self._msg_connected,
            MessageType.DISCONNECTED.value: self._msg_disconnected,
            MessageType.TOTP_REQUIRED.value: self._msg_totp_required,
            MessageType.TOTP_RETRY.value: self._msg_totp_retry,
            MessageType.PASSWORD_REQUIRED.value: self._msg_password_required,
            MessageType.KEYBOARD_INTERACTIVE_AVAILABLE.value: self._msg_keyboard_interactive,
            MessageType.AUTH_METHOD_NOT_AVAILABLE.value: self._msg_auth_method_not_available,
        }

    @classmethod
    def for_qt(
        cls,
        settings: Optional[SessionSettings] = None,
        parent: QObject = None,
        **kwargs,
    ) -> SessionConnectionManager:
        """Manager wired to QWebSocket and QTimer."""
        return cls(
            transport_factory=lambda: QtWebSocketTransport(parent),
            timers=QtTimerSet(parent),
            settings=settings,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Public interface
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.IDLE
        return self._session.state

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def host(self) -> Optional[HostConfig]:
        return self._session.host if self._session else None

    @property
    def attempt_id(self) -> int:
        return self._session.attempt_id if self._session else 0

    @property
    def auth_kind(self) -> Optional[ChallengeKind]:
        return self._session.auth_kind if self._session else None

    @property
    def close_reason(self) -> Optional[CloseReason]:
        return self._session.close_reason if self._session else None

    @property
    def pending_challenge(self) -> Optional[PendingChallenge]:
        return self._auth.pending

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect.attempts

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return self._reconnect

    def set_event_handler(self, handler: Optional[Callable[[SessionEvent], None]]) -> None:
        """Set callback for session events."""
        self._event_handler = handler

    def connect(self, host: HostConfig, cols: int, rows: int) -> None:
        """
        Start a session to host.

        A no-op while a session to the same host is live. A different host
        supersedes the live session.
        """
        self._post(None, _Connect(host, cols, rows))

    def disconnect(self) -> None:
        """Close the session for good. Safe to call repeatedly."""
        self._post(None, _Disconnect())

    def send(self, message: dict) -> bool:
        """
        Write one message if the socket is open.

        Nothing is buffered: a send on a socket that is not open is dropped.
        """
        record = self._session
        transport = record.transport if record else None
        if transport is None or not transport.is_open:
            logger.debug(f"Dropping {message.get('type')} - socket not open")
            return False
        try:
            transport.send_text(protocol.encode(message))
        except Exception as e:
            logger.error(f"Send error: {e}")
            return False
        return True

    def send_input(self, data: str) -> bool:
        return self.send(protocol.input_message(data))

    def resize(self, cols: int, rows: int) -> None:
        """Queue a debounced resize notification for the remote PTY."""
        record = self._session
        if record is not None and cols > 0 and rows > 0:
            record.cols = cols
            record.rows = rows
        self._resize.request_resize(cols, rows)

    def submit_auth(self, code: str) -> None:
        """
        Answer the open TOTP or password challenge.

        Raises:
            AuthChallengeError: no such challenge is open
        """
        challenge = self._auth.pending
        if challenge is None or challenge.kind not in (ChallengeKind.TOTP, ChallengeKind.PASSWORD):
            raise AuthChallengeError("No TOTP or password challenge is open")
        self._post(None, _SubmitCode(code))

    def submit_credentials(
        self,
        password: Optional[str] = None,
        ssh_key: Optional[str] = None,
        key_password: Optional[str] = None,
    ) -> None:
        """
        Answer a credentials challenge with a password or a private key.

        Raises:
            AuthChallengeError: no credentials challenge is open, or neither
                a password nor a key was given
        """
        challenge = self._auth.pending
        if challenge is None or challenge.kind is not ChallengeKind.CREDENTIALS:
            raise AuthChallengeError("No credentials challenge is open")
        if not password and not ssh_key:
            raise AuthChallengeError("A password or an SSH key is required")
        self._post(None, _SubmitCredentials(password, ssh_key, key_password))

    def cancel_auth(self) -> None:
        """Give up on the open challenge and end the session."""
        self._post(None, _CancelAuth())

    def confirm_sudo_password(self) -> None:
        self._post(None, _ConfirmSudo())

    def decline_sudo_password(self) -> None:
        self._post(None, _DeclineSudo())

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _post(self, attempt_id: Optional[int], event) -> None:
        """Queue an event and drain the queue unless already draining."""
        self._queue.append((attempt_id, event))
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                tag, queued = self._queue.popleft()
                try:
                    self._dispatch(tag, queued)
                except Exception as e:
                    logger.exception(f"Error handling {type(queued).__name__}: {e}")
        finally:
            self._dispatching = False

    def _dispatch(self, attempt_id: Optional[int], event) -> None:
        if attempt_id is not None:
            record = self._session
            if record is None or attempt_id != record.attempt_id:
                logger.debug(
                    f"Dropping stale {type(event).__name__} from attempt {attempt_id}"
                )
                return
            if record.state is ConnectionState.CLOSED:
                logger.debug(f"Dropping {type(event).__name__} for closed session")
                return

        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"No handler for {type(event).__name__}")
            return
        handler(event)

    def _bind(self, transport: Transport, attempt_id: int) -> None:
        def on_event(event: TransportEvent) -> None:
            self._post(attempt_id, event)
        transport.set_event_handler(on_event)

    def _arm(self, name: str, delay: float, repeat: bool = False) -> None:
        attempt_id = self._session.attempt_id

        def fire() -> None:
            self._post(attempt_id, _TimerFired(name))
        self._timers.start(name, delay, fire, repeat=repeat)

    def _on_challenge_expired(self, kind: ChallengeKind) -> None:
        self._post(self.attempt_id, _AuthExpired(kind))

    def _emit(self, event: SessionEvent) -> None:
        """Emit event to handler."""
        if self._event_handler:
            try:
                self._event_handler(event)
            except Exception as e:
                logger.exception(f"Event handler error: {e}")

    def _set_state(
        self,
        record: SessionRecord,
        new_state: ConnectionState,
        message: str = "",
        auth_kind: Optional[ChallengeKind] = None,
        close_reason: Optional[CloseReason] = None,
    ) -> None:
        old_state = record.state
        record.state = new_state
        record.auth_kind = auth_kind if new_state is ConnectionState.AWAITING_AUTH else None
        if new_state is ConnectionState.CLOSED:
            record.close_reason = close_reason

        if old_state is ConnectionState.CONNECTED and new_state is not ConnectionState.CONNECTED:
            self._timers.cancel(HEARTBEAT)
            self._timers.cancel(POST_CONNECT)
            self._scanner.reset()

        logger.info(f"Session state: {old_state.name} -> {new_state.name} {message}")
        self._emit(StateChanged(old_state, new_state, message, record.auth_kind, close_reason))

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _handle_connect(self, cmd: _Connect) -> None:
        record = self._session
        if record is not None and record.state in LIVE_STATES:
            if record.host == cmd.host:
                logger.warning(
                    f"Already {record.state.name.lower()} to {cmd.host.display_name}, "
                    f"ignoring connect"
                )
                return
            self._close(record, CloseReason.SUPERSEDED, "Superseded by a new connection")

        record = SessionRecord(host=cmd.host, cols=cmd.cols, rows=cmd.rows)
        self._session = record
        self._reconnect.reset()
        self._scanner.configure(
            cmd.host.terminal.sudo_password_autofill,
            cmd.host.stored_sudo_password,
        )
        logger.info(f"Connecting to {cmd.host.display_name} ({cmd.cols}x{cmd.rows})")
        self._open_attempt(record)

    def _handle_disconnect(self, cmd: _Disconnect) -> None:
        record = self._session
        if record is None or record.state is ConnectionState.CLOSED:
            return
        logger.info("Disconnecting...")
        self._close(record, CloseReason.USER_REQUESTED, "User disconnected")

    def _handle_submit_code(self, cmd: _SubmitCode) -> None:
        record = self._session
        if record is None or record.state is not ConnectionState.AWAITING_AUTH:
            logger.warning("Auth response submitted with no challenge open")
            return
        try:
            message = self._auth.submit(cmd.code)
        except AuthChallengeError as e:
            logger.warning(f"Auth response rejected: {e}")
            return
        self.send(message)
        self._set_state(record, ConnectionState.CONNECTING, "Verifying")
        self._arm(CONNECT_TIMEOUT, self.settings.connect_timeout)

    def _handle_submit_credentials(self, cmd: _SubmitCredentials) -> None:
        record = self._session
        if record is None or record.state is not ConnectionState.AWAITING_AUTH:
            logger.warning("Credentials submitted with no challenge open")
            return
        host = record.host.with_credentials(cmd.password, cmd.ssh_key, cmd.key_password)
        try:
            message = self._auth.submit_credentials(
                record.cols, record.rows, host.to_wire(),
                password=cmd.password,
                ssh_key=cmd.ssh_key,
                key_password=cmd.key_password,
            )
        except AuthChallengeError as e:
            logger.warning(f"Credentials rejected: {e}")
            return
        record.credentials = host
        self.send(message)
        self._set_state(record, ConnectionState.CONNECTING, "Retrying with credentials")
        self._arm(CONNECT_TIMEOUT, self.settings.connect_timeout)

    def _handle_cancel_auth(self, cmd: _CancelAuth) -> None:
        record = self._session
        if record is None or record.state is not ConnectionState.AWAITING_AUTH:
            return
        self._auth.cancel()
        self._close(record, CloseReason.AUTH_CANCELLED, "Authentication cancelled")

    def _handle_confirm_sudo(self, cmd: _ConfirmSudo) -> None:
        password = self._scanner.confirm()
        if password:
            self.send_input(password + "\n")

    def _handle_decline_sudo(self, cmd: _DeclineSudo) -> None:
        self._scanner.decline()

    # -------------------------------------------------------------------------
    # Attempts and teardown
    # -------------------------------------------------------------------------

    def _build_url(self, token: Optional[str]) -> str:
        url = self.settings.server_url
        if not token:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}token={quote(token, safe='')}"

    def _open_attempt(self, record: SessionRecord) -> None:
        token = None
        if self._token_provider is not None:
            token = self._token_provider()
            if not token or not token.strip():
                logger.error("No session token available for websocket connection")
                self._close(record, CloseReason.AUTH_REQUIRED, "Authentication required")
                return

        self._attempt_counter += 1
        record.attempt_id = self._attempt_counter
        record.graceful_disconnect = False

        transport = self._transport_factory()
        self._bind(transport, record.attempt_id)
        record.transport = transport

        self._set_state(record, ConnectionState.CONNECTING, f"(attempt {record.attempt_id})")
        transport.open(self._build_url(token))

    def _close_transport(self, record: SessionRecord) -> None:
        transport = record.transport
        if transport is None:
            return
        record.transport = None
        try:
            transport.close()
        except Exception as e:
            logger.debug(f"Error closing transport: {e}")

    def _teardown(self, record: SessionRecord) -> None:
        if record.torn_down:
            return
        record.torn_down = True
        self._timers.cancel_all()
        self._auth.reset()
        self._resize.reset()
        self._scanner.reset()
        self._close_transport(record)

    def _close(self, record: SessionRecord, reason: CloseReason, message: str = "") -> None:
        """Terminal transition. Runs at most once per session."""
        if record.torn_down:
            return
        self._teardown(record)
        self._set_state(record, ConnectionState.CLOSED, message, close_reason=reason)
        self._emit(SessionClosed(reason, message))

    def _transport_lost(self, record: SessionRecord, message: str) -> None:
        """Socket is gone or unusable: schedule another attempt or give up."""
        self._timers.cancel(CONNECT_TIMEOUT)
        self._auth.clear()

        if self._reconnect.exhausted:
            self._emit(Notice("error", "Maximum reconnection attempts reached"))
            self._close(record, CloseReason.MAX_ATTEMPTS, "Maximum reconnection attempts reached")
            return

        if not self._reconnect.should_retry(
            tearing_down=record.torn_down,
            in_flight=record.state is ConnectionState.RECONNECTING,
            graceful=record.graceful_disconnect,
        ):
            logger.debug(f"Not reconnecting after: {message}")
            return

        attempt = self._reconnect.record_attempt()
        delay = self._reconnect.next_delay()
        max_attempts = self._reconnect.max_attempts

        self._set_state(
            record,
            ConnectionState.RECONNECTING,
            f"Reconnecting in {delay:.1f}s (attempt {attempt}/{max_attempts}): {message}",
        )
        self._close_transport(record)
        self._emit(ReconnectScheduled(attempt, max_attempts, delay))
        self._arm(RECONNECT_DELAY, delay)

    # -------------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------------

    def _on_opened(self, event: TransportOpened) -> None:
        record = self._session
        if record.state is not ConnectionState.CONNECTING:
            return
        host = record.effective_host
        self.send(protocol.connect_to_host(
            record.cols,
            record.rows,
            host.to_wire(),
            initial_path=host.initial_path,
            execute_command=host.execute_command,
        ))
        self._resize.mark_sent(record.cols, record.rows)
        self._arm(CONNECT_TIMEOUT, self.settings.connect_timeout)

    def _on_text(self, event: TextReceived) -> None:
        try:
            msg = protocol.decode(event.text)
        except ProtocolError as e:
            logger.warning(f"Malformed message from server: {e}")
            self._emit(Notice("error", "Could not parse message from server"))
            return

        handler = self._message_handlers.get(msg.type)
        if handler is None:
            logger.debug(f"Ignoring message type {msg.type}")
            return
        handler(self._session, msg)

    def _on_closed(self, event: TransportClosed) -> None:
        record = self._session
        if record.state not in SOCKET_STATES:
            return
        record.transport = None

        if event.code == AUTH_FAILURE_CLOSE_CODE:
            logger.error(f"Websocket authentication failed: {event.reason}")
            record.credentials = None
            if self._invalidate_token is not None:
                try:
                    self._invalidate_token()
                except Exception as e:
                    logger.warning(f"Failed to clear session token: {e}")
            self._close(record, CloseReason.AUTH_EXPIRED, "Authentication failed - please re-login")
            return

        self._transport_lost(record, event.reason or f"Socket closed ({event.code})")

    def _on_error(self, event: TransportError) -> None:
        record = self._session
        if record.state not in SOCKET_STATES:
            return
        self._emit(Notice("error", f"Websocket error: {event.message}"))
        self._transport_lost(record, event.message)

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _on_timer(self, event: _TimerFired) -> None:
        record = self._session

        if event.name == CONNECT_TIMEOUT:
            if record.state is not ConnectionState.CONNECTING:
                return
            self._emit(Notice("error", "Connection timed out"))
            if self._reconnect.attempts > 0:
                self._transport_lost(record, "Connection timed out")
            else:
                self._close(record, CloseReason.TIMEOUT, "Connection timed out")

        elif event.name == HEARTBEAT:
            if record.state is ConnectionState.CONNECTED:
                self.send(protocol.ping_message())

        elif event.name == RECONNECT_DELAY:
            if record.state is not ConnectionState.RECONNECTING or record.graceful_disconnect:
                return
            self._open_attempt(record)

        elif event.name == POST_CONNECT:
            if record.state is ConnectionState.CONNECTED:
                self._run_post_connect(record)

    def _on_auth_expired(self, event: _AuthExpired) -> None:
        record = self._session
        if record.state is not ConnectionState.AWAITING_AUTH:
            return
        label = CHALLENGE_LABELS[event.kind]
        self._emit(Notice("error", f"{label} prompt timed out"))
        self._close(record, CloseReason.AUTH_TIMEOUT, f"{label} prompt timed out")

    def _run_post_connect(self, record: SessionRecord) -> None:
        behavior = record.host.terminal

        for var in behavior.environment_variables:
            if var.key and var.value:
                self.send_input(f'export {var.key}="{var.value}"\n')

        if behavior.startup_snippet_id is not None and self._snippet_provider is not None:
            content = None
            try:
                content = self._snippet_provider(behavior.startup_snippet_id)
            except Exception as e:
                logger.warning(f"Failed to execute startup snippet: {e}")
            if content:
                self.send_input(content + "\n")

        if behavior.auto_mosh and behavior.mosh_command:
            self.send_input(behavior.mosh_command + "\n")

    def _log_activity(self, record: SessionRecord) -> None:
        if record.activity_logged or self._activity_logger is None:
            return
        record.activity_logged = True
        try:
            self._activity_logger(record.host)
        except Exception as e:
            logger.warning(f"Failed to log terminal activity: {e}")
            record.activity_logged = False

    # -------------------------------------------------------------------------
    # Server messages
    # -------------------------------------------------------------------------

    def _msg_data(self, record: SessionRecord, msg: InboundMessage) -> None:
        if msg.data is None:
            return
        text = msg.data if isinstance(msg.data, str) else str(msg.data)
        self._emit(DataReceived(text))

        if (
            isinstance(msg.data, str)
            and record.state is ConnectionState.CONNECTED
            and self._scanner.scan(text)
        ):
            lines = text.strip().splitlines()
            self._emit(SudoPasswordRequested(lines[-1] if lines else text))

    def _msg_error(self, record: SessionRecord, msg: InboundMessage) -> None:
        text = msg.message or "Unknown error"
        kind = protocol.classify_error(text)

        if kind is ErrorKind.TRANSPORT:
            self._emit(Notice("error", f"Connection error: {text}"))
            if record.state in SOCKET_STATES:
                self._transport_lost(record, text)
        elif kind is ErrorKind.AUTHENTICATION:
            self._emit(Notice("error", f"Authentication failed: {text}"))
            record.credentials = None
            self._close(record, CloseReason.AUTH_FAILED, text)
        else:
            self._emit(Notice("error", text))

    def _msg_connected(self, record: SessionRecord, msg: InboundMessage) -> None:
        if record.state not in (ConnectionState.CONNECTING, ConnectionState.AWAITING_AUTH):
            logger.debug(f"Ignoring connected in state {record.state.name}")
            return
        self._timers.cancel(CONNECT_TIMEOUT)
        self._auth.clear()

        reconnected = self._reconnect.attempts > 0
        self._reconnect.reset()
        self._set_state(record, ConnectionState.CONNECTED, msg.message or "")
        if reconnected:
            self._emit(Notice("info", "Reconnected"))

        self._arm(HEARTBEAT, self.settings.heartbeat_interval, repeat=True)
        self._log_activity(record)
        self._arm(POST_CONNECT, self.settings.post_connect_delay)

    def _msg_disconnected(self, record: SessionRecord, msg: InboundMessage) -> None:
        record.graceful_disconnect = True
        self._close(
            record,
            CloseReason.SERVER_DISCONNECTED,
            msg.message or "Disconnected by server",
        )

    def _enter_auth(self, record: SessionRecord, kind: ChallengeKind, prompt: Optional[str]) -> None:
        if record.state not in (ConnectionState.CONNECTING, ConnectionState.AWAITING_AUTH):
            logger.debug(f"Ignoring {kind.value} challenge in state {record.state.name}")
            return
        self._timers.cancel(CONNECT_TIMEOUT)
        challenge = self._auth.present(kind, prompt)
        self._set_state(record, ConnectionState.AWAITING_AUTH, challenge.prompt, auth_kind=kind)
        self._emit(AuthChallengeRequired(kind, challenge.prompt))

    def _msg_totp_required(self, record: SessionRecord, msg: InboundMessage) -> None:
        self._enter_auth(record, ChallengeKind.TOTP, msg.prompt)

    def _msg_password_required(self, record: SessionRecord, msg: InboundMessage) -> None:
        self._enter_auth(record, ChallengeKind.PASSWORD, msg.prompt)

    def _msg_keyboard_interactive(self, record: SessionRecord, msg: InboundMessage) -> None:
        self._enter_auth(record, ChallengeKind.KEYBOARD_INTERACTIVE, msg.prompt)

    def _msg_auth_method_not_available(self, record: SessionRecord, msg: InboundMessage) -> None:
        self._enter_auth(record, ChallengeKind.CREDENTIALS, msg.message)

    def _msg_totp_retry(self, record: SessionRecord, msg: InboundMessage) -> None:
        if record.state not in (ConnectionState.CONNECTING, ConnectionState.AWAITING_AUTH):
            logger.debug(f"Ignoring totp_retry in state {record.state.name}")
            return
        remaining = self._auth.record_retry(msg.attempts_remaining)
        if remaining is None:
            return

        reopened = None
        if self._auth.pending is None:
            # The rejected code was already sent; ask again
            self._timers.cancel(CONNECT_TIMEOUT)
            reopened = self._auth.reopen_totp(remaining)
            self._set_state(
                record, ConnectionState.AWAITING_AUTH, reopened.prompt,
                auth_kind=ChallengeKind.TOTP,
            )

        noun = "attempt" if remaining == 1 else "attempts"
        self._emit(AuthRetry(remaining))
        self._emit(Notice("error", f"Invalid code. {remaining} {noun} remaining."))
        if reopened is not None:
            self._emit(AuthChallengeRequired(ChallengeKind.TOTP, reopened.prompt))
