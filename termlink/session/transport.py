"""
Message-oriented socket the session runs over.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Callable

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtNetwork import QAbstractSocket
from PyQt6.QtWebSockets import QWebSocket, QWebSocketProtocol

logger = logging.getLogger(__name__)

NORMAL_CLOSE_CODE = 1000


@dataclass
class TransportEvent:
    """Base class for transport events."""
    pass


@dataclass
class TransportOpened(TransportEvent):
    pass


@dataclass
class TextReceived(TransportEvent):
    text: str


@dataclass
class TransportClosed(TransportEvent):
    code: int
    reason: str = ""


@dataclass
class TransportError(TransportEvent):
    message: str


class Transport(ABC):
    """
    One socket, opened once.

    Events go to a single handler. Sends on a socket that is not open
    are the caller's problem; check is_open first.
    """

    def __init__(self):
        self._event_handler: Optional[Callable[[TransportEvent], None]] = None

    def set_event_handler(self, handler: Optional[Callable[[TransportEvent], None]]) -> None:
        self._event_handler = handler

    def _emit(self, event: TransportEvent) -> None:
        if self._event_handler:
            try:
                self._event_handler(event)
            except Exception as e:
                logger.exception(f"Transport event handler error: {e}")

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    def open(self, url: str) -> None:
        pass

    @abstractmethod
    def send_text(self, text: str) -> None:
        pass

    @abstractmethod
    def close(self, code: int = NORMAL_CLOSE_CODE, reason: str = "") -> None:
        pass


class QtWebSocketTransport(Transport):
    """Transport over QWebSocket. Lives on the Qt event loop thread."""

    def __init__(self, parent: QObject = None):
        super().__init__()
        self._socket = QWebSocket("", QWebSocketProtocol.Version.VersionLatest, parent)
        self._socket.connected.connect(self._on_connected)
        self._socket.disconnected.connect(self._on_disconnected)
        self._socket.textMessageReceived.connect(self._on_text)
        self._socket.errorOccurred.connect(self._on_error)
        self._closed = False

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        return self._socket.state() == QAbstractSocket.SocketState.ConnectedState

    def open(self, url: str) -> None:
        logger.debug(f"Opening websocket {url.split('?', 1)[0]}")
        self._socket.open(QUrl(url))

    def send_text(self, text: str) -> None:
        self._socket.sendTextMessage(text)

    def close(self, code: int = NORMAL_CLOSE_CODE, reason: str = "") -> None:
        """Close the socket and schedule it for deletion. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._socket.state() != QAbstractSocket.SocketState.UnconnectedState:
            self._socket.close(QWebSocketProtocol.CloseCode(code), reason)
        self._socket.deleteLater()

    def _on_connected(self) -> None:
        self._emit(TransportOpened())

    def _on_disconnected(self) -> None:
        code = self._socket.closeCode()
        self._emit(TransportClosed(
            code=int(getattr(code, "value", code)),
            reason=self._socket.closeReason(),
        ))

    def _on_text(self, text: str) -> None:
        self._emit(TextReceived(text))

    def _on_error(self, error) -> None:
        self._emit(TransportError(self._socket.errorString()))
