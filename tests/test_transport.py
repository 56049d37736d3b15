"""QWebSocket transport against an in-process QWebSocketServer."""

import json

import pytest
from PyQt6.QtCore import QObject
from PyQt6.QtNetwork import QHostAddress
from PyQt6.QtWebSockets import QWebSocket, QWebSocketServer, QWebSocketProtocol

from termlink.config import SessionSettings
from termlink.connection.profile import HostConfig
from termlink.session.base import ConnectionState
from termlink.session.manager import SessionConnectionManager
from termlink.session.transport import (
    QtWebSocketTransport, TransportOpened, TextReceived, TransportClosed, TransportError,
)


class GatewayStub:
    """Minimal server side of the terminal websocket."""

    def __init__(self):
        self.server = QWebSocketServer("gateway", QWebSocketServer.SslMode.NonSecureMode)
        assert self.server.listen(QHostAddress(QHostAddress.SpecialAddress.LocalHost), 0)
        self.server.newConnection.connect(self._on_new_connection)
        self.clients = []
        self.received = []
        self.auto_connect = False

    @property
    def url(self):
        return f"ws://127.0.0.1:{self.server.serverPort()}/ssh/websocket/"

    def _on_new_connection(self):
        socket = self.server.nextPendingConnection()
        socket.textMessageReceived.connect(lambda text, s=socket: self._on_text(s, text))
        self.clients.append(socket)

    def _on_text(self, socket, text):
        message = json.loads(text)
        self.received.append(message)
        if self.auto_connect and message["type"] == "connectToHost":
            socket.sendTextMessage(json.dumps({"type": "connected"}))

    def close(self):
        for socket in self.clients:
            socket.abort()
        self.server.close()


@pytest.fixture
def gateway(qtbot):
    stub = GatewayStub()
    yield stub
    stub.close()


class TestQtWebSocketTransport:

    def test_open_send_receive_close(self, qtbot, gateway):
        transport = QtWebSocketTransport()
        events = []
        transport.set_event_handler(events.append)
        transport.open(gateway.url + "?token=abc")

        qtbot.waitUntil(lambda: any(isinstance(e, TransportOpened) for e in events), timeout=3000)
        assert transport.is_open
        qtbot.waitUntil(lambda: gateway.clients, timeout=3000)
        assert "token=abc" in gateway.clients[0].requestUrl().toString()

        transport.send_text('{"type": "ping"}')
        qtbot.waitUntil(lambda: gateway.received, timeout=3000)
        assert gateway.received == [{"type": "ping"}]

        gateway.clients[0].sendTextMessage('{"type": "pong"}')
        qtbot.waitUntil(lambda: any(isinstance(e, TextReceived) for e in events), timeout=3000)

        gateway.clients[0].close(QWebSocketProtocol.CloseCode.CloseCodePolicyViolated, "expired")
        qtbot.waitUntil(lambda: any(isinstance(e, TransportClosed) for e in events), timeout=3000)
        closed = [e for e in events if isinstance(e, TransportClosed)][0]
        assert closed.code == 1008
        assert not transport.is_open

    def test_refused_connection_reports_error(self, qtbot, gateway):
        url = gateway.url
        gateway.close()
        transport = QtWebSocketTransport()
        events = []
        transport.set_event_handler(events.append)
        transport.open(url)

        qtbot.waitUntil(lambda: any(isinstance(e, TransportError) for e in events), timeout=5000)

    def test_close_when_never_opened_is_noop(self, qtbot):
        transport = QtWebSocketTransport()
        transport.close()
        transport.close()
        assert not transport.is_open


class TestManagerOverQt:

    def test_connects_and_disconnects(self, qtbot, gateway):
        gateway.auto_connect = True
        settings = SessionSettings(server_url=gateway.url)
        manager = SessionConnectionManager.for_qt(settings, token_provider=lambda: "jwt")
        manager.connect(HostConfig(name="web-1", ip="10.0.0.5", username="deploy"), 80, 24)

        qtbot.waitUntil(lambda: manager.state == ConnectionState.CONNECTED, timeout=3000)
        assert gateway.received[0]["type"] == "connectToHost"

        manager.disconnect()
        assert manager.state == ConnectionState.CLOSED

    def test_replaced_sockets_are_deleted(self, qtbot, gateway):
        gateway.auto_connect = True
        parent = QObject()
        settings = SessionSettings(
            server_url=gateway.url, reconnect_base_delay=0.05, reconnect_max_delay=0.05
        )
        manager = SessionConnectionManager.for_qt(
            settings, parent=parent, token_provider=lambda: "jwt"
        )
        manager.connect(HostConfig(name="web-1", ip="10.0.0.5", username="deploy"), 80, 24)
        qtbot.waitUntil(lambda: manager.state == ConnectionState.CONNECTED, timeout=3000)

        gateway.clients[0].abort()
        qtbot.waitUntil(lambda: len(gateway.clients) == 2, timeout=3000)
        qtbot.waitUntil(lambda: manager.state == ConnectionState.CONNECTED, timeout=3000)
        qtbot.waitUntil(lambda: len(parent.findChildren(QWebSocket)) == 1, timeout=3000)

        manager.disconnect()
        qtbot.waitUntil(lambda: len(parent.findChildren(QWebSocket)) == 0, timeout=3000)
