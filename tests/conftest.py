"""Shared fixtures."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from termlink.config import SessionSettings
from termlink.connection.profile import HostConfig
from termlink.session.manager import SessionConnectionManager

from .fakes import FakeTimers, FakeTransport


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def transports():
    return []


@pytest.fixture
def events():
    return []


@pytest.fixture
def settings(tmp_path):
    return SessionSettings(
        server_url="ws://gateway.test/ssh/websocket/",
        hosts_file=str(tmp_path / "hosts.yaml"),
    )


@pytest.fixture
def host():
    return HostConfig(name="web-1", ip="10.0.0.5", username="deploy", id=7, password="pw")


@pytest.fixture
def make_manager(timers, transports, settings, events):
    def factory(**kwargs):
        def new_transport():
            transport = FakeTransport()
            transports.append(transport)
            return transport

        kwargs.setdefault("token_provider", lambda: "jwt-token")
        manager = SessionConnectionManager(new_transport, timers, settings=settings, **kwargs)
        manager.set_event_handler(events.append)
        return manager
    return factory


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def connect(transports):
    """Bring a manager all the way to CONNECTED on a fresh attempt."""
    def go(manager, host, cols=80, rows=24):
        manager.connect(host, cols, rows)
        transport = transports[-1]
        transport.accept()
        transport.receive("connected")
        return transport
    return go
