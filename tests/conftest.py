"""Shared fixtures for the TLSMux tests.

Servers run on 127.0.0.1 with an OS-assigned port and are driven one
iteration at a time with run_once(), so no background threads are needed.
TLS is replaced by a plaintext transport and wall-clock time by a clock
the tests advance by hand.
"""
from __future__ import annotations

import socket
from typing import Callable

import pytest

from src.tlsmux import Server, EventKind, ClientInfo
from src.tlsmux.common.transport import SecureTransport
from src.tlsmux.exceptions import HandshakeError, ReadError, SendError


START_TIME = 60_000.0 + 5.0  # five seconds past a minute boundary


class PlainTransport(SecureTransport):
    """Unencrypted transport: the session is the raw socket itself."""

    def __init__(self, fail_handshake: bool = False):
        self.fail_handshake = fail_handshake
        self.closed = []

    def handshake(self, sock):
        if self.fail_handshake:
            raise HandshakeError("handshake refused")
        sock.setblocking(False)
        return sock

    def read(self, session, max_len):
        try:
            return session.recv(max_len)
        except BlockingIOError:
            return None
        except OSError as e:
            raise ReadError(str(e)) from e

    def write(self, session, data):
        try:
            session.sendall(data)
        except OSError as e:
            raise SendError(str(e)) from e
        return len(data)

    def close(self, session):
        self.closed.append(session)
        session.close()


class FakeClock:
    """Wall clock stand-in, advanced explicitly."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Registers a handler for every event kind and records the calls.

    hooks[kind] runs after the event is recorded, for tests that need the
    handler to act (send, drop, shut down).
    """

    def __init__(self, server: Server):
        self.events: list[tuple[EventKind, ClientInfo | None]] = []
        self.hooks: dict[EventKind, Callable] = {}
        for kind in EventKind:
            server.event(kind)(self._make_handler(kind))

    def _make_handler(self, kind: EventKind):
        def handler(client):
            self.events.append((kind, client))
            hook = self.hooks.get(kind)
            if hook is not None:
                hook(client)
        return handler

    def kinds(self) -> list[EventKind]:
        return [kind for kind, _ in self.events]

    def of(self, kind: EventKind) -> list[ClientInfo | None]:
        return [client for k, client in self.events if k is kind]

    def count(self, kind: EventKind) -> int:
        return len(self.of(kind))


def pump(server: Server, until: Callable[[], bool] = lambda: False, max_iterations: int = 40) -> bool:
    """Run loop iterations until the condition holds. Returns whether it did."""
    for _ in range(max_iterations):
        server.run_once()
        if until():
            return True
    return False


def peer_closed(sock: socket.socket) -> bool:
    """True if the server side has closed the connection."""
    try:
        return sock.recv(64) == b""
    except ConnectionResetError:
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> PlainTransport:
    return PlainTransport()


@pytest.fixture
def make_server(transport, clock):
    """Factory for opened servers; every server is shut down afterwards."""
    servers: list[Server] = []

    def factory(**kwargs) -> Server:
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("select_timeout", 0.05)
        server = Server(host="127.0.0.1", port=0, **kwargs)
        server.open()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.down()


@pytest.fixture
def server(make_server) -> Server:
    return make_server(max_clients=4, buffer_size=64)


@pytest.fixture
def recorder(server) -> EventRecorder:
    return EventRecorder(server)


@pytest.fixture
def connect():
    """Factory for client sockets connected to a server."""
    clients: list[socket.socket] = []

    def factory(server: Server) -> socket.socket:
        sock = socket.create_connection(server.address, timeout=2.0)
        clients.append(sock)
        return sock

    yield factory

    for sock in clients:
        sock.close()
