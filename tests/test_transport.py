"""Tests for TLSTransport: context setup, handshakes and a loopback TLS session."""
from __future__ import annotations

import shutil
import socket
import ssl
import subprocess
import threading

import pytest

from src.tlsmux import EventKind, Server, TLSTransport
from src.tlsmux.exceptions import HandshakeError, InitError

from tests.conftest import EventRecorder, pump


def test_missing_certificate_is_init_error(tmp_path):
    with pytest.raises(InitError):
        TLSTransport(
            certfile=str(tmp_path / "cert.pem"),
            keyfile=str(tmp_path / "key.pem"),
        )


def test_garbage_certificate_is_init_error(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("not a certificate")
    key.write_text("not a key")

    with pytest.raises(InitError):
        TLSTransport(certfile=str(cert), keyfile=str(key))


def test_handshake_failure_on_plaintext_peer(monkeypatch):
    """A peer that speaks plaintext instead of TLS fails the handshake."""
    monkeypatch.setattr("ssl.SSLContext.load_cert_chain", lambda self, certfile, keyfile: None)
    transport = TLSTransport(certfile="cert.pem", keyfile="key.pem", handshake_timeout=1.0)

    server_side, client_side = socket.socketpair()
    try:
        client_side.sendall(b"hello, this is not a ClientHello\n")
        with pytest.raises(HandshakeError):
            transport.handshake(server_side)
    finally:
        server_side.close()
        client_side.close()


@pytest.fixture(scope="session")
def tls_files(tmp_path_factory):
    """Self-signed certificate and key, generated once per test session."""
    if shutil.which("openssl") is None:
        pytest.skip("openssl command not available")

    directory = tmp_path_factory.mktemp("tls")
    cert = directory / "cert.pem"
    key = directory / "key.pem"
    subprocess.run(
        [
            "openssl", "req", "-x509", "-newkey", "rsa:2048", "-nodes",
            "-keyout", str(key), "-out", str(cert),
            "-days", "1", "-subj", "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )
    return str(cert), str(key)


class TLSClient:
    """Connects and runs the client handshake on a background thread.

    The server handshake blocks the loop, so the client side has to make
    progress on its own while the test pumps the server.
    """

    def __init__(self, address):
        self.sock = None
        self.error = None
        self._thread = threading.Thread(target=self._connect, args=(address,), daemon=True)
        self._thread.start()

    def _connect(self, address):
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        try:
            raw = socket.create_connection(address, timeout=5.0)
            self.sock = context.wrap_socket(raw, server_hostname="localhost")
        except OSError as e:
            self.error = e

    def wait(self):
        self._thread.join(timeout=5.0)
        assert self.error is None
        assert self.sock is not None
        return self.sock


@pytest.fixture
def tls_server(make_server, tls_files):
    certfile, keyfile = tls_files

    def factory(**kwargs) -> Server:
        transport = TLSTransport(certfile=certfile, keyfile=keyfile, handshake_timeout=5.0)
        return make_server(transport=transport, **kwargs)

    return factory


@pytest.fixture
def tls_clients():
    clients: list[TLSClient] = []

    def factory(server: Server) -> TLSClient:
        client = TLSClient(server.address)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        if client.sock is not None:
            client.sock.close()


def _tls_connected(server, recorder, tls_clients):
    pending = tls_clients(server)
    assert pump(server, lambda: recorder.count(EventKind.CLIENT_CONNECT) == 1)
    return pending.wait()


def test_tls_round_trip(tls_server, tls_clients):
    """Greeting, framing across records, a handler reply and end of data."""
    server = tls_server(max_clients=2, buffer_size=64)
    recorder = EventRecorder(server)
    recorder.hooks[EventKind.CLIENT_CONNECT] = lambda client: server.send(client, b"hi\n")
    recorder.hooks[EventKind.CLIENT_DATA] = (
        lambda client: server.send(client, b"got " + client.message + b"\n")
    )

    client = _tls_connected(server, recorder, tls_clients)
    assert client.recv(64) == b"hi\n"

    # Sessions go back to non-blocking after each write
    assert server._clients[0].session.gettimeout() == 0.0

    client.sendall(b"a\nb\n")
    assert pump(server, lambda: recorder.count(EventKind.CLIENT_DATA) == 2)

    client.sendall(b"c")
    assert pump(server, lambda: server._clients[0].used_len == 1)
    client.sendall(b"d\n")
    assert pump(server, lambda: recorder.count(EventKind.CLIENT_DATA) == 3)

    messages = [info.message for info in recorder.of(EventKind.CLIENT_DATA)]
    assert messages == [b"a", b"b", b"cd"]

    received = b""
    while received.count(b"\n") < 3:
        received += client.recv(64)
    assert received == b"got a\ngot b\ngot cd\n"

    client.close()
    assert pump(server, lambda: recorder.count(EventKind.CLIENT_EOD) == 1)

    assert server.clients == []
    slot = server._clients[0]
    assert not slot.active
    assert slot.session is None
    assert slot.socket is None


def test_tls_buffered_plaintext_is_served_without_socket_readiness(tls_server, tls_clients):
    """Bytes the TLS layer decrypted but the server has not read yet still count."""
    server = tls_server(buffer_size=8)
    recorder = EventRecorder(server)

    client = _tls_connected(server, recorder, tls_clients)

    client.sendall(b"abcd")
    assert pump(server, lambda: server._clients[0].used_len == 4)

    # Only four bytes fit, so "hi\n" stays inside the TLS layer
    client.sendall(b"efg\nhi\n")
    assert pump(server, lambda: recorder.count(EventKind.CLIENT_DATA) == 2)

    messages = [info.message for info in recorder.of(EventKind.CLIENT_DATA)]
    assert messages == [b"abcdefg", b"hi"]


def test_tls_read_reports_nothing_available(tls_server, tls_clients):
    server = tls_server()
    recorder = EventRecorder(server)
    _tls_connected(server, recorder, tls_clients)

    slot = server._clients[0]
    assert server._transport.read(slot.session, 64) is None
    assert server._transport.pending(slot.session) == 0
