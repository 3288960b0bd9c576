"""
TLSMux Server Module
Single-threaded select loop serving many secure text clients.
"""

import logging
import selectors
import socket
import time

from enum import Enum
from typing import Callable, Optional, Set, Union

from ..common.constants import (
    DEFAULT_PORT,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_MAX_CLIENTS,
    DEFAULT_BUFFER_SIZE,
    OVERFLOW_RESERVE,
    SELECT_TIMEOUT,
    TICK_INTERVAL,
    IDLE_TIMEOUT_TICKS,
)
from ..common.events import EventKind, ClientInfo, EventRegistry, EventHandler
from ..common.framing import MessageFramer
from ..common.transport import SecureTransport
from ..exceptions import (
    ConnectionError as TLSMuxConnectionError,
    AcceptRejectedError,
    HandshakeError,
    InitError,
    ReadError,
    WaitError,
)

from .connection import ConnectionSlot, ConnectionTable
from .heartbeat import HeartbeatManager


class ServerState(Enum):
    """Lifecycle of the server."""
    INITIALIZING = "initializing"
    LISTENING = "listening"
    TERMINATING = "terminating"
    CLOSED = "closed"


class Server:
    """
    TLSMux Server.

    Every iteration waits (bounded) for the listener and all clients,
    then runs the heartbeat, accepts at most one new client and services
    the ready clients in slot order. Handlers run synchronously on the
    loop thread and must not block.

    Example usage:
        app = Server(transport=TLSTransport("cert.pem", "key.pem"), port=6666)

        @app.event(EventKind.CLIENT_CONNECT)
        def greet(client: ClientInfo):
            app.send(client, "Greetings\\n> ")

        @app.event(EventKind.CLIENT_DATA)
        def echo(client: ClientInfo):
            app.send(client, client.message + b"\\n")

        app.up()
    """

    def __init__(
        self,
        transport: SecureTransport,
        name: str = "tlsmux-server",
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        max_clients: int = DEFAULT_MAX_CLIENTS,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        overflow_reserve: int = OVERFLOW_RESERVE,
        select_timeout: float = SELECT_TIMEOUT,
        tick_interval: float = TICK_INTERVAL,
        idle_timeout_ticks: int = IDLE_TIMEOUT_TICKS,
        listen_backlog: int = DEFAULT_LISTEN_BACKLOG,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.host = host
        self.port = port
        self.max_clients = max_clients
        self.select_timeout = select_timeout
        self.listen_backlog = listen_backlog
        self.logger = logger or logging.getLogger(__name__)

        self._transport = transport
        self._selector = selectors.DefaultSelector()
        self._clients = ConnectionTable(max_clients, buffer_size, self._selector, transport)
        self._framer = MessageFramer(buffer_size, overflow_reserve)
        self._heartbeat = HeartbeatManager(tick_interval, idle_timeout_ticks, clock)
        self._handlers = EventRegistry()

        self._socket: Optional[socket.socket] = None
        self._state = ServerState.INITIALIZING
        self._shutdown_requested = False

    def event(self, kind: EventKind) -> Callable:
        """
        Decorator to register an event handler.

        Args:
            kind: Event kind the handler is called for

        Example:
            @app.event(EventKind.TIMER_EXPIRED)
            def every_minute(client: None):
                rotate_logs()
        """
        def decorator(func: EventHandler) -> EventHandler:
            self._handlers.register(kind, func)
            self.logger.debug(f"Registered handler for '{EventKind(kind).name}'")
            return func

        return decorator

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> tuple[str, int]:
        """
        Return (host, port) the listener is bound to.

        Useful when port=0 (OS-assigned). Only valid after open().
        """
        if self._socket is None:
            raise RuntimeError("Server not listening")
        return self._socket.getsockname()[:2]

    @property
    def clients(self) -> list[ClientInfo]:
        """Snapshots of the currently connected clients, in slot order."""
        return [slot.info() for slot in self._clients.active_slots()]

    def open(self) -> None:
        """
        Bind and listen.

        Raises:
            InitError: If the listener cannot be set up
        """
        if self._state is not ServerState.INITIALIZING:
            raise RuntimeError(f"Cannot open server in state '{self._state.value}'")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self.listen_backlog)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise InitError(f"Unable to listen on {self.host}:{self.port}: {e}") from e

        self._socket = sock
        self._selector.register(sock, selectors.EVENT_READ, data=None)
        self._state = ServerState.LISTENING

        host, port = self.address
        self.logger.info(
            f"Server '{self.name}' listening on {host}:{port} "
            f"(max clients {self.max_clients})"
        )

    def up(self) -> None:
        """Start the server and serve until shutdown is requested."""
        if self._state is ServerState.INITIALIZING:
            self.open()

        try:
            while not self._shutdown_requested:
                self.run_once()
        except KeyboardInterrupt:
            self.logger.info("Keyboard interrupt received")
        finally:
            self.down()

    def down(self) -> None:
        """Drop every client and release the listener. Runs once."""
        if self._state in (ServerState.TERMINATING, ServerState.CLOSED):
            return

        self._state = ServerState.TERMINATING

        self._clients.close_all()

        if self._socket:
            self._selector.unregister(self._socket)
            self._socket.close()
            self._socket = None

        self._selector.close()
        self._state = ServerState.CLOSED

        self.logger.info(f"Server '{self.name}' stopped")

    def request_shutdown(self) -> None:
        """Ask the loop to stop. Safe to call from a handler."""
        if not self._shutdown_requested:
            self.logger.info("Shutdown requested")
        self._shutdown_requested = True

    def run_once(self) -> None:
        """
        Run one loop iteration.

        Raises:
            WaitError: If the readiness wait fails
        """
        if self._state is not ServerState.LISTENING:
            raise RuntimeError(f"Server is not listening (state '{self._state.value}')")

        # Work already buffered must not wait for the network
        timeout = 0 if self._has_pending() else self.select_timeout

        try:
            events = self._selector.select(timeout)
        except OSError as e:
            raise WaitError(f"Select error: {e}") from e

        listener_ready = False
        ready: Set[int] = set()
        for key, _ in events:
            if key.data is None:
                listener_ready = True
            else:
                ready.add(key.data.index)

        self._check_heartbeat()

        if listener_ready and not self._shutdown_requested:
            self._accept()

        self._service_clients(ready)

    def send(self, client: Union[ClientInfo, int], data: Union[bytes, str]) -> int:
        """
        Send data to a client.

        Args:
            client: Client snapshot or client id
            data: Bytes, or text to be UTF-8 encoded

        Returns:
            Number of bytes written

        Raises:
            ConnectionError: If the client is not connected
            SendError: On transport fault
        """
        slot = self._slot_for(client)
        if not slot.active:
            raise TLSMuxConnectionError(f"Client {slot.index + 1} is not connected")

        if isinstance(data, str):
            data = data.encode('utf-8')

        return self._transport.write(slot.session, data)

    def drop(self, client: Union[ClientInfo, int]) -> None:
        """Disconnect a client. No event is dispatched. Idempotent."""
        slot = self._slot_for(client)
        if self._clients.drop_slot(slot.index):
            self.logger.info(f"Client {slot.cid} dropped by handler")

    def _slot_for(self, client: Union[ClientInfo, int]) -> ConnectionSlot:
        cid = client.cid if isinstance(client, ClientInfo) else int(client)
        if not 1 <= cid <= self._clients.capacity:
            raise TLSMuxConnectionError(f"Unknown client id {cid}")
        return self._clients[cid - 1]

    def _has_pending(self) -> bool:
        for slot in self._clients.active_slots():
            if slot.has_unscanned or self._transport.pending(slot.session):
                return True
        return False

    def _check_heartbeat(self) -> None:
        """Age every client and fire the timer once per elapsed tick."""
        if not self._heartbeat.check():
            return

        for slot in self._clients.active_slots():
            if self._heartbeat.age(slot):
                self.logger.warning(f"Client {slot.cid} timed out after {slot.idle_ticks} idle ticks")
                self._disconnect(slot, EventKind.CLIENT_TIMEOUT)

        self._dispatch(EventKind.TIMER_EXPIRED, None)

    def _claim_slot(self) -> int:
        index = self._clients.allocate_slot()
        if index is None:
            raise AcceptRejectedError(self._clients.capacity)
        return index

    def _accept(self) -> None:
        """Accept one pending connection."""
        try:
            client_sock, address = self._socket.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            self.logger.error(f"Error accepting connection: {e}")
            return

        peer = f"{address[0]}:{address[1]}"

        try:
            index = self._claim_slot()
        except AcceptRejectedError as e:
            self.logger.warning(f"Connection from {peer} rejected: {e}")
            self._close_raw(client_sock)
            return

        try:
            session = self._transport.handshake(client_sock)
        except HandshakeError as e:
            self.logger.warning(f"Connection from {peer} dropped: {e}")
            self._close_raw(client_sock)
            return

        slot = self._clients.activate(index, client_sock, session, address)
        self.logger.info(
            f"Client {slot.cid} connected from {peer} "
            f"({self._clients.count()}/{self._clients.capacity} clients)"
        )
        self._dispatch(EventKind.CLIENT_CONNECT, slot.info())

    @staticmethod
    def _close_raw(sock: socket.socket) -> None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    def _service_clients(self, ready: Set[int]) -> None:
        """Service ready clients, lowest slot first."""
        for slot in self._clients:
            if self._shutdown_requested:
                break
            if not slot.active:
                continue
            if (slot.index in ready
                    or slot.has_unscanned
                    or self._transport.pending(slot.session)):
                self._service(slot)

    def _service(self, slot: ConnectionSlot) -> None:
        """Deliver at most one message from a client."""
        # Bytes left over from an earlier read may already hold a message
        if slot.has_unscanned:
            message = self._framer.scan(slot)
            if message is not None:
                self._dispatch(EventKind.CLIENT_DATA, slot.info(message))
                return
            if slot.has_unscanned:
                return

        if self._framer.is_full(slot):
            self.logger.warning(
                f"Client {slot.cid} overflowed {self._framer.buffer_size}-byte buffer"
            )
            info = slot.info()
            self._framer.discard(slot)
            self._dispatch(EventKind.CLIENT_OVERFLOW, info)
            return

        try:
            data = self._transport.read(slot.session, self._framer.free_space(slot))
        except ReadError as e:
            self.logger.warning(f"Client {slot.cid} read failed: {e}")
            self._disconnect(slot, EventKind.CLIENT_ERROR)
            return

        if data is None:
            return

        if not data:
            self._disconnect(slot, EventKind.CLIENT_EOD)
            return

        self._heartbeat.touch(slot)

        message = self._framer.feed(slot, data)
        if message is not None:
            self._dispatch(EventKind.CLIENT_DATA, slot.info(message))

    def _disconnect(self, slot: ConnectionSlot, kind: EventKind) -> None:
        """Drop a slot, then tell the handler. The descriptor is gone by then."""
        info = slot.info()
        self._clients.drop_slot(slot.index)
        self.logger.info(f"Client {info.cid} dropped ({kind.name})")
        self._dispatch(kind, info)

    def _dispatch(self, kind: EventKind, client: Optional[ClientInfo]) -> None:
        handler = self._handlers.get(kind)
        if handler is None:
            return

        try:
            handler(client)
        except Exception as e:
            self.logger.error(f"Handler for '{kind.name}' failed: {e}", exc_info=True)
