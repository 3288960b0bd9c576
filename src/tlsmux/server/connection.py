"""
TLSMux Server Connection Module
Fixed-capacity client slot table.
"""

import logging
import selectors
import socket

from typing import Any, Iterator, Optional, Tuple

from ..common.events import ClientInfo
from ..common.transport import SecureTransport


log = logging.getLogger(__name__)


class ConnectionSlot:
    """
    One entry of the connection table.

    Holds at most one live client at a time. The buffer is allocated the
    first time the slot is used and then kept for every later occupant.
    """

    def __init__(self, index: int):
        self.index = index
        self.cid = 0

        self.socket: Optional[socket.socket] = None
        self.session: Any = None
        self.fd = -1
        self.address: Tuple[str, int] = ('', 0)

        self.buffer: Optional[bytearray] = None
        self.used_len = 0
        self.scanned = 0  # buffer[scanned:used_len] not yet searched for a terminator

        self.idle_ticks = 0
        self.overflowed = False
        self.active = False

    @property
    def has_unscanned(self) -> bool:
        return self.active and self.scanned < self.used_len

    def info(self, message: bytes = b'') -> ClientInfo:
        """Snapshot of the slot for handlers."""
        return ClientInfo(
            cid=self.cid,
            host=self.address[0],
            port=self.address[1],
            message=message,
            length=len(message),
            idle_ticks=self.idle_ticks,
        )

    def __repr__(self) -> str:
        return (
            f"ConnectionSlot(index={self.index}, cid={self.cid}, "
            f"active={self.active}, used_len={self.used_len})"
        )


class ConnectionTable:
    """
    Fixed array of client slots.

    Keeps the selector in step with slot state: a slot's descriptor is
    registered exactly while the slot is active.
    """

    def __init__(
        self,
        capacity: int,
        buffer_size: int,
        selector: selectors.BaseSelector,
        transport: SecureTransport
    ):
        """
        Initialize connection table.

        Args:
            capacity: Maximum simultaneous clients
            buffer_size: Per-client message buffer size
            selector: Readiness selector shared with the listener
            transport: Transport used to release client sessions
        """
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}")

        self._slots = [ConnectionSlot(index) for index in range(capacity)]
        self._buffer_size = buffer_size
        self._selector = selector
        self._transport = transport

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def allocate_slot(self) -> Optional[int]:
        """
        Find the lowest-indexed free slot.

        Returns:
            Slot index, or None if every slot is active
        """
        for slot in self._slots:
            if not slot.active:
                return slot.index
        return None

    def activate(
        self,
        index: int,
        sock: socket.socket,
        session: Any,
        address: Tuple[str, int]
    ) -> ConnectionSlot:
        """
        Put a handshaken connection into a free slot.

        Args:
            index: Slot index from allocate_slot()
            sock: Accepted raw socket
            session: Transport session returned by the handshake
            address: Peer address (host, port)

        Returns:
            The activated slot

        Raises:
            RuntimeError: If the slot is already active
        """
        slot = self._slots[index]
        if slot.active:
            raise RuntimeError(f"Slot {index} is already active")

        if slot.buffer is None:
            slot.buffer = bytearray(self._buffer_size)

        slot.cid = index + 1
        slot.socket = sock
        slot.session = session
        slot.fd = session.fileno()
        slot.address = (address[0], address[1])
        slot.used_len = 0
        slot.scanned = 0
        slot.idle_ticks = 0
        slot.overflowed = False

        self._selector.register(slot.fd, selectors.EVENT_READ, data=slot)
        slot.active = True
        return slot

    def drop_slot(self, index: int) -> bool:
        """
        Release a slot's connection. No-op if the slot is not active.

        The descriptor leaves the selector first, then the transport
        session is closed, then the raw socket.

        Returns:
            True if a connection was released
        """
        slot = self._slots[index]
        if not slot.active:
            return False

        slot.active = False
        slot.used_len = 0
        slot.scanned = 0

        try:
            self._selector.unregister(slot.fd)
        except (KeyError, ValueError):
            log.debug(f"Slot {index} descriptor was not registered")

        session, sock = slot.session, slot.socket
        slot.session = None
        slot.socket = None
        slot.fd = -1

        try:
            self._transport.close(session)
        except OSError as e:
            log.debug(f"Error closing session of client {slot.cid}: {e}")

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already closed by the transport, or peer is gone
            pass
        sock.close()

        return True

    def active_slots(self) -> Iterator[ConnectionSlot]:
        """Iterate active slots in index order."""
        for slot in self._slots:
            if slot.active:
                yield slot

    def close_all(self) -> None:
        """Drop every active slot."""
        for slot in self._slots:
            self.drop_slot(slot.index)

    def count(self) -> int:
        """Get current active slot count."""
        return sum(1 for slot in self._slots if slot.active)

    def __getitem__(self, index: int) -> ConnectionSlot:
        return self._slots[index]

    def __iter__(self) -> Iterator[ConnectionSlot]:
        return iter(self._slots)
