"""
TLSMux Framing Module
Terminator-based message framing over a fixed per-client buffer.

A message ends at the first NUL, CR, LF or EOT byte. The terminator is not
part of the message. Bytes that follow it stay in the buffer as the start
of the next message.

Only the part of the buffer that has not been searched yet is scanned, so
a long message arriving over many reads is searched once per byte.

If the buffer fills up before a terminator arrives, the partial message
is thrown away, the handler is told about the overflow, and the rest of
that message (up to and including its terminator) is discarded too.
"""

import logging

from typing import Optional, TYPE_CHECKING

from .constants import TERMINATORS, DEFAULT_BUFFER_SIZE, OVERFLOW_RESERVE
from ..exceptions import OverflowError as TLSMuxOverflowError

if TYPE_CHECKING:
    from ..server.connection import ConnectionSlot


log = logging.getLogger(__name__)


def find_terminator(buffer: bytearray, start: int, end: int) -> int:
    """
    Find the first terminator byte in buffer[start:end].

    Returns:
        Index of the terminator, or -1 if there is none
    """
    first = -1
    for term in TERMINATORS:
        pos = buffer.find(term, start, end)
        if pos != -1 and (first == -1 or pos < first):
            first = pos
            end = pos  # nothing past here can win
    return first


class MessageFramer:
    """Buffer bookkeeping and message completion for client slots."""

    def __init__(
        self,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        reserve: int = OVERFLOW_RESERVE
    ):
        if buffer_size <= reserve:
            raise ValueError(
                f"Buffer size {buffer_size} must exceed overflow reserve {reserve}"
            )
        self.buffer_size = buffer_size
        self.reserve = reserve

    def free_space(self, slot: "ConnectionSlot") -> int:
        """Bytes that can still be read into the slot's buffer."""
        return self.buffer_size - slot.used_len

    def is_full(self, slot: "ConnectionSlot") -> bool:
        """True if the slot has too little room left for another read."""
        return self.free_space(slot) < self.reserve

    def discard(self, slot: "ConnectionSlot") -> None:
        """
        Drop an over-length message.

        Everything up to the next terminator will be thrown away as well.
        """
        log.debug(f"Client {slot.cid} overflowed, discarding {slot.used_len} bytes")
        slot.used_len = 0
        slot.scanned = 0
        slot.overflowed = True

    def append(self, slot: "ConnectionSlot", data: bytes) -> None:
        """
        Append freshly read bytes to the slot's buffer.

        Raises:
            OverflowError: If data does not fit into the remaining space
        """
        size = len(data)
        if size > self.free_space(slot):
            raise TLSMuxOverflowError(slot.used_len + size, self.buffer_size)
        slot.buffer[slot.used_len:slot.used_len + size] = data
        slot.used_len += size

    def scan(self, slot: "ConnectionSlot") -> Optional[bytes]:
        """
        Look for a completed message in the unscanned part of the buffer.

        On completion the message is removed from the buffer, leftover
        bytes are moved to the front and the overflow flag is cleared.

        Returns:
            The message, or None if it is incomplete or was the tail of
            an over-length message
        """
        buffer = slot.buffer
        pos = find_terminator(buffer, slot.scanned, slot.used_len)
        if pos == -1:
            slot.scanned = slot.used_len
            return None

        message = bytes(buffer[:pos])

        leftover = slot.used_len - (pos + 1)
        if leftover:
            buffer[:leftover] = buffer[pos + 1:slot.used_len]
        slot.used_len = leftover
        slot.scanned = 0

        if slot.overflowed:
            slot.overflowed = False
            log.debug(f"Client {slot.cid} discarded tail of over-length message")
            return None

        return message

    def feed(self, slot: "ConnectionSlot", data: bytes) -> Optional[bytes]:
        """Append data and scan it. Returns a completed message or None."""
        self.append(slot, data)
        return self.scan(slot)
