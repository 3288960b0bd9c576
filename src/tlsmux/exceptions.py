"""
TLSMux Exceptions Module
Exception hierarchy for the secure multiplexing server.
"""


class TLSMuxError(Exception):
    """Base exception for all TLSMux errors."""
    pass


class InitError(TLSMuxError):
    """Listener or transport context could not be set up. Fatal."""
    pass


class WaitError(TLSMuxError):
    """Readiness wait primitive failed. Fatal."""
    pass


class ConnectionError(TLSMuxError):
    """Connection-related errors."""
    pass


class AcceptRejectedError(ConnectionError):
    """Connection rejected because every client slot is in use."""

    def __init__(self, max_clients: int):
        self.max_clients = max_clients
        super().__init__(f"Max clients exceeded ({max_clients})")


class HandshakeError(ConnectionError):
    """Secure handshake failed."""
    pass


class ReadError(ConnectionError):
    """Transport fault while reading from a client."""
    pass


class SendError(ConnectionError):
    """Transport fault while writing to a client."""
    pass


class OverflowError(TLSMuxError):
    """Client message exceeded the buffer before a terminator was seen."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Message size {size} exceeds buffer {max_size}")
