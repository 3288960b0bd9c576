"""TLSMux Common Package - framing, events, transport and constants."""

from .constants import (
    TERMINATORS,
    DEFAULT_BUFFER_SIZE,
    OVERFLOW_RESERVE,
    SELECT_TIMEOUT,
    TICK_INTERVAL,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    IDLE_TIMEOUT_TICKS,
    DEFAULT_PORT,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_MAX_CLIENTS,
)
from .events import EventKind, ClientInfo, EventRegistry, DISCONNECT_EVENTS
from .framing import MessageFramer, find_terminator
from .transport import SecureTransport, TLSTransport

__all__ = [
    # Constants
    'TERMINATORS', 'DEFAULT_BUFFER_SIZE', 'OVERFLOW_RESERVE',
    'SELECT_TIMEOUT', 'TICK_INTERVAL', 'DEFAULT_HANDSHAKE_TIMEOUT',
    'DEFAULT_WRITE_TIMEOUT', 'IDLE_TIMEOUT_TICKS', 'DEFAULT_PORT',
    'DEFAULT_LISTEN_BACKLOG', 'DEFAULT_MAX_CLIENTS',
    # Events
    'EventKind', 'ClientInfo', 'EventRegistry', 'DISCONNECT_EVENTS',
    # Framing
    'MessageFramer', 'find_terminator',
    # Transport
    'SecureTransport', 'TLSTransport',
]
