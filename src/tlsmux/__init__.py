"""
TLSMux - Secure multi-client text server for Python

A single-threaded reactor that accepts many TLS clients, splits their
input into terminator-delimited messages and hands them to event handlers.
"""

from .server import Server, ServerState
from .common.events import EventKind, ClientInfo
from .common.transport import SecureTransport, TLSTransport
from .exceptions import (
    TLSMuxError,
    InitError,
    WaitError,
    ConnectionError,
    AcceptRejectedError,
    HandshakeError,
    ReadError,
    SendError,
    OverflowError,
)

__version__ = "0.1.0"
__all__ = [
    # Server
    'Server',
    'ServerState',
    # Events
    'EventKind',
    'ClientInfo',
    # Transport
    'SecureTransport',
    'TLSTransport',
    # Exceptions
    'TLSMuxError',
    'InitError',
    'WaitError',
    'ConnectionError',
    'AcceptRejectedError',
    'HandshakeError',
    'ReadError',
    'SendError',
    'OverflowError',
]
