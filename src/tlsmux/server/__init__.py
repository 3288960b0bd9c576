"""TLSMux Server Package."""

from .server import Server, ServerState
from .connection import ConnectionSlot, ConnectionTable
from .heartbeat import HeartbeatManager

__all__ = [
    'Server',
    'ServerState',
    'ConnectionSlot',
    'ConnectionTable',
    'HeartbeatManager',
]
