"""
TLSMux Events Module
Event kinds, the client snapshot passed to handlers and the handler registry.
"""

from enum import IntEnum
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict


class EventKind(IntEnum):
    """Events delivered to the application handlers."""
    TIMER_EXPIRED = 0
    CLIENT_CONNECT = 1
    CLIENT_DATA = 2
    CLIENT_EOD = 3
    CLIENT_ERROR = 4
    CLIENT_OVERFLOW = 5
    CLIENT_TIMEOUT = 6


# Events after which the client descriptor is no longer valid
DISCONNECT_EVENTS = frozenset({
    EventKind.CLIENT_EOD,
    EventKind.CLIENT_ERROR,
    EventKind.CLIENT_TIMEOUT,
})


class ClientInfo(BaseModel):
    """Read-only view of a client slot, handed to handlers."""

    model_config = ConfigDict(frozen=True)

    cid: int
    host: str
    port: int

    message: bytes = b''
    length: int = 0

    idle_ticks: int = 0

    @property
    def text(self) -> str:
        """Message decoded as UTF-8, undecodable bytes replaced."""
        return self.message.decode('utf-8', errors='replace')


EventHandler = Callable[[Optional[ClientInfo]], None]


class EventRegistry:
    """
    Registry of event handlers, one per event kind.

    The reactor is single-threaded, so no locking is needed here.
    """

    def __init__(self):
        self._handlers: Dict[EventKind, EventHandler] = {}

    def register(self, kind: EventKind, func: EventHandler) -> EventHandler:
        """
        Register a handler for an event kind.

        Args:
            kind: Event kind to handle
            func: Callable taking a ClientInfo (None for TIMER_EXPIRED)

        Returns:
            The registered callable

        Raises:
            ValueError: If the kind already has a handler
        """
        kind = EventKind(kind)
        if kind in self._handlers:
            raise ValueError(f"Handler for '{kind.name}' is already registered")
        self._handlers[kind] = func
        return func

    def get(self, kind: EventKind) -> Optional[EventHandler]:
        """Get the handler for an event kind, or None."""
        return self._handlers.get(kind)

    def list_kinds(self) -> list[EventKind]:
        """Get the event kinds that have a handler."""
        return sorted(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, kind: EventKind) -> bool:
        return kind in self._handlers
