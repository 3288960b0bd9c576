from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.app import Application

from src.middleware import logging_middleware
from src.tlsmux import EventKind


def register_timer_handlers(app: "Application"):
    """Register the once-a-minute timer handler."""

    server = app.server

    @server.event(EventKind.TIMER_EXPIRED)
    @logging_middleware.log_event_debug
    def heartbeat(client: None):
        app.logger.debug(f"Heartbeat: {len(server.clients)} client(s) connected")
