"""
Main application class with lifecycle management.
"""

import logging

from typing import Optional

from src.middleware.logging_middleware import setup_logging

from src.handlers import register_handlers
from src.tlsmux import Server, TLSTransport

from src.config import Settings, settings as default_settings


class Application:
    """Main application class."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize application components."""
        self.settings = settings or default_settings

        setup_logging(self.settings)

        self.logger = logging.getLogger("tlsmux-app")
        self.logger.setLevel(self.settings.logging_level.upper())

        self.server: Optional[Server] = None

        self.logger.info("Application initialized")

    def create_server(self) -> Server:
        """
        Create and configure the TLS server.

        Returns:
            Configured Server instance

        Raises:
            InitError: If the certificate or key cannot be loaded
        """
        settings = self.settings

        transport = TLSTransport(
            certfile=settings.certfile,
            keyfile=settings.keyfile,
            handshake_timeout=settings.handshake_timeout,
            write_timeout=settings.write_timeout,
        )

        self.server = Server(
            transport=transport,
            name="tlsmux-server",
            host=settings.host,
            port=settings.port,
            max_clients=settings.max_clients,
            buffer_size=settings.buffer_size,
            overflow_reserve=settings.overflow_reserve,
            select_timeout=settings.select_timeout,
            tick_interval=settings.tick_interval,
            idle_timeout_ticks=settings.idle_timeout_ticks,
            listen_backlog=settings.listen_backlog,
            logger=logging.getLogger("tlsmux.server"),
        )

        register_handlers(app=self)

        return self.server

    def shutdown(self) -> None:
        """Ask the server loop to stop."""
        if self.server:
            self.server.request_shutdown()
