"""Greeter handlers: hello, path, goodby and echo."""

import os

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.app import Application

from src.middleware import logging_middleware
from src.tlsmux import EventKind, ClientInfo
from src.tlsmux.common import DISCONNECT_EVENTS


GREETING = "Greetings\n> "
PROMPT = "\n> "


def build_reply(text: str) -> tuple[str, bool]:
    """
    Build the reply to one client message.

    Returns:
        Reply text and whether the client should be dropped afterwards
    """
    if text.startswith("hello"):
        return "Hello" + PROMPT, False

    if text.startswith("path"):
        return os.environ.get("PATH", "") + PROMPT, False

    if text.startswith("goodby"):
        return "So long...\n", True

    return f'You said "{text}"' + PROMPT, False


def register_greeter_handlers(app: "Application"):
    """Register greeter handlers."""

    server = app.server
    logger = app.logger

    @server.event(EventKind.CLIENT_CONNECT)
    @logging_middleware.log_event_debug
    def greet(client: ClientInfo):
        server.send(client, GREETING)
        logger.info(f"Client {client.cid} connected from {client.host}")

    @server.event(EventKind.CLIENT_DATA)
    @logging_middleware.log_event
    def answer(client: ClientInfo):
        logger.info(f"Client {client.cid} sent {client.length} bytes")

        reply, bye = build_reply(client.text)
        server.send(client, reply)

        if bye:
            logger.info(f"Client {client.cid} said goodby")
            server.drop(client)

    def dropped(client: ClientInfo):
        logger.info(f"Client {client.cid} dropped")

    for kind in sorted(DISCONNECT_EVENTS):
        server.event(kind)(dropped)

    @server.event(EventKind.CLIENT_OVERFLOW)
    def overflowed(client: ClientInfo):
        logger.warning(f"Client {client.cid} sent an over-length message")
