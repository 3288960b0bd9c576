from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.app import Application

from src.handlers.greeter import register_greeter_handlers
from src.handlers.timer import register_timer_handlers


def register_handlers(app: "Application"):
    """Register all handlers."""

    register_greeter_handlers(app=app)
    register_timer_handlers(app=app)
