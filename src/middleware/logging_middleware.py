import sys
import logging
import time

from functools import wraps
from pathlib import Path
from typing import Callable, Optional

from src.config import Settings, settings as default_settings


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging based on settings."""

    settings = settings or default_settings

    log_level = getattr(logging, settings.logging_level.upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (if enabled)
    if settings.logging_on_file:
        logs_dir = Path(settings.logs_dir)
        logs_dir.mkdir(exist_ok=True)

        file_handler = logging.FileHandler(
            logs_dir / "server.log",
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


class LoggingMiddleware:
    """Logging event handlers middleware."""

    def __init__(self):
        self.logger = logging.getLogger("event-logger")

    def _event_decorator(self, func: Callable, level: int) -> Callable:
        """Base decorator for logging event handlers."""

        @wraps(func)
        def wrapper(client):
            handler_name = func.__name__
            client_tag = f"client:{client.cid}" if client is not None else "timer"
            start_time = time.monotonic()

            try:
                result = func(client)
                duration = time.monotonic() - start_time

                self.logger.log(
                    level,
                    f"[{client_tag}] Handler '{handler_name}' completed [{duration:.3f}s]"
                )

                return result

            except Exception as e:
                duration = time.monotonic() - start_time

                self.logger.error(
                    f"[{client_tag}] Handler '{handler_name}' failed: "
                    f"{type(e).__name__}: {e} [{duration:.3f}s]"
                )

                raise

        return wrapper

    def log_event(self, func: Callable) -> Callable:
        """Decorator for logging event handlers at INFO level."""

        return self._event_decorator(func, logging.INFO)

    def log_event_debug(self, func: Callable) -> Callable:
        """Decorator for logging event handlers at DEBUG level."""

        return self._event_decorator(func, logging.DEBUG)
