from src.middleware.logging_middleware import LoggingMiddleware, setup_logging


logging_middleware = LoggingMiddleware()

__all__ = ["LoggingMiddleware", "setup_logging", "logging_middleware"]
