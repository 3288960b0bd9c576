"""
Production entry point for the TLSMux server.
"""

import argparse
import logging
import signal
import sys

from src.app import Application
from src.config import Settings
from src.tlsmux import InitError, WaitError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TLSMux secure text server")

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to the .env configuration file"
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        help="Port to listen on (overrides configuration)"
    )

    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.port is not None:
        overrides["port"] = args.port

    if args.config:
        return Settings(_env_file=args.config, **overrides)
    return Settings(**overrides)


logger = logging.getLogger("app-starter")


def main(argv=None) -> int:
    """Main entry point. Returns the process exit status."""

    args = parse_args(argv)

    try:
        app = Application(load_settings(args))

        signal.signal(signal.SIGTERM, lambda *_: app.shutdown())

        server = app.create_server()

        app.logger.info("Starting TLSMux server...")

        server.up()

    except (InitError, WaitError) as e:
        logger.critical(f"Fatal: {e}")
        return 1

    except Exception:
        logger.critical("Critical unexpected error", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
