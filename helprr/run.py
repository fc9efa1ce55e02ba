"""
Application entry point.

Run with `python -m helprr.run`, or `helprr` once installed.
"""

import argparse
import signal
import threading

from helprr import create_app
from helprr.core.logging import get_logger

logger = get_logger("run")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="helprr",
        description="Poll media services and send push notifications.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single cycle for every service and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="override LOG_LEVEL (DEBUG, INFO, WARNING, ...)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    config = {"LOG_LEVEL": args.log_level} if args.log_level else None
    app = create_app(config)

    if args.once:
        outcomes = app.run_once()
        for service, outcome in outcomes.items():
            logger.info("%s: %s", service.value, outcome.value)
        app.stop()
        return 0

    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    app.start()
    stop_event.wait()
    app.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
