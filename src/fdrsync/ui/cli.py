from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from http import HTTPStatus
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from fdrsync.app import build_application, migrate_database
from fdrsync.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from fdrsync.app import Application

log = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL_SECONDS = 30.0


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid number: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Interval must be positive")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Acquire and reconcile settlement flows")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the acquisition job now, in the foreground")
    run.add_argument(
        "--force",
        action="store_true",
        help="Abandon a live execution before starting",
    )

    schedule = subparsers.add_parser("schedule", help="Run the job on its cron schedule")
    schedule.add_argument(
        "--once",
        action="store_true",
        help="Evaluate the schedule gate once and exit",
    )

    watch = subparsers.add_parser("watch", help="Poll the shared trigger marker")
    watch.add_argument(
        "--interval",
        type=_positive_float,
        default=DEFAULT_WATCH_INTERVAL_SECONDS,
        help="Seconds between checks (default: %(default)s)",
    )
    watch.add_argument(
        "--once",
        action="store_true",
        help="Check the marker once and exit",
    )

    subparsers.add_parser("status", help="Show the live and last executions")
    subparsers.add_parser("migrate", help="Upgrade the database schema")

    return parser.parse_args(list(argv))


def _run_inline(work: Callable[[], None]) -> None:
    work()


def _run(app: Application, *, force: bool) -> int:
    response = app.manual.trigger(force=force)
    log.info("%s (HTTP %s)", response.message, int(response.status))
    if response.status is not HTTPStatus.ACCEPTED:
        return 1
    last = app.manual.last_execution()
    if last is not None:
        log.info("Execution finished with status %s", last["status"])
    return 0


def _schedule(app: Application, *, once: bool) -> int:
    if once:
        app.scheduler.run_once()
        return 0
    app.scheduler.run_forever(threading.Event())
    return 0


def _watch(app: Application, *, interval: float, once: bool) -> int:
    stop = threading.Event()
    while True:
        app.watcher.check()
        if once or stop.wait(interval):
            return 0


def _status(app: Application) -> int:
    view = {
        **app.manual.status(),
        "last_execution": app.manual.last_execution(),
    }
    next_run = app.manual.next_execution()
    view["next_execution"] = next_run.isoformat() if next_run is not None else None
    log.info("Status:\n%s", json.dumps(view, indent=2, default=str))
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "migrate":
        migrate_database()
        return 0

    app = build_application(launch_async=_run_inline)
    try:
        if args.command == "run":
            return _run(app, force=args.force)
        if args.command == "schedule":
            return _schedule(app, once=args.once)
        if args.command == "watch":
            return _watch(app, interval=args.interval, once=args.once)
        if args.command == "status":
            return _status(app)
        raise ValueError(f"Unsupported command: {args.command}")
    finally:
        app.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        exit_code = _dispatch(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("Invalid configuration")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during acquisition")
        sys.exit(1)
    sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def entrypoint() -> None:
    """Console script: load ``.env`` and install the Ctrl+C handler."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()
