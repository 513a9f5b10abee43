"""CLI entry point for writing sprint tracking.

This module handles command-line argument parsing, logging setup,
signal handling, and the main entry point.
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.handlers
import queue
import signal
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.live import Live

from . import create_tracker
from .config import Config, load_config
from .exceptions import ConfigError, SprintTrackerError
from .models import PollCommand, TrackingState, now_millis
from .persistence import StateStoreAdapter
from .poller import TrackerPoller
from .store import JsonFileStore, store_path_for_document
from .views.history_panel import render_tracking_panel

logger = logging.getLogger(__name__)


# Rotate at 10MB, keeping 3 old files
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 3


class JSONFormatter(logging.Formatter):
    """Formats each record as one JSON object per line.

    A ``watch`` process and one-shot ``poll`` runs can share a log file, so
    every line carries the pid and thread that wrote it. Anything passed as
    ``extra={"extra_context": {...}}`` is merged into ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "pid": record.process,
            "thread": record.threadName,
            "context": {"function": record.funcName, "line": record.lineno},
        }

        extra_context = getattr(record, "extra_context", None)
        if extra_context:
            entry["context"].update(extra_context)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _setup_logging(config: Config, debug: bool) -> None:
    """Route all logging to the configured rotating JSON log file.

    Raises:
        OSError: The log directory or file cannot be created
    """
    level = logging.DEBUG if debug else logging.INFO
    config.log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())
    file_handler.setLevel(level)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(level)

    logger.info(
        "Logging initialized",
        extra={
            "extra_context": {
                "log_file": str(config.log_file),
                "store_dir": str(config.store_dir),
                "debug": debug,
            }
        },
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="writing-sprints",
        description="Track writing sprints in a text document",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: ~/.config/writing-sprints/config.json if present)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    poll_parser = subparsers.add_parser("poll", help="Poll the document once")
    poll_parser.add_argument("document", type=Path, help="Text file to track")
    poll_parser.add_argument(
        "--close-sprint",
        action="store_true",
        help="Close the open sprint regardless of idle time",
    )
    poll_parser.add_argument(
        "--clear-history",
        action="store_true",
        help="Discard all closed sprints before polling",
    )
    poll_parser.add_argument("--json", action="store_true", help="Print state as JSON")

    history_parser = subparsers.add_parser(
        "history", help="Show stored state without polling"
    )
    history_parser.add_argument("document", type=Path, help="Tracked text file")
    history_parser.add_argument("--json", action="store_true", help="Print state as JSON")

    watch_parser = subparsers.add_parser(
        "watch", help="Poll the document on a schedule and show a live panel"
    )
    watch_parser.add_argument("document", type=Path, help="Text file to track")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Polling interval in seconds (default: poll_interval_seconds from config)",
    )
    watch_parser.add_argument(
        "--close-on-exit",
        action="store_true",
        help="Close the open sprint when watching stops",
    )

    return parser.parse_args(argv)


def _print_state(state: TrackingState, config: Config, as_json: bool, console: Console) -> None:
    if as_json:
        print(json.dumps(state.to_dict(), indent=2))
    else:
        console.print(
            render_tracking_panel(state, now_millis(), history_limit=config.history_limit)
        )


def _handle_poll(args: argparse.Namespace, config: Config, console: Console) -> int:
    tracker = create_tracker(args.document, config.store_dir)
    command = PollCommand(close_sprint=args.close_sprint, clear_history=args.clear_history)
    state = tracker.poll(command)
    logger.info(
        "Poll completed",
        extra={
            "extra_context": {
                "document": str(args.document),
                "close_sprint": command.close_sprint,
                "clear_history": command.clear_history,
                "word_count": state.last_word_count,
            }
        },
    )
    _print_state(state, config, args.json, console)
    return 0


def _handle_history(args: argparse.Namespace, config: Config, console: Console) -> int:
    store = JsonFileStore(store_path_for_document(config.store_dir, args.document))
    state = StateStoreAdapter(store).load(include_history=True)
    _print_state(state, config, args.json, console)
    return 0


def _signal_handler(signum: int, frame) -> None:
    """Handle SIGTERM by turning it into the same path as Ctrl+C."""
    logger.info("Received signal, stopping watch", extra={"extra_context": {"signum": signum}})
    raise KeyboardInterrupt


def _close_on_exit(poller: TrackerPoller, config: Config, console: Console) -> None:
    """Close the open sprint after watching stops, reporting failure without raising."""
    try:
        state = poller.poll_now(PollCommand(close_sprint=True))
    except SprintTrackerError as err:
        logger.error(
            "Closing sprint on exit failed",
            extra={"extra_context": {"error": str(err)}},
            exc_info=True,
        )
        console.print(f"[red]Error closing sprint: {err}[/red]")
        return
    console.print(render_tracking_panel(state, now_millis(), config.history_limit))


def _handle_watch(args: argparse.Namespace, config: Config, console: Console) -> int:
    tracker = create_tracker(args.document, config.store_dir)
    interval = args.interval if args.interval is not None else config.poll_interval_seconds
    if interval <= 0:
        raise ConfigError(f"--interval must be positive, got {interval}")

    update_queue: queue.Queue[TrackingState] = queue.Queue(maxsize=100)
    poller = TrackerPoller(tracker, update_queue, refresh_seconds=interval)
    signal.signal(signal.SIGTERM, _signal_handler)

    state = poller.poll_now()
    poller.start()

    try:
        with Live(
            render_tracking_panel(state, now_millis(), config.history_limit),
            console=console,
            refresh_per_second=4,
        ) as live:
            while True:
                try:
                    state = update_queue.get(timeout=0.5)
                except queue.Empty:
                    pass
                live.update(render_tracking_panel(state, now_millis(), config.history_limit))
    except KeyboardInterrupt:
        # Ctrl+C and SIGTERM are the normal way out; other errors skip the close
        poller.stop()
        if args.close_on_exit:
            _close_on_exit(poller, config, console)
        raise
    finally:
        poller.stop()


_HANDLERS = {
    "poll": _handle_poll,
    "history": _handle_history,
    "watch": _handle_watch,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the writing-sprints command.

    Returns:
        Exit code (0=success, 1=error, 130=SIGINT)
    """
    args = _parse_args(argv)
    console = Console()

    try:
        config = load_config(args.config.resolve() if args.config else None)
    except ConfigError as err:
        console.print(f"[red]Error loading config: {err}[/red]")
        return 1

    try:
        _setup_logging(config, args.debug)
    except OSError as err:
        console.print(f"[red]Error opening log file {config.log_file}: {err}[/red]")
        return 1

    logger.info(
        "Command starting",
        extra={
            "extra_context": {
                "command": args.command,
                "document": str(args.document),
                "store_dir": str(config.store_dir),
            }
        },
    )

    try:
        return _HANDLERS[args.command](args, config, console)

    except KeyboardInterrupt:
        logger.info("Interrupted by user (KeyboardInterrupt)")
        return 130

    except SprintTrackerError as err:
        logger.error(
            "Command failed",
            extra={"extra_context": {"command": args.command, "error": str(err)}},
            exc_info=True,
        )
        console.print(f"[red]Error: {err}[/red]")
        return 1

    except Exception as err:
        logger.error(
            "Command crashed with unhandled exception",
            extra={"extra_context": {"error": str(err)}},
            exc_info=True,
        )
        console.print(f"[red]Fatal error: {err}[/red]")
        console.print(f"[dim]Check logs at: {config.log_file}[/dim]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
