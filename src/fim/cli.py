#!/usr/bin/env python3
"""
CLI for baseline creation, integrity checks and real-time monitoring.

Usage:
    fim baseline /path/to/folder
    fim check /path/to/folder
    fim monitor /path/to/folder --create-baseline
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .baseline import BaselineStore, check_integrity, create_baseline, resolve_root
from .bus import AlertBus, log_listener
from .config import MonitorConfig
from .exceptions import BaselineInUseError, BaselineNotFoundError, RootNotFoundError
from .session import MonitorSession


logger = logging.getLogger("fim.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.stop_requested = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.stop_requested.set()


def build_config(args) -> MonitorConfig:
    """Environment (.env included) first, then command line overrides."""
    return MonitorConfig.from_env(
        tick_ms=getattr(args, "tick", None),
        stability_ms=getattr(args, "stability", None),
        verify_ms=getattr(args, "verify", None),
        rename_window_ms=getattr(args, "rename_window", None),
        baseline_dir=Path(args.baseline_dir).expanduser() if args.baseline_dir else None,
    )


def cmd_baseline(args) -> int:
    """Create or update the baseline of a root."""
    config = build_config(args)
    try:
        entries = create_baseline(Path(args.root), config, force=args.force)
    except RootNotFoundError as e:
        logger.error(str(e))
        return 1
    except BaselineInUseError as e:
        logger.error(f"{e} (stop the monitor or pass --force)")
        return 1
    logger.info(f"[+] Baseline written with {len(entries)} entries")
    return 0


def cmd_check(args) -> int:
    """Compare a root against its baseline."""
    config = build_config(args)
    try:
        report = check_integrity(Path(args.root), config)
    except (RootNotFoundError, BaselineNotFoundError) as e:
        logger.error(str(e))
        return 1
    logger.info("Integrity check completed.")
    return 0 if report.clean else 2


def cmd_monitor(args) -> int:
    """Run real-time monitoring until interrupted."""
    config = build_config(args)

    try:
        root = resolve_root(Path(args.root))
    except RootNotFoundError as e:
        logger.error(str(e))
        return 1

    if args.create_baseline and not BaselineStore(root, config.baseline_dir).exists():
        logger.warning("[!] Baseline not found. Creating baseline first...")
        create_baseline(root, config)

    shutdown = GracefulShutdown()
    errors: List[Exception] = []

    def on_error(exc: Exception) -> None:
        errors.append(exc)
        shutdown.stop_requested.set()

    with AlertBus() as bus:
        bus.subscribe(log_listener)
        session = MonitorSession(config, bus)
        try:
            session.start(root, on_error=on_error, on_finish=shutdown.stop_requested.set)
        except BaselineNotFoundError as e:
            logger.error(f"{e} Run 'fim baseline {root}' or pass --create-baseline.")
            return 1

        logger.info("Press Ctrl+C to stop")
        while not shutdown.stop_requested.wait(timeout=1.0):
            pass

        if not session.stop_and_wait(config.stop_timeout_s):
            logger.warning("Monitor did not shut down cleanly")

    return 1 if errors else 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("root", help="Directory to operate on")
    parser.add_argument("--baseline-dir", default=None, help="Baseline directory (or FIM_BASELINE_DIR, default ~/.fim)")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="fim",
        description="File integrity monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create (or update) the baseline
  fim baseline ./documents

  # One-shot integrity check against the baseline
  fim check ./documents

  # Real-time monitoring
  fim monitor ./documents --create-baseline
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    baseline_parser = subparsers.add_parser("baseline", help="Create or update the baseline")
    _add_common(baseline_parser)
    baseline_parser.add_argument("--force", action="store_true", help="Overwrite even if a monitor holds the baseline")
    baseline_parser.set_defaults(func=cmd_baseline)

    check_parser = subparsers.add_parser("check", help="Check integrity against the baseline")
    _add_common(check_parser)
    check_parser.set_defaults(func=cmd_check)

    monitor_parser = subparsers.add_parser("monitor", help="Start real-time monitoring")
    _add_common(monitor_parser)
    monitor_parser.add_argument("--create-baseline", action="store_true", help="Create the baseline first if missing")
    monitor_parser.add_argument("--tick", type=int, default=None, help="Poll tick in ms (default: 200)")
    monitor_parser.add_argument("--stability", type=int, default=None, help="Write stability window in ms (default: 600)")
    monitor_parser.add_argument("--verify", type=int, default=None, help="Delete verify window in ms (default: 300)")
    monitor_parser.add_argument("--rename-window", type=int, default=None, help="Rename correlation window in ms (default: 1200)")
    monitor_parser.set_defaults(func=cmd_monitor)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
