"""Command-line interface for Ralph."""

import argparse
import logging
import signal
import sys
from pathlib import Path
from types import FrameType
from typing import Callable, Dict, List, NoReturn, Optional

from rich.console import Console

from ralph_runner import __version__
from ralph_runner import commands
from ralph_runner.config import RalphConfig
from ralph_runner.errors import RalphError, UsageError
from ralph_runner.session_log import make_console, setup_logging, teardown_logging

logger = logging.getLogger(__name__)

Handler = Callable[[argparse.Namespace, RalphConfig, Console], int]

COMMANDS: Dict[str, Handler] = {
    "run": commands.run_command,
    "create-prd": commands.create_prd_command,
    "create-tasks": commands.create_tasks_command,
    "status": commands.status_command,
    "clean": commands.clean_command,
    "archive-list": commands.archive_list_command,
}


def positive_int(value: str) -> int:
    """argparse type for a positive iteration count."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid iteration count: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"iteration count must be positive, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ralph",
        description="Ralph: runs an AI coding agent in a loop until the task list is done",
        epilog="""
Examples:
  ralph run                                  # Run with default 10 iterations
  ralph run 50                               # Run with 50 iterations
  ralph create-prd Add user authentication system
  ralph create-tasks prd.md
  ralph status                               # Check current status
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-C", "--dir",
        type=Path,
        default=None,
        help="Run as if ralph was started in this directory",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: ralph.yaml in the working directory)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    run_parser = subparsers.add_parser(
        "run",
        help="Run the Ralph agent loop (default: 10 iterations)",
    )
    run_parser.add_argument(
        "max_iterations",
        nargs="?",
        type=positive_int,
        default=None,
        help="Maximum iterations (default: loop.max_iterations from config, 10)",
    )

    prd_parser = subparsers.add_parser(
        "create-prd",
        help="Create a new PRD using the create-prd skill",
    )
    prd_parser.add_argument(
        "description",
        nargs="*",
        help="Feature description",
    )

    tasks_parser = subparsers.add_parser(
        "create-tasks",
        help="Create tasks from existing PRD file",
    )
    tasks_parser.add_argument(
        "file_path",
        nargs="?",
        default=None,
        help="Path to PRD document",
    )

    subparsers.add_parser("status", help="Show current progress and statistics")
    subparsers.add_parser("clean", help="Clean up logs and progress files")
    subparsers.add_parser("archive-list", help="List all archived runs")
    subparsers.add_parser("help", help="Show this help message")

    return parser


def _raise_keyboard_interrupt(signum: int, frame: Optional[FrameType]) -> None:
    raise KeyboardInterrupt


def run(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    """Parse arguments, dispatch the command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    console = setup_logging(console, verbose=args.verbose)
    console_err = make_console(stderr=True)

    try:
        config = RalphConfig.load(base_dir=args.dir, config_path=args.config)
        logger.debug("Configuration loaded: %s", config.to_dict())
        return COMMANDS[args.command](args, config, console)

    except UsageError as e:
        logger.error(str(e))
        if e.usage:
            console_err.print(f"\n{e.usage}")
        return e.exit_code

    except RalphError as e:
        logger.error(str(e))
        return e.exit_code

    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130  # Standard exit code for SIGINT

    except Exception:
        logger.exception("Unexpected error")
        return 1

    finally:
        teardown_logging()


def main() -> NoReturn:
    """Main CLI entry point."""
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    sys.exit(run())


if __name__ == "__main__":
    main()
