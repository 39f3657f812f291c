"""Command handlers for Ralph CLI.

Each handler takes the parsed arguments and the loaded configuration and
returns the process exit code.
"""

import argparse
import logging
from pathlib import Path

from rich.console import Console

from ralph_runner.agent import AgentRunner
from ralph_runner.archive import Archiver
from ralph_runner.config import RalphConfig
from ralph_runner.errors import RalphError, UsageError
from ralph_runner.loop import RalphLoop
from ralph_runner.prd import load_task_definition
from ralph_runner.progress import ProgressStore
from ralph_runner.session_log import log_section, log_success, start_transcript, stop_transcript
from ralph_runner.utils import format_size, path_size

logger = logging.getLogger(__name__)


def run_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """Run the Ralph agent loop."""
    handler = start_transcript(config.log_path)
    try:
        loop = RalphLoop(config=config, console=console)
        return loop.run(max_iterations=args.max_iterations)
    except RalphError as e:
        # Logged here so precondition failures reach the transcript
        logger.error(str(e))
        return e.exit_code
    finally:
        stop_transcript(handler)


def create_prd_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """Ask the agent to write a PRD for a feature description."""
    description = " ".join(args.description).strip()
    if not description:
        raise UsageError(
            "Please provide a feature description",
            usage="Usage: ralph create-prd <feature description>\n"
            "Example: ralph create-prd Add user authentication system",
        )

    log_section("Creating PRD", console)
    logger.info("Feature: %s", description)

    runner = AgentRunner(cwd=config.base_dir)
    return runner.delegate(config.prd_command, f"/create-prd {description}\n")


def create_tasks_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """Ask the agent to turn an existing PRD document into tasks."""
    if not args.file_path:
        raise UsageError(
            "Please provide a file path",
            usage="Usage: ralph create-tasks <file-path>\nExample: ralph create-tasks prd.md",
        )

    file_path = Path(args.file_path)
    if not file_path.is_absolute():
        file_path = config.base_dir / file_path
    if not file_path.is_file():
        logger.error("File not found: %s", args.file_path)
        return 1

    log_section("Creating Tasks from PRD", console)
    logger.info("File: %s", args.file_path)

    runner = AgentRunner(cwd=config.base_dir)
    return runner.delegate(config.tasks_command, f"/create-prd-tasks {args.file_path}\n")


def status_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """Show current progress and statistics."""
    log_section("Ralph Status", console)

    if not config.prd_path.exists():
        logger.warning("No PRD file found at: %s", config.prd_path)
    else:
        task = load_task_definition(config.prd_path)
        title = task.title if task and task.title else "N/A"
        branch = task.branch_name if task and task.branch_name else "N/A"
        logger.info("Current PRD: %s", title)
        logger.info("Branch: %s", branch)

    progress = ProgressStore(config.progress_path)
    if progress.exists():
        logger.info("Progress file: %s", config.progress_path)
        logger.info("Completed iterations: %d", progress.count_started_iterations())
    else:
        logger.warning("No progress file found")

    if config.log_path.is_file():
        logger.info("Log file size: %s", format_size(path_size(config.log_path)))

    if config.archive_dir.is_dir():
        logger.info("Archived runs: %d", len(Archiver(config).list_archives()))

    return 0


def clean_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """Remove the transcript, progress record and branch marker."""
    log_section("Cleaning Ralph Logs", console)

    for label, path in (
        ("log file", config.log_path),
        ("progress file", config.progress_path),
        ("last branch tracker", config.last_branch_path),
    ):
        if path.is_file():
            logger.info("Removing %s: %s", label, path)
            path.unlink()

    log_success("Cleanup complete")
    return 0


def archive_list_command(args: argparse.Namespace, config: RalphConfig, console: Console) -> int:
    """List all archived runs."""
    log_section("Archived Ralph Runs", console)

    archives = Archiver(config).list_archives()
    if not archives:
        logger.info("No archived runs found")
        return 0

    for entry in archives:
        logger.info("%s (%s)", entry.name, format_size(entry.size))

    return 0
