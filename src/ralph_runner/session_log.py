"""
Console and session transcript logging.

Every Ralph command logs through the `ralph_runner` logger. The console gets
coloured output from rich; `run` additionally writes every line to the
session transcript, which is truncated at the start of each run.
"""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.theme import Theme

LOGGER_NAME = "ralph_runner"
SUCCESS = 25
TRANSCRIPT_RULE = "═" * 63
TRANSCRIPT_FORMAT = "[%(levelname)s] %(asctime)s - %(message)s"
TRANSCRIPT_DATEFMT = "%Y-%m-%d %H:%M:%S"

logging.addLevelName(SUCCESS, "SUCCESS")

logger = logging.getLogger(LOGGER_NAME)

RALPH_THEME = Theme({"logging.level.success": "bold green"})


class _SkipSections(logging.Filter):
    """Keep section records off the console; they are printed as panels."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not getattr(record, "section", False)


class TranscriptFormatter(logging.Formatter):
    """Plain-text transcript format with boxed section headers."""

    def __init__(self) -> None:
        super().__init__(TRANSCRIPT_FORMAT, datefmt=TRANSCRIPT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, "section", False):
            return f"\n╔{TRANSCRIPT_RULE}╗\n║  {record.getMessage()}\n╚{TRANSCRIPT_RULE}╝\n"
        return super().format(record)


def make_console(stderr: bool = False) -> Console:
    """Create a console that knows how to colour the SUCCESS level."""
    return Console(theme=RALPH_THEME, stderr=stderr)


def setup_logging(console: Console | None = None, verbose: bool = False) -> Console:
    """
    Configure console logging for the CLI.

    Args:
        console: Console to log to. A themed console is created if omitted.
        verbose: If True, enable DEBUG level logging. Otherwise, INFO level.

    Returns:
        The console used by the handler
    """
    if console is None:
        console = make_console()
    else:
        console.push_theme(RALPH_THEME)
    teardown_logging()

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=verbose,
        log_time_format="[%X]",
    )
    handler.addFilter(_SkipSections())
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return console


def start_transcript(log_path: Path) -> logging.Handler:
    """
    Truncate the session transcript and attach it to the logger.

    Args:
        log_path: Path to the transcript file

    Returns:
        The file handler, so callers can detach it when the run ends
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "w", encoding="utf-8") as f:
        f.write(f"{TRANSCRIPT_RULE}\n")
        f.write(f"Ralph Session Started: {datetime.now().isoformat(timespec='seconds')}\n")
        f.write(f"{TRANSCRIPT_RULE}\n")

    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(TranscriptFormatter())
    logger.addHandler(handler)
    return handler


def stop_transcript(handler: logging.Handler) -> None:
    """Detach and close a transcript handler."""
    logger.removeHandler(handler)
    handler.close()


def teardown_logging() -> None:
    """Remove and close every handler attached to the package logger."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def log_success(message: str, *args: object) -> None:
    """Log at the SUCCESS level."""
    logger.log(SUCCESS, message, *args)


def log_section(title: str, console: Console | None = None) -> None:
    """
    Log a section header.

    The console shows a panel; the transcript gets a boxed title line.

    Args:
        title: Section title
        console: Console to print the panel on. Nothing is printed if omitted.
    """
    if console is not None:
        console.print()
        console.print(Panel(f"[bold magenta]{title}[/bold magenta]", border_style="magenta"))
    logger.info(title, extra={"section": True})
