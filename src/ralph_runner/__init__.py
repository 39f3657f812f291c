"""Ralph Runner - drives an AI coding agent through iterative build loops."""

__version__ = "0.1.0"

from ralph_runner.archive import Archiver, BranchTracker, archive_folder_name
from ralph_runner.config import ConfigurationError, RalphConfig
from ralph_runner.errors import PreconditionError, RalphError, UsageError
from ralph_runner.loop import RalphLoop
from ralph_runner.progress import ProgressStore

__all__ = [
    "Archiver",
    "BranchTracker",
    "ConfigurationError",
    "PreconditionError",
    "ProgressStore",
    "RalphConfig",
    "RalphError",
    "RalphLoop",
    "UsageError",
    "archive_folder_name",
]
