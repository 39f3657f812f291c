"""Branch tracking and archiving of previous runs."""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ralph_runner.config import RalphConfig
from ralph_runner.prd import current_branch
from ralph_runner.progress import ProgressStore
from ralph_runner.session_log import log_success
from ralph_runner.utils import path_size

logger = logging.getLogger(__name__)

ARCHIVE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def archive_folder_name(branch: str, prefix: str = "ralph/", now: Optional[datetime] = None) -> str:
    """Name of the snapshot folder for a branch.

    The prefix is stripped and any remaining slashes become dashes, so the
    snapshot is always one directory under archive/.

    Args:
        branch: Branch name of the run being archived
        prefix: Conventional branch prefix to strip
        now: Timestamp to use. Defaults to the current time.
    """
    now = now or datetime.now()
    name = branch[len(prefix):] if prefix and branch.startswith(prefix) else branch
    name = name.replace("/", "-") or "unnamed"
    return f"{now.strftime(ARCHIVE_TIMESTAMP_FORMAT)}-{name}"


class BranchTracker:
    """Persisted last-seen branch (.last-branch)."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> str:
        """Last recorded branch, or an empty string if none was recorded."""
        try:
            return self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""

    def write(self, branch: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(f"{branch}\n", encoding="utf-8")


@dataclass
class ArchiveEntry:
    """One archived run."""

    name: str
    path: Path
    size: int


class Archiver:
    """Archives the previous run when the task definition switches branch."""

    def __init__(self, config: RalphConfig, progress: Optional[ProgressStore] = None) -> None:
        self.config = config
        self.progress = progress or ProgressStore(config.progress_path)
        self.tracker = BranchTracker(config.last_branch_path)

    def check_and_archive(self) -> Optional[Path]:
        """Snapshot state files if the branch changed since the last run.

        Returns:
            Path to the new snapshot, or None if there was no transition
        """
        branch = current_branch(self.config.prd_path)
        last_branch = self.tracker.read()

        if not branch or not last_branch or branch == last_branch:
            return None

        logger.warning("Branch changed from '%s' to '%s'", last_branch, branch)
        logger.info("Archiving previous run...")

        destination = self._new_snapshot_dir(
            archive_folder_name(last_branch, self.config.branch_prefix)
        )
        for source in (self.config.prd_path, self.config.progress_path, self.config.log_path):
            if source.is_file():
                shutil.copy2(source, destination / source.name)

        log_success("Archived to: %s", destination)

        self.progress.reset(branch)
        return destination

    def _new_snapshot_dir(self, name: str) -> Path:
        """Create an empty snapshot directory, suffixing the name if it is taken."""
        self.config.archive_dir.mkdir(parents=True, exist_ok=True)
        candidate = self.config.archive_dir / name
        suffix = 1
        while True:
            try:
                candidate.mkdir(exist_ok=False)
                return candidate
            except FileExistsError:
                suffix += 1
                candidate = self.config.archive_dir / f"{name}-{suffix}"

    def track_current_branch(self) -> Optional[str]:
        """Record the task definition's branch for the next run.

        Returns:
            The recorded branch, or None if the task definition has none
        """
        branch = current_branch(self.config.prd_path)
        if not branch:
            return None
        self.tracker.write(branch)
        logger.info("Tracking branch: %s", branch)
        return branch

    def list_archives(self) -> List[ArchiveEntry]:
        """Archived runs sorted by name (oldest first)."""
        archive_dir = self.config.archive_dir
        if not archive_dir.is_dir():
            return []
        return [
            ArchiveEntry(name=path.name, path=path, size=path_size(path))
            for path in sorted(archive_dir.iterdir())
            if path.is_dir()
        ]
