"""Append-only progress record (ralph-progress.txt)."""

import re
from datetime import datetime
from pathlib import Path

PROGRESS_HEADER = "# Ralph Progress Log"
SUMMARY_RULE = "═" * 55

ITERATION_START_RE = re.compile(r"^--- Iteration (\d+) started at ", re.MULTILINE)
OUTCOME_RE = re.compile(r"^Iteration (\d+): (SUCCESS|FAILED)\b", re.MULTILINE)


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


class ProgressStore:
    """Progress record shared by every run on the same branch.

    Entries are only ever appended. The whole file is rewritten in exactly
    two cases: it is created by `initialize_if_absent`, or the archiver
    resets it on a branch transition.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def initialize_if_absent(self) -> bool:
        """Create the record with a header if it does not exist.

        Returns:
            True if the file was created
        """
        if self.path.exists():
            return False
        self._write_header()
        return True

    def reset(self, branch: str) -> None:
        """Truncate the record and start over with a header naming the branch."""
        self._write_header(branch)

    def _write_header(self, branch: str | None = None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(f"{PROGRESS_HEADER}\n")
            f.write(f"Started: {_now()}\n")
            if branch:
                f.write(f"Branch: {branch}\n")
            f.write("---\n")

    def append(self, text: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(text)

    def record_start(self, iteration: int) -> None:
        self.append(f"\n--- Iteration {iteration} started at {_now()} ---\n")

    def record_success(self, iteration: int, duration: int, output: str) -> None:
        self.append(
            f"Iteration {iteration}: SUCCESS ({duration}s)\n"
            f"\n--- Iteration {iteration} Output ---\n"
            f"{output}\n"
        )

    def record_failure(self, iteration: int, output: str) -> None:
        self.append(
            f"Iteration {iteration}: FAILED\n"
            f"\n--- Iteration {iteration} Output (FAILED) ---\n"
            f"{output}\n"
        )

    def record_completion(self, iterations: int, duration: int) -> None:
        self.append(
            f"\n{SUMMARY_RULE}\n"
            f"COMPLETED at {_now()}\n"
            f"Total iterations: {iterations}\n"
            f"Total duration: {duration}s\n"
            f"{SUMMARY_RULE}\n"
        )

    def record_exhausted(self, max_iterations: int, duration: int, successes: int, failures: int) -> None:
        self.append(
            f"\n{SUMMARY_RULE}\n"
            f"MAX ITERATIONS REACHED at {_now()}\n"
            f"Total iterations: {max_iterations}\n"
            f"Total duration: {duration}s\n"
            f"Successful: {successes}\n"
            f"Failed: {failures}\n"
            f"{SUMMARY_RULE}\n"
        )

    def read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8", errors="replace")

    def count_started_iterations(self) -> int:
        """Count iteration start markers.

        This is an approximation for status output, not an iteration
        counter: an interrupted iteration still has its marker, and a record
        that is never reset keeps counting across runs.
        """
        return len(ITERATION_START_RE.findall(self.read()))

    def outcomes(self) -> list[tuple[int, str]]:
        """(iteration, "SUCCESS" | "FAILED") pairs in the order they were written."""
        return [(int(number), outcome) for number, outcome in OUTCOME_RE.findall(self.read())]
