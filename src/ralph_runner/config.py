"""
Configuration for Ralph Runner.

Loads settings from ralph.yaml in the working directory, falling back to
defaults, with RALPH_* environment variable overrides for the agent commands.
"""

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ralph_runner.errors import RalphError

DEFAULT_CONFIG_NAME = "ralph.yaml"
DEFAULT_RUN_COMMAND = "claude -p --dangerously-skip-permissions"
DEFAULT_PRD_COMMAND = "claude --dangerously-skip-permissions"
DEFAULT_TASKS_COMMAND = "claude -p --dangerously-skip-permissions"
DEFAULT_COMPLETION_SIGNAL = "<promise>COMPLETE</promise>"

DEFAULT_PATHS = {
    "prd": "ralph-prd.json",
    "progress": "ralph-progress.txt",
    "prompt": "ralph-prompt.md",
    "log": "ralph.log",
    "last_branch": ".last-branch",
    "archive": "archive",
}


class ConfigurationError(RalphError):
    """Raised when configuration is invalid."""

    pass


@dataclass(frozen=True)
class RalphConfig:
    """
    Immutable configuration for one Ralph invocation.

    Ralph keeps all of its state next to each other in one directory:
        project/
        ├── ralph.yaml           # Configuration (optional)
        ├── ralph-prd.json       # Task definition (title, branchName)
        ├── ralph-prompt.md      # Prompt piped to the agent every iteration
        ├── ralph-progress.txt   # Progress record
        ├── ralph.log            # Session transcript of the last run
        ├── .last-branch         # Branch marker
        └── archive/             # Snapshots taken on branch transitions

    Attributes:
        base_dir: Directory holding the state files
        run_command: Agent command used for every loop iteration
        prd_command: Agent command used by create-prd
        tasks_command: Agent command used by create-tasks
        max_iterations: Default iteration count for `run`
        iteration_delay: Seconds to wait between iterations
        completion_signal: Literal marker the agent prints when all tasks are done
        branch_prefix: Prefix stripped from branch names in archive folder names
        show_spinner: Show a spinner while the agent is running
        paths: File names relative to base_dir
    """

    base_dir: Path
    run_command: str = DEFAULT_RUN_COMMAND
    prd_command: str = DEFAULT_PRD_COMMAND
    tasks_command: str = DEFAULT_TASKS_COMMAND
    max_iterations: int = 10
    iteration_delay: float = 2.0
    completion_signal: str = DEFAULT_COMPLETION_SIGNAL
    branch_prefix: str = "ralph/"
    show_spinner: bool = True
    paths: tuple[tuple[str, str], ...] = tuple(DEFAULT_PATHS.items())

    @classmethod
    def load(cls, base_dir: Path | None = None, config_path: Path | None = None) -> "RalphConfig":
        """
        Load configuration from YAML file with defaults and env var overrides.

        Args:
            base_dir: Directory holding the state files. Defaults to cwd.
            config_path: Path to config file. Defaults to <base_dir>/ralph.yaml,
                which may be absent. An explicit path must exist.

        Returns:
            RalphConfig instance

        Raises:
            ConfigurationError: If the file or any setting is invalid
        """
        base_dir = Path(base_dir or Path.cwd()).resolve()

        if config_path is None:
            config_path = base_dir / DEFAULT_CONFIG_NAME
            required = False
        else:
            required = True

        config_data: dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
            if loaded is not None:
                if not isinstance(loaded, dict):
                    raise ConfigurationError(f"{config_path} must contain a mapping")
                config_data = loaded
        elif required:
            raise ConfigurationError(f"Config file not found: {config_path}")

        errors: list[str] = []

        def section(name: str) -> dict[str, Any]:
            value = config_data.get(name) or {}
            if not isinstance(value, dict):
                errors.append(f"{name} must be a mapping, got: {value!r}")
                return {}
            return value

        agent = section("agent")
        loop = section("loop")
        archive = section("archive")
        paths_config = section("paths")

        run_command = os.getenv("RALPH_RUN_COMMAND") or agent.get("run_command", DEFAULT_RUN_COMMAND)
        prd_command = os.getenv("RALPH_PRD_COMMAND") or agent.get("prd_command", DEFAULT_PRD_COMMAND)
        tasks_command = os.getenv("RALPH_TASKS_COMMAND") or agent.get(
            "tasks_command", DEFAULT_TASKS_COMMAND
        )

        max_iterations: Any = loop.get("max_iterations", 10)
        if env_iterations := os.getenv("RALPH_MAX_ITERATIONS"):
            try:
                max_iterations = int(env_iterations)
            except ValueError:
                errors.append(f"RALPH_MAX_ITERATIONS must be an integer, got: {env_iterations}")

        iteration_delay = loop.get("iteration_delay", 2.0)
        completion_signal = loop.get("completion_signal", DEFAULT_COMPLETION_SIGNAL)
        show_spinner = loop.get("show_spinner", True)
        branch_prefix = archive.get("branch_prefix", "ralph/")

        for name, value in (
            ("agent.run_command", run_command),
            ("agent.prd_command", prd_command),
            ("agent.tasks_command", tasks_command),
            ("loop.completion_signal", completion_signal),
        ):
            if not isinstance(value, str) or not value.strip():
                errors.append(f"{name} must be a non-empty string, got: {value!r}")
            elif name.startswith("agent."):
                try:
                    shlex.split(value)
                except ValueError as e:
                    errors.append(f"{name} is not a valid command line ({e}): {value!r}")

        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations <= 0:
            errors.append(f"loop.max_iterations must be a positive integer, got: {max_iterations!r}")

        if isinstance(iteration_delay, bool) or not isinstance(iteration_delay, (int, float)) or iteration_delay < 0:
            errors.append(f"loop.iteration_delay must be a non-negative number, got: {iteration_delay!r}")

        if not isinstance(show_spinner, bool):
            errors.append(f"loop.show_spinner must be true or false, got: {show_spinner!r}")

        if not isinstance(branch_prefix, str):
            errors.append(f"archive.branch_prefix must be a string, got: {branch_prefix!r}")

        paths = dict(DEFAULT_PATHS)
        for key, value in paths_config.items():
            if key not in DEFAULT_PATHS:
                errors.append(f"paths.{key} is not a known path")
            elif not isinstance(value, str) or not value:
                errors.append(f"paths.{key} must be a non-empty string, got: {value!r}")
            else:
                paths[key] = value

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ConfigurationError(error_msg)

        return cls(
            base_dir=base_dir,
            run_command=run_command,
            prd_command=prd_command,
            tasks_command=tasks_command,
            max_iterations=max_iterations,
            iteration_delay=float(iteration_delay),
            completion_signal=completion_signal,
            branch_prefix=branch_prefix,
            show_spinner=show_spinner,
            paths=tuple(paths.items()),
        )

    def _path(self, key: str) -> Path:
        return self.base_dir / dict(self.paths)[key]

    @property
    def prd_path(self) -> Path:
        """Path to the task definition JSON file."""
        return self._path("prd")

    @property
    def progress_path(self) -> Path:
        """Path to the progress record."""
        return self._path("progress")

    @property
    def prompt_path(self) -> Path:
        """Path to the prompt piped to the agent."""
        return self._path("prompt")

    @property
    def log_path(self) -> Path:
        """Path to the session transcript."""
        return self._path("log")

    @property
    def last_branch_path(self) -> Path:
        """Path to the branch marker."""
        return self._path("last_branch")

    @property
    def archive_dir(self) -> Path:
        """Directory holding archive snapshots."""
        return self._path("archive")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert configuration to dictionary format.

        Returns:
            Dictionary representation of config
        """
        return {
            "base_dir": str(self.base_dir),
            "agent": {
                "run_command": self.run_command,
                "prd_command": self.prd_command,
                "tasks_command": self.tasks_command,
            },
            "loop": {
                "max_iterations": self.max_iterations,
                "iteration_delay": self.iteration_delay,
                "completion_signal": self.completion_signal,
                "show_spinner": self.show_spinner,
            },
            "archive": {"branch_prefix": self.branch_prefix},
            "paths": dict(self.paths),
        }
