"""External AI agent invocation."""

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console

from ralph_runner.errors import PreconditionError

logger = logging.getLogger(__name__)

# Exit status a shell reports for a command it cannot launch
COMMAND_NOT_FOUND = 127


@dataclass
class AgentResult:
    """Outcome of one agent invocation."""

    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def command_executable(command: str) -> str:
    """First word of an agent command, i.e. the program to run."""
    argv = shlex.split(command)
    return argv[0] if argv else ""


def find_executable(command: str) -> Optional[str]:
    """Resolve an agent command's program on PATH."""
    executable = command_executable(command)
    if not executable:
        return None
    return shutil.which(executable)


class AgentRunner:
    """Runs the agent CLI with text piped to its stdin."""

    def __init__(
        self,
        cwd: Optional[Path] = None,
        console: Optional[Console] = None,
        show_spinner: bool = True,
    ) -> None:
        """
        Initialize the runner.

        Args:
            cwd: Working directory for the agent process
            console: Console for the spinner. No spinner without one.
            show_spinner: Show a spinner while waiting for the agent
        """
        self.cwd = cwd
        self.console = console
        self.show_spinner = show_spinner

    def run(self, command: str, prompt: str, message: str = "Running agent...") -> AgentResult:
        """Run the agent once and capture its combined stdout and stderr.

        Blocks until the agent exits; there is no timeout. A program that
        cannot be launched is reported like a shell would, with exit 127.

        Args:
            command: Agent command line
            prompt: Text piped to the agent's stdin
            message: Spinner text

        Returns:
            AgentResult with the exit code and captured output
        """
        argv = shlex.split(command)
        logger.debug("Launching agent: %s", argv)

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                cwd=self.cwd,
            )
        except OSError as e:
            return AgentResult(exit_code=COMMAND_NOT_FOUND, output=f"Failed to launch {argv[0]}: {e}")

        if self.show_spinner and self.console is not None:
            with self.console.status(message, spinner="dots"):
                output, _ = process.communicate(prompt)
        else:
            output, _ = process.communicate(prompt)

        return AgentResult(exit_code=process.returncode, output=output or "")

    def delegate(self, command: str, text: str) -> int:
        """Hand text to the agent and let it talk to the terminal directly.

        Args:
            command: Agent command line
            text: Text piped to the agent's stdin

        Returns:
            The agent's exit code

        Raises:
            PreconditionError: If the agent program cannot be launched
        """
        argv = shlex.split(command)
        logger.debug("Delegating to agent: %s", argv)
        try:
            result = subprocess.run(argv, input=text, text=True, cwd=self.cwd)
        except OSError as e:
            raise PreconditionError(f"Could not run agent command '{command}': {e}") from e
        return result.returncode
