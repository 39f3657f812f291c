"""Ralph iteration loop."""

import logging
import time
from typing import Optional

from rich.console import Console

from ralph_runner.agent import AgentRunner, find_executable
from ralph_runner.archive import Archiver
from ralph_runner.config import RalphConfig
from ralph_runner.errors import PreconditionError
from ralph_runner.progress import ProgressStore
from ralph_runner.session_log import log_section, log_success

logger = logging.getLogger(__name__)

EXIT_COMPLETED = 0
EXIT_MAX_ITERATIONS = 1
EXIT_INTERRUPTED = 130


class RalphLoop:
    """Main Ralph execution loop.

    Each iteration pipes the prompt document to the agent, records the
    outcome in the progress record and stops early once the agent prints
    the completion signal. Agent failures are recorded and skipped.
    """

    def __init__(
        self,
        config: RalphConfig,
        runner: Optional[AgentRunner] = None,
        console: Optional[Console] = None,
    ) -> None:
        """Initialize Ralph loop.

        Args:
            config: RalphConfig instance
            runner: Agent runner. Built from config if omitted.
            console: Console for section panels and the spinner
        """
        self.config = config
        self.console = console
        self.runner = runner or AgentRunner(
            cwd=config.base_dir,
            console=console,
            show_spinner=config.show_spinner,
        )
        self.progress = ProgressStore(config.progress_path)
        self.archiver = Archiver(config, self.progress)
        self.successful_iterations = 0
        self.failed_iterations = 0
        self.iterations_run = 0

    def validate_environment(self) -> None:
        """Check the agent, prompt and task definition are all present.

        Raises:
            PreconditionError: On the first missing collaborator
        """
        logger.info("Validating environment...")

        if find_executable(self.config.run_command) is None:
            raise PreconditionError(
                f"Agent CLI not found: '{self.config.run_command}'. Please install it first."
            )

        if not self.config.prompt_path.is_file():
            raise PreconditionError(
                f"{self.config.prompt_path.name} not found in {self.config.base_dir}"
            )

        if not self.config.prd_path.is_file():
            raise PreconditionError(
                f"PRD file not found: {self.config.prd_path}\n"
                f"Please create a {self.config.prd_path.name} file before running Ralph"
            )

        log_success("Environment validation passed")

    def prepare(self) -> None:
        """Validate, archive a finished branch and make sure a progress record exists."""
        self.validate_environment()
        self.archiver.check_and_archive()
        self.archiver.track_current_branch()
        if self.progress.initialize_if_absent():
            logger.info("Initializing progress file...")

    def run(self, max_iterations: Optional[int] = None) -> int:
        """Execute Ralph loop until completion or max iterations.

        Args:
            max_iterations: Maximum number of iterations (defaults to config)

        Returns:
            0 if the agent signalled completion, 1 if the iterations ran
            out, 130 if interrupted

        Raises:
            PreconditionError: If a required file or executable is missing
        """
        max_iter = self.config.max_iterations if max_iterations is None else max_iterations
        if max_iter <= 0:
            raise ValueError(f"max_iterations must be positive, got {max_iter}")

        try:
            self.prepare()
            return self._loop(max_iter)
        except KeyboardInterrupt:
            logger.warning("Received interrupt signal. Cleaning up...")
            logger.info("Final status saved to: %s", self.config.progress_path)
            logger.info("Full logs available at: %s", self.config.log_path)
            return EXIT_INTERRUPTED

    def _loop(self, max_iter: int) -> int:
        log_section(f"Starting Ralph - Max Iterations: {max_iter}", self.console)

        prompt = self.config.prompt_path.read_text(encoding="utf-8")
        session_start = time.monotonic()

        for iteration in range(1, max_iter + 1):
            iteration_start = time.monotonic()
            log_section(f"Iteration {iteration} of {max_iter}", self.console)

            self.progress.record_start(iteration)
            self.iterations_run = iteration

            result = self.runner.run(
                self.config.run_command,
                prompt,
                f"Running iteration {iteration}/{max_iter}...",
            )

            if result.succeeded:
                self.successful_iterations += 1
                duration = int(time.monotonic() - iteration_start)

                log_success("Iteration %d completed in %ds", iteration, duration)
                self.progress.record_success(iteration, duration, result.output)

                if self.config.completion_signal in result.output:
                    total = int(time.monotonic() - session_start)
                    self.progress.record_completion(iteration, total)
                    log_section("🎉 Ralph Completed Successfully! 🎉", self.console)
                    log_success("Completed at iteration %d of %d", iteration, max_iter)
                    self._log_totals(total)
                    return EXIT_COMPLETED
            else:
                self.failed_iterations += 1
                logger.warning(
                    "Iteration %d encountered an error (exit code %d) but continuing...",
                    iteration,
                    result.exit_code,
                )
                self.progress.record_failure(iteration, result.output)

            logger.info("Waiting before next iteration...")
            time.sleep(self.config.iteration_delay)

        total = int(time.monotonic() - session_start)
        self.progress.record_exhausted(
            max_iter, total, self.successful_iterations, self.failed_iterations
        )
        log_section("⚠ Max Iterations Reached ⚠", self.console)
        logger.warning("Ralph reached max iterations (%d) without completing all tasks", max_iter)
        self._log_totals(total)
        return EXIT_MAX_ITERATIONS

    def _log_totals(self, total: int) -> None:
        logger.info("Total duration: %ds", total)
        logger.info("Successful iterations: %d", self.successful_iterations)
        logger.info("Failed iterations: %d", self.failed_iterations)
        logger.info("Progress saved to: %s", self.config.progress_path)
        logger.info("Full logs available at: %s", self.config.log_path)
