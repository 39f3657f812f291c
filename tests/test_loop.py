"""Tests for the Ralph iteration loop."""

from dataclasses import replace
from typing import List
from unittest.mock import MagicMock, patch

import pytest

from ralph_runner.agent import AgentResult
from ralph_runner.archive import BranchTracker
from ralph_runner.config import RalphConfig
from ralph_runner.errors import PreconditionError
from ralph_runner.loop import EXIT_COMPLETED, EXIT_INTERRUPTED, EXIT_MAX_ITERATIONS, RalphLoop

from conftest import PROMPT_TEXT, write_prd

SENTINEL = "<promise>COMPLETE</promise>"


def _runner(results: List[AgentResult]) -> MagicMock:
    runner = MagicMock()
    runner.run.side_effect = results
    return runner


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("ralph_runner.loop.time.sleep") as mock_sleep:
        yield mock_sleep


class TestRun:
    """Tests for RalphLoop.run."""

    def test_failures_then_success_without_signal(self, project: RalphConfig) -> None:
        """Two failures and a success with no completion signal exhaust the loop."""
        runner = _runner([
            AgentResult(exit_code=1, output="crash one"),
            AgentResult(exit_code=2, output="crash two"),
            AgentResult(exit_code=0, output="made progress"),
        ])
        loop = RalphLoop(project, runner=runner)

        assert loop.run(3) == EXIT_MAX_ITERATIONS

        assert loop.successful_iterations == 1
        assert loop.failed_iterations == 2
        assert loop.iterations_run == 3
        assert loop.progress.outcomes() == [(1, "FAILED"), (2, "FAILED"), (3, "SUCCESS")]

        content = loop.progress.read()
        assert "crash one" in content
        assert "made progress" in content
        assert "MAX ITERATIONS REACHED" in content
        assert "Successful: 1" in content
        assert "Failed: 2" in content

    def test_completion_signal_stops_early(self, project: RalphConfig, no_sleep: MagicMock) -> None:
        """The loop returns 0 right after the iteration that prints the signal."""
        runner = _runner([
            AgentResult(exit_code=0, output="story 1 done"),
            AgentResult(exit_code=0, output=f"all done\n{SENTINEL}\n"),
            AgentResult(exit_code=0, output="never used"),
        ])
        loop = RalphLoop(project, runner=runner)

        assert loop.run(5) == EXIT_COMPLETED

        assert runner.run.call_count == 2
        assert no_sleep.call_count == 1
        assert loop.progress.outcomes() == [(1, "SUCCESS"), (2, "SUCCESS")]
        assert loop.progress.count_started_iterations() == 2

        content = loop.progress.read()
        assert "COMPLETED at " in content
        assert "Total iterations: 2" in content
        assert "Iteration 3 started" not in content

    def test_signal_in_failed_output_is_ignored(self, project: RalphConfig) -> None:
        """Only a successful iteration can complete the run."""
        runner = _runner([
            AgentResult(exit_code=1, output=SENTINEL),
            AgentResult(exit_code=0, output=SENTINEL),
        ])
        loop = RalphLoop(project, runner=runner)

        assert loop.run(5) == EXIT_COMPLETED
        assert loop.progress.outcomes() == [(1, "FAILED"), (2, "SUCCESS")]

    def test_exhausts_exactly_max_iterations(self, project: RalphConfig, no_sleep: MagicMock) -> None:
        runner = _runner([AgentResult(exit_code=0, output="still working")] * 4)
        loop = RalphLoop(project, runner=runner)

        assert loop.run(4) == EXIT_MAX_ITERATIONS

        assert runner.run.call_count == 4
        assert no_sleep.call_count == 4
        assert len(loop.progress.outcomes()) == 4

    def test_pipes_prompt_to_run_command(self, project: RalphConfig) -> None:
        runner = _runner([AgentResult(exit_code=0, output=SENTINEL)])

        RalphLoop(project, runner=runner).run(1)

        command, prompt, _message = runner.run.call_args.args
        assert command == project.run_command
        assert prompt == PROMPT_TEXT

    def test_default_iterations_from_config(self, project: RalphConfig) -> None:
        config = replace(project, max_iterations=2)
        runner = _runner([AgentResult(exit_code=1, output="")] * 2)

        assert RalphLoop(config, runner=runner).run() == EXIT_MAX_ITERATIONS
        assert runner.run.call_count == 2

    def test_custom_completion_signal(self, project: RalphConfig) -> None:
        config = replace(project, completion_signal="ALL_TASKS_DONE")
        runner = _runner([
            AgentResult(exit_code=0, output=SENTINEL),
            AgentResult(exit_code=0, output="ALL_TASKS_DONE"),
        ])

        assert RalphLoop(config, runner=runner).run(3) == EXIT_COMPLETED
        assert runner.run.call_count == 2

    def test_keeps_existing_progress(self, project: RalphConfig) -> None:
        """A new run on the same branch appends to the existing record."""
        BranchTracker(project.last_branch_path).write("ralph/feature-a")
        project.progress_path.write_text("# Ralph Progress Log\nprevious run\n")
        runner = _runner([AgentResult(exit_code=0, output=SENTINEL)])

        RalphLoop(project, runner=runner).run(1)

        content = project.progress_path.read_text()
        assert content.startswith("# Ralph Progress Log\nprevious run\n")
        assert "Iteration 1: SUCCESS" in content

    def test_archives_previous_branch_before_looping(self, project: RalphConfig) -> None:
        BranchTracker(project.last_branch_path).write("ralph/old-feature")
        project.progress_path.write_text("# Ralph Progress Log\nold work\n")
        runner = _runner([AgentResult(exit_code=0, output=SENTINEL)])

        RalphLoop(project, runner=runner).run(1)

        snapshots = list(project.archive_dir.iterdir())
        assert len(snapshots) == 1
        assert snapshots[0].name.endswith("-old-feature")
        assert "old work" in (snapshots[0] / project.progress_path.name).read_text()
        assert "old work" not in project.progress_path.read_text()
        assert BranchTracker(project.last_branch_path).read() == "ralph/feature-a"

    @pytest.mark.parametrize("count", [0, -1])
    def test_rejects_non_positive_iterations(self, project: RalphConfig, count: int) -> None:
        runner = _runner([])

        with pytest.raises(ValueError, match="must be positive"):
            RalphLoop(project, runner=runner).run(count)

        runner.run.assert_not_called()
        assert not project.progress_path.exists()


class TestInterrupt:
    """Tests for interrupt handling."""

    def test_interrupt_returns_130(self, project: RalphConfig) -> None:
        runner = _runner([
            AgentResult(exit_code=0, output="first"),
            KeyboardInterrupt(),
        ])
        loop = RalphLoop(project, runner=runner)

        assert loop.run(5) == EXIT_INTERRUPTED

        assert runner.run.call_count == 2
        assert loop.successful_iterations == 1
        # The interrupted iteration left its start marker but no outcome
        assert loop.progress.count_started_iterations() == 2
        assert loop.progress.outcomes() == [(1, "SUCCESS")]
        assert "MAX ITERATIONS REACHED" not in loop.progress.read()

    def test_interrupt_is_logged(self, project: RalphConfig, caplog: pytest.LogCaptureFixture) -> None:
        runner = _runner([KeyboardInterrupt()])

        with caplog.at_level("INFO", logger="ralph_runner"):
            RalphLoop(project, runner=runner).run(1)

        assert "Received interrupt signal" in caplog.text
        assert "Final status saved to" in caplog.text

    def test_interrupt_while_archiving(
        self, project: RalphConfig, caplog: pytest.LogCaptureFixture
    ) -> None:
        """An interrupt before the first iteration still reports where state lives."""
        runner = _runner([])
        loop = RalphLoop(project, runner=runner)

        with patch.object(loop.archiver, "check_and_archive", side_effect=KeyboardInterrupt()):
            with caplog.at_level("INFO", logger="ralph_runner"):
                assert loop.run(3) == EXIT_INTERRUPTED

        runner.run.assert_not_called()
        assert "Received interrupt signal" in caplog.text
        assert "Final status saved to" in caplog.text
        assert "Full logs available at" in caplog.text


class TestValidateEnvironment:
    """Tests for precondition checks."""

    def test_missing_prompt(self, project: RalphConfig) -> None:
        project.prompt_path.unlink()
        runner = _runner([])

        with pytest.raises(PreconditionError, match="ralph-prompt.md"):
            RalphLoop(project, runner=runner).run(1)

        runner.run.assert_not_called()
        assert not project.progress_path.exists()

    def test_missing_task_definition(self, project: RalphConfig) -> None:
        project.prd_path.unlink()

        with pytest.raises(PreconditionError, match="PRD file not found"):
            RalphLoop(project, runner=_runner([])).run(1)

    def test_missing_agent_executable(self, project: RalphConfig) -> None:
        config = replace(project, run_command="ralph-test-agent-that-does-not-exist -p")

        with pytest.raises(PreconditionError, match="Agent CLI not found"):
            RalphLoop(config, runner=_runner([])).run(1)

    def test_precondition_failure_leaves_branch_marker(self, project: RalphConfig) -> None:
        project.prompt_path.unlink()
        write_prd(project, "ralph/new")
        BranchTracker(project.last_branch_path).write("ralph/old")

        with pytest.raises(PreconditionError):
            RalphLoop(project, runner=_runner([])).run(1)

        assert BranchTracker(project.last_branch_path).read() == "ralph/old"
        assert not project.archive_dir.exists()
