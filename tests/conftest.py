"""Shared fixtures for Ralph Runner tests."""

import json
import shlex
import sys
from pathlib import Path

import pytest

from ralph_runner.config import RalphConfig

PROMPT_TEXT = "Work on the next task in ralph-prd.json.\n"


def agent_command(code: str) -> str:
    """Command line that runs a Python snippet as a stand-in agent."""
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def write_prd(config: RalphConfig, branch: str | None, title: str = "Test PRD") -> Path:
    """Write a task definition with the given branch."""
    data = {"title": title}
    if branch is not None:
        data["branchName"] = branch
    config.prd_path.write_text(json.dumps(data))
    return config.prd_path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep RALPH_* overrides from the developer's shell out of tests."""
    for name in (
        "RALPH_RUN_COMMAND",
        "RALPH_PRD_COMMAND",
        "RALPH_TASKS_COMMAND",
        "RALPH_MAX_ITERATIONS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> RalphConfig:
    """Config rooted in a temp directory, with no delay and no spinner."""
    return RalphConfig(
        base_dir=tmp_path,
        run_command=shlex.quote(sys.executable),
        iteration_delay=0,
        show_spinner=False,
    )


@pytest.fixture
def project(config: RalphConfig) -> RalphConfig:
    """Config whose directory already has a prompt and a task definition."""
    config.prompt_path.write_text(PROMPT_TEXT)
    write_prd(config, "ralph/feature-a")
    return config
