"""Task definition (ralph-prd.json) reader."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass(frozen=True)
class TaskDefinition:
    """The two fields Ralph reads from the task definition file."""

    title: str = ""
    branch_name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskDefinition":
        """Build from parsed JSON, ignoring values that are not strings."""
        title = data.get("title")
        branch_name = data.get("branchName")
        return cls(
            title=title if isinstance(title, str) else "",
            branch_name=branch_name.strip() if isinstance(branch_name, str) else "",
        )


def load_prd(path: Path) -> Optional[dict[str, Any]]:
    """Load PRD from JSON file."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def load_task_definition(path: Path) -> Optional[TaskDefinition]:
    """
    Read the task definition.

    Args:
        path: Path to ralph-prd.json

    Returns:
        TaskDefinition, or None if the file is missing or not a JSON object
    """
    data = load_prd(path)
    if data is None:
        return None
    return TaskDefinition.from_dict(data)


def current_branch(path: Path) -> str:
    """Branch name from the task definition, or an empty string."""
    task = load_task_definition(path)
    return task.branch_name if task else ""
