"""Tests for utility functions."""

from pathlib import Path

import pytest

from ralph_runner.utils import format_size, path_size


@pytest.mark.parametrize(
    "num_bytes, expected",
    [
        (0, "0B"),
        (512, "512B"),
        (1024, "1.0K"),
        (1536, "1.5K"),
        (20 * 1024, "20K"),
        (3 * 1024 * 1024, "3.0M"),
    ],
)
def test_format_size(num_bytes: int, expected: str) -> None:
    assert format_size(num_bytes) == expected


def test_path_size(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("x" * 10)
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "b.txt").write_text("y" * 5)

    assert path_size(tmp_path / "a.txt") == 10
    assert path_size(tmp_path) == 15
