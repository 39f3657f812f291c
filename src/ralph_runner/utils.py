"""Utility functions."""

from pathlib import Path


def format_size(num_bytes: int) -> str:
    """Format a byte count the way `du -h` does (512B, 4.0K, 12M).

    Args:
        num_bytes: Size in bytes

    Returns:
        Human-readable size
    """
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}B"
            if size < 10:
                return f"{size:.1f}{unit}"
            return f"{size:.0f}{unit}"
        size /= 1024
    return f"{size:.0f}T"


def path_size(path: Path) -> int:
    """Total size in bytes of a file, or of every file under a directory."""
    if path.is_file():
        return path.stat().st_size
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())
