"""PID file handling for the detached daemon."""

from __future__ import annotations

import os
from pathlib import Path


def write_pid_file(path: str | Path) -> None:
    pid_file = Path(path)
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()), encoding="utf-8")


def read_pid_file(path: str | Path) -> int:
    """Return the recorded PID. Raises FileNotFoundError when no daemon is recorded."""
    return int(Path(path).read_text(encoding="utf-8").strip())


def remove_pid_file(path: str | Path) -> None:
    Path(path).unlink(missing_ok=True)
