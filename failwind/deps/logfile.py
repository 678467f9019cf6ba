"""
Operation Log.

This module appends human-readable records of disk changes to the log
file. The log keeps "State before" of every changed plugin, which is what
a rollback needs.

Entries of one batch are written together, in the order given (dependency
order), after the whole batch has completed.
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class LogEntry:
    """
    Logged change of one plugin.

    Attributes:
        name: Plugin name
        path: Plugin directory
        source: Plugin source
        state_before: Revision before the change
        state_after: Revision after the change
        target: Checkout target shown next to new state
        commits: Summaries of applied commits
        error: Error message if change failed
    """

    name: str
    path: Path
    source: str | None = None
    state_before: str | None = None
    state_after: str | None = None
    target: str | None = None
    commits: tuple[str, ...] = ()
    error: str | None = None

    def format(self) -> str:
        lines = [
            f"+++ {self.name} +++",
            f"Path:         {self.path}",
            f"Source:       {self.source or '<none>'}",
        ]
        if self.state_before is not None:
            lines.append(f"State before: {self.state_before}")
        if self.state_after is not None:
            suffix = f" ({self.target})" if self.target else ""
            lines.append(f"State after:  {self.state_after}{suffix}")
        if self.error is not None:
            lines.append(f"Error:        {self.error}")
        if self.commits:
            lines.append("")
            lines.append("Commits:")
            lines.extend(f"> {commit}" for commit in self.commits)
        return "\n".join(lines)


class UpdateLog:
    """
    Append-only log file.

    Writes from several threads are serialized.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def append(
        self,
        action: str,
        entries: Sequence[LogEntry],
        timestamp: datetime | None = None,
    ) -> None:
        """
        Append one batch to the log.

        Args:
            action: Batch title (e.g. "Update", "Install")
            entries: Per-plugin entries in dependency order
            timestamp: Batch time (default: now)
        """
        if not entries:
            return

        timestamp = timestamp or datetime.now()
        header = f"{'=' * 10} {action} {timestamp:%Y-%m-%d %H:%M:%S} {'=' * 10}"
        text = "\n\n".join([header, *(entry.format() for entry in entries)])

        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text + "\n\n")

    def read(self) -> str:
        """Read whole log, empty string if there is no log yet."""
        with self._lock:
            if not self.path.exists():
                return ""
            return self.path.read_text(encoding="utf-8")
