"""
Plugin Records.

This module provides the run-time entities owned by the sync orchestrator.

Key features:
- Plugin record with resolved spec, path, status and revision
- Insertion-ordered registry keyed by plugin name
- Per-plugin outcome of an install/checkout/delete step
"""

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from failwind.deps.expand import merge_specs
from failwind.deps.jobs import JobPhase
from failwind.deps.spec import PluginSpec


class ModuleStatus(Enum):
    """Install status of a plugin."""

    ABSENT = "absent"
    PRESENT = "present"
    ERROR = "error"


@dataclass
class ModuleRecord:
    """
    Information about a registered plugin.

    Attributes:
        spec: Resolved plugin specification
        path: Plugin directory path
        status: Install status
        revision: Last observed commit hash
        error: Error message if status is ERROR
    """

    spec: PluginSpec
    path: Path
    status: ModuleStatus = ModuleStatus.ABSENT
    revision: str | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return self.spec.name

    def refresh_status(self) -> None:
        """Update status from path existence."""
        if self.path.exists():
            if self.status is ModuleStatus.ABSENT:
                self.status = ModuleStatus.PRESENT
        else:
            self.status = ModuleStatus.ABSENT


@dataclass(frozen=True)
class Outcome:
    """
    Result of one per-plugin step.

    Attributes:
        name: Plugin name
        phase: Step phase (None for delete)
        ok: Whether step succeeded
        error: Error message if step failed
    """

    name: str
    phase: JobPhase | None
    ok: bool
    error: str | None = None


class ModuleRegistry:
    """
    Plugins registered in current session.

    Records are created on first registration and updated afterwards. They
    are never removed.
    """

    def __init__(self, opt_dir: Path):
        """
        Initialize ModuleRegistry.

        Args:
            opt_dir: Directory containing plugin directories
        """
        self.opt_dir = opt_dir
        self._records: dict[str, ModuleRecord] = {}
        self._lock = threading.Lock()

    def register(self, spec: PluginSpec) -> ModuleRecord:
        """
        Register plugin spec, updating existing record of the same name.

        Args:
            spec: Normalized plugin specification

        Returns:
            Registered record
        """
        with self._lock:
            record = self._records.get(spec.name)
            if record is None:
                record = ModuleRecord(spec=spec, path=self.opt_dir / spec.name)
                self._records[spec.name] = record
            else:
                record.spec = merge_specs(record.spec, spec)
            record.refresh_status()
            return record

    def get(self, name: str) -> ModuleRecord | None:
        with self._lock:
            return self._records.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def list_records(self) -> list[ModuleRecord]:
        """List records in registration order."""
        with self._lock:
            return list(self._records.values())
