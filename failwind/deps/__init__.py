"""
Failwind Deps - plugin synchronization engine.

This package contains:
- Spec normalization and dependency expansion
- Job runner for parallel git commands
- State inspection and change planning
- Snapshot codec
- DepsManager: the orchestrator tying them together
"""

from failwind.deps.errors import DepsError
from failwind.deps.manager import DepsManager, PartiallyApplied, SyncReport, SyncState
from failwind.deps.planner import Change, ChangeKind, ChangeSet
from failwind.deps.spec import InvalidSpec, PluginSpec, normalize_spec

__all__ = [
    "Change",
    "ChangeKind",
    "ChangeSet",
    "DepsError",
    "DepsManager",
    "InvalidSpec",
    "PartiallyApplied",
    "PluginSpec",
    "SyncReport",
    "SyncState",
    "normalize_spec",
]
