"""
Failwind - git-backed plugin manager.

This is the main package that exports the public API of failwind.deps.
"""

__version__ = "0.1.0"

from types import SimpleNamespace

from failwind.config import load_config
from failwind.deps import DepsManager, snapshot

# Snapshot codec API namespace
snap = SimpleNamespace(
    save=snapshot.save,
    load=snapshot.load,
)

__all__ = [
    "__version__",
    "DepsManager",
    "load_config",
    "snap",
]
