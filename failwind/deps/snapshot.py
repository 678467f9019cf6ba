"""
Plugin Snapshots.

This module serializes the resolved state of plugins and restores it.

Snapshot file format is TOML with exactly one record per line, sorted by
plugin name:

    # failwind.deps snapshot
    "mini.nvim" = {source = "https://github.com/echasnovski/mini.nvim", checkout = "9c2a5c1"}
    nvim-treesitter = {source = "...", checkout = "0b8c2e3", monitor = "main"}

Key features:
- Deterministic, diff-friendly output written with tomlkit
- Line-by-line parsing with line numbers in errors
- Restore of plugins present both in snapshot and current session
"""

import tomllib
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

import tomlkit

from failwind.deps.actions import checkout_modules
from failwind.deps.errors import DepsError
from failwind.deps.jobs import JobRunner
from failwind.deps.models import ModuleRecord, Outcome
from failwind.deps.state import StateInspector

HEADER = "failwind.deps snapshot: name = {source, checkout, monitor}"

_ENTRY_KEYS = {"source", "checkout", "monitor"}


class MalformedSnapshot(DepsError):
    """Raised when snapshot text can not be parsed."""

    def __init__(self, line: int, message: str):
        self.line = line
        super().__init__(f"Malformed snapshot at line {line}: {message}")


@dataclass(frozen=True)
class SnapshotEntry:
    """
    Recorded state of one plugin.

    Attributes:
        source: Plugin source
        revision: Resolved commit hash (written as `checkout`)
        monitor: Monitor branch
    """

    revision: str
    source: str | None = None
    monitor: str | None = None


class Snapshot(Mapping[str, SnapshotEntry]):
    """Immutable mapping of plugin name to its recorded state."""

    def __init__(self, entries: Mapping[str, SnapshotEntry] | None = None):
        self._entries = dict(entries or {})

    def __getitem__(self, name: str) -> SnapshotEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Snapshot({self._entries!r})"


def save(snapshot: Mapping[str, SnapshotEntry]) -> str:
    """
    Serialize snapshot into text.

    Args:
        snapshot: Plugin name -> recorded state

    Returns:
        Snapshot text, one line per plugin sorted by name
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment(HEADER))

    for name in sorted(snapshot):
        entry = snapshot[name]
        record = tomlkit.inline_table()
        if entry.source:
            record["source"] = entry.source
        record["checkout"] = entry.revision
        if entry.monitor:
            record["monitor"] = entry.monitor
        doc.add(name, record)

    return tomlkit.dumps(doc)


def load(text: str) -> Snapshot:
    """
    Parse snapshot text.

    Args:
        text: Snapshot text

    Returns:
        Parsed snapshot

    Raises:
        MalformedSnapshot: If any line is structurally invalid
    """
    entries: dict[str, SnapshotEntry] = {}

    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        try:
            data = tomllib.loads(stripped)
        except tomllib.TOMLDecodeError as e:
            raise MalformedSnapshot(lineno, f"invalid record ({e})") from e

        if len(data) != 1:
            raise MalformedSnapshot(lineno, "expected exactly one plugin per line")
        name, fields = next(iter(data.items()))

        if not isinstance(fields, dict):
            raise MalformedSnapshot(lineno, f"record of {name!r} should be a table")
        unknown = set(fields) - _ENTRY_KEYS
        if unknown:
            raise MalformedSnapshot(
                lineno, f"unknown fields {', '.join(sorted(unknown))} for {name!r}"
            )
        for key, value in fields.items():
            if not isinstance(value, str) or not value:
                raise MalformedSnapshot(
                    lineno, f"`{key}` of {name!r} should be a non-empty string"
                )
        if "checkout" not in fields:
            raise MalformedSnapshot(lineno, f"record of {name!r} has no `checkout`")
        if name in entries:
            raise MalformedSnapshot(lineno, f"duplicate record for {name!r}")

        entries[name] = SnapshotEntry(
            revision=fields["checkout"],
            source=fields.get("source"),
            monitor=fields.get("monitor"),
        )

    return Snapshot(entries)


async def apply_snapshot(
    snapshot: Mapping[str, SnapshotEntry],
    records: Sequence[ModuleRecord],
    runner: JobRunner,
    inspector: StateInspector | None = None,
) -> list[Outcome]:
    """
    Checkout plugins at their recorded revisions.

    This is unconditional: no planning and no confirmation. Snapshot
    records without a present plugin in `records` are skipped.

    Args:
        snapshot: Snapshot to restore
        records: Plugins of current session, in dependency order
        runner: Job runner
        inspector: State inspector used to record new revisions

    Returns:
        One outcome per restored plugin
    """
    targets = [
        (record, snapshot[record.name].revision)
        for record in records
        if record.name in snapshot and record.path.exists()
    ]
    return await checkout_modules(targets, runner, inspector)
