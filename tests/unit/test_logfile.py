"""
Tests for the operation log.
"""

import threading
from datetime import datetime
from pathlib import Path

from failwind.deps.logfile import LogEntry, UpdateLog


class TestLogEntry:
    """Test entry formatting."""

    def test_update_entry(self):
        entry = LogEntry(
            name="mini.nvim",
            path=Path("/site/opt/mini.nvim"),
            source="https://github.com/echasnovski/mini.nvim",
            state_before="abc1234",
            state_after="def5678",
            target="main",
            commits=("def5678 Fix typo",),
        )

        assert entry.format().splitlines() == [
            "+++ mini.nvim +++",
            "Path:         /site/opt/mini.nvim",
            "Source:       https://github.com/echasnovski/mini.nvim",
            "State before: abc1234",
            "State after:  def5678 (main)",
            "",
            "Commits:",
            "> def5678 Fix typo",
        ]

    def test_error_entry(self):
        entry = LogEntry(name="x", path=Path("/x"), error="clone failed")
        text = entry.format()

        assert "Error:        clone failed" in text
        assert "State after" not in text
        assert "Source:       <none>" in text


class TestUpdateLog:
    """Test log file."""

    def test_batches_are_appended(self, tmp_path):
        log = UpdateLog(tmp_path / "state" / "deps.log")
        timestamp = datetime(2024, 1, 2, 3, 4, 5)

        log.append("Install", [LogEntry(name="a", path=Path("/a"))], timestamp)
        log.append("Update", [LogEntry(name="b", path=Path("/b"))], timestamp)

        text = log.read()
        assert "========== Install 2024-01-02 03:04:05 ==========" in text
        assert text.index("Install") < text.index("Update")

    def test_empty_batch_is_skipped(self, tmp_path):
        log = UpdateLog(tmp_path / "deps.log")
        log.append("Update", [])

        assert log.read() == ""
        assert not log.path.exists()

    def test_concurrent_appends(self, tmp_path):
        """Batches from several threads should not interleave."""
        log = UpdateLog(tmp_path / "deps.log")

        def worker(i):
            entries = [LogEntry(name=f"p{i}-{j}", path=Path("/p")) for j in range(20)]
            log.append(f"Batch{i}", entries)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        text = log.read()
        for i in range(8):
            start = text.index(f"Batch{i} ")
            end = text.index(f"+++ p{i}-19 +++")
            block = text[start:end]
            assert "==========" not in block.split("\n", 1)[1]
