"""
Tests for Change Planner.

State inspection is faked; planning decisions are tested in isolation.
"""

from pathlib import Path

import pytest

from failwind.deps.jobs import Job, JobPhase, JobResult
from failwind.deps.planner import (
    Change,
    ChangeKind,
    ChangeSet,
    plan_clean,
    plan_module,
    plan_update,
    resolve_target,
)
from failwind.deps.spec import PluginSpec, normalize_spec
from failwind.deps.state import NotAModule, RevisionNotFound


class FakeInspector:
    """In-memory replacement of StateInspector."""

    def __init__(self, head, refs=None, branches=("main",), default="main", logs=None):
        self.head = head
        self.refs = dict(refs or {})
        self.branches = list(branches)
        self.default = default
        self.logs = logs or {}

    def current_revision(self, path):
        if path.name == "broken":
            raise NotAModule(f"Not a git repository: {path}")
        return self.head

    def resolve(self, path, revision):
        if revision == "HEAD":
            return self.head
        try:
            return self.refs[revision]
        except KeyError:
            raise RevisionNotFound(f"Revision {revision!r} not found") from None

    def source(self, path):
        return f"https://example.com/{path.name}"

    def remote_branches(self, path):
        return self.branches

    def default_branch(self, path):
        return self.default

    def log(self, path, from_rev, to_rev):
        return self.logs.get((from_rev, to_rev), [])


@pytest.fixture
def plugin_dir(tmp_path):
    path = tmp_path / "plugin"
    path.mkdir()
    return path


class TestResolveTarget:
    """Test checkout target resolution."""

    def test_default_branch(self, plugin_dir):
        """No checkout should track remote default branch."""
        inspector = FakeInspector("abc", refs={"origin/main": "def"})
        assert resolve_target(inspector, plugin_dir, None) == ("main", "def")

    def test_unknown_default_branch(self, plugin_dir):
        """Unknown default branch should keep current HEAD."""
        inspector = FakeInspector("abc", default=None)
        assert resolve_target(inspector, plugin_dir, None) == ("HEAD", "abc")

    def test_branch_uses_remote_tip(self, plugin_dir):
        inspector = FakeInspector(
            "abc", refs={"origin/stable": "fff", "stable": "old"}, branches=["main", "stable"]
        )
        assert resolve_target(inspector, plugin_dir, "stable") == ("stable", "fff")

    def test_tag(self, plugin_dir):
        inspector = FakeInspector("abc", refs={"v1.0": "111"})
        assert resolve_target(inspector, plugin_dir, "v1.0") == ("v1.0", "111")

    def test_unknown_target(self, plugin_dir):
        with pytest.raises(RevisionNotFound):
            resolve_target(FakeInspector("abc"), plugin_dir, "nope")


class TestPlanModule:
    """Test single plugin planning."""

    def test_absent_is_new(self, tmp_path):
        spec = PluginSpec(name="x", source="https://example.com/x", checkout="v1")
        change = plan_module(spec, tmp_path / "x", FakeInspector("abc"))

        assert change.kind is ChangeKind.NEW
        assert change.target == "v1"
        assert change.from_rev is None

    def test_same(self, plugin_dir):
        """Plugin at target should be SAME."""
        inspector = FakeInspector("abc", refs={"origin/main": "abc"})
        change = plan_module(PluginSpec(name="plugin"), plugin_dir, inspector)

        assert change.kind is ChangeKind.SAME
        assert change.range == ("abc", "abc")
        assert change.source == "https://example.com/plugin"

    def test_update_with_commits(self, plugin_dir):
        """Plugin behind target should be UPDATE with commit summaries."""
        inspector = FakeInspector(
            "abc",
            refs={"origin/main": "def"},
            logs={("abc", "def"): ["def Fix bug"], ("def", "abc"): []},
        )
        change = plan_module(PluginSpec(name="plugin"), plugin_dir, inspector)

        assert change.kind is ChangeKind.UPDATE
        assert change.range == ("abc", "def")
        assert change.commits == ("def Fix bug",)
        assert change.removed == ()
        assert change.target == "main"

    def test_pinned_commit(self, plugin_dir):
        """Checkout may be a commit hash."""
        inspector = FakeInspector("abc", refs={"1234567": "1234567full"})
        change = plan_module(
            PluginSpec(name="plugin", checkout="1234567"), plugin_dir, inspector
        )
        assert change.kind is ChangeKind.UPDATE
        assert change.to_rev == "1234567full"

    def test_monitor_is_informational(self, plugin_dir):
        """Commits only in monitor branch should never cause an update."""
        inspector = FakeInspector(
            "abc",
            refs={"origin/stable": "abc", "origin/main": "fff"},
            branches=["main", "stable"],
            logs={("abc", "origin/main"): ["fff New feature"]},
        )
        spec = PluginSpec(name="plugin", checkout="stable", monitor="main")
        change = plan_module(spec, plugin_dir, inspector)

        assert change.kind is ChangeKind.SAME
        assert change.monitor == "main"
        assert change.monitor_commits == ("fff New feature",)

    def test_blank_checkout_follows_default_branch(self, plugin_dir):
        """Table with empty checkout should plan like one without checkout."""
        inspector = FakeInspector("abc", refs={"origin/main": "abc"})
        spec = normalize_spec({"source": "https://example.com/plugin", "checkout": ""})
        change = plan_module(spec, plugin_dir, inspector)

        assert change.kind is ChangeKind.SAME
        assert change.target == "main"

    def test_unresolvable_target_is_error(self, plugin_dir):
        change = plan_module(
            PluginSpec(name="plugin", checkout="nope"), plugin_dir, FakeInspector("abc")
        )
        assert change.kind is ChangeKind.ERROR
        assert "nope" in change.error

    def test_failed_fetch_is_error(self, plugin_dir):
        """Failed fetch should be reported instead of planning on stale data."""
        job = Job(command=("git", "fetch"), cwd=plugin_dir, name="plugin", phase=JobPhase.FETCH)
        fetch = JobResult(job, 128, "", "fatal: unable to access", 0.1)

        change = plan_module(PluginSpec(name="plugin"), plugin_dir, FakeInspector("abc"), fetch)

        assert change.kind is ChangeKind.ERROR
        assert "unable to access" in change.error


class TestPlanUpdate:
    """Test multi plugin planning."""

    def test_one_entry_per_spec_in_order(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "broken").mkdir()
        specs = [
            PluginSpec(name="a", source="https://example.com/a"),
            PluginSpec(name="b"),
            PluginSpec(name="broken"),
        ]
        paths = {spec.name: tmp_path / spec.name for spec in specs}
        inspector = FakeInspector("abc", refs={"origin/main": "abc"})

        plan = plan_update(specs, paths, inspector)

        assert plan.names() == ["a", "b", "broken"]
        assert [c.kind for c in plan] == [ChangeKind.NEW, ChangeKind.SAME, ChangeKind.ERROR]
        assert [c.name for c in plan.pending()] == ["a"]
        assert plan.has_errors()


class TestPlanClean:
    """Test clean planning."""

    def test_only_unregistered_directories(self, tmp_path):
        for name in ("kept", "zeta", "alpha"):
            (tmp_path / name).mkdir()
        (tmp_path / "file.txt").write_text("")

        plan = plan_clean(["kept", "absent"], tmp_path, FakeInspector("abc"))

        assert plan.names() == ["alpha", "zeta"]
        assert all(c.kind is ChangeKind.DELETE for c in plan)
        assert plan.get("alpha").from_rev == "abc"

    def test_non_repository_is_still_deleted(self, tmp_path):
        (tmp_path / "broken").mkdir()

        plan = plan_clean([], tmp_path, FakeInspector("abc"))

        assert plan.names() == ["broken"]
        assert plan.get("broken").from_rev is None

    def test_missing_opt_dir(self, tmp_path):
        assert len(plan_clean([], tmp_path / "absent")) == 0


class TestChangeSet:
    """Test ChangeSet container."""

    def test_duplicate_names_rejected(self):
        change = Change(name="x", kind=ChangeKind.SAME, path=Path("x"))
        with pytest.raises(ValueError):
            ChangeSet([change, change])

    def test_lookup(self):
        changes = [
            Change(name="a", kind=ChangeKind.NEW, path=Path("a")),
            Change(name="b", kind=ChangeKind.DELETE, path=Path("b")),
            Change(name="c", kind=ChangeKind.SAME, path=Path("c")),
        ]
        plan = ChangeSet(changes)

        assert "a" in plan
        assert "z" not in plan
        assert len(plan) == 3
        assert plan.get("c").kind is ChangeKind.SAME
        assert [c.name for c in plan.by_kind(ChangeKind.DELETE)] == ["b"]
        assert [c.name for c in plan.pending()] == ["a", "b"]
