"""
Tests for Dependency Expander.

This test suite covers:
1. Dependency-first ordering
2. Deduplication and field merging
3. Cyclic dependencies
"""

import pytest

from failwind.deps.expand import expand_spec, merge_specs
from failwind.deps.hooks import Hooks
from failwind.deps.spec import InvalidSpec, PluginSpec


class TestExpansionOrder:
    """Test order of expanded specs."""

    def test_single_spec(self):
        """Spec without dependencies should expand to itself."""
        specs = expand_spec("user/a")
        assert [s.name for s in specs] == ["a"]

    def test_dependencies_first(self):
        """Dependencies should precede dependents."""
        specs = expand_spec({"source": "user/pluginA", "depends": ["user/pluginB"]})
        assert [s.name for s in specs] == ["pluginB", "pluginA"]

    def test_deep_dependencies(self):
        """Nested dependencies should be flattened depth-first."""
        specs = expand_spec(
            {
                "source": "user/a",
                "depends": [
                    {"source": "user/b", "depends": ["user/c"]},
                    "user/d",
                ],
            }
        )
        assert [s.name for s in specs] == ["c", "b", "d", "a"]

    def test_nested_depends_are_kept_on_spec(self):
        """Expanded specs should keep their own depends."""
        specs = expand_spec({"source": "user/a", "depends": ["user/b"]})
        assert specs[-1].depends[0].name == "b"


class TestDeduplication:
    """Test deduplication by name."""

    def test_name_appears_once(self):
        """Shared dependency should appear once at its first position."""
        specs = expand_spec(
            {
                "source": "user/a",
                "depends": [
                    {"source": "user/b", "depends": ["user/shared"]},
                    {"source": "user/c", "depends": ["user/shared"]},
                ],
            }
        )
        assert [s.name for s in specs] == ["shared", "b", "c", "a"]

    def test_later_occurrence_updates_fields(self):
        """Later occurrence should update fields of the first one."""
        specs = expand_spec(
            {
                "source": "user/a",
                "depends": [
                    "user/shared",
                    {"source": "user/b", "depends": [{"name": "shared", "checkout": "v2"}]},
                ],
            }
        )
        shared = specs[0]
        assert shared.name == "shared"
        assert shared.source == "https://github.com/user/shared"
        assert shared.checkout == "v2"

    def test_merge_specs(self):
        """Non-None fields of override should win."""

        def hook(ctx):
            return None

        base = PluginSpec(name="x", source="https://a/x", checkout="v1", monitor="main")
        override = PluginSpec(name="x", checkout="v2", hooks=Hooks(post_install=hook))
        merged = merge_specs(base, override)

        assert merged.source == "https://a/x"
        assert merged.checkout == "v2"
        assert merged.monitor == "main"
        assert merged.hooks.post_install is hook


class TestCycles:
    """Test cyclic dependencies."""

    def test_self_cycle(self):
        """Plugin depending on itself should expand once."""
        specs = expand_spec({"source": "user/a", "depends": [{"name": "a"}]})
        assert [s.name for s in specs] == ["a"]

    def test_mutual_cycle(self):
        """Mutual dependencies should terminate with each name once."""
        specs = expand_spec(
            {
                "source": "user/a",
                "depends": [{"source": "user/b", "depends": [{"name": "a"}]}],
            }
        )
        assert [s.name for s in specs] == ["b", "a"]
        assert specs[-1].source == "https://github.com/user/a"

    def test_invalid_spec_raises(self):
        """Invalid specification should raise before producing anything."""
        with pytest.raises(InvalidSpec):
            expand_spec({"source": "user/a", "depends": [{"nope": 1}]})
