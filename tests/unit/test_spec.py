"""
Tests for Spec Normalizer.

This test suite covers:
1. String shorthand (source and bare name)
2. Table form and name inference
3. Dependency normalization
4. Hook normalization
5. Rejection of invalid specifications
"""

import pytest

from failwind.deps.hooks import Hooks, noop_hook
from failwind.deps.spec import (
    DEFAULT_HOST,
    InvalidSpec,
    PluginSpec,
    expand_source,
    infer_name,
    normalize_spec,
)


class TestStringSpec:
    """Test string shorthand."""

    def test_user_repo_shorthand(self):
        """"user/repo" should expand against default host."""
        spec = normalize_spec("user/repo")

        assert spec.name == "repo"
        assert spec.source == "https://github.com/user/repo"
        assert spec.checkout is None
        assert spec.monitor is None
        assert spec.depends == ()

    def test_full_url_is_kept(self):
        """Full URLs should be kept verbatim."""
        spec = normalize_spec("https://gitlab.com/group/sub/plugin.nvim")

        assert spec.source == "https://gitlab.com/group/sub/plugin.nvim"
        assert spec.name == "plugin.nvim"

    def test_bare_name(self):
        """String without slash should be a name of an existing plugin."""
        spec = normalize_spec("mini.nvim")

        assert spec.name == "mini.nvim"
        assert spec.source is None

    def test_plugin_spec_passthrough(self):
        """Already normalized spec should be returned unchanged."""
        spec = PluginSpec(name="x", source="https://example.com/x")
        assert normalize_spec(spec) is spec


class TestTableSpec:
    """Test table form."""

    def test_all_fields(self):
        """Should keep every field of a table."""
        spec = normalize_spec(
            {
                "source": "user/repo",
                "name": "custom",
                "checkout": "v1.0",
                "monitor": "main",
            }
        )

        assert spec.name == "custom"
        assert spec.source == DEFAULT_HOST + "user/repo"
        assert spec.checkout == "v1.0"
        assert spec.monitor == "main"

    def test_name_inferred_from_source_with_trailing_slash(self):
        """Name should ignore trailing slash of source."""
        spec = normalize_spec({"source": "https://example.com/plugins/repo/"})
        assert spec.name == "repo"

    def test_local_path_source(self):
        """Absolute paths are not shorthand."""
        spec = normalize_spec({"source": "/srv/git/plugin"})
        assert spec.source == "/srv/git/plugin"
        assert spec.name == "plugin"

    @pytest.mark.parametrize("blank", ["", "  "])
    def test_blank_checkout_and_monitor_mean_default_branch(self, blank):
        """Blank checkout or monitor should be treated as absent."""
        spec = normalize_spec({"source": "user/repo", "checkout": blank, "monitor": blank})

        assert spec.checkout is None
        assert spec.monitor is None

    def test_checkout_whitespace_is_stripped(self):
        spec = normalize_spec({"source": "user/repo", "checkout": " v1.0 "})
        assert spec.checkout == "v1.0"

    @pytest.mark.parametrize("source", ["../plugin", "~/plugin", "./plugin"])
    def test_relative_path_source_is_kept(self, source):
        """Relative paths look like user/repo but should not be expanded."""
        spec = normalize_spec(source)
        assert spec.source == source
        assert spec.name == "plugin"

    def test_no_source_no_name(self):
        """Table without source and name should be rejected."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"checkout": "main"})

    def test_unknown_field(self):
        """Unknown fields should be rejected."""
        with pytest.raises(InvalidSpec, match="Unknown"):
            normalize_spec({"source": "user/repo", "branch": "main"})

    def test_non_string_field(self):
        """Scalar fields should be strings."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"source": "user/repo", "checkout": 1})

    @pytest.mark.parametrize("source", ["", "user/ repo", "has space/x"])
    def test_unparsable_source(self, source):
        """Empty source or source with whitespace should be rejected."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"source": source})

    @pytest.mark.parametrize("name", [".", "..", "a/b", "a\\b"])
    def test_invalid_name(self, name):
        """Names which can not be a directory name should be rejected."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"source": "user/repo", "name": name})

    def test_invalid_type(self):
        """Only strings and tables are specifications."""
        with pytest.raises(InvalidSpec):
            normalize_spec(42)


class TestDependsNormalization:
    """Test normalization of `depends`."""

    def test_nested_depends(self):
        """Dependencies should be normalized recursively."""
        spec = normalize_spec(
            {"source": "user/a", "depends": ["user/b", {"source": "user/c", "depends": ["d"]}]}
        )

        assert [dep.name for dep in spec.depends] == ["b", "c"]
        assert spec.depends[1].depends[0].name == "d"
        assert spec.depends[1].depends[0].source is None

    def test_depends_must_be_array(self):
        """String depends should be rejected."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"source": "user/a", "depends": "user/b"})

    def test_invalid_dependency(self):
        """Invalid dependency should fail the whole spec."""
        with pytest.raises(InvalidSpec, match="dependency"):
            normalize_spec({"source": "user/a", "depends": [{"checkout": "x"}]})


class TestHooksNormalization:
    """Test normalization of `hooks`."""

    def test_missing_hooks_are_noop(self):
        """Every unset hook should be a no-op."""
        spec = normalize_spec("user/repo")
        assert spec.hooks == Hooks()
        assert spec.hooks.post_checkout is noop_hook

    def test_callable_hook(self):
        """Callables should be used as is."""

        def hook(ctx):
            return None

        spec = normalize_spec({"source": "user/repo", "hooks": {"post_install": hook}})
        assert spec.hooks.post_install is hook
        assert spec.hooks.pre_install is noop_hook

    def test_command_hook(self):
        """Strings should become command hooks."""
        spec = normalize_spec({"source": "user/repo", "hooks": {"post_checkout": "make"}})
        assert callable(spec.hooks.post_checkout)
        assert spec.hooks.post_checkout is not noop_hook

    def test_unknown_hook(self):
        """Unknown hook names should be rejected."""
        with pytest.raises(InvalidSpec, match="Unknown hook"):
            normalize_spec({"source": "user/repo", "hooks": {"post_update": "make"}})

    def test_non_callable_hook(self):
        """Hooks should be callables or commands."""
        with pytest.raises(InvalidSpec):
            normalize_spec({"source": "user/repo", "hooks": {"post_install": 1}})


class TestSourceHelpers:
    """Test source helpers."""

    def test_expand_source(self):
        assert expand_source("a/b") == "https://github.com/a/b"
        assert expand_source("git@github.com:a/b") == "git@github.com:a/b"
        assert expand_source("https://x.org/a/b") == "https://x.org/a/b"
        assert expand_source("echasnovski/mini.nvim") == DEFAULT_HOST + "echasnovski/mini.nvim"
        assert expand_source("user_1/repo-name_2") == DEFAULT_HOST + "user_1/repo-name_2"
        assert expand_source("../b") == "../b"
        assert expand_source("~/b") == "~/b"

    def test_infer_name(self):
        assert infer_name("https://github.com/a/b.nvim") == "b.nvim"
        assert infer_name("https://github.com/a/b/") == "b"
