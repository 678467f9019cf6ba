"""
Plugin Specification.

This module turns user-declared plugin references into canonical records.

Key features:
- String shorthand: "user/repo" source or bare plugin name
- Table form with source, name, checkout, monitor, depends, hooks
- Name inference from source basename
- Validation before any disk or network operation
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from failwind.deps.errors import DepsError
from failwind.deps.hooks import Hooks, HookType, command_hook

DEFAULT_HOST = "https://github.com/"

_SHORTHAND_RE = re.compile(r"^[\w-]+/[\w.-]+$")
_SPEC_KEYS = {"source", "name", "checkout", "monitor", "depends", "hooks"}


class InvalidSpec(DepsError):
    """Raised when a plugin specification is malformed or unresolvable."""

    pass


@dataclass(frozen=True)
class PluginSpec:
    """
    Canonical plugin specification.

    Attributes:
        name: Directory name of plugin (always resolved)
        source: URI of plugin source (required only for install)
        checkout: Checkout target, None for default branch
        monitor: Monitor branch, None for default branch
        depends: Specifications to be set up prior to this plugin
        hooks: Lifecycle hooks
    """

    name: str
    source: str | None = None
    checkout: str | None = None
    monitor: str | None = None
    depends: tuple["PluginSpec", ...] = ()
    hooks: Hooks = field(default_factory=Hooks)


def expand_source(source: str) -> str:
    """
    Expand "user/repo" shorthand into full URL against default host.

    Any other source is returned unchanged.
    """
    if _SHORTHAND_RE.match(source):
        return DEFAULT_HOST + source
    return source


def infer_name(source: str) -> str:
    """Get plugin name as the last path segment of its source."""
    return source.rstrip("/").rsplit("/", 1)[-1]


def normalize_spec(raw: Any) -> PluginSpec:
    """
    Normalize plugin specification.

    Args:
        raw: Bare string, mapping, or already normalized PluginSpec

    Returns:
        PluginSpec with resolved name and normalized dependencies

    Raises:
        InvalidSpec: If specification is invalid
    """
    if isinstance(raw, PluginSpec):
        return raw

    if isinstance(raw, str):
        if "/" in raw:
            raw = {"source": raw}
        else:
            raw = {"name": raw}

    if not isinstance(raw, Mapping):
        raise InvalidSpec(
            f"Plugin spec should be a string or a table, got {type(raw).__name__}"
        )

    unknown = set(raw) - _SPEC_KEYS
    if unknown:
        raise InvalidSpec(f"Unknown plugin spec fields: {', '.join(sorted(unknown))}")

    source = _optional_str(raw, "source")
    if source is not None:
        if not source or any(ch.isspace() for ch in source):
            raise InvalidSpec(f"Could not parse `source`: {source!r}")
        source = expand_source(source)

    name = _optional_str(raw, "name")
    if name is None:
        if source is None:
            raise InvalidSpec("Plugin spec should have either `source` or `name`")
        name = infer_name(source)
    _validate_name(name)

    return PluginSpec(
        name=name,
        source=source,
        checkout=_optional_target(raw, "checkout"),
        monitor=_optional_target(raw, "monitor"),
        depends=_normalize_depends(raw.get("depends"), name),
        hooks=_normalize_hooks(raw.get("hooks"), name),
    )


def _optional_str(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidSpec(f"`{key}` should be a string, got {type(value).__name__}")
    return value


def _optional_target(raw: Mapping[str, Any], key: str) -> str | None:
    # Blank branch or revision means the default branch
    value = _optional_str(raw, key)
    if value is None or not value.strip():
        return None
    return value.strip()


def _validate_name(name: str) -> None:
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidSpec(f"Invalid plugin name: {name!r}")


def _normalize_depends(depends: Any, name: str) -> tuple[PluginSpec, ...]:
    if depends is None:
        return ()
    if isinstance(depends, (str, Mapping)) or not isinstance(depends, Sequence):
        raise InvalidSpec(f"`depends` of {name!r} should be an array of specs")

    result = []
    for dep in depends:
        try:
            result.append(normalize_spec(dep))
        except InvalidSpec as e:
            raise InvalidSpec(f"Invalid dependency of {name!r}: {e}") from e
    return tuple(result)


def _normalize_hooks(hooks: Any, name: str) -> Hooks:
    if hooks is None:
        return Hooks()
    if isinstance(hooks, Hooks):
        return hooks
    if not isinstance(hooks, Mapping):
        raise InvalidSpec(f"`hooks` of {name!r} should be a table")

    valid = {hook_type.value: hook_type for hook_type in HookType}
    resolved = {}
    for key, hook in hooks.items():
        if key not in valid:
            raise InvalidSpec(f"Unknown hook {key!r} for {name!r}")
        if isinstance(hook, str) or (
            isinstance(hook, Sequence)
            and len(hook) > 0
            and all(isinstance(x, str) for x in hook)
        ):
            hook = command_hook(hook, valid[key])
        elif not callable(hook):
            raise InvalidSpec(f"Hook {key!r} of {name!r} should be callable")
        resolved[key] = hook
    return Hooks(**resolved)
