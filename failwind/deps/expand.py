"""
Dependency Expansion.

This module flattens a plugin specification with nested `depends` into a
single dependency-first list.

Key features:
- Depth-first traversal, dependencies before dependents
- Each name appears once, at its first position
- Later occurrences of a name update its fields
- Cycle-safe: names on the current path are treated as resolved
"""

from dataclasses import replace
from typing import Any

from failwind.deps.spec import PluginSpec, normalize_spec


def merge_specs(base: PluginSpec, override: PluginSpec) -> PluginSpec:
    """
    Merge two specifications of the same plugin.

    Non-None fields of `override` take precedence, hooks are merged per
    extension point.
    """
    return replace(
        base,
        source=override.source if override.source is not None else base.source,
        checkout=override.checkout if override.checkout is not None else base.checkout,
        monitor=override.monitor if override.monitor is not None else base.monitor,
        depends=override.depends or base.depends,
        hooks=base.hooks.merged(override.hooks),
    )


def expand_spec(raw: Any) -> list[PluginSpec]:
    """
    Expand specification into dependency-ordered list.

    Args:
        raw: Plugin specification in any form accepted by normalize_spec()

    Returns:
        List of specifications with dependencies preceding dependents

    Raises:
        InvalidSpec: If specification or any dependency is invalid
    """
    resolved: dict[str, PluginSpec] = {}
    on_path: set[str] = set()

    def _visit(spec: PluginSpec) -> None:
        if spec.name in on_path:
            # Cyclic reference, already being resolved further up
            return

        on_path.add(spec.name)
        try:
            for dep in spec.depends:
                _visit(dep)
        finally:
            on_path.discard(spec.name)

        if spec.name in resolved:
            resolved[spec.name] = merge_specs(resolved[spec.name], spec)
        else:
            resolved[spec.name] = spec

    _visit(normalize_spec(raw))
    return list(resolved.values())
