"""
Plugin Lifecycle Hooks.

This module provides the typed hook interface used around install and
checkout phases.

Key features:
- Four extension points: pre/post install, pre/post checkout
- Immutable context passed to every hook
- No-op default for every extension point
- Shell command hooks with environment variable injection
- Hook failures returned, never raised, so one plugin cannot abort a batch
"""

import os
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path

from failwind.deps.errors import DepsError


class HookError(DepsError):
    """Raised when a lifecycle hook fails."""

    pass


class HookType(Enum):
    """Hook type enumeration."""

    PRE_INSTALL = "pre_install"
    POST_INSTALL = "post_install"
    PRE_CHECKOUT = "pre_checkout"
    POST_CHECKOUT = "post_checkout"


@dataclass(frozen=True)
class HookContext:
    """
    Argument given to every hook.

    Attributes:
        path: Absolute path to plugin directory (might not exist yet)
        source: Resolved plugin source
        name: Resolved plugin name
    """

    path: Path
    source: str | None
    name: str


HookFn = Callable[[HookContext], object]


def noop_hook(ctx: HookContext) -> None:
    """Default hook implementation."""
    return None


@dataclass(frozen=True)
class Hooks:
    """
    Set of lifecycle hooks of a plugin.

    Every field holds a callable taking a HookContext. Unset hooks are
    `noop_hook`.
    """

    pre_install: HookFn = noop_hook
    post_install: HookFn = noop_hook
    pre_checkout: HookFn = noop_hook
    post_checkout: HookFn = noop_hook

    def get(self, hook_type: HookType) -> HookFn:
        return getattr(self, hook_type.value)

    def merged(self, other: "Hooks") -> "Hooks":
        """Return copy where hooks explicitly set in `other` take precedence."""
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not noop_hook
        }
        return replace(self, **updates) if updates else self


def command_hook(
    command: str | Sequence[str],
    hook_type: HookType,
    timeout: int = 60,
) -> HookFn:
    """
    Wrap a shell command into a hook callable.

    String commands are run through the shell, sequences are run directly.
    The command runs inside plugin directory (or its parent while the
    directory does not exist yet) with plugin information exported as
    environment variables.

    Args:
        command: Shell command string or argv sequence
        hook_type: Hook type the command is bound to
        timeout: Timeout in seconds (default: 60)

    Returns:
        Hook callable raising HookError on failure
    """
    shell = isinstance(command, str)
    argv = command if shell else list(command)

    def _run(ctx: HookContext) -> None:
        env = os.environ.copy()
        env["FAILWIND_PLUGIN_PATH"] = str(ctx.path)
        env["FAILWIND_PLUGIN_NAME"] = ctx.name
        env["FAILWIND_PLUGIN_SOURCE"] = ctx.source or ""
        env["FAILWIND_HOOK"] = hook_type.value

        cwd = ctx.path if ctx.path.is_dir() else ctx.path.parent
        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                shell=shell,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise HookError(
                f"Hook {hook_type.value} timed out after {timeout} seconds"
            ) from e
        except OSError as e:
            raise HookError(f"Failed to execute hook {hook_type.value}: {e}") from e

        if result.returncode != 0:
            raise HookError(
                f"Hook {hook_type.value} failed with exit code {result.returncode}:\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )

    _run.__name__ = f"{hook_type.value}_command"
    return _run


def run_hook(hooks: Hooks, hook_type: HookType, ctx: HookContext) -> str | None:
    """
    Execute one lifecycle hook of a plugin.

    Args:
        hooks: Plugin hooks
        hook_type: Which hook to execute
        ctx: Context passed to the hook

    Returns:
        Error message if hook failed, None otherwise
    """
    hook = hooks.get(hook_type)
    try:
        hook(ctx)
    except Exception as e:
        return f"Error in {hook_type.value} hook: {e}"
    return None
