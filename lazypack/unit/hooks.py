"""
Lifecycle Hooks.

This module provides lifecycle hook registration and dispatch.

Key features:
- Hook types: install, update, activation (pre and post)
- Structured payload per invocation
- Failure isolation: a raising hook never aborts the surrounding operation
- Script hooks with environment variable injection and timeout
"""

import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from lazypack.errors import LazyPackError
from lazypack.unit.registry import UnitRecord, UnitSpec

logger = logging.getLogger(__name__)


class HookError(LazyPackError):
    """Raised when a hook fails; recorded, never propagated by the dispatcher."""

    pass


class HookType(Enum):
    """Hook type enumeration."""

    PRE_INSTALL = "pre_install"
    POST_INSTALL = "post_install"
    PRE_UPDATE = "pre_update"
    POST_UPDATE = "post_update"
    PRE_ACTIVATION = "pre_activation"
    POST_ACTIVATION = "post_activation"


@dataclass
class HookContext:
    """
    Payload passed to a hook.

    Attributes:
        hook: Hook being dispatched
        unit_ids: Units the operation concerns
        specs: Specs being installed (install hooks)
        record: Unit record (activation hooks)
        scope: Requested update scope, None meaning every unit (update hooks)
    """

    hook: HookType
    unit_ids: tuple[str, ...] = ()
    specs: tuple[UnitSpec, ...] = ()
    record: UnitRecord | None = None
    scope: tuple[str, ...] | None = None


Hook = Callable[[HookContext], Any]


@dataclass
class HookDispatcher:
    """
    Registry of optional lifecycle callbacks.

    Absent hooks are no-ops. Failures are logged and collected in ``errors``.
    """

    hooks: dict[HookType, Hook] = field(default_factory=dict)
    errors: list[HookError] = field(default_factory=list)

    def register(self, hook: HookType, callback: Hook | None) -> None:
        """
        Register (or clear, with None) the callback for a hook type.

        Args:
            hook: Hook type
            callback: Callable taking a HookContext
        """
        if callback is None:
            self.hooks.pop(hook, None)
        else:
            self.hooks[hook] = callback

    def has(self, hook: HookType) -> bool:
        return hook in self.hooks

    def dispatch(self, hook: HookType, context: HookContext) -> bool:
        """
        Invoke a hook synchronously.

        Args:
            hook: Hook type
            context: Payload

        Returns:
            False if the hook raised, True otherwise (including when absent)
        """
        callback = self.hooks.get(hook)
        if callback is None:
            return True

        try:
            callback(context)
        except Exception as e:
            error = HookError(f"Hook {hook.value} failed: {e}")
            error.__cause__ = e
            self.errors.append(error)
            logger.warning("%s", error, exc_info=True)
            return False

        return True


def script_hook(script: Path, timeout: int = 60) -> Hook:
    """
    Build a hook that runs an external script.

    The script receives ``LAZYPACK_HOOK_TYPE`` and ``LAZYPACK_UNIT_IDS``
    (space separated) in its environment. Python scripts run through the
    current interpreter's ``python``.

    Args:
        script: Script path
        timeout: Timeout in seconds (default: 60)

    Returns:
        Hook callable raising HookError on non-zero exit or timeout
    """

    def run(context: HookContext) -> None:
        env = os.environ.copy()
        env["LAZYPACK_HOOK_TYPE"] = context.hook.value
        env["LAZYPACK_UNIT_IDS"] = " ".join(context.unit_ids)

        cmd = ["python", str(script)] if script.suffix == ".py" else [str(script)]

        try:
            result = subprocess.run(
                cmd,
                cwd=script.parent,
                env=env,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise HookError(
                f"Hook {context.hook.value} timed out after {timeout} seconds"
            ) from e
        except OSError as e:
            raise HookError(f"Failed to execute hook script {script}: {e}") from e

        if result.returncode != 0:
            raise HookError(
                f"Hook {context.hook.value} failed with exit code {result.returncode}:\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )

    return run
