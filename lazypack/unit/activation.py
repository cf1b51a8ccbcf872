"""
Unit Activation.

This module drives a unit from REGISTERED (or LAZY_PENDING) to CONFIGURED
or FAILED.

Key features:
- Idempotent activation, dependencies first
- Re-entrancy guard against cycles introduced after resolution
- Build, setup, configure, and key-binding stages behind one Action interface
- Per-unit failure isolation: errors are recorded, never raised
- Pre/post activation hooks
"""

import logging
import subprocess
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from lazypack.errors import LazyPackError
from lazypack.unit.hooks import HookContext, HookDispatcher, HookType
from lazypack.unit.loader import EntryPointLoader, EntryPointNotFoundError, module_name_for
from lazypack.unit.registry import Registry, UnitRecord, UnitState
from lazypack.unit.triggers import TriggerSink

logger = logging.getLogger(__name__)

Action = Callable[[], Any]


class ConfigurationError(LazyPackError):
    """Wraps a failure while building or configuring a single unit."""

    def __init__(self, unit_id: str, stage: str, cause: BaseException):
        self.unit_id = unit_id
        self.stage = stage
        self.cause = cause
        super().__init__(f"Failed to configure {unit_id} ({stage}): {cause}")


def _warn_dependency_failed(dep_id: str, unit_id: str) -> None:
    logger.warning("Dependency %s of %s failed to activate; continuing", dep_id, unit_id)


class Activator:
    """
    Activation state machine for the units of one registry.

    ``activate`` never raises for configuration problems; the outcome is the
    return value and the record's state/error.
    """

    def __init__(
        self,
        registry: Registry,
        sink: TriggerSink | None = None,
        hooks: HookDispatcher | None = None,
        loader: EntryPointLoader | None = None,
        unit_dir: Callable[[str], Path | None] | None = None,
        on_loading: Callable[[str], None] | None = None,
    ):
        """
        Initialize Activator.

        Args:
            registry: Registry holding the records
            sink: Host interface for ``:`` build commands and key bindings
            hooks: Hook dispatcher for pre/post activation
            loader: Entry point loader for structured setup payloads
            unit_dir: Maps a unit id to its install directory
            on_loading: Called with the unit id when it enters LOADING
        """
        self.registry = registry
        self.sink = sink
        self.hooks = hooks or HookDispatcher()
        self.loader = loader or EntryPointLoader()
        self.unit_dir = unit_dir or (lambda unit_id: None)
        self.on_loading = on_loading
        self._in_progress: set[str] = set()

    @property
    def in_progress(self) -> frozenset[str]:
        return frozenset(self._in_progress)

    def activate(self, unit_id: str) -> bool:
        """
        Activate a unit and, first, its dependencies.

        Args:
            unit_id: Unit id

        Returns:
            True if the unit is configured (or already being activated
            further up the call stack), False otherwise
        """
        entered = self._enter(unit_id)
        if entered is not None:
            return entered

        # Depth-first over dependencies with an explicit stack, so long
        # dependency chains are not limited by the interpreter's recursion depth
        stack = [(unit_id, iter(self._enabled_dependencies(unit_id)))]
        configured = False
        try:
            while stack:
                current, deps = stack[-1]
                for dep_id in deps:
                    entered = self._enter(dep_id)
                    if entered is None:
                        stack.append((dep_id, iter(self._enabled_dependencies(dep_id))))
                        break
                    if not entered:
                        _warn_dependency_failed(dep_id, current)
                else:
                    stack.pop()
                    configured = self._configure(current)
                    if stack and not configured:
                        _warn_dependency_failed(current, stack[-1][0])
        finally:
            for frame_id, _ in stack:
                self._in_progress.discard(frame_id)

        return configured

    def _enter(self, unit_id: str) -> bool | None:
        """
        Move a unit into LOADING.

        Returns:
            None if the unit entered LOADING, otherwise the final outcome of
            activating it (True for configured or already loading)
        """
        record = self.registry.get(unit_id)
        if record is None:
            logger.warning("Unit not found: %s", unit_id)
            return False
        if not record.metadata.enabled:
            logger.warning("Unit %s is disabled", unit_id)
            return False
        if record.state == UnitState.CONFIGURED:
            return True
        if record.state == UnitState.FAILED:
            logger.debug("Unit %s previously failed: %s", unit_id, record.error)
            return False
        if unit_id in self._in_progress:
            logger.debug("Unit %s is already loading; breaking the cycle", unit_id)
            return True

        record.advance(UnitState.LOADING)
        self._in_progress.add(unit_id)

        if self.on_loading is not None:
            try:
                self.on_loading(unit_id)
            except Exception as e:
                self._in_progress.discard(unit_id)
                self._fail(record, ConfigurationError(unit_id, "loading", e))
                return False

        return None

    def _configure(self, unit_id: str) -> bool:
        """Run the stages of a LOADING unit whose dependencies were handled."""
        record = self.registry.get(unit_id)
        try:
            self.hooks.dispatch(
                HookType.PRE_ACTIVATION,
                HookContext(HookType.PRE_ACTIVATION, unit_ids=(unit_id,), record=record),
            )

            try:
                for stage, action in self._actions(record):
                    try:
                        action()
                    except Exception as e:
                        raise ConfigurationError(unit_id, stage, e) from e
            except ConfigurationError as e:
                self._fail(record, e)
                return False

            record.advance(UnitState.CONFIGURED)
        finally:
            self._in_progress.discard(unit_id)

        self.hooks.dispatch(
            HookType.POST_ACTIVATION,
            HookContext(HookType.POST_ACTIVATION, unit_ids=(unit_id,), record=record),
        )
        logger.info("Configured %s", unit_id)
        return True

    def _fail(self, record: UnitRecord, error: ConfigurationError) -> None:
        record.advance(UnitState.FAILED, error)
        logger.error("%s", error)

    def _enabled_dependencies(self, unit_id: str) -> list[str]:
        record = self.registry.get(unit_id)
        return [
            dep_id
            for dep_id in self.registry.dependency_ids(record)
            if self.registry.get(dep_id).metadata.enabled
        ]

    def _actions(self, record: UnitRecord) -> Iterator[tuple[str, Action]]:
        meta = record.metadata

        if meta.build_action is not None:
            yield "build", self._build_action(record)

        setup = meta.setup_payload
        if setup is not None and setup is not False:
            yield "setup", self._setup_action(record)

        if meta.configure_action is not None:
            yield "config", meta.configure_action

        if meta.key_bindings:
            yield "keymaps", lambda: self._bind_keys(record)

    def _build_action(self, record: UnitRecord) -> Action:
        build = record.metadata.build_action
        if callable(build):
            return build

        if build.startswith(":"):
            return lambda: self._require_sink(record).run_command(build[1:])

        def run_shell() -> None:
            result = subprocess.run(
                build,
                shell=True,
                cwd=self.unit_dir(record.id),
                capture_output=True,
                text=True,
                check=False,
            )
            if result.returncode != 0:
                raise RuntimeError(
                    f"build command exited with {result.returncode}: "
                    f"{result.stderr.strip() or result.stdout.strip()}"
                )

        return run_shell

    def _setup_action(self, record: UnitRecord) -> Action:
        payload = record.metadata.setup_payload
        if callable(payload):
            return payload

        def apply_setup() -> None:
            try:
                module = self.loader.load(record, self.unit_dir(record.id))
            except EntryPointNotFoundError as e:
                logger.warning("%s; skipping setup", e)
                return

            setup = getattr(module, "setup", None)
            if not callable(setup):
                logger.warning(
                    "Entry point '%s' of %s has no setup(); skipping setup",
                    module_name_for(record),
                    record.id,
                )
                return

            if payload is True:
                setup()
            else:
                setup(**dict(payload))

        return apply_setup

    def _bind_keys(self, record: UnitRecord) -> None:
        sink = self._require_sink(record)
        for binding in record.metadata.key_bindings:
            sink.bind_key(binding)

    def _require_sink(self, record: UnitRecord) -> TriggerSink:
        if self.sink is None:
            raise RuntimeError(f"{record.id} needs a host, but none is attached")
        return self.sink
