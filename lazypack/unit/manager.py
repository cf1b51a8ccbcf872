"""
Pack Manager.

This module provides the operations exposed to command-line and UI
collaborators.

Key features:
- add_units: normalize, install, resolve, arm lazy triggers, activate eager units
- Manual activation
- Install / update / sync / clean through the external installer
- Read-only registry snapshots
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from lazypack.config.schema import Settings
from lazypack.unit.activation import Activator
from lazypack.unit.hooks import HookContext, HookDispatcher, HookType
from lazypack.unit.installer import InstalledUnit, InstallOptions, Installer
from lazypack.unit.registry import Registry, UnitRecord, UnitState
from lazypack.unit.resolver import resolve_load_order
from lazypack.unit.spec import SpecError, derive_id, normalize_batch
from lazypack.unit.triggers import TriggerRegistrar, TriggerSink

logger = logging.getLogger(__name__)


@dataclass
class AddResult:
    """
    Outcome of an add_units call.

    Attributes:
        order: Resolved activation order of all enabled units
        configured: Eager units configured by this call
        failed: Eager units that failed to configure
        armed: Lazy units whose triggers were registered by this call
        errors: Spec errors for skipped entries
    """

    order: list[str] = field(default_factory=list)
    configured: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    armed: list[str] = field(default_factory=list)
    errors: list[SpecError] = field(default_factory=list)


class PackManager:
    """
    Owns a registry and drives its units through install and activation.
    """

    def __init__(
        self,
        installer: Installer | None = None,
        sink: TriggerSink | None = None,
        hooks: HookDispatcher | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize PackManager.

        Args:
            installer: External installer (install/update/clean are no-ops without one)
            sink: Host interface; lazy units need one to be armed
            hooks: Lifecycle hook dispatcher
            settings: Behaviour settings
        """
        self.settings = settings or Settings()
        self.installer = installer
        self.sink = sink
        self.hooks = hooks or HookDispatcher()
        self.registry = Registry(ecosystem=self.settings.ecosystem or None)

        self._activator = Activator(
            self.registry,
            sink=sink,
            hooks=self.hooks,
            unit_dir=self._unit_dir,
            on_loading=self._disarm,
        )
        self._registrar = (
            TriggerRegistrar(sink, self._activator.activate) if sink is not None else None
        )

    @property
    def install_options(self) -> InstallOptions:
        return InstallOptions(
            timeout=self.settings.git_timeout,
            parallel=self.settings.parallel_install,
        )

    def add_units(self, inputs: Iterable[Any], load: bool = True) -> AddResult:
        """
        Add a batch of unit descriptions.

        Args:
            inputs: Unit descriptions (strings, tables, or array-style entries)
            load: Activate eager units; when False they stay REGISTERED

        Returns:
            AddResult describing the outcome

        Raises:
            CircularDependencyError: If the registry's dependency graph has a cycle
            InstallerError: If auto-install fails
        """
        result = AddResult()
        ids, result.errors = normalize_batch(self.registry, inputs)
        if self._registrar is not None:
            # Re-registered units start over with fresh triggers
            for unit_id in ids:
                self._registrar.reset(unit_id)

        if self.installer is not None and self.settings.auto_install:
            specs = [
                self.registry.get(i).spec
                for i in ids
                if self.registry.get(i).metadata.enabled
            ]
            self._install(specs)

        result.order = resolve_load_order(self.registry)

        for unit_id in result.order:
            record = self.registry.get(unit_id)
            if record.metadata.lazy and record.state == UnitState.REGISTERED:
                self._arm(record)
                result.armed.append(unit_id)

        if load:
            for unit_id in result.order:
                record = self.registry.get(unit_id)
                if record.metadata.lazy or record.state != UnitState.REGISTERED:
                    continue
                if self._activator.activate(unit_id):
                    result.configured.append(unit_id)
                else:
                    result.failed.append(unit_id)

        logger.info(
            "Added %d unit(s): %d configured, %d failed, %d lazy",
            len(ids),
            len(result.configured),
            len(result.failed),
            len(result.armed),
        )
        return result

    def activate_unit(self, unit_id: str) -> bool:
        """
        Activate a unit manually, bypassing its triggers.

        Returns:
            True if the unit is configured
        """
        return self._activator.activate(unit_id)

    def update_units(self, ids: Sequence[str] | None = None) -> None:
        """
        Update units through the installer.

        Args:
            ids: Units to update, or None for every installed unit

        Raises:
            InstallerError: If the installer fails
        """
        if self.installer is None:
            logger.warning("No installer configured; nothing to update")
            return

        scope = tuple(ids) if ids is not None else None
        context_ids = scope if scope is not None else tuple(self.registry)
        self.hooks.dispatch(
            HookType.PRE_UPDATE,
            HookContext(HookType.PRE_UPDATE, unit_ids=context_ids, scope=scope),
        )
        self.installer.update(list(scope) if scope is not None else None, self.install_options)
        self.hooks.dispatch(
            HookType.POST_UPDATE,
            HookContext(HookType.POST_UPDATE, unit_ids=context_ids, scope=scope),
        )

    def install_missing(self) -> list[str]:
        """
        Install enabled units the installer does not report as installed.

        Returns:
            Ids of the units that were installed
        """
        if self.installer is None:
            logger.warning("No installer configured; nothing to install")
            return []

        existing = self._installed_ids()
        missing = [
            record.spec
            for record in self.registry.records()
            if record.metadata.enabled and record.id not in existing
        ]
        if not missing:
            logger.info("No missing units")
            return []

        self._install(missing)
        return [spec.id for spec in missing]

    def sync_all(self) -> list[str]:
        """Install missing units, then update everything."""
        installed = self.install_missing()
        self.update_units()
        return installed

    def remove_unused(self) -> list[str]:
        """
        Remove installed units that are unknown to the registry or disabled.

        Returns:
            Ids of removed units
        """
        if self.installer is None:
            logger.warning("No installer configured; nothing to clean")
            return []

        to_remove = []
        for unit in self.installer.list_installed():
            record = self.registry.get(self._registry_id(unit))
            if record is None or not record.metadata.enabled:
                to_remove.append(unit.id)

        if not to_remove:
            logger.info("No units to clean")
            return []

        logger.info("Removing %d unused unit(s)", len(to_remove))
        self.installer.remove(to_remove)
        return to_remove

    def get_registry_snapshot(self) -> Mapping[str, UnitRecord]:
        """Read-only copy of the registry for status rendering."""
        return self.registry.snapshot()

    def _install(self, specs: list) -> None:
        if not specs:
            return

        ids = tuple(spec.id for spec in specs)
        self.hooks.dispatch(
            HookType.PRE_INSTALL,
            HookContext(HookType.PRE_INSTALL, unit_ids=ids, specs=tuple(specs)),
        )
        self.installer.install(specs, self.install_options)
        self.hooks.dispatch(
            HookType.POST_INSTALL,
            HookContext(HookType.POST_INSTALL, unit_ids=ids, specs=tuple(specs)),
        )

    def _installed_ids(self) -> set[str]:
        return {self._registry_id(unit) for unit in self.installer.list_installed()}

    def _registry_id(self, unit: InstalledUnit) -> str:
        if unit.id in self.registry or not unit.source_locator:
            return unit.id
        return derive_id(unit.source_locator, self.registry.ecosystem)

    def _arm(self, record: UnitRecord) -> None:
        record.advance(UnitState.LAZY_PENDING)
        if self._registrar is None:
            logger.warning("No host attached; %s can only be activated manually", record.id)
            return
        if record.metadata.triggers:
            self._registrar.arm(record)

    def _disarm(self, unit_id: str) -> None:
        if self._registrar is not None and self._registrar.is_armed(unit_id):
            self._registrar.disarm(unit_id)

    def _unit_dir(self, unit_id: str) -> Path | None:
        if self.installer is None:
            return None
        return self.installer.path_for(unit_id)
