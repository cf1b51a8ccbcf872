"""
Lazypack - Dependency-ordered, lazily activated unit manager.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from lazypack.core.host import LocalHost
from lazypack.errors import LazyPackError
from lazypack.unit.activation import ConfigurationError
from lazypack.unit.hooks import HookContext, HookDispatcher, HookType
from lazypack.unit.installer import GitInstaller, InstallerError, Installer
from lazypack.unit.manager import AddResult, PackManager
from lazypack.unit.registry import Registry, UnitRecord, UnitState
from lazypack.unit.resolver import CircularDependencyError, resolve_load_order
from lazypack.unit.spec import SpecError
from lazypack.unit.triggers import TriggerSink

__all__ = [
    "__version__",
    "AddResult",
    "CircularDependencyError",
    "ConfigurationError",
    "GitInstaller",
    "HookContext",
    "HookDispatcher",
    "HookType",
    "Installer",
    "InstallerError",
    "LazyPackError",
    "LocalHost",
    "PackManager",
    "Registry",
    "SpecError",
    "TriggerSink",
    "UnitRecord",
    "UnitState",
    "resolve_load_order",
]
