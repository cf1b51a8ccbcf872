"""
Entry Point Loader.

This module imports a unit's configuration entry point, the module whose
``setup()`` receives a structured setup payload.

Key features:
- Loading from the unit's install directory via importlib
- Fallback to a regular import by module name
- Per-loader module cache
"""

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType

from lazypack.errors import LazyPackError
from lazypack.unit.registry import UnitRecord


class LoaderError(LazyPackError):
    """Raised when an entry point module cannot be loaded."""

    pass


class EntryPointNotFoundError(LoaderError):
    """Raised when a unit ships no importable entry point module."""

    pass


def module_name_for(record: UnitRecord) -> str:
    """Import name of a unit's entry point (``module`` option, else the id)."""
    if record.metadata.module:
        return record.metadata.module
    return record.id.replace("-", "_").replace(".", "_")


class EntryPointLoader:
    """Loads and caches unit entry point modules."""

    def __init__(self):
        self._cache: dict[str, ModuleType] = {}

    def load(self, record: UnitRecord, unit_dir: Path | None = None) -> ModuleType:
        """
        Load a unit's entry point module.

        Looks for ``<module>.py`` or ``<module>/__init__.py`` under the unit
        directory (and its ``src/``), then falls back to a normal import.

        Args:
            record: Unit record
            unit_dir: Install directory of the unit, if known

        Returns:
            Loaded module

        Raises:
            EntryPointNotFoundError: If no module by that name exists
            LoaderError: If loading fails
        """
        module_name = module_name_for(record)
        if module_name in self._cache:
            return self._cache[module_name]

        entry_point = _find_entry_point(unit_dir, module_name) if unit_dir else None

        try:
            if entry_point is None:
                module = importlib.import_module(module_name)
            else:
                module = _load_from_file(module_name, entry_point)
        except LoaderError:
            raise
        except ModuleNotFoundError as e:
            if entry_point is None and _names_module(e, module_name):
                raise EntryPointNotFoundError(
                    f"No entry point '{module_name}' for {record.id}"
                ) from e
            raise LoaderError(
                f"Failed to load entry point '{module_name}' for {record.id}: {e}"
            ) from e
        except Exception as e:
            raise LoaderError(
                f"Failed to load entry point '{module_name}' for {record.id}: {e}"
            ) from e

        self._cache[module_name] = module
        return module


def _names_module(error: ModuleNotFoundError, module_name: str) -> bool:
    # A missing import inside the entry point itself is a load failure
    return error.name == module_name or module_name.startswith(f"{error.name}.")


def _find_entry_point(unit_dir: Path, module_name: str) -> Path | None:
    for base in (unit_dir, unit_dir / "src"):
        for candidate in (base / f"{module_name}.py", base / module_name / "__init__.py"):
            if candidate.is_file():
                return candidate
    return None


def _load_from_file(module_name: str, entry_point: Path) -> ModuleType:
    locations = [str(entry_point.parent)] if entry_point.name == "__init__.py" else None
    spec = importlib.util.spec_from_file_location(
        module_name, entry_point, submodule_search_locations=locations
    )
    if spec is None or spec.loader is None:
        raise LoaderError(f"Failed to create module spec for {entry_point}")

    module = importlib.util.module_from_spec(spec)
    # Registered before execution so the module can import its own submodules
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[module_name]
        raise
    return module
