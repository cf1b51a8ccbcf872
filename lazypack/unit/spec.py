"""
Unit Spec Normalizer.

This module turns user-supplied unit descriptions into canonical registry
records.

Key features:
- Three input shapes: bare locator, table with ``src``, array-style entry
- GitHub shorthand expansion (``owner/name``)
- Id derivation from the locator's last path segment
- Trigger and key-binding parsing
- Per-entry error isolation for batches
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from lazypack.errors import LazyPackError
from lazypack.unit.registry import (
    DEFAULT_PRIORITY,
    KeyBinding,
    Registry,
    Trigger,
    TriggerKind,
    UnitMetadata,
    UnitRecord,
    UnitSpec,
)

logger = logging.getLogger(__name__)

GITHUB_PREFIX = "https://github.com/"
REPO_SUFFIX = ".git"
DEFERRED_READY_EVENT = "VeryLazy"

_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
_LOCATOR_FIELDS = ("src", "url")


class SpecError(LazyPackError):
    """Raised when a unit description cannot be normalized."""

    pass


@dataclass(frozen=True)
class LocatorInput:
    """A bare locator string."""

    locator: str


@dataclass(frozen=True)
class TableInput:
    """A table carrying the locator in its ``src`` (or ``url``) field."""

    locator: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class PositionalInput:
    """An array-style entry whose first element is the locator."""

    locator: str
    options: Mapping[str, Any] = field(default_factory=dict)


SpecInput = LocatorInput | TableInput | PositionalInput


def classify(raw: Any) -> SpecInput:
    """
    Classify a raw unit description into one of the SpecInput variants.

    Args:
        raw: String, mapping, or list/tuple description

    Returns:
        SpecInput variant

    Raises:
        SpecError: If no locator can be found
    """
    if isinstance(raw, str):
        return LocatorInput(raw)

    if isinstance(raw, Mapping):
        for key in _LOCATOR_FIELDS:
            if isinstance(raw.get(key), str):
                return TableInput(raw[key], raw)
        raise SpecError(f"Unit spec must have a 'src' field or be a locator string: {raw!r}")

    if isinstance(raw, Sequence) and raw and isinstance(raw[0], str):
        options: dict[str, Any] = {}
        for extra in raw[1:]:
            if not isinstance(extra, Mapping):
                raise SpecError(f"Array-style unit spec options must be tables: {raw!r}")
            options.update(extra)
        return PositionalInput(raw[0], options)

    raise SpecError(f"Invalid unit spec: {raw!r}")


def normalize_locator(src: str) -> str:
    """
    Expand a source locator to its absolute form.

    ``owner/name`` becomes a GitHub URL, anything with a scheme is left
    untouched, and home/relative paths are resolved.
    """
    src = src.strip()
    if "://" in src:
        return src
    if src.startswith(("~", ".", "/")):
        return str(Path(src).expanduser().resolve())
    if _SHORTHAND_RE.match(src):
        return GITHUB_PREFIX + src
    return src


def derive_id(locator: str, ecosystem: str | None = "nvim") -> str:
    """
    Derive a unit id from a locator.

    Args:
        locator: Source locator
        ecosystem: Redundant ecosystem name stripped as ``.<eco>`` suffix
            and ``<eco>-`` prefix

    Returns:
        Unit id
    """
    name = locator.rstrip("/").rsplit("/", 1)[-1]
    name = name.removesuffix(REPO_SUFFIX)
    if ecosystem:
        name = name.removesuffix(f".{ecosystem}").removeprefix(f"{ecosystem}-")
    return name


def normalize(raw: Any, ecosystem: str | None = "nvim") -> UnitRecord:
    """
    Normalize one unit description into a registry record.

    Args:
        raw: Unit description
        ecosystem: Ecosystem name used for id derivation

    Returns:
        New UnitRecord in REGISTERED state

    Raises:
        SpecError: If the description is malformed
    """
    match classify(raw):
        case LocatorInput(locator=locator):
            options: Mapping[str, Any] = {}
        case TableInput(locator=locator, options=options):
            pass
        case PositionalInput(locator=locator, options=options):
            pass

    if not locator.strip():
        raise SpecError(f"Unit spec has an empty locator: {raw!r}")

    source = normalize_locator(locator)
    name = options.get("name")
    if name is not None and (not isinstance(name, str) or not name):
        raise SpecError(f"'name' must be a non-empty string: {raw!r}")
    unit_id = name or derive_id(source, ecosystem)

    priority = options.get("priority", DEFAULT_PRIORITY)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise SpecError(f"{unit_id}: 'priority' must be an integer, got {priority!r}")

    version = options.get("version")
    if version is not None and not isinstance(version, str):
        raise SpecError(f"{unit_id}: 'version' must be a string, got {version!r}")

    spec = UnitSpec(
        id=unit_id,
        source_locator=source,
        version_ref=version,
        priority=priority,
    )
    return UnitRecord(spec=spec, metadata=_parse_metadata(unit_id, options))


def normalize_batch(
    registry: Registry, inputs: Iterable[Any]
) -> tuple[list[str], list[SpecError]]:
    """
    Normalize a batch of descriptions into the registry.

    A malformed entry is skipped and reported; the rest of the batch is still
    processed. Records sharing an id overwrite earlier ones.

    Args:
        registry: Target registry
        inputs: Unit descriptions

    Returns:
        Tuple of (normalized ids in input order, collected errors)
    """
    ids: list[str] = []
    errors: list[SpecError] = []

    for raw in inputs:
        try:
            record = normalize(raw, registry.ecosystem)
        except SpecError as e:
            logger.warning("Skipping unit spec: %s", e)
            errors.append(e)
            continue

        if record.id in registry:
            logger.debug("Replacing existing unit %s", record.id)
        registry.put(record)
        if record.id not in ids:
            ids.append(record.id)

    return ids, errors


def _parse_metadata(unit_id: str, options: Mapping[str, Any]) -> UnitMetadata:
    dependencies = _first(options, "dependencies", "requires")
    build = _first(options, "build", "run")
    setup = options.get("setup")
    configure = options.get("config")
    module = options.get("module")

    if build is not None and not (isinstance(build, str) or callable(build)):
        raise SpecError(f"{unit_id}: 'build' must be a command string or callable")
    if setup is not None and not (
        isinstance(setup, (Mapping, bool)) or callable(setup)
    ):
        raise SpecError(f"{unit_id}: 'setup' must be a table, true, or a callable")
    if configure is not None and not callable(configure):
        raise SpecError(f"{unit_id}: 'config' must be callable")
    if module is not None and not isinstance(module, str):
        raise SpecError(f"{unit_id}: 'module' must be a string")

    return UnitMetadata(
        dependencies=_parse_dependencies(unit_id, dependencies),
        enabled=_flag(unit_id, options, "enabled", True),
        lazy=_flag(unit_id, options, "lazy", False),
        triggers=_parse_triggers(unit_id, options),
        build_action=build,
        setup_payload=setup,
        configure_action=configure,
        key_bindings=_parse_key_bindings(unit_id, options.get("keymaps")),
        module=module,
    )


def _first(options: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if options.get(key) is not None:
            return options[key]
    return None


def _flag(unit_id: str, options: Mapping[str, Any], key: str, default: bool) -> bool:
    value = options.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise SpecError(f"{unit_id}: '{key}' must be a boolean, got {value!r}")
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, Mapping)) or callable(value):
        return [value]
    return list(value)


def _parse_dependencies(unit_id: str, value: Any) -> tuple[Any, ...]:
    deps: list[Any] = []
    for dep in _as_list(value):
        if isinstance(dep, str):
            key: Any = dep
        elif isinstance(dep, Mapping) and (
            isinstance(dep.get("name"), str) or isinstance(dep.get("src"), str)
        ):
            key = dep
        else:
            raise SpecError(f"{unit_id}: invalid dependency reference {dep!r}")
        if key not in deps:
            deps.append(key)
    return tuple(deps)


def _names(unit_id: str, key: str, value: Any) -> tuple[str, ...]:
    names = _as_list(value)
    for name in names:
        if not isinstance(name, str) or not name:
            raise SpecError(f"{unit_id}: '{key}' entries must be non-empty strings")
    return tuple(names)


def _parse_triggers(unit_id: str, options: Mapping[str, Any]) -> tuple[Trigger, ...]:
    triggers: list[Trigger] = []

    events = _names(unit_id, "event", options.get("event"))
    if DEFERRED_READY_EVENT in events:
        triggers.append(Trigger(TriggerKind.DEFERRED_READY, (DEFERRED_READY_EVENT,)))
        events = tuple(e for e in events if e != DEFERRED_READY_EVENT)
    if events:
        triggers.append(Trigger(TriggerKind.EVENT, events))

    commands = _names(unit_id, "cmd", options.get("cmd"))
    if commands:
        triggers.append(Trigger(TriggerKind.COMMAND, commands))

    content_types = _names(unit_id, "ft", options.get("ft"))
    if content_types:
        triggers.append(Trigger(TriggerKind.CONTENT_TYPE, content_types))

    keys = options.get("keys")
    # A bare [key, action] pair is one key trigger, not two
    if isinstance(keys, (list, tuple)) and len(keys) == 2 and _is_key_pair(keys):
        keys = [keys]
    for entry in _as_list(keys):
        key, action, mode, desc = _parse_key_entry(unit_id, "keys", entry)
        triggers.append(
            Trigger(TriggerKind.KEY, (key,), mode=mode, action=action, desc=desc)
        )

    return tuple(triggers)


def _is_key_pair(value: Sequence[Any]) -> bool:
    return isinstance(value[0], str) and callable(value[1])


def _parse_key_entry(
    unit_id: str, field_name: str, entry: Any
) -> tuple[str, str | Callable[[], Any] | None, str, str | None]:
    """Parse a string, [key, action] pair, or {key, cmd, mode, desc} table."""
    if isinstance(entry, str):
        return entry, None, "n", None

    if isinstance(entry, Mapping):
        key = entry.get("key", entry.get(0))
        action = entry.get("cmd", entry.get(1))
        mode = entry.get("mode", "n")
        desc = entry.get("desc")
    elif isinstance(entry, Sequence) and entry:
        key = entry[0]
        action = entry[1] if len(entry) > 1 else None
        mode = "n"
        desc = None
        if len(entry) > 2 and isinstance(entry[2], Mapping):
            mode = entry[2].get("mode", mode)
            desc = entry[2].get("desc")
    else:
        raise SpecError(f"{unit_id}: invalid '{field_name}' entry {entry!r}")

    if not isinstance(key, str) or not key:
        raise SpecError(f"{unit_id}: '{field_name}' entry has no key: {entry!r}")
    if action is not None and not (isinstance(action, str) or callable(action)):
        raise SpecError(f"{unit_id}: key action must be a command string or callable")
    if not isinstance(mode, str):
        raise SpecError(f"{unit_id}: key mode must be a string")
    return key, action, mode, desc


def _parse_key_bindings(unit_id: str, value: Any) -> tuple[KeyBinding, ...]:
    bindings: list[KeyBinding] = []
    if isinstance(value, (list, tuple)) and value and isinstance(value[0], str):
        value = [value]
    for entry in _as_list(value):
        key, action, mode, desc = _parse_key_entry(unit_id, "keymaps", entry)
        if action is None:
            raise SpecError(f"{unit_id}: keymap {key!r} has no action")
        options = entry.get("opts", {}) if isinstance(entry, Mapping) else {}
        bindings.append(
            KeyBinding(key=key, action=action, mode=mode, desc=desc, options=options)
        )
    return tuple(bindings)
