"""
Unit Registry.

This module provides the in-memory data model for managed units.

Key features:
- Canonical unit spec and metadata records
- Trigger and key-binding descriptions
- Activation state tracking
- Dependency reference resolution to registry ids
- Read-only snapshots for status rendering
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

DEFAULT_PRIORITY = 50


class UnitState(Enum):
    """Unit activation state enumeration."""

    REGISTERED = "registered"
    LAZY_PENDING = "lazy_pending"
    LOADING = "loading"
    CONFIGURED = "configured"
    FAILED = "failed"


# Forward-only transitions; re-registration replaces the record instead.
_TRANSITIONS: dict[UnitState, frozenset[UnitState]] = {
    UnitState.REGISTERED: frozenset({UnitState.LAZY_PENDING, UnitState.LOADING}),
    UnitState.LAZY_PENDING: frozenset({UnitState.LOADING}),
    UnitState.LOADING: frozenset({UnitState.CONFIGURED, UnitState.FAILED}),
    UnitState.CONFIGURED: frozenset(),
    UnitState.FAILED: frozenset(),
}


class TriggerKind(Enum):
    """Signal categories that can activate a lazy unit."""

    EVENT = "event"
    COMMAND = "cmd"
    CONTENT_TYPE = "ft"
    KEY = "keys"
    DEFERRED_READY = "ready"


@dataclass(frozen=True)
class Trigger:
    """
    A lazy-loading trigger.

    Attributes:
        kind: Signal category
        values: Event names, command names, content types, or a single key sequence
        mode: Key map mode (keys only)
        action: Replay action, a command line or a zero-argument callable
        desc: Human-readable description
    """

    kind: TriggerKind
    values: tuple[str, ...]
    mode: str = "n"
    action: str | Callable[[], Any] | None = None
    desc: str | None = None


@dataclass(frozen=True)
class KeyBinding:
    """A key binding installed after a unit is configured."""

    key: str
    action: str | Callable[[], Any]
    mode: str = "n"
    desc: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class UnitSpec:
    """
    Canonical unit specification.

    Attributes:
        id: Unique unit identifier
        source_locator: Absolute source locator (URL or path)
        version_ref: Optional tag, branch, or commit
        priority: Ordering weight among independent units (higher = earlier)
    """

    id: str
    source_locator: str
    version_ref: str | None = None
    priority: int = DEFAULT_PRIORITY


@dataclass
class UnitMetadata:
    """
    Unit behaviour metadata.

    Attributes:
        dependencies: Ordered dependency references (ids, locators, or tables)
        enabled: Whether the unit takes part in resolution at all
        lazy: Whether activation waits for a trigger
        triggers: Lazy-loading triggers
        build_action: Shell command, ``:``-prefixed host command, or callable
        setup_payload: Mapping/True for the entry point's setup(), or a callable
        configure_action: Callable run after setup
        key_bindings: Bindings registered once the unit is configured
        module: Import name of the configuration entry point
    """

    dependencies: tuple[Any, ...] = ()
    enabled: bool = True
    lazy: bool = False
    triggers: tuple[Trigger, ...] = ()
    build_action: str | Callable[[], Any] | None = None
    setup_payload: Mapping[str, Any] | bool | Callable[[], Any] | None = None
    configure_action: Callable[[], Any] | None = None
    key_bindings: tuple[KeyBinding, ...] = ()
    module: str | None = None


@dataclass
class UnitRecord:
    """
    Live registry entry for a unit.

    Attributes:
        spec: Canonical spec
        metadata: Behaviour metadata
        state: Current activation state
        error: Captured configuration error (FAILED only)
    """

    spec: UnitSpec
    metadata: UnitMetadata
    state: UnitState = UnitState.REGISTERED
    error: Exception | None = None

    @property
    def id(self) -> str:
        return self.spec.id

    def advance(self, state: UnitState, error: Exception | None = None) -> None:
        """
        Move the record forward to a new state.

        Raises:
            ValueError: If the transition would move the record backwards
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid state transition for {self.id}: "
                f"{self.state.value} -> {state.value}"
            )
        self.state = state
        self.error = error if state == UnitState.FAILED else None


class Registry:
    """
    Mapping from unit id to UnitRecord.

    Insertion order is kept for stable tie-breaking. Putting a record whose
    id already exists replaces the old record in its original position.
    """

    def __init__(self, ecosystem: str | None = "nvim"):
        """
        Initialize Registry.

        Args:
            ecosystem: Name prefix/suffix stripped when deriving ids from locators
        """
        self.ecosystem = ecosystem
        self._records: dict[str, UnitRecord] = {}

    def put(self, record: UnitRecord) -> None:
        self._records[record.id] = record

    def get(self, unit_id: str) -> UnitRecord | None:
        return self._records.get(unit_id)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> list[UnitRecord]:
        return list(self._records.values())

    def resolve_dependency(self, ref: Any) -> str | None:
        """
        Resolve a dependency reference to a registry id.

        A reference may be a unit id, a short ``owner/name`` form, a full
        locator, or a table with ``name`` or ``src``.

        Args:
            ref: Dependency reference as declared

        Returns:
            Registry id, or None if the reference names no registered unit
        """
        from lazypack.unit.spec import derive_id, normalize_locator

        if isinstance(ref, Mapping):
            if isinstance(ref.get("name"), str):
                candidate = ref["name"]
            elif isinstance(ref.get("src"), str):
                candidate = derive_id(normalize_locator(ref["src"]), self.ecosystem)
            else:
                return None
        elif isinstance(ref, str):
            if ref in self._records:
                return ref
            candidate = derive_id(normalize_locator(ref), self.ecosystem)
        else:
            return None

        return candidate if candidate in self._records else None

    def dependency_ids(self, record: UnitRecord) -> list[str]:
        """
        Resolved, de-duplicated dependency ids of a record in declaration order.

        Unresolvable references are dropped; they are assumed to be satisfied
        outside the registry.
        """
        resolved: list[str] = []
        for ref in record.metadata.dependencies:
            dep_id = self.resolve_dependency(ref)
            if dep_id is not None and dep_id not in resolved:
                resolved.append(dep_id)
        return resolved

    def snapshot(self) -> Mapping[str, UnitRecord]:
        """
        Read-only view of the registry.

        Returns:
            Mapping of id to a copy of each record
        """
        return MappingProxyType(
            {
                unit_id: replace(
                    record, spec=replace(record.spec), metadata=replace(record.metadata)
                )
                for unit_id, record in self._records.items()
            }
        )
