"""
Lazy-Loading Trigger Registrar.

This module binds lazy units to host signal sources.

Key features:
- TriggerSink: the host interface (events, commands, content types, keys,
  readiness signal, deferred scheduling)
- One registration per trigger, all removed on the first firing
- Activation funnelled through a single activate callable
- Replay of the triggering signal on a later host turn
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from lazypack.unit.registry import KeyBinding, Trigger, TriggerKind, UnitRecord

logger = logging.getLogger(__name__)

Handle = Any
Callback = Callable[..., Any]


class TriggerSink(ABC):
    """
    Host environment interface used by the registrar and the activator.

    Register methods return an opaque handle accepted by ``remove``.
    """

    @abstractmethod
    def on_event(self, names: tuple[str, ...], callback: Callback, desc: str) -> Handle:
        """Call ``callback(event_name)`` when any of the events is emitted."""

    @abstractmethod
    def on_command(self, name: str, callback: Callback, desc: str) -> Handle:
        """Define a command; ``callback(args)`` receives its argument string."""

    @abstractmethod
    def on_content_type(
        self, content_types: tuple[str, ...], callback: Callback, desc: str
    ) -> Handle:
        """Call ``callback(content_type)`` when content of a listed type is opened."""

    @abstractmethod
    def on_key(self, key: str, mode: str, callback: Callback, desc: str) -> Handle:
        """Map a key sequence in a mode to ``callback()``."""

    @abstractmethod
    def on_ready(self, callback: Callback, desc: str) -> Handle:
        """Call ``callback()`` once the host signals it finished starting up."""

    @abstractmethod
    def remove(self, handle: Handle) -> None:
        """Remove a registration; unknown or already removed handles are ignored."""

    @abstractmethod
    def run_command(self, line: str) -> None:
        """Execute a command line in the host."""

    @abstractmethod
    def feed_keys(self, keys: str, mode: str) -> None:
        """Feed a key sequence to the host as if typed."""

    @abstractmethod
    def bind_key(self, binding: KeyBinding) -> Handle:
        """Install a permanent key binding."""

    @abstractmethod
    def schedule(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` on a later turn of the host event queue."""


class TriggerRegistrar:
    """
    Registers lazy units' triggers with a TriggerSink.

    Whichever trigger of a unit fires first removes all of that unit's
    registrations, activates the unit, then schedules the replay.
    """

    def __init__(self, sink: TriggerSink, activate: Callable[[str], bool]):
        """
        Initialize TriggerRegistrar.

        Args:
            sink: Host interface
            activate: Activation entry point, returns True on success
        """
        self._sink = sink
        self._activate = activate
        self._handles: dict[str, list[Handle]] = {}
        self._spent: set[str] = set()

    def arm(self, record: UnitRecord) -> int:
        """
        Register every trigger of a lazy unit.

        Args:
            record: Unit record

        Returns:
            Number of registrations made (0 if already armed or spent)
        """
        unit_id = record.id
        if unit_id in self._handles or unit_id in self._spent:
            return 0

        handles: list[Handle] = []
        for trigger in record.metadata.triggers:
            handles.extend(self._register(unit_id, trigger))

        self._handles[unit_id] = handles
        logger.debug("Armed %d trigger(s) for %s", len(handles), unit_id)
        return len(handles)

    def is_armed(self, unit_id: str) -> bool:
        return unit_id in self._handles

    def disarm(self, unit_id: str) -> None:
        """
        Remove all of a unit's registrations; later firings become no-ops.

        Args:
            unit_id: Unit id
        """
        self._spent.add(unit_id)
        for handle in self._handles.pop(unit_id, []):
            self._sink.remove(handle)

    def reset(self, unit_id: str) -> None:
        """Forget a unit entirely so a re-registered record can be armed again."""
        self.disarm(unit_id)
        self._spent.discard(unit_id)

    def _register(self, unit_id: str, trigger: Trigger) -> list[Handle]:
        sink = self._sink
        desc = trigger.desc or f"Load {unit_id}"

        match trigger.kind:
            case TriggerKind.EVENT:
                return [
                    sink.on_event(
                        trigger.values,
                        lambda *_: self._fire(unit_id, self._action_replay(trigger)),
                        desc,
                    )
                ]
            case TriggerKind.CONTENT_TYPE:
                return [
                    sink.on_content_type(
                        trigger.values,
                        lambda *_: self._fire(unit_id, self._action_replay(trigger)),
                        desc,
                    )
                ]
            case TriggerKind.COMMAND:
                return [
                    sink.on_command(name, self._command_handler(unit_id, name), desc)
                    for name in trigger.values
                ]
            case TriggerKind.KEY:
                return [
                    sink.on_key(
                        trigger.values[0],
                        trigger.mode,
                        lambda *_: self._fire(unit_id, self._key_replay(trigger)),
                        desc,
                    )
                ]
            case TriggerKind.DEFERRED_READY:
                return [
                    sink.on_ready(
                        lambda *_: sink.schedule(
                            lambda: self._fire(unit_id, self._action_replay(trigger))
                        ),
                        f"{desc} (deferred)",
                    )
                ]

        raise ValueError(f"Unknown trigger kind: {trigger.kind}")

    def _command_handler(self, unit_id: str, name: str) -> Callback:
        def handler(args: str = "") -> None:
            line = f"{name} {args}".strip()
            self._fire(unit_id, lambda: self._sink.run_command(line))

        return handler

    def _action_replay(self, trigger: Trigger) -> Callable[[], Any] | None:
        action = trigger.action
        if action is None:
            return None
        if isinstance(action, str):
            return lambda: self._sink.run_command(action)
        return action

    def _key_replay(self, trigger: Trigger) -> Callable[[], Any]:
        replay = self._action_replay(trigger)
        if replay is not None:
            return replay
        key, mode = trigger.values[0], trigger.mode
        return lambda: self._sink.feed_keys(key, mode)

    def _fire(self, unit_id: str, replay: Callable[[], Any] | None) -> None:
        if unit_id in self._spent:
            return

        logger.debug("Trigger fired for %s", unit_id)
        self.disarm(unit_id)

        if not self._activate(unit_id):
            logger.warning("Not replaying trigger for %s: activation failed", unit_id)
            return

        if replay is not None:
            self._sink.schedule(replay)
