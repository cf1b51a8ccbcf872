"""
Local Host - In-process implementation of the TriggerSink interface.

This module implements a small host environment:
1. Events: named notifications, every listener runs
2. Commands: a name -> handler table invoked with an argument string
3. Content types: notifications when content of a type is opened
4. Key maps: (mode, key) -> handler
5. Readiness: one-shot listeners run after start-up
6. Deferred queue: callbacks run on a later turn

Listener failures during event, content-type, and readiness dispatch are
logged and do not stop the remaining listeners. Command and key handler
failures propagate to the caller.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from lazypack.errors import LazyPackError
from lazypack.unit.registry import KeyBinding
from lazypack.unit.triggers import TriggerSink

logger = logging.getLogger(__name__)


class HostError(LazyPackError):
    """Base exception for host errors."""

    pass


class UnknownCommandError(HostError):
    """Raised when running a command nobody defined."""

    pass


@dataclass
class Registration:
    """
    A registered host callback; doubles as the handle returned to callers.

    Attributes:
        kind: Registration category
        names: Event names, command name, content types, or key
        callback: The handler function
        desc: Human-readable description
        registration_order: Tie-breaker, lower registered earlier
        mode: Key map mode (keys only)
        active: False once removed
    """

    kind: str
    names: tuple[str, ...]
    callback: Callable[..., Any]
    desc: str
    registration_order: int
    mode: str = "n"
    active: bool = True


class LocalHost(TriggerSink):
    """
    Single-threaded host.

    Deferred callbacks go to an internal queue drained by ``run_pending``,
    or to ``loop.call_soon`` when an asyncio loop is supplied.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._events: dict[str, list[Registration]] = {}
        self._content_types: dict[str, list[Registration]] = {}
        self._commands: dict[str, Registration] = {}
        self._keys: dict[tuple[str, str], Registration] = {}
        self._ready: list[Registration] = []
        self._is_ready = False
        self._queue: deque[Callable[[], Any]] = deque()
        self._registration_counter = 0

        # Keys typed with no mapping, in order
        self.typed: list[tuple[str, str]] = []

    def _register(self, kind: str, names: tuple[str, ...], callback, desc: str, mode: str = "n"):
        registration = Registration(
            kind=kind,
            names=names,
            callback=callback,
            desc=desc,
            registration_order=self._registration_counter,
            mode=mode,
        )
        self._registration_counter += 1
        return registration

    # TriggerSink registration
    def on_event(self, names: tuple[str, ...], callback, desc: str = "") -> Registration:
        registration = self._register("event", tuple(names), callback, desc)
        for name in registration.names:
            self._events.setdefault(name, []).append(registration)
        return registration

    def on_content_type(
        self, content_types: tuple[str, ...], callback, desc: str = ""
    ) -> Registration:
        registration = self._register("content_type", tuple(content_types), callback, desc)
        for content_type in registration.names:
            self._content_types.setdefault(content_type, []).append(registration)
        return registration

    def on_command(self, name: str, callback, desc: str = "") -> Registration:
        registration = self._register("command", (name,), callback, desc)
        self._commands[name] = registration
        return registration

    def on_key(self, key: str, mode: str, callback, desc: str = "") -> Registration:
        registration = self._register("key", (key,), callback, desc, mode=mode)
        self._keys[(mode, key)] = registration
        return registration

    def on_ready(self, callback, desc: str = "") -> Registration:
        registration = self._register("ready", (), callback, desc)
        if self._is_ready:
            self.schedule(lambda: self._dispatch(registration))
        else:
            self._ready.append(registration)
        return registration

    def bind_key(self, binding: KeyBinding) -> Registration:
        action = binding.action
        if isinstance(action, str):
            callback = lambda: self.run_command(action)  # noqa: E731
        else:
            callback = action
        return self.on_key(binding.key, binding.mode, callback, binding.desc or "")

    def remove(self, handle: Registration) -> None:
        if not handle.active:
            return
        handle.active = False

        if handle.kind == "event":
            for name in handle.names:
                self._events[name].remove(handle)
        elif handle.kind == "content_type":
            for content_type in handle.names:
                self._content_types[content_type].remove(handle)
        elif handle.kind == "command":
            # A newer definition under the same name stays in place
            if self._commands.get(handle.names[0]) is handle:
                del self._commands[handle.names[0]]
        elif handle.kind == "key":
            if self._keys.get((handle.mode, handle.names[0])) is handle:
                del self._keys[(handle.mode, handle.names[0])]
        elif handle.kind == "ready" and handle in self._ready:
            self._ready.remove(handle)

    # Signals
    def emit(self, event: str) -> int:
        """
        Emit an event to its listeners.

        Returns:
            Number of listeners invoked
        """
        listeners = list(self._events.get(event, []))
        for registration in listeners:
            if registration.active:
                self._dispatch(registration, event)
        return len(listeners)

    def open_content(self, content_type: str) -> int:
        """
        Signal that content of a type was opened.

        Returns:
            Number of listeners invoked
        """
        listeners = list(self._content_types.get(content_type, []))
        for registration in listeners:
            if registration.active:
                self._dispatch(registration, content_type)
        return len(listeners)

    def run_command(self, line: str) -> Any:
        """
        Run a command line (``Name args...``).

        Raises:
            UnknownCommandError: If no command with that name is defined
        """
        name, _, args = line.strip().partition(" ")
        registration = self._commands.get(name)
        if registration is None:
            raise UnknownCommandError(f"Not a command: {name}")
        return registration.callback(args.strip())

    def press(self, key: str, mode: str = "n") -> Any:
        """Type a key sequence; unmapped keys are recorded in ``typed``."""
        registration = self._keys.get((mode, key))
        if registration is None:
            self.typed.append((mode, key))
            return None
        return registration.callback()

    def feed_keys(self, keys: str, mode: str) -> None:
        self.press(keys, mode)

    def signal_ready(self) -> None:
        """Mark start-up as finished and run the one-shot readiness listeners."""
        if self._is_ready:
            return
        self._is_ready = True

        listeners, self._ready = self._ready, []
        for registration in listeners:
            if registration.active:
                registration.active = False
                self._dispatch(registration)

    # Deferred execution
    def schedule(self, callback: Callable[[], Any]) -> None:
        if self._loop is not None:
            self._loop.call_soon(self._run_deferred, callback)
        else:
            self._queue.append(callback)

    def run_pending(self) -> int:
        """
        Run queued callbacks, including ones queued while draining.

        Returns:
            Number of callbacks run
        """
        count = 0
        while self._queue:
            self._run_deferred(self._queue.popleft())
            count += 1
        return count

    @property
    def pending(self) -> int:
        return len(self._queue)

    def _run_deferred(self, callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning("Deferred callback failed: %s", e, exc_info=True)

    def _dispatch(self, registration: Registration, *args: Any) -> None:
        try:
            registration.callback(*args)
        except Exception as e:
            logger.warning(
                "%s listener failed (%s): %s",
                registration.kind,
                registration.desc or "no description",
                e,
                exc_info=True,
            )

    # Introspection
    def has_command(self, name: str) -> bool:
        return name in self._commands

    def has_key(self, key: str, mode: str = "n") -> bool:
        return (mode, key) in self._keys

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, []))
