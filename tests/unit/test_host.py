"""
Tests for the LocalHost.
"""

import asyncio

import pytest

from lazypack.core.host import LocalHost, UnknownCommandError
from lazypack.unit.registry import KeyBinding


class TestEvents:
    """Test event and content-type dispatch."""

    def test_all_listeners_called(self):
        """Should call every listener of an event with the event name."""
        host = LocalHost()
        received = []
        host.on_event(("BufRead",), lambda name: received.append(("first", name)))
        host.on_event(("BufRead", "BufNew"), lambda name: received.append(("second", name)))

        assert host.emit("BufRead") == 2
        assert host.emit("BufNew") == 1
        assert received == [
            ("first", "BufRead"),
            ("second", "BufRead"),
            ("second", "BufNew"),
        ]

    def test_listener_failure_isolated(self):
        """Should keep dispatching after a listener raises."""
        host = LocalHost()
        received = []

        def broken(name):
            raise RuntimeError("listener broke")

        host.on_event(("Save",), broken)
        host.on_event(("Save",), received.append)

        host.emit("Save")
        assert received == ["Save"]

    def test_remove_during_dispatch(self):
        """Should tolerate a listener removing another listener mid-dispatch."""
        host = LocalHost()
        received = []
        handles = {}

        def first(name):
            received.append("first")
            host.remove(handles["second"])

        handles["first"] = host.on_event(("Save",), first)
        handles["second"] = host.on_event(("Save",), lambda name: received.append("second"))

        host.emit("Save")
        assert received == ["first"]
        assert host.listener_count("Save") == 1

    def test_remove_twice(self):
        """Should ignore removing an already removed handle."""
        host = LocalHost()
        handle = host.on_content_type(("python",), lambda ct: None)

        host.remove(handle)
        host.remove(handle)
        assert host.open_content("python") == 0


class TestCommandsAndKeys:
    """Test commands and key maps."""

    def test_run_command_passes_args(self):
        """Should split the command line into name and argument string."""
        host = LocalHost()
        received = []
        host.on_command("Open", received.append)

        host.run_command("Open  a b ")
        assert received == ["a b"]

    def test_unknown_command(self):
        """Should raise for a command nobody defined."""
        host = LocalHost()
        with pytest.raises(UnknownCommandError, match="Not a command: Nope"):
            host.run_command("Nope")

    def test_redefined_command_survives_old_handle(self):
        """Should not remove a newer definition when an old handle is removed."""
        host = LocalHost()
        received = []
        old = host.on_command("Foo", lambda args: received.append("old"))
        host.on_command("Foo", lambda args: received.append("new"))

        host.remove(old)
        host.run_command("Foo")
        assert received == ["new"]

    def test_keys_by_mode(self):
        """Should look key maps up by mode and record unmapped keys."""
        host = LocalHost()
        pressed = []
        host.on_key("<leader>a", "v", lambda: pressed.append("visual"))

        host.press("<leader>a")
        host.press("<leader>a", mode="v")

        assert pressed == ["visual"]
        assert host.typed == [("n", "<leader>a")]

    def test_bind_key_with_command(self):
        """Should run a command string bound to a key."""
        host = LocalHost()
        received = []
        host.on_command("Grep", received.append)
        host.bind_key(KeyBinding(key="<leader>g", action="Grep word"))

        host.press("<leader>g")
        assert received == ["word"]


class TestReadinessAndScheduling:
    """Test the readiness signal and deferred queue."""

    def test_ready_listeners_run_once(self):
        """Should run readiness listeners once."""
        host = LocalHost()
        calls = []
        host.on_ready(lambda: calls.append("ready"))

        host.signal_ready()
        host.signal_ready()
        assert calls == ["ready"]

    def test_ready_listener_after_ready(self):
        """Should schedule a listener registered after start-up finished."""
        host = LocalHost()
        calls = []
        host.signal_ready()
        host.on_ready(lambda: calls.append("late"))

        assert calls == []
        host.run_pending()
        assert calls == ["late"]

    def test_run_pending_drains_new_work(self):
        """Should also run callbacks queued while draining."""
        host = LocalHost()
        calls = []
        host.schedule(lambda: host.schedule(lambda: calls.append("second")))

        assert host.run_pending() == 2
        assert calls == ["second"]
        assert host.pending == 0

    def test_deferred_failure_isolated(self):
        """Should keep draining after a deferred callback raises."""
        host = LocalHost()
        calls = []

        def broken():
            raise RuntimeError("deferred broke")

        host.schedule(broken)
        host.schedule(lambda: calls.append("after"))

        host.run_pending()
        assert calls == ["after"]

    def test_asyncio_loop(self):
        """Should schedule onto an asyncio loop when one is given."""
        loop = asyncio.new_event_loop()
        try:
            host = LocalHost(loop=loop)
            calls = []
            host.schedule(lambda: calls.append("soon"))

            assert host.pending == 0
            loop.run_until_complete(asyncio.sleep(0))
            assert calls == ["soon"]
        finally:
            loop.close()
