"""Unit tests for the device activity monitor.

Key Testing Patterns:
    - Scripted collector returning a fixed sequence of samples
    - Drive ticks with poll() instead of waiting on the timer
    - Verify edge triggering: one event per transition, none for repeats

Example Run:
    pytest tests/unit/meeting_light/monitors/test_devices.py -v
"""

import threading
from unittest.mock import MagicMock

import pytest

from meeting_light.core.models import Capability, StateChangeEvent
from meeting_light.monitors.devices import DeviceMonitor


class ScriptedCollector:
    """Returns queued samples per capability; repeats the last one when exhausted."""

    def __init__(self, **samples):
        self.samples = {Capability(name): list(values) for name, values in samples.items()}
        self.calls = []

    def is_in_use(self, capability):
        self.calls.append(capability)
        queue = self.samples.get(capability, [False])
        value = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def make_monitor():
    """Build a started monitor with a long interval so only poll() ticks."""
    monitors = []

    def _make(collector, capabilities=tuple(Capability)):
        monitor = DeviceMonitor(collector, capabilities=capabilities, interval=60)
        events = []
        monitor.subscribe(events.append)
        monitor.start()
        monitors.append(monitor)
        return monitor, events

    yield _make

    for monitor in monitors:
        monitor.stop()


class TestDeviceMonitor:
    """Test suite for DeviceMonitor class."""

    def test_baseline_emits_nothing(self, make_monitor):
        """The initial snapshot only establishes the baseline."""
        collector = ScriptedCollector(webcam=[True], microphone=[True])

        monitor, events = make_monitor(collector)

        assert events == []
        assert monitor.states == {Capability.WEBCAM: True, Capability.MICROPHONE: True}

    def test_identical_samples_emit_nothing(self, make_monitor):
        """N identical ticks after the baseline produce zero events."""
        collector = ScriptedCollector(webcam=[True] * 6, microphone=[False] * 6)
        monitor, events = make_monitor(collector)

        for _ in range(5):
            assert monitor.poll() == []

        assert events == []

    def test_off_off_on_on_off_emits_two_events(self, make_monitor):
        """The sequence off,off,on,on,off yields exactly (on) then (off)."""
        collector = ScriptedCollector(webcam=[False, False, True, True, False])
        monitor, events = make_monitor(collector, capabilities=[Capability.WEBCAM])

        for _ in range(4):
            monitor.poll()

        assert events == [
            StateChangeEvent(Capability.WEBCAM, True),
            StateChangeEvent(Capability.WEBCAM, False),
        ]

    def test_state_updated_before_event(self, make_monitor):
        """Subscribers see the new value already stored."""
        collector = ScriptedCollector(microphone=[False, True])
        monitor, _ = make_monitor(collector, capabilities=[Capability.MICROPHONE])
        seen = []
        monitor.subscribe(lambda event: seen.append(monitor.is_active(event.capability)))

        monitor.poll()

        assert seen == [True]

    def test_query_failure_is_treated_as_off(self, make_monitor):
        """A failing query counts as inactive and is not raised."""
        collector = ScriptedCollector(
            webcam=[True, OSError("registry unavailable")], microphone=[False]
        )
        monitor, events = make_monitor(collector)

        monitor.poll()

        assert events == [StateChangeEvent(Capability.WEBCAM, False)]

    def test_failure_does_not_block_other_capability(self, make_monitor):
        """One capability failing does not stop sampling of the other."""
        collector = ScriptedCollector(
            webcam=[OSError("boom")], microphone=[False, True]
        )
        monitor, events = make_monitor(collector)

        monitor.poll()

        assert events == [StateChangeEvent(Capability.MICROPHONE, True)]
        assert monitor.is_active(Capability.WEBCAM) is False

    def test_failing_subscriber_does_not_break_tick(self, make_monitor):
        """An exception in one subscriber is logged; others still receive events."""
        collector = ScriptedCollector(webcam=[False, True], microphone=[False, True])
        monitor = DeviceMonitor(collector, interval=60)
        broken = MagicMock(side_effect=RuntimeError("subscriber bug"))
        received = []
        monitor.subscribe(broken)
        monitor.subscribe(received.append)
        monitor.start()

        try:
            events = monitor.poll()
        finally:
            monitor.stop()

        assert len(events) == 2
        assert received == events
        assert broken.call_count == 2

    def test_stop_is_idempotent(self):
        """stop() may be called repeatedly, before or after start()."""
        monitor = DeviceMonitor(ScriptedCollector(), interval=60)

        monitor.stop()
        monitor.start()
        monitor.stop()
        monitor.stop()

    def test_no_events_after_stop(self, make_monitor):
        """Ticks after stop() deliver nothing."""
        collector = ScriptedCollector(webcam=[False, True])
        monitor, events = make_monitor(collector, capabilities=[Capability.WEBCAM])

        monitor.stop()
        monitor.poll()

        assert events == []

    def test_stop_from_subscriber_does_not_deadlock(self, make_monitor):
        """A subscriber may stop the monitor; the rest of the tick is not delivered."""
        collector = ScriptedCollector(webcam=[False, True], microphone=[False, True])
        monitor, events = make_monitor(collector)
        monitor.subscribe(lambda event: monitor.stop())

        monitor.poll()

        assert events == [StateChangeEvent(Capability.WEBCAM, True)]

    def test_start_twice_keeps_single_thread(self, make_monitor):
        """Starting a running monitor is a no-op."""
        monitor, _ = make_monitor(ScriptedCollector())
        thread = monitor._thread

        monitor.start()

        assert monitor._thread is thread

    def test_timer_drives_ticks(self):
        """The background thread samples on its interval."""
        ticked = threading.Event()

        class SignallingCollector(ScriptedCollector):
            def is_in_use(self, capability):
                value = super().is_in_use(capability)
                if len(self.calls) > 2:
                    ticked.set()
                return value

        monitor = DeviceMonitor(SignallingCollector(), interval=0.01)
        monitor.start()
        try:
            assert ticked.wait(5)
        finally:
            monitor.stop()
