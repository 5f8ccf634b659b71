"""Webcam and microphone activity monitoring.

This module provides the DeviceMonitor class which samples a device usage
collector on a fixed interval and turns the samples into edge-triggered
StateChangeEvents: an event is emitted only when a capability's observed
value differs from the last known one, never for repeated identical
samples.

Example:
    >>> from meeting_light.collectors.device_usage import DeviceUsageCollector
    >>> from meeting_light.monitors.devices import DeviceMonitor
    >>>
    >>> monitor = DeviceMonitor(DeviceUsageCollector(), interval=10)
    >>> monitor.subscribe(lambda event: print(event))
    >>> monitor.start()
    >>> ...
    >>> monitor.stop()
"""

# Standard library imports
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

# Local imports
from meeting_light.collectors.device_usage import DeviceUsageCollector
from meeting_light.core.config import DEFAULT_POLLING_INTERVAL
from meeting_light.core.models import Capability, StateChangeEvent

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[StateChangeEvent], None]


class DeviceMonitor:
    """Polls device usage and emits state-change events on transitions.

    The initial sample taken by start() only establishes the baseline; no
    event is emitted for it. Each later tick compares the fresh sample with
    the stored value, stores the new value first and then emits exactly one
    event for that capability.

    A failing query is treated as "not active" and logged, so one broken
    capability never blocks sampling of the others or of later ticks.

    Attributes:
        collector: Source of "is this capability in use" answers.
        capabilities: Capabilities watched by this monitor, in tick order.
        interval: Seconds between ticks.
    """

    def __init__(
        self,
        collector: DeviceUsageCollector,
        capabilities: Iterable[Capability] = tuple(Capability),
        interval: int = DEFAULT_POLLING_INTERVAL,
    ):
        """Initialize the monitor.

        Args:
            collector: Device usage collector to sample.
            capabilities: Capabilities to watch (default: all).
            interval: Polling interval in seconds, already validated by the
                configuration loader.
        """
        self.collector = collector
        self.capabilities = tuple(capabilities)
        self.interval = interval

        self._states: Dict[Capability, bool] = {c: False for c in self.capabilities}
        self._subscribers: List[StateChangeCallback] = []
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def states(self) -> Dict[Capability, bool]:
        """Snapshot of the last known state of every watched capability."""
        return dict(self._states)

    def is_active(self, capability: Capability) -> bool:
        """Last known state of a capability (False if not watched)."""
        return self._states.get(capability, False)

    def subscribe(self, callback: StateChangeCallback) -> None:
        """Register a callback for StateChangeEvents.

        Callbacks run on the monitor thread. Delivery order across
        subscribers is not guaranteed.
        """
        self._subscribers.append(callback)

    def start(self) -> None:
        """Capture the baseline state and start periodic sampling."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Device monitor already running")
            return

        with self._tick_lock:
            for capability in self.capabilities:
                self._states[capability] = self._query(capability)

        logger.info(
            "Initial device states: "
            + ", ".join(
                f"{c.label}: {'On' if self._states[c] else 'Off'}"
                for c in self.capabilities
            )
        )

        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            name="DeviceMonitor",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Device monitor started (interval: {self.interval}s)")

    def stop(self) -> None:
        """Stop sampling.

        Safe to call repeatedly and from inside a subscriber callback. When
        called from another thread it waits for an in-flight tick, so no
        event is delivered after it returns.
        """
        self._stop_event.set()

        thread = self._thread
        if thread is None:
            return
        self._thread = None

        if thread is not threading.current_thread():
            thread.join()
        logger.info("Device monitor stopped")

    def poll(self) -> List[StateChangeEvent]:
        """Run one sampling tick.

        Returns:
            The events emitted by this tick, in capability order.
        """
        emitted = []
        with self._tick_lock:
            for capability in self.capabilities:
                current = self._query(capability)
                if current == self._states[capability]:
                    continue

                self._states[capability] = current
                logger.info(f"{capability.label}: {'On' if current else 'Off'}")

                if self._stop_event.is_set():
                    continue
                event = StateChangeEvent(capability, current)
                self._emit(event)
                emitted.append(event)
        return emitted

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.poll()
            except Exception as e:
                logger.error(f"Error in device monitor poll: {e}", exc_info=True)

    def _query(self, capability: Capability) -> bool:
        try:
            return bool(self.collector.is_in_use(capability))
        except Exception as e:
            # Fail safe: an unreadable capability is reported as off
            logger.error(f"Failed to check {capability.label.lower()} state: {e}")
            return False

    def _emit(self, event: StateChangeEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in state change subscriber: {e}", exc_info=True)
