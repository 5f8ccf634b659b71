"""Agent coordination for HA-MeetingLight.

This module wires the DeviceMonitor to the ConnectionManager and owns the
startup and shutdown sequence:

1. Start the device monitor (baseline capture, no events)
2. Connect to the MQTT broker
3. Publish every state change as it is detected
4. Republish all states whenever the connection is (re)established
5. On shutdown stop monitoring, publish "off" for every device, disconnect

Publishing is handed to a single worker thread so the monitor's sampling
thread never waits on network I/O.

Example:
    >>> agent = MeetingLightAgent(monitor, connection)
    >>> agent.start()
    >>> ...
    >>> agent.stop()
"""

# Standard library imports
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, Optional

# Local imports
from meeting_light.core.connection import ConnectionManager
from meeting_light.core.models import Capability, ConnectionStatusEvent, StateChangeEvent
from meeting_light.monitors.devices import DeviceMonitor

logger = logging.getLogger(__name__)

SHUTDOWN_FLUSH_DELAY = 0.5  # seconds


class Indicator(Enum):
    """What the agent currently signals, most important first."""

    DISCONNECTED = "disconnected"
    WEBCAM = "webcam"
    MICROPHONE = "microphone"
    CONNECTED = "connected"


class MeetingLightAgent:
    """Coordinates device monitoring and MQTT publishing.

    Attributes:
        monitor: Device activity monitor.
        connection: Broker connection manager.
    """

    def __init__(
        self,
        monitor: DeviceMonitor,
        connection: ConnectionManager,
        flush_delay: float = SHUTDOWN_FLUSH_DELAY,
    ):
        self.monitor = monitor
        self.connection = connection
        self.flush_delay = flush_delay

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="Publisher")
        self._indicator_lock = threading.Lock()
        self._indicator: Optional[Indicator] = None
        self._stopped = False

        monitor.subscribe(self._on_state_changed)
        connection.subscribe(self._on_connection_status)

    @property
    def indicator(self) -> Indicator:
        """Current indicator, derived from connection and device states."""
        if not self.connection.is_connected:
            return Indicator.DISCONNECTED
        if self.monitor.is_active(Capability.WEBCAM):
            return Indicator.WEBCAM
        if self.monitor.is_active(Capability.MICROPHONE):
            return Indicator.MICROPHONE
        return Indicator.CONNECTED

    def status_lines(self) -> List[str]:
        """Human readable device states, e.g. ["Microphone: Off", "Webcam: On"]."""
        return [
            f"{capability.label}: {'On' if self.monitor.is_active(capability) else 'Off'}"
            for capability in (Capability.MICROPHONE, Capability.WEBCAM)
        ]

    def start(self) -> None:
        """Start monitoring, then connect to the broker."""
        logger.info("Starting HA-MeetingLight agent...")
        self.monitor.start()
        self.connection.connect()
        self._update_indicator()

    def stop(self) -> None:
        """Stop monitoring, publish "off" for every device and disconnect."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stopping HA-MeetingLight agent...")

        self.monitor.stop()
        self._executor.shutdown(wait=True)

        if self.connection.is_connected:
            logger.info("Publishing off states...")
            for capability in self.monitor.capabilities:
                self.connection.publish(capability, False)
            time.sleep(self.flush_delay)

        self.connection.disconnect()
        logger.info("HA-MeetingLight agent stopped")

    def publish_all(self) -> None:
        """Publish the last known state of every watched capability."""
        for capability, active in self.monitor.states.items():
            self.connection.publish(capability, active)

    # ----------------------------
    # Event handlers
    # ----------------------------

    def _on_state_changed(self, event: StateChangeEvent) -> None:
        logger.info(" | ".join(self.status_lines()))
        self._submit(self.connection.publish, event.capability, event.active)
        self._update_indicator()

    def _on_connection_status(self, event: ConnectionStatusEvent) -> None:
        # Stands in for the tray balloon notification
        logger.info(f"Notification: {event.message}")
        if event.connected:
            self._submit(self.publish_all)
        self._update_indicator()

    def _submit(self, fn, *args) -> None:
        try:
            self._executor.submit(fn, *args)
        except RuntimeError:
            logger.debug("Agent is shutting down, dropping publish")

    def _update_indicator(self) -> None:
        indicator = self.indicator
        with self._indicator_lock:
            if indicator is self._indicator:
                return
            self._indicator = indicator
        logger.info(f"Indicator: {indicator.value}")
