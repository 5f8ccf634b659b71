"""Data model shared by the monitor, the connection manager and the agent.

Events are immutable values delivered to subscribers; they carry no identity
beyond their fields and are never persisted.
"""

# Standard library imports
from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    """A monitored device category.

    The value is the name used both on the wire (MQTT topics) and as the
    consent store sub-key.
    """

    WEBCAM = "webcam"
    MICROPHONE = "microphone"

    @property
    def label(self) -> str:
        """Human readable name (e.g., "Webcam")."""
        return self.value.capitalize()


class ConnectionStatus(Enum):
    """Broker connection state, owned by the ConnectionManager."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class StateChangeEvent:
    """Emitted by the DeviceMonitor when a capability flips on or off."""

    capability: Capability
    active: bool


@dataclass(frozen=True)
class ConnectionStatusEvent:
    """Emitted by the ConnectionManager on connected/disconnected transitions."""

    connected: bool
    message: str
