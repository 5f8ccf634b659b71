"""Home Assistant MQTT discovery management for HA-MeetingLight.

This module builds and publishes the discovery configurations that make
Home Assistant auto-register one binary sensor per watched capability.
Discovery messages are retained, so republishing them on every connection
is idempotent.
"""

# Standard library imports
import logging
from typing import Any, Dict, Iterable

# Local imports
from .messaging import (
    PAYLOAD_OFF,
    PAYLOAD_ON,
    MessageBroker,
    state_topic,
)
from .models import Capability

logger = logging.getLogger(__name__)

MANUFACTURER = "HA-MeetingLight"
MODEL = "HA-MeetingLight Windows agent"


def build_device_info(machine_name: str) -> Dict[str, Any]:
    """Device block shared by every entity of this machine."""
    return {
        "identifiers": [machine_name],
        "name": machine_name,
        "manufacturer": MANUFACTURER,
        "model": MODEL,
    }


class DiscoveryManager:
    """Manages Home Assistant MQTT discovery for capability sensors.

    Attributes:
        broker: MessageBroker instance for publishing.
        machine_name: Machine identity used for node id, unique ids and topics.
        device_info: Device information dictionary for Home Assistant.

    Example:
        >>> discovery = DiscoveryManager(broker, "DESK01")
        >>> discovery.publish_capabilities([Capability.WEBCAM, Capability.MICROPHONE])
    """

    def __init__(self, broker: MessageBroker, machine_name: str):
        """Initialize the discovery manager.

        Args:
            broker: MessageBroker instance for publishing discovery configs.
            machine_name: Machine identity (e.g., "DESK01").
        """
        self.broker = broker
        self.machine_name = machine_name
        self.device_info = build_device_info(machine_name)
        logger.debug(f"DiscoveryManager initialized for device '{machine_name}'")

    def build_binary_sensor(self, capability: Capability) -> Dict[str, Any]:
        """Build the discovery payload for one capability.

        Field names are Home Assistant's own lower-case keys.
        """
        return {
            "name": capability.label,
            "unique_id": f"{self.machine_name}_{capability.value}",
            "state_topic": state_topic(self.machine_name, capability.value),
            "payload_on": PAYLOAD_ON,
            "payload_off": PAYLOAD_OFF,
            "device": self.device_info,
        }

    def publish_binary_sensor(self, capability: Capability) -> bool:
        """Publish binary sensor discovery configuration for a capability."""
        config = self.build_binary_sensor(capability)
        published = self.broker.publish_discovery(
            "binary_sensor", self.machine_name, config["unique_id"], config
        )
        if published:
            logger.debug(
                f"Published binary_sensor discovery: {config['name']} ({config['unique_id']})"
            )
        return published

    def publish_capabilities(self, capabilities: Iterable[Capability]) -> None:
        """Publish discovery for every capability.

        Best effort: a failure is logged and does not stop the others.
        """
        for capability in capabilities:
            try:
                self.publish_binary_sensor(capability)
            except Exception as e:
                logger.error(
                    f"Failed to publish Home Assistant discovery config for "
                    f"{capability.value}: {e}"
                )
