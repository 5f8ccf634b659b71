"""MQTT messaging abstraction layer for HA-MeetingLight.

This module provides a thin abstraction over paho-mqtt publishing that owns
the topic scheme and delivery options, so the rest of the application never
builds topics by hand.

Topic scheme:
    HA-MeetingLight/{machine_name}/{capability}     - "on" / "off", retained
    homeassistant/binary_sensor/{node}/{object}/config - discovery, retained

All messages use QoS 0 (at most once) with the retain flag set, so the
broker always holds the latest value for new subscribers.
"""

import json
import logging
from typing import Any, Dict

import paho.mqtt.client as mqtt


logger = logging.getLogger(__name__)

STATE_TOPIC_PREFIX = "HA-MeetingLight"
DISCOVERY_PREFIX = "homeassistant"

PAYLOAD_ON = "on"
PAYLOAD_OFF = "off"

QOS_AT_MOST_ONCE = 0


def base_topic(machine_name: str) -> str:
    """Base topic for every state published by this machine."""
    return f"{STATE_TOPIC_PREFIX}/{machine_name}"


def state_topic(machine_name: str, entity: str) -> str:
    """State topic for one entity.

    Example:
        >>> state_topic("DESK01", "webcam")
        'HA-MeetingLight/DESK01/webcam'
    """
    return f"{base_topic(machine_name)}/{entity}"


def state_payload(active: bool) -> str:
    """Wire payload for an on/off state."""
    return PAYLOAD_ON if active else PAYLOAD_OFF


def discovery_topic(
    domain: str, node_id: str, object_id: str, prefix: str = DISCOVERY_PREFIX
) -> str:
    """Home Assistant discovery config topic.

    Example:
        >>> discovery_topic("binary_sensor", "DESK01", "DESK01_webcam")
        'homeassistant/binary_sensor/DESK01/DESK01_webcam/config'
    """
    return f"{prefix}/{domain}/{node_id}/{object_id}/config"


class MessageBroker:
    """Abstraction layer for MQTT publishing.

    This class wraps a connected paho-mqtt client and publishes states and
    Home Assistant discovery messages with consistent topics and options.
    Publishing is non-blocking; the return value only says whether the
    client accepted the message for sending.

    Attributes:
        client: The underlying paho-mqtt client instance.
        machine_name: Machine identity used in state topics.
        discovery_prefix: Home Assistant MQTT discovery prefix.

    Example:
        >>> broker = MessageBroker(client, "DESK01")
        >>> broker.publish_state("webcam", "on")
        True
    """

    def __init__(
        self,
        client: mqtt.Client,
        machine_name: str,
        discovery_prefix: str = DISCOVERY_PREFIX,
    ):
        """Initialize the message broker.

        Args:
            client: Connected paho-mqtt client instance.
            machine_name: Machine identity (e.g., "DESK01").
            discovery_prefix: Home Assistant discovery prefix (default: "homeassistant").
        """
        self.client = client
        self.machine_name = machine_name
        self.discovery_prefix = discovery_prefix
        logger.debug(f"MessageBroker initialized for machine '{machine_name}'")

    @property
    def base_topic(self) -> str:
        return base_topic(self.machine_name)

    def publish_state(self, entity: str, state: str) -> bool:
        """Publish an entity state.

        Args:
            entity: Entity identifier (e.g., "webcam", "microphone").
            state: State payload ("on" or "off").

        Returns:
            True if the client accepted the message.

        Example:
            >>> broker.publish_state("microphone", "off")
            True
        """
        topic = state_topic(self.machine_name, entity)
        if self._publish(topic, state):
            logger.debug(f"Published state to {topic}: {state}")
            return True
        return False

    def publish_discovery(
        self,
        domain: str,
        node_id: str,
        object_id: str,
        config: Dict[str, Any],
    ) -> bool:
        """Publish a Home Assistant MQTT discovery configuration.

        Args:
            domain: Home Assistant domain (e.g., "binary_sensor").
            node_id: Discovery node id, the machine name.
            object_id: Entity object id (e.g., "DESK01_webcam").
            config: Discovery configuration dictionary.

        Returns:
            True if the client accepted the message.
        """
        topic = discovery_topic(domain, node_id, object_id, self.discovery_prefix)
        if self._publish(topic, json.dumps(config)):
            logger.debug(f"Published discovery config to {topic}")
            return True
        return False

    def _publish(self, topic: str, payload: str) -> bool:
        info = self.client.publish(
            topic, payload=payload, qos=QOS_AT_MOST_ONCE, retain=True
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
            return False
        return True
