"""Core infrastructure modules for HA-MeetingLight.

Modules:
    models: Capabilities, connection status and event types
    config: Configuration loading and validation
    messaging: MQTT publishing and topic scheme
    discovery: Home Assistant MQTT discovery management
    connection: Broker connection state machine with retry
"""

from .config import AppConfig, ConfigurationError, MqttSettings, load_config
from .connection import ConnectionManager
from .discovery import DiscoveryManager
from .messaging import MessageBroker
from .models import Capability, ConnectionStatus, ConnectionStatusEvent, StateChangeEvent

__all__ = [
    "AppConfig",
    "Capability",
    "ConfigurationError",
    "ConnectionManager",
    "ConnectionStatus",
    "ConnectionStatusEvent",
    "DiscoveryManager",
    "MessageBroker",
    "MqttSettings",
    "StateChangeEvent",
    "load_config",
]
