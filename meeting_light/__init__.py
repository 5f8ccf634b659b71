"""HA-MeetingLight agent.

Watches the webcam and microphone in-use indicators of a Windows machine and
republishes their on/off state to an MQTT broker, with Home Assistant MQTT
discovery, so automations can react to meetings.

Packages:
    core: Data model, configuration, messaging, discovery and connection management
    collectors: Operating system data sources (consent store access)
    monitors: Polling loops that turn collector samples into events
    utils: Platform helpers
"""

__version__ = "1.0.0"
