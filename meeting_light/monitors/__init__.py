"""Monitoring loop implementations for HA-MeetingLight.

Monitors own a polling thread, sample a collector and turn the samples into
events for the agent. They do not publish anything themselves.

Modules:
    devices: Webcam/microphone activity monitoring
"""

from .devices import DeviceMonitor

__all__ = ["DeviceMonitor"]
