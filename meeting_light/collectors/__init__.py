"""Data collection classes for HA-MeetingLight.

Collectors only read operating system state; they keep no history and do
not publish anything, which keeps them easy to test and reuse.

Modules:
    device_usage: Webcam/microphone usage from the Windows consent store
"""

from .device_usage import DeviceUsageCollector, is_entry_active

__all__ = ["DeviceUsageCollector", "is_entry_active"]
