"""Utility functions and helpers for HA-MeetingLight.

Modules:
    platform: Platform detection, machine identity and the instance lock
"""

from .platform import FALLBACK_MACHINE_NAME, InstanceLock, PlatformUtils, get_machine_name

__all__ = [
    "PlatformUtils",
    "InstanceLock",
    "get_machine_name",
    "FALLBACK_MACHINE_NAME",
]
