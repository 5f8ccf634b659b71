"""Device usage collection from the Windows capability consent store.

Windows records, per application, when it last started and stopped using
the webcam or microphone under the CapabilityAccessManager consent store in
the current user's registry hive. While an application is still using a
device its ``LastUsedTimeStop`` value is zero (a real stop time is a
positive FILETIME), so a capability is in use when any entry has a stop
time that is not positive.

Packaged (Store) applications are registered as direct sub-keys of the
capability key. Classic desktop applications live one level deeper, under
the ``NonPackaged`` sub-key, so both namespaces are scanned.

Example:
    >>> from meeting_light.collectors.device_usage import DeviceUsageCollector
    >>> from meeting_light.core.models import Capability
    >>> collector = DeviceUsageCollector()
    >>> collector.is_in_use(Capability.WEBCAM)
    False
"""

# Standard library imports
import logging
from typing import Any, Iterator, Optional, Tuple

# Local imports
from meeting_light.core.models import Capability

logger = logging.getLogger(__name__)

CONSENT_STORE_PATH = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\CapabilityAccessManager\ConsentStore"
)
NON_PACKAGED_KEY = "NonPackaged"
LAST_USED_STOP_VALUE = "LastUsedTimeStop"


def is_entry_active(stop_time: Any) -> bool:
    """Decide whether a single application entry is using the device.

    A value that is present but not an integer (e.g. a REG_SZ or REG_BINARY
    written by a misbehaving application) carries no stop time, so the
    entry counts as still in use.

    Args:
        stop_time: The entry's LastUsedTimeStop value, or None when the
            entry has no such value.

    Returns:
        True if the stop time is not positive or is not an integer.

    Example:
        >>> is_entry_active(0)
        True
        >>> is_entry_active(133497312000000000)
        False
        >>> is_entry_active(None)
        False
        >>> is_entry_active("0")
        True
    """
    if stop_time is None:
        return False
    if isinstance(stop_time, bool) or not isinstance(stop_time, int):
        return True
    return stop_time <= 0


class DeviceUsageCollector:
    """Queries the consent store for current webcam/microphone usage.

    The collector has no memory between calls: each query is a fresh scan
    of the registry.

    Attributes:
        hive: Registry hive holding the consent store (HKEY_CURRENT_USER).
    """

    def __init__(self, registry: Optional[Any] = None):
        """Initialize the collector.

        Args:
            registry: Module implementing the winreg API. Defaults to the
                real winreg module, imported on first use.
        """
        self._registry = registry

    @property
    def registry(self) -> Any:
        """The winreg-compatible registry API.

        Raises:
            OSError: If the registry is not available on this platform.
        """
        if self._registry is None:
            try:
                import winreg
            except ImportError as e:
                raise OSError(f"Windows registry is not available: {e}") from e
            self._registry = winreg
        return self._registry

    def is_in_use(self, capability: Capability) -> bool:
        """Check whether any application is currently using a capability.

        Args:
            capability: Device category to check.

        Returns:
            True if at least one application entry reports active use.

        Raises:
            OSError: If the registry itself cannot be reached.
        """
        return any(active for _, active in self.iter_usage(capability))

    def iter_usage(self, capability: Capability) -> Iterator[Tuple[str, bool]]:
        """Yield the usage state of every application entry for a capability.

        Entries that cannot be read are reported as inactive. A capability
        key that does not exist yields nothing.

        Args:
            capability: Device category to scan.

        Yields:
            (entry name, active) tuples. Legacy desktop entries are named
            "NonPackaged/<entry>".

        Raises:
            OSError: If the registry itself cannot be reached.
        """
        registry = self.registry
        path = f"{CONSENT_STORE_PATH}\\{capability.value}"

        try:
            root = registry.OpenKey(registry.HKEY_CURRENT_USER, path)
        except FileNotFoundError:
            logger.debug(f"Consent store key not found for {capability.value}")
            return

        with root:
            for name in self._subkey_names(root):
                if name == NON_PACKAGED_KEY:
                    yield from self._iter_non_packaged(root)
                else:
                    yield name, self._entry_active(root, name)

    def _iter_non_packaged(self, root: Any) -> Iterator[Tuple[str, bool]]:
        try:
            non_packaged = self.registry.OpenKey(root, NON_PACKAGED_KEY)
        except OSError as e:
            logger.debug(f"Could not open {NON_PACKAGED_KEY} key: {e}")
            return

        with non_packaged:
            for name in self._subkey_names(non_packaged):
                yield f"{NON_PACKAGED_KEY}/{name}", self._entry_active(
                    non_packaged, name
                )

    def _entry_active(self, parent: Any, name: str) -> bool:
        """Read one application entry; any failure counts as inactive."""
        try:
            with self.registry.OpenKey(parent, name) as key:
                return is_entry_active(self._read_stop_time(key))
        except OSError as e:
            logger.debug(f"Could not read consent store entry '{name}': {e}")
            return False

    def _read_stop_time(self, key: Any) -> Optional[Any]:
        try:
            value, _ = self.registry.QueryValueEx(key, LAST_USED_STOP_VALUE)
        except FileNotFoundError:
            return None
        return value

    def _subkey_names(self, key: Any) -> Iterator[str]:
        # EnumKey raises OSError once the index runs past the last sub-key
        index = 0
        while True:
            try:
                name = self.registry.EnumKey(key, index)
            except OSError:
                return
            yield name
            index += 1
