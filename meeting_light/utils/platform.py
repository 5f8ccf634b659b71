"""Platform detection and machine identity.

This module centralizes the platform-specific pieces the agent needs: which
operating system it runs on, the machine name used in MQTT topics and
Home Assistant device identifiers, and the lock that keeps a second agent
from running for the same user.
"""

import logging
import os
import socket
import sys
from pathlib import Path
from typing import Any, IO, Optional

logger = logging.getLogger(__name__)

# Used when the machine name cannot be determined
FALLBACK_MACHINE_NAME = "UNKNOWN-PC"


class PlatformUtils:
    """Utilities for platform detection.

    Attributes:
        _platform: Cached platform name ("linux", "windows", or "unknown").

    Example:
        >>> utils = PlatformUtils()
        >>> if not utils.is_windows():
        ...     print("Consent store unavailable")
    """

    def __init__(self):
        """Initialize platform utilities with empty cache."""
        self._platform: Optional[str] = None

    def get_platform(self) -> str:
        """Get the current platform.

        Returns:
            Platform name: "linux", "windows", or "unknown".
        """
        if self._platform is None:
            if sys.platform.startswith("linux"):
                self._platform = "linux"
            elif sys.platform.startswith("win"):
                self._platform = "windows"
            else:
                self._platform = "unknown"
                logger.warning(f"Unknown platform: {sys.platform}")
        return self._platform

    def is_windows(self) -> bool:
        """Check if running on Windows."""
        return self.get_platform() == "windows"


def get_machine_name() -> str:
    """Get the machine name used to address this agent on the broker.

    On Windows the NetBIOS computer name (COMPUTERNAME) is preferred, which
    is what existing deployments use in their topics. Elsewhere, or when
    the variable is unset, the socket hostname is used.

    Returns:
        Machine name, or FALLBACK_MACHINE_NAME if it cannot be determined.

    Example:
        >>> get_machine_name()
        'DESK01'
    """
    try:
        name = ""
        if PlatformUtils().is_windows():
            name = os.environ.get("COMPUTERNAME", "").strip()
        if not name:
            name = socket.gethostname().strip()
        if name:
            return name
    except OSError as e:
        logger.error(f"Failed to determine hostname: {e}")

    logger.error(
        f"Failed to determine hostname. Using '{FALLBACK_MACHINE_NAME}' as fallback."
    )
    return FALLBACK_MACHINE_NAME


class InstanceLock:
    """Exclusive lock on a file so only one agent runs at a time.

    Uses msvcrt byte-range locking on Windows. The lock is held for as long
    as the file stays open and is dropped by the OS if the process dies.

    Attributes:
        path: Lock file location.

    Example:
        >>> lock = InstanceLock(LOCK_PATH)
        >>> lock.acquire()
        True
        >>> lock.release()
    """

    def __init__(self, path: Path, locking: Optional[Any] = None):
        """Initialize the lock.

        Args:
            path: Lock file location; its directory is created if missing.
            locking: Module implementing msvcrt.locking. Defaults to the real
                msvcrt module, imported on first use.
        """
        self.path = Path(path)
        self._locking = locking
        self._file: Optional[IO[str]] = None

    @property
    def locking(self) -> Any:
        """The msvcrt-compatible locking API.

        Raises:
            OSError: If file locking is not available on this platform.
        """
        if self._locking is None:
            try:
                import msvcrt
            except ImportError as e:
                raise OSError(f"File locking is not available: {e}") from e
            self._locking = msvcrt
        return self._locking

    @property
    def held(self) -> bool:
        return self._file is not None

    def acquire(self) -> bool:
        """Try to take the lock without waiting.

        Returns:
            True if this process now holds the lock, False if another
            process holds it.
        """
        if self._file is not None:
            return True

        locking = self.locking
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.path, "a+")
        try:
            lock_file.seek(0)
            locking.locking(lock_file.fileno(), locking.LK_NBLCK, 1)
        except OSError as e:
            logger.debug(f"Instance lock {self.path} is held elsewhere: {e}")
            lock_file.close()
            return False

        self._file = lock_file
        return True

    def release(self) -> None:
        """Drop the lock. Safe to call when it is not held."""
        lock_file = self._file
        if lock_file is None:
            return
        self._file = None

        try:
            lock_file.seek(0)
            self.locking.locking(lock_file.fileno(), self.locking.LK_UNLCK, 1)
        except OSError as e:
            logger.debug(f"Error releasing instance lock: {e}")
        finally:
            lock_file.close()
