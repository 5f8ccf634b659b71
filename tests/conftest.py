"""Pytest configuration and global fixtures.

This module provides fixtures and configuration that are available to all tests.
Fixtures defined here are automatically discovered by pytest and can be used
by any test function by including them as parameters.

Common Fixtures:
    - mock_mqtt_client: Mocked MQTT client for testing without broker
    - mqtt_settings: Validated broker settings
    - fake_timers: Recorder for retry timers that fire only on demand
    - fake_registry: In-memory winreg replacement for consent store scans
    - temp_config_file: Temporary config file for testing

Example:
    def test_something(mock_mqtt_client):
        # mock_mqtt_client is automatically injected
        result = some_function(mock_mqtt_client)
        assert result is not None
"""

import configparser
from unittest.mock import MagicMock

import pytest

from meeting_light.collectors.device_usage import CONSENT_STORE_PATH
from meeting_light.core.config import MqttSettings


@pytest.fixture
def mock_mqtt_client():
    """Provide a mocked MQTT client for testing.

    Returns:
        MagicMock: Mocked MQTT client with common methods stubbed

    Example:
        def test_publish(mock_mqtt_client):
            broker = MessageBroker(mock_mqtt_client, "DESK01")
            broker.publish_state("webcam", "on")
            mock_mqtt_client.publish.assert_called_once()
    """
    client = MagicMock()
    # Configure return values for common methods
    client.connect.return_value = 0
    client.publish.return_value = MagicMock(rc=0)
    client.loop_start.return_value = 0
    client.loop_stop.return_value = 0
    client.disconnect.return_value = 0
    return client


@pytest.fixture
def mqtt_settings():
    """Provide validated MQTT settings."""
    return MqttSettings(
        server="test.broker.local", port=1883, username="test_user", password="test_pass"
    )


class FakeTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args, **self.kwargs)


class FakeTimers:
    """Factory recording every timer created by the code under test."""

    def __init__(self):
        self.created = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        self.created.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.created if t.started and not t.cancelled]

    @property
    def last(self):
        return self.created[-1]


@pytest.fixture
def fake_timers():
    """Provide a timer factory whose timers fire only via timer.fire()."""
    return FakeTimers()


# Marker for registry entries whose key cannot be opened
UNREADABLE = object()


class FakeKey:
    """Open registry key handle."""

    def __init__(self, node):
        self.node = node

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeRegistry:
    """In-memory implementation of the winreg calls used by the collector.

    Nodes are dicts: dict values are sub-keys, other values are registry
    values. A sub-key set to UNREADABLE raises PermissionError when opened
    (also reachable as FakeRegistry.UNREADABLE from tests).
    """

    HKEY_CURRENT_USER = "HKEY_CURRENT_USER"
    UNREADABLE = UNREADABLE

    def __init__(self, consent_store):
        root = consent_store
        for part in reversed(CONSENT_STORE_PATH.split("\\")):
            root = {part: root}
        self.root = root

    def OpenKey(self, key, sub_key):
        node = self.root if key == self.HKEY_CURRENT_USER else key.node
        for part in sub_key.split("\\"):
            if not isinstance(node, dict) or part not in node:
                raise FileNotFoundError(2, "The system cannot find the file specified")
            node = node[part]
            if node is UNREADABLE:
                raise PermissionError(5, "Access is denied")
        if not isinstance(node, dict):
            raise FileNotFoundError(2, "The system cannot find the file specified")
        return FakeKey(node)

    def EnumKey(self, key, index):
        names = [k for k, v in key.node.items() if isinstance(v, dict) or v is UNREADABLE]
        if index >= len(names):
            raise OSError(259, "No more data is available")
        return names[index]

    def QueryValueEx(self, key, value_name):
        value = key.node.get(value_name)
        if value is None or isinstance(value, dict) or value is UNREADABLE:
            raise FileNotFoundError(2, "The system cannot find the file specified")
        return value, 11


@pytest.fixture
def fake_registry():
    """Build a FakeRegistry from a {capability: entries} mapping.

    Example:
        def test_scan(fake_registry):
            registry = fake_registry({"webcam": {"App": {"LastUsedTimeStop": 0}}})
    """
    return FakeRegistry


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config.ini file for testing.

    Args:
        tmp_path: pytest fixture providing temporary directory

    Returns:
        Path: Path to temporary config file
    """
    config = configparser.ConfigParser()
    config.optionxform = str

    config["MQTT"] = {
        "Server": "test.broker.local",
        "Port": "1884",
        "Username": "testuser",
        "Password": "testpass",
    }
    config["Monitoring"] = {"PollingIntervalSeconds": "5"}
    config["Logging"] = {"LogToFile": "yes"}

    config_file = tmp_path / "config.ini"
    with open(config_file, "w") as f:
        config.write(f)

    return config_file


# Pytest hooks for custom behavior


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add automatic markers.

    Args:
        config: pytest config object
        items: list of collected test items
    """
    for item in items:
        # Auto-mark all tests in tests/unit as unit tests
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Auto-mark integration tests
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
