"""Configuration management for HA-MeetingLight.

This module loads settings from config.ini, validates them and hands the
rest of the application a typed AppConfig. The engines never see raw
configuration values: ports and polling intervals are range-checked here,
and invalid optional values fall back to defaults with a warning.

The configuration system follows these principles:
- Fail-fast on critical configuration errors (missing MQTT server)
- Sensible defaults for optional settings
- Section names compatible with existing deployments

Configuration Structure:
    [MQTT]
        Server: MQTT broker hostname or IP address (required)
        Port: MQTT broker port (default: 1883)
        Username: MQTT authentication username (optional)
        Password: MQTT authentication password (optional)

    [Monitoring]
        PollingIntervalSeconds: Seconds between device checks, 1-60 (default: 10)

    [Logging]
        LogToFile: yes/true to also log to data/info.log (default: no)

Usage:
    from meeting_light.core.config import CONFIG_PATH, load_config

    config = load_config(CONFIG_PATH)
    print(config.mqtt.server, config.monitoring.polling_interval)
"""

# Standard library imports
import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Configure logger for config module
logger = logging.getLogger(__name__)


# ----------------------------
# Paths
# ----------------------------

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = BASE_DIR / "data"
CONFIG_PATH = Path(os.getenv("HAML_CONFIG_PATH", str(DATA_DIR / "config.ini")))
LOG_PATH = DATA_DIR / "info.log"
LOCK_PATH = DATA_DIR / "ha-meeting-light.lock"


# ----------------------------
# Defaults and limits
# ----------------------------

DEFAULT_MQTT_PORT = 1883
DEFAULT_POLLING_INTERVAL = 10
MIN_POLLING_INTERVAL = 1
MAX_POLLING_INTERVAL = 60

MQTT_SECTION = "MQTT"
MONITORING_SECTION = "Monitoring"
LOGGING_SECTION = "Logging"


class ConfigurationError(Exception):
    """Raised when the configuration cannot be used to start the agent.

    The message is user-facing.
    """


# ----------------------------
# Configuration model
# ----------------------------


@dataclass
class MqttSettings:
    """Broker connection settings."""

    server: str
    port: int = DEFAULT_MQTT_PORT
    username: str = ""
    password: str = ""


@dataclass
class MonitoringSettings:
    """Device monitor settings."""

    polling_interval: int = DEFAULT_POLLING_INTERVAL


@dataclass
class LoggingSettings:
    """Log output settings."""

    log_to_file: bool = False


@dataclass
class AppConfig:
    """Validated application configuration."""

    mqtt: MqttSettings
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ----------------------------
# Validation Functions
# ----------------------------


def parse_port(raw: Optional[str]) -> int:
    """
    Parse the MQTT port.

    Blank values use the default silently; invalid or out-of-range values
    use the default with a warning.
    """
    if raw is None or not raw.strip():
        return DEFAULT_MQTT_PORT

    try:
        port = int(raw.strip())
    except ValueError:
        port = 0

    if not (1 <= port <= 65535):
        logger.warning(
            f"Invalid MQTT Port value: '{raw}'. Using default: {DEFAULT_MQTT_PORT}"
        )
        return DEFAULT_MQTT_PORT
    return port


def parse_polling_interval(raw: Optional[str]) -> int:
    """
    Parse the polling interval in seconds.

    Values outside MIN_POLLING_INTERVAL..MAX_POLLING_INTERVAL fall back to
    DEFAULT_POLLING_INTERVAL with a warning.
    """
    if raw is None or not raw.strip():
        return DEFAULT_POLLING_INTERVAL

    try:
        interval = int(raw.strip())
    except ValueError:
        interval = 0

    if not (MIN_POLLING_INTERVAL <= interval <= MAX_POLLING_INTERVAL):
        logger.warning(
            f"Invalid PollingIntervalSeconds value: '{raw}'. "
            f"Using default: {DEFAULT_POLLING_INTERVAL}"
        )
        return DEFAULT_POLLING_INTERVAL
    return interval


def parse_log_to_file(raw: Optional[str]) -> bool:
    """Only "yes" and "true" (any case) enable file logging."""
    if raw is None:
        return False
    return raw.strip().lower() in ("yes", "true")


# ----------------------------
# Load configuration
# ----------------------------


def load_config(config_path: Path = CONFIG_PATH) -> AppConfig:
    """
    Load and validate config.ini.

    Args:
        config_path: Path to config.ini

    Returns:
        Validated AppConfig

    Raises:
        ConfigurationError: If the file is missing or malformed, or the
            MQTT server is not configured.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        logger.error(f"Configuration file missing: {config_path} not found.")
        raise ConfigurationError(
            "Configuration file missing. Application cannot start."
        )

    parser = configparser.ConfigParser(interpolation=None)
    try:
        if not parser.read(config_path, encoding="utf-8"):
            raise ConfigurationError("Configuration file is malformed.")
    except (configparser.Error, UnicodeDecodeError) as e:
        logger.error(f"Configuration file is malformed: {e}")
        raise ConfigurationError("Configuration file is malformed.") from e

    if not parser.has_section(MQTT_SECTION):
        logger.error(f"Invalid configuration: [{MQTT_SECTION}] section is missing.")
        raise ConfigurationError("Invalid configuration: MQTT Server required.")

    mqtt_section = parser[MQTT_SECTION]
    server = mqtt_section.get("Server", "").strip()
    if not server:
        logger.error("Invalid configuration: MQTT Server parameter is missing or empty.")
        raise ConfigurationError("Invalid configuration: MQTT Server required.")

    mqtt = MqttSettings(
        server=server,
        port=parse_port(mqtt_section.get("Port")),
        username=mqtt_section.get("Username", "").strip(),
        password=mqtt_section.get("Password", ""),
    )

    if mqtt.username and not mqtt.password:
        logger.warning("MQTT password is empty - ensure your broker allows this")

    monitoring = MonitoringSettings()
    if parser.has_section(MONITORING_SECTION):
        monitoring.polling_interval = parse_polling_interval(
            parser[MONITORING_SECTION].get("PollingIntervalSeconds")
        )

    log_settings = LoggingSettings()
    if parser.has_section(LOGGING_SECTION):
        log_settings.log_to_file = parse_log_to_file(
            parser[LOGGING_SECTION].get("LogToFile")
        )

    return AppConfig(mqtt=mqtt, monitoring=monitoring, logging=log_settings)
