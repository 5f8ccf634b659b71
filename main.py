#!/usr/bin/env python3
"""HA-MeetingLight - Meeting indicator integration for Home Assistant.

HA-MeetingLight watches the webcam and microphone in-use indicators of a
Windows machine and republishes their on/off state over MQTT, so Home
Assistant can react (e.g., turn on a "meeting in progress" light).

Architecture:
    1. **Core Layer** (meeting_light/core/):
       - config: Configuration management
       - messaging: MQTT topic scheme and publishing
       - discovery: Home Assistant discovery payloads
       - connection: Broker connection state machine with retry

    2. **Data Collection Layer** (meeting_light/collectors/):
       - device_usage: Windows consent store scan

    3. **Monitoring Layer** (meeting_light/monitors/):
       - devices: Edge-triggered webcam/microphone monitoring

    4. **Coordination** (meeting_light/agent.py):
       - Wires monitor events to publishing, startup and shutdown

MQTT Topics Structure:
    HA-MeetingLight/{machine}/webcam                                - "on"/"off" (retained)
    HA-MeetingLight/{machine}/microphone                            - "on"/"off" (retained)
    homeassistant/binary_sensor/{machine}/{machine}_{device}/config - Discovery (retained)

Configuration:
    Configuration is loaded from data/config.ini (or $HAML_CONFIG_PATH):
    - [MQTT]: Server, Port, Username, Password
    - [Monitoring]: PollingIntervalSeconds
    - [Logging]: LogToFile

Usage:
    python main.py

Exit Codes:
    0: Clean shutdown, or another agent is already running
    1: Configuration error or unsupported platform
"""

# Standard library imports
import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Local imports
from meeting_light import __version__
from meeting_light.agent import MeetingLightAgent
from meeting_light.collectors.device_usage import DeviceUsageCollector
from meeting_light.core.config import (
    CONFIG_PATH,
    LOCK_PATH,
    LOG_PATH,
    ConfigurationError,
    load_config,
)
from meeting_light.core.connection import ConnectionManager
from meeting_light.monitors.devices import DeviceMonitor
from meeting_light.utils.platform import InstanceLock, PlatformUtils, get_machine_name

logger = logging.getLogger()

exit_flag = threading.Event()


# ----------------------------
# Logging Configuration
# ----------------------------


def setup_logging(log_to_file: bool = False, log_path: Path = LOG_PATH) -> None:
    """Configure the root logger: console always, rotating file on request."""
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(module)s: %(message)s",
        datefmt="%m/%d/%Y %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=5 * 1024 * 1024,  # 5MB per file
                backupCount=3,
                encoding="utf-8",
            )
        except OSError as e:
            logger.error(f"Could not open log file {log_path}: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)


# ----------------------------
# Signal Handlers
# ----------------------------


def signal_handler(sig, frame):
    """Handle shutdown signals gracefully."""
    logger.info("Shutdown signal received...")
    exit_flag.set()


# ----------------------------
# Main
# ----------------------------


def main():
    """
    Main entry point for HA-MeetingLight.

    1. Loads and validates configuration
    2. Exits silently if another agent already runs for this user
    3. Configures logging
    4. Creates the collector, monitor and connection manager
    5. Starts the agent and waits for SIGINT/SIGTERM
    6. Publishes "off" states and disconnects on shutdown

    Raises:
        SystemExit: On configuration errors or unsupported platform (exit code 1)
    """
    try:
        config = load_config(CONFIG_PATH)
    except ConfigurationError as e:
        setup_logging()
        logger.error(str(e))
        sys.exit(1)

    if not PlatformUtils().is_windows():
        setup_logging()
        logger.error("HA-MeetingLight requires Windows (capability consent store)")
        sys.exit(1)

    instance_lock = InstanceLock(LOCK_PATH)
    if not instance_lock.acquire():
        # Another agent owns the topics for this machine
        return

    setup_logging(config.logging.log_to_file)
    logger.info(f"Starting HA-MeetingLight v{__version__}...")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    machine_name = get_machine_name()
    monitor = DeviceMonitor(
        DeviceUsageCollector(),
        interval=config.monitoring.polling_interval,
    )
    connection = ConnectionManager(config.mqtt, machine_name)
    agent = MeetingLightAgent(monitor, connection)

    agent.start()

    logger.info("=" * 50)
    logger.info("HA-MeetingLight running. Press Ctrl+C to exit...")
    logger.info(f"Machine: {machine_name}")
    logger.info(f"MQTT Broker: {config.mqtt.server}:{config.mqtt.port}")
    logger.info(f"Polling Interval: {config.monitoring.polling_interval}s")
    logger.info("=" * 50)

    try:
        while not exit_flag.wait(1):
            pass
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    finally:
        agent.stop()
        instance_lock.release()

    logger.info("Shutdown complete")
    sys.exit(0)


if __name__ == "__main__":
    main()
