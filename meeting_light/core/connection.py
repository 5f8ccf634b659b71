"""MQTT broker connection management for HA-MeetingLight.

This module provides the ConnectionManager class which keeps a
publish-capable MQTT connection alive for a background agent that has no
interactive caller waiting on it.

Connection Management:
    - States: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
    - A connect in progress is never re-entered
    - Failed attempts and lost connections arm a retry timer with a fixed
      60 second delay, unbounded attempts, one attempt in flight at a time
    - Home Assistant discovery is republished on every successful connect
    - Connected/disconnected notifications fire at most once per
      transition, no matter how many attempts or callbacks occur

Thread Safety:
    Connect attempts (caller or retry timer thread), transport callbacks
    (paho network thread) and publishes (agent threads) are serialized by a
    single lock guarding status, notification flags and the retry timer.
    Blocking transport calls are made outside the lock and notifications
    are delivered after it is released.

Example:
    >>> manager = ConnectionManager(config.mqtt, "DESK01")
    >>> manager.subscribe(lambda event: print(event.message))
    >>> manager.connect()
    >>> manager.publish(Capability.WEBCAM, True)
    >>> manager.disconnect()
"""

# Standard library imports
import logging
import threading
from typing import Callable, Iterable, List, Optional

# Third-party imports
import paho.mqtt.client as mqtt

# Local imports
from .config import MqttSettings
from .discovery import DiscoveryManager
from .messaging import MessageBroker, state_payload
from .models import Capability, ConnectionStatus, ConnectionStatusEvent

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 60  # seconds
KEEPALIVE = 60  # seconds

CONNECTED_MESSAGE = "MQTT server connected."
DISCONNECTED_MESSAGE = "MQTT server connection failed."

ConnectionStatusCallback = Callable[[ConnectionStatusEvent], None]


def create_client() -> mqtt.Client:
    """Create a paho-mqtt client for a single connection attempt."""
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        protocol=mqtt.MQTTv311,
        clean_session=True,
    )


class ConnectionManager:
    """Maintains the broker connection and publishes capability states.

    A fresh paho client is created for every connection attempt and its
    network loop runs only while it is the current client, so the retry
    timer here is the only reconnection mechanism. Callbacks from a client
    that has since been replaced are ignored.

    Attributes:
        settings: Broker host, port and credentials.
        machine_name: Machine identity used in topics.
        capabilities: Capabilities announced through discovery.
        retry_interval: Seconds between connection attempts.
    """

    def __init__(
        self,
        settings: MqttSettings,
        machine_name: str,
        capabilities: Iterable[Capability] = tuple(Capability),
        retry_interval: float = RETRY_INTERVAL,
        client_factory: Callable[[], mqtt.Client] = create_client,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """Initialize the connection manager.

        Args:
            settings: Validated MQTT settings.
            machine_name: Machine identity (e.g., "DESK01").
            capabilities: Capabilities to announce via discovery (default: all).
            retry_interval: Retry delay in seconds (default: 60).
            client_factory: Creates a transport client per attempt.
            timer_factory: Creates the retry timer (threading.Timer signature).
        """
        self.settings = settings
        self._machine_name = machine_name
        self.capabilities = tuple(capabilities)
        self.retry_interval = retry_interval

        self._client_factory = client_factory
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._subscribers: List[ConnectionStatusCallback] = []

        # Guarded by _lock
        self._status = ConnectionStatus.DISCONNECTED
        self._client: Optional[mqtt.Client] = None
        self._broker: Optional[MessageBroker] = None
        self._retry_timer: Optional[threading.Timer] = None
        self._retry_token = 0
        self._notified_connected = False
        self._notified_disconnected = False

    # ----------------------------
    # Public API
    # ----------------------------

    @property
    def status(self) -> ConnectionStatus:
        with self._lock:
            return self._status

    @property
    def machine_name(self) -> str:
        return self._machine_name

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def subscribe(self, callback: ConnectionStatusCallback) -> None:
        """Register a callback for ConnectionStatusEvents.

        Callbacks may run on the caller's, the retry timer's or the paho
        network thread. Delivery order across subscribers is not guaranteed.
        """
        self._subscribers.append(callback)

    def connect(self) -> None:
        """Start a single connection attempt.

        Does nothing if a connection is already established or in progress.
        The outcome is reported through status transitions and
        ConnectionStatusEvents; this method never raises.
        """
        self._attempt_connect()

    def publish(self, capability: Capability, active: bool) -> bool:
        """Publish a capability state ("on"/"off", retained, QoS 0).

        Skipped when not connected. A failed publish is logged and does not
        change the connection status; only the transport reports a lost
        connection.

        Returns:
            True if the message was handed to the transport.
        """
        with self._lock:
            broker = self._broker if self._status is ConnectionStatus.CONNECTED else None

        if broker is None:
            logger.debug(f"Not connected, skipping publish of {capability.value} state")
            return False

        try:
            return broker.publish_state(capability.value, state_payload(active))
        except Exception as e:
            logger.error(f"Failed to publish {capability.value} state: {e}")
            return False

    def disconnect(self) -> None:
        """Disarm the retry timer and close the connection.

        Always leaves the status DISCONNECTED. Safe to call from any
        callback, including the retry timer's own.
        """
        with self._lock:
            self._cancel_retry_locked()
            client = self._client
            was_connected = self._status is ConnectionStatus.CONNECTED
            self._client = None
            self._broker = None
            self._status = ConnectionStatus.DISCONNECTED

        if client is None:
            return

        if was_connected:
            try:
                client.disconnect()
                logger.info("Disconnected from MQTT broker")
            except Exception as e:
                logger.error(f"Error disconnecting from MQTT: {e}")
        self._release_client(client)

    # ----------------------------
    # Connection attempts
    # ----------------------------

    def _attempt_connect(self, retry_token: Optional[int] = None) -> None:
        with self._lock:
            if retry_token is not None and retry_token != self._retry_token:
                return
            if self._status is not ConnectionStatus.DISCONNECTED:
                logger.debug(f"Connect skipped, connection is {self._status.value}")
                return

            self._cancel_retry_locked()
            self._status = ConnectionStatus.CONNECTING
            try:
                client = self._create_client()
            except Exception as e:
                logger.error(f"Failed to create MQTT client: {e}", exc_info=True)
                self._status = ConnectionStatus.DISCONNECTED
                event = self._note_disconnected_locked()
                self._arm_retry_locked()
                client = None
            else:
                self._client = client

        if client is None:
            self._emit(event)
            return

        host, port = self.settings.server, self.settings.port
        logger.info(f"Attempting to connect to MQTT broker at {host}:{port}...")
        try:
            client.connect(host, port, keepalive=KEEPALIVE)
        except Exception as e:
            self._fail(client, f"MQTT connection failed: {e}")
            return

        with self._lock:
            current = client is self._client
            if current:
                client.loop_start()

        if not current:
            # disconnect() was called while the socket was opening
            self._close_orphan(client)

    def _create_client(self) -> mqtt.Client:
        client = self._client_factory()
        if self.settings.username.strip():
            client.username_pw_set(self.settings.username, self.settings.password)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        return client

    def _fail(self, client: mqtt.Client, reason: str) -> None:
        """Handle a failed attempt or a lost connection for the current client."""
        with self._lock:
            if client is not self._client:
                return
            self._client = None
            self._broker = None
            self._status = ConnectionStatus.DISCONNECTED
            event = self._note_disconnected_locked()
            self._arm_retry_locked()

        logger.error(reason)
        self._release_client(client)
        self._emit(event)

    # ----------------------------
    # Transport callbacks
    # ----------------------------

    def _on_connect(self, client, userdata, connect_flags, reason_code, properties):
        """Handle the broker's CONNACK."""
        if reason_code.is_failure:
            self._fail(client, f"MQTT connection refused: {reason_code}")
            return

        with self._lock:
            if client is not self._client or self._status is not ConnectionStatus.CONNECTING:
                return
            self._status = ConnectionStatus.CONNECTED
            self._broker = MessageBroker(client, self.machine_name)
            broker = self._broker
            event = self._note_connected_locked()

        logger.info(f"Connected to MQTT broker at {self.settings.server}:{self.settings.port}")
        DiscoveryManager(broker, self.machine_name).publish_capabilities(self.capabilities)
        self._emit(event)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        """Handle a transport-level disconnect."""
        with self._lock:
            status = self._status if client is self._client else None

        if status is ConnectionStatus.CONNECTED:
            logger.warning("MQTT connection lost. Will attempt to reconnect.")
            self._fail(client, f"MQTT disconnected: {reason_code}")
        elif status is ConnectionStatus.CONNECTING:
            self._fail(client, f"MQTT connection closed before handshake: {reason_code}")

    # ----------------------------
    # Retry timer
    # ----------------------------

    def _arm_retry_locked(self) -> None:
        self._cancel_retry_locked()
        token = self._retry_token
        timer = self._timer_factory(
            self.retry_interval, self._on_retry_timer, args=(token,)
        )
        timer.daemon = True
        timer.start()
        self._retry_timer = timer
        logger.info(f"Retrying MQTT connection in {self.retry_interval} seconds...")

    def _cancel_retry_locked(self) -> None:
        # Bumping the token invalidates a timer callback already in progress
        self._retry_token += 1
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    def _on_retry_timer(self, token: int) -> None:
        try:
            self._attempt_connect(retry_token=token)
        except Exception as e:
            logger.error(f"Error in MQTT retry: {e}", exc_info=True)

    # ----------------------------
    # Notifications
    # ----------------------------

    def _note_connected_locked(self) -> Optional[ConnectionStatusEvent]:
        if self._notified_connected:
            return None
        self._notified_connected = True
        self._notified_disconnected = False
        return ConnectionStatusEvent(True, CONNECTED_MESSAGE)

    def _note_disconnected_locked(self) -> Optional[ConnectionStatusEvent]:
        if self._notified_disconnected:
            return None
        self._notified_disconnected = True
        self._notified_connected = False
        return ConnectionStatusEvent(False, DISCONNECTED_MESSAGE)

    def _emit(self, event: Optional[ConnectionStatusEvent]) -> None:
        if event is None:
            return
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in connection status subscriber: {e}", exc_info=True)

    def _close_orphan(self, client: mqtt.Client) -> None:
        try:
            client.disconnect()
        except Exception as e:
            logger.debug(f"Error closing abandoned MQTT connection: {e}")
        self._release_client(client)

    def _release_client(self, client: mqtt.Client) -> None:
        # loop_stop() only joins when called from outside the network thread
        try:
            client.loop_stop()
        except Exception as e:
            logger.debug(f"Error stopping MQTT network loop: {e}")
