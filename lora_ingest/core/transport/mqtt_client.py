"""Cliente MQTT con re-suscripción automática.

Máquina de estados:

    DISCONNECTED → CONNECTING → CONNECTED ⇄ RECONNECTING
         ↑                          │
         └────────── close() ───────┘

paho reconecta solo tras una caída; al volver, el on_connect re-suscribe
todos los topics que siguen deseados. connect, close, subscribe,
unsubscribe, la re-suscripción y el manejo de la caída comparten un
mismo lock; loop_stop() siempre se llama sin tenerlo.
"""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from ..domain.errors import StateError, TransportError
from .mqtt_config import MQTTOptions

DISCONNECT_GRACE_SECONDS = 0.25
DELIVERY_POLL_SECONDS = 0.5


class ClientState(str, Enum):
    """Estados del ciclo de vida del cliente."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def create_paho_client(options: MQTTOptions) -> mqtt.Client:
    """Crea el cliente paho (MQTT 3.1.1, callbacks v2)."""
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=options.client_id,
        protocol=mqtt.MQTTv311,
        transport="websockets" if options.use_websockets else "tcp",
    )
    if options.use_tls:
        client.tls_set()
    if options.username and options.password:
        client.username_pw_set(options.username, options.password)
    return client


class MQTTClient:
    """Cliente MQTT para recepción de uplinks LoRa.

    Responsabilidades:
    - Conexión/desconexión al broker
    - Registro de suscripciones y re-suscripción tras reconexión
    - Entrega de mensajes, uno a uno, a la cola `incoming`

    La entrega es bloqueante: si nadie consume `incoming`, el hilo de red
    de paho espera (backpressure) hasta que haya lugar o se cierre el
    cliente.
    """

    def __init__(
        self,
        options: MQTTOptions,
        logger: Optional[logging.Logger] = None,
        client_factory: Optional[Callable[[MQTTOptions], Any]] = None,
    ):
        self._options = options
        self._logger = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or create_paho_client

        self._client: Optional[Any] = None
        self._state = ClientState.DISCONNECTED
        self._lock = threading.RLock()

        self._subscriptions: Dict[str, bool] = {}
        self._reconnecting = False
        self._reconnect_count = 0

        self._connected_event = threading.Event()
        self._disconnected_event = threading.Event()
        self._connect_error: Optional[str] = None

        self._incoming: queue.Queue = queue.Queue(maxsize=options.delivery_queue_size)
        self._done = threading.Event()

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Conecta al broker y espera el CONNACK.

        Raises:
            ConfigError: QoS o URL del servidor inválidos
            TransportError: el broker no aceptó la conexión a tiempo
        """
        cause: Optional[BaseException] = None
        with self._lock:
            if self._client is not None and self._state in (
                ClientState.CONNECTED, ClientState.RECONNECTING
            ):
                self._logger.debug("[MQTT] connect() ignored, already %s", self._state.value)
                return

            self._options.validate()
            _, host, port = self._options.endpoint()

            self._state = ClientState.CONNECTING
            self._reconnecting = False
            self._connect_error = None
            self._connected_event.clear()
            self._disconnected_event.clear()

            self._subscriptions = {}
            self._incoming = queue.Queue(maxsize=self._options.delivery_queue_size)
            self._done = threading.Event()

            try:
                client = self._client_factory(self._options)
                if self._options.debug:
                    client.enable_logger(self._logger)
                client.on_connect = self._on_connect
                client.on_disconnect = self._on_disconnect
                self._client = client

                self._logger.info("[MQTT] Connecting to %s:%d", host, port)
                client.connect(host, port, keepalive=self._options.keepalive)
                client.loop_start()
            except (OSError, ValueError) as e:
                cause = e
                reason = str(e) or type(e).__name__
            else:
                connected = self._connected_event.wait(self._options.connect_timeout)
                reason = self._connect_error or ("" if connected else "timeout")

            if not reason:
                self._state = ClientState.CONNECTED
                self._logger.info("[MQTT] Connected to %s", self._options.server)
                return

            stale = self._detach()

        # Fuera del lock: loop_stop() espera al hilo de paho
        self._teardown(stale)
        raise TransportError(
            f"[MQTT] error connecting to {self._options.server}: {reason}"
        ) from cause

    def close(self) -> None:
        """Cierra la conexión. Idempotente."""
        with self._lock:
            client = self._client
            if client is None or self._state == ClientState.DISCONNECTED:
                return

            self._state = ClientState.DISCONNECTED
            self._reconnecting = False
            self._done.set()
            self._disconnected_event.clear()
            client.disconnect()
            self._client = None

        # Fuera del lock: el hilo de paho puede estar esperando el lock
        self._disconnected_event.wait(DISCONNECT_GRACE_SECONDS)
        client.loop_stop()
        self._logger.info("[MQTT] disconnected")

    def _detach(self) -> Optional[Any]:
        client = self._client
        self._client = None
        self._state = ClientState.DISCONNECTED
        self._done.set()
        return client

    def _teardown(self, client: Optional[Any]) -> None:
        if client is None:
            return
        try:
            client.disconnect()
            client.loop_stop()
        except (OSError, ValueError) as e:
            self._logger.warning("[MQTT] Error aborting connection: %s", e)

    # ------------------------------------------------------------------
    # Suscripciones
    # ------------------------------------------------------------------

    def subscribe(self, topic: str) -> None:
        """Suscribe a un topic (exacto o con wildcards).

        Raises:
            StateError: no conectado
            TransportError: paho rechazó la suscripción
        """
        with self._lock:
            if not self.is_connected:
                raise StateError("[MQTT] trying to subscribe while not connected")
            self._subscribe(self._client, topic)
            self._subscriptions[topic] = True
        self._logger.info("[MQTT] subscribing to topic: %s", topic)

    def unsubscribe(self, *topics: str) -> None:
        """Desuscribe; los topics quedan registrados como no deseados."""
        with self._lock:
            if not self.is_connected:
                raise StateError("[MQTT] trying to unsubscribe while not connected")
            if not topics:
                return

            result, _ = self._client.unsubscribe(list(topics))
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise TransportError(
                    f"[MQTT] error unsubscribing from {list(topics)}: {mqtt.error_string(result)}"
                )

            for topic in topics:
                self._subscriptions[topic] = False
                self._client.message_callback_remove(topic)
                self._logger.info("[MQTT] un-subscribing from topic: %s", topic)

    def _subscribe(self, client: Any, topic: str) -> None:
        client.message_callback_add(topic, self._on_receive)
        result, _ = client.subscribe(topic, qos=self._options.qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            client.message_callback_remove(topic)
            raise TransportError(
                f"[MQTT] error subscribing to {topic}: {mqtt.error_string(result)}"
            )

    def _resubscribe(self, client: Any) -> None:
        for topic, wanted in self._subscriptions.items():
            if not wanted:
                continue
            self._logger.debug("[MQTT] re-subscribing to topic: %s", topic)
            try:
                self._subscribe(client, topic)
            except TransportError as e:
                self._logger.error("%s", e)

    # ------------------------------------------------------------------
    # Callbacks de paho (hilo de red)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión; re-suscribe si venimos de una caída."""
        if reason_code != 0:
            self._logger.error("[MQTT] Connection refused: %s", reason_code)
            if self._state == ClientState.CONNECTING:
                self._connect_error = str(reason_code)
                self._connected_event.set()
            return

        self._logger.info("[MQTT] connected")
        self._connected_event.set()

        if not self._reconnecting:
            return

        with self._lock:
            if self._state != ClientState.RECONNECTING:
                return
            self._resubscribe(client)
            self._reconnecting = False
            self._reconnect_count += 1
            self._state = ClientState.CONNECTED

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de desconexión; una caída no planeada inicia la reconexión."""
        # Antes del lock: close() espera este evento sin tenerlo tomado
        self._disconnected_event.set()
        with self._lock:
            if self._client is None or self._state != ClientState.CONNECTED:
                return
            self._logger.warning("[MQTT] disconnected (%s), reconnecting...", reason_code)
            self._reconnecting = True
            self._state = ClientState.RECONNECTING

    def _on_receive(self, client, userdata, message):
        """Entrega bloqueante a `incoming` hasta que haya lugar o se cierre."""
        done = self._done
        incoming = self._incoming
        while not done.is_set():
            try:
                incoming.put(message, timeout=DELIVERY_POLL_SECONDS)
                return
            except queue.Full:
                continue
        self._logger.debug("[MQTT] client closed, message on %s not delivered", message.topic)

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    @property
    def options(self) -> MQTTOptions:
        return self._options

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._state == ClientState.CONNECTED

    @property
    def subscriptions(self) -> Dict[str, bool]:
        with self._lock:
            return dict(self._subscriptions)

    @property
    def incoming(self) -> queue.Queue:
        return self._incoming

    @property
    def done(self) -> threading.Event:
        return self._done

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    @property
    def stats(self) -> dict:
        return {
            "state": self._state.value,
            "connected": self.is_connected,
            "server": self._options.server,
            "client_id": self._options.client_id,
            "subscriptions": self.subscriptions,
            "reconnect_count": self._reconnect_count,
            "pending_messages": self._incoming.qsize(),
        }
