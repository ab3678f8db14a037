"""Configuración del cliente MQTT.

Extraído de mqtt_client.py para mantener el cliente enfocado en el ciclo
de vida de la conexión.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple
from urllib.parse import urlparse

from ..domain.errors import ConfigError

if TYPE_CHECKING:
    from common.config import Settings

VALID_QOS = (0, 1, 2)

_TLS_SCHEMES = ("ssl", "tls", "mqtts", "wss")
_WS_SCHEMES = ("ws", "wss")
_KNOWN_SCHEMES = ("tcp", "mqtt") + _TLS_SCHEMES + _WS_SCHEMES


@dataclass
class MQTTOptions:
    """Opciones de conexión al broker."""
    server: str = "tcp://localhost:1883"
    username: str = ""
    password: str = ""
    qos: int = 0
    client_id: str = "lora-mqtt"
    debug: bool = False
    keepalive: int = 60
    connect_timeout: float = 5.0
    delivery_queue_size: int = 1

    @classmethod
    def from_settings(cls, settings: "Settings") -> "MQTTOptions":
        return cls(
            server=settings.mqtt_server_url,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            qos=settings.mqtt_qos,
            client_id=settings.mqtt_client_id,
            debug=settings.mqtt_debug,
        )

    def validate(self) -> None:
        if self.qos not in VALID_QOS:
            raise ConfigError(f"[MQTT] invalid QoS: {self.qos}")
        self.endpoint()

    def endpoint(self) -> Tuple[str, str, int]:
        """Retorna (scheme, host, port) desde `scheme://host:port`."""
        parsed = urlparse(self.server)
        scheme = parsed.scheme.lower()
        if scheme not in _KNOWN_SCHEMES:
            raise ConfigError(f"[MQTT] unsupported server scheme: {self.server}")
        try:
            port: Optional[int] = parsed.port
        except ValueError as e:
            raise ConfigError(f"[MQTT] invalid server port: {self.server}") from e
        if not parsed.hostname:
            raise ConfigError(f"[MQTT] missing server host: {self.server}")
        if port is None:
            port = 8883 if self.use_tls else 1883
        return scheme, parsed.hostname, port

    @property
    def use_tls(self) -> bool:
        return urlparse(self.server).scheme.lower() in _TLS_SCHEMES

    @property
    def use_websockets(self) -> bool:
        return urlparse(self.server).scheme.lower() in _WS_SCHEMES
