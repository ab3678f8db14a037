"""Transport layer - Recepción de uplinks MQTT."""

from .message_handler import MessageHandler
from .mqtt_client import ClientState, MQTTClient
from .mqtt_config import MQTTOptions

__all__ = ["ClientState", "MessageHandler", "MQTTClient", "MQTTOptions"]
