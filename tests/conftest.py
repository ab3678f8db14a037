"""Fixtures compartidos por los tests del bridge LoRa."""

import base64
from typing import Any, Dict, List, Optional

import orjson
import paho.mqtt.client as mqtt
import pytest

from common.config import Settings


def raw_payload(lat_e4: int, lon_e4: int, power: Optional[int] = None) -> str:
    """Construye un payload_raw base64 (lat/lon * 10000, potencia int8)."""
    data = lat_e4.to_bytes(3, "big") + lon_e4.to_bytes(3, "big")
    if power is not None:
        data += power.to_bytes(1, "big", signed=True)
    return base64.b64encode(data).decode("ascii")


# =============================================================================
# MENSAJES DE EJEMPLO
# =============================================================================

@pytest.fixture
def ttn_message() -> Dict[str, Any]:
    """Uplink TTN v2 con una gateway."""
    return {
        "app_id": "lora_coverage_mapping",
        "dev_id": "sodaq_one_gps_1",
        "hardware_serial": "0004A30B001E8EA2",
        "port": 1,
        "counter": 17,
        "payload_raw": "B8hBALggAQ==",
        "payload_fields": {"lat": 51.0017, "lon": 4.7136, "pwr": 1},
        "metadata": {
            "time": "2018-03-13T19:21:22.827671626Z",
            "frequency": 868.3,
            "modulation": "LORA",
            "data_rate": "SF12BW125",
            "coding_rate": "4/5",
            "gateways": [
                {
                    "gtw_id": "eui-008000000000b88d",
                    "gateway_id": "eui-008000000000b88d",
                    "timestamp": 2413848924,
                    "time": "2018-03-13T19:21:22.808197Z",
                    "channel": 1,
                    "rssi": -84,
                    "snr": 8,
                    "rf_chain": 1,
                }
            ],
        },
    }


@pytest.fixture
def dingnet_message() -> Dict[str, Any]:
    """Uplink DingNet con dos gateways."""
    return {
        "port": 1,
        "counter": 3,
        "payload_raw": "B8hBALggAQ==",
        "metadata": {
            "time": "2019-05-02T10:11:12.123456789Z",
            "frequency": 868.1,
            "modulation": "LORA",
            "data_rate": "SF9BW125",
            "coding_rate": "4/5",
            "gateways": [
                {"gtw_id": "gw-a", "time": "2019-05-02T10:11:12.2Z", "rssi": -101, "snr": -2.5},
                {"gtw_id": "gw-b", "time": "2019-05-02T10:11:12.3Z", "rssi": -97, "snr": 4.25},
            ],
        },
    }


def to_bytes(message: Dict[str, Any]) -> bytes:
    return orjson.dumps(message)


# =============================================================================
# CONFIG
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        mqtt_server_url="tcp://broker:1883",
        mqtt_username="",
        mqtt_password="",
        mqtt_qos=1,
        mqtt_client_id="lora-mqtt-test",
        mqtt_topic="+/devices/+/up",
        mqtt_debug=False,
        influxdb_server_url="http://influx:8086",
        influxdb_username="",
        influxdb_password="",
        influxdb_database="lora",
        influxdb_precision="ms",
        metric_name="coverage",
        parser_type="TTN",
        default_tags={"site": "leuven"},
    )


# =============================================================================
# PAHO FAKE
# =============================================================================

class FakePahoClient:
    """Cliente paho en memoria: CONNACK sincrónico y registro de llamadas."""

    def __init__(self, connect_rc: int = 0, auto_connack: bool = True, subscribe_rc: int = 0):
        self.connect_rc = connect_rc
        self.auto_connack = auto_connack
        self.subscribe_rc = subscribe_rc

        self.on_connect = None
        self.on_disconnect = None
        self.logger = None

        self.connected_to = None
        self.loop_running = False
        self.disconnect_calls = 0
        self.subscribed: List[tuple] = []
        self.unsubscribed: List[List[str]] = []
        self.callbacks: Dict[str, Any] = {}

    def enable_logger(self, logger=None):
        self.logger = logger

    def connect(self, host, port, keepalive=60):
        self.connected_to = (host, port, keepalive)
        if self.auto_connack:
            self.on_connect(self, None, {}, self.connect_rc, None)
        return mqtt.MQTT_ERR_SUCCESS

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self.disconnect_calls += 1
        if self.on_disconnect is not None:
            self.on_disconnect(self, None, {}, 0, None)
        return mqtt.MQTT_ERR_SUCCESS

    def subscribe(self, topic, qos=0):
        self.subscribed.append((topic, qos))
        return self.subscribe_rc, len(self.subscribed)

    def unsubscribe(self, topics):
        self.unsubscribed.append(list(topics))
        return mqtt.MQTT_ERR_SUCCESS, len(self.unsubscribed)

    def message_callback_add(self, topic, callback):
        self.callbacks[topic] = callback

    def message_callback_remove(self, topic):
        self.callbacks.pop(topic, None)

    # Simulación de la red

    def drop(self, rc: int = 7):
        self.on_disconnect(self, None, {}, rc, None)

    def reconnect(self, rc: int = 0):
        self.on_connect(self, None, {}, rc, None)


@pytest.fixture
def fake_paho() -> FakePahoClient:
    return FakePahoClient()
