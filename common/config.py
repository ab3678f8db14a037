from __future__ import annotations

import os
import random
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


def random_string(length: int) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(random.choice(alphabet) for _ in range(length))


def is_valid_server(server: str) -> bool:
    """`scheme://host:port` con puerto explícito."""
    try:
        parsed = urlparse(server)
        port = parsed.port
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.hostname) and port is not None


def parse_tags(raw: Optional[str]) -> Dict[str, str]:
    """Parsea `k=v,k2=v2`; entradas sin '=' se ignoran."""
    tags: Dict[str, str] = {}
    if not raw:
        return tags
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        key = key.strip()
        if sep and key:
            tags[key] = value.strip()
    return tags


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    mqtt_server_url: str
    mqtt_username: str
    mqtt_password: str
    mqtt_qos: int
    mqtt_client_id: str
    mqtt_topic: str
    mqtt_debug: bool

    influxdb_server_url: str
    influxdb_username: str
    influxdb_password: str
    influxdb_database: str
    influxdb_precision: str

    metric_name: str
    parser_type: str
    default_tags: Dict[str, str] = field(default_factory=dict)


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("LORA_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        mqtt_server_url=os.getenv("MQTT_SERVER_URL", "tcp://localhost:1883"),
        mqtt_username=os.getenv("MQTT_USERNAME", ""),
        mqtt_password=os.getenv("MQTT_PASSWORD", ""),
        mqtt_qos=int(os.getenv("MQTT_QOS", "0")),
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID") or f"lora-mqtt-{random_string(4)}",
        # TTN v2: <app_id>/devices/<dev_id>/up
        mqtt_topic=os.getenv("MQTT_TOPIC", "+/devices/+/up"),
        mqtt_debug=_env_bool("MQTT_DEBUG"),
        influxdb_server_url=os.getenv("INFLUXDB_SERVER_URL", "http://localhost:8086"),
        influxdb_username=os.getenv("INFLUXDB_USERNAME", ""),
        influxdb_password=os.getenv("INFLUXDB_PASSWORD", ""),
        influxdb_database=os.getenv("INFLUXDB_DATABASE", "lora"),
        influxdb_precision=os.getenv("INFLUXDB_PRECISION", "ms"),
        metric_name=os.getenv("LORA_METRIC_NAME", "coverage"),
        parser_type=os.getenv("LORA_PARSER_TYPE", "TTN"),
        default_tags=parse_tags(os.getenv("LORA_DEFAULT_TAGS")),
    )
