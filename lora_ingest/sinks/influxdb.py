"""Sink InfluxDB 1.x.

Traduce cada Metric a un punto y escribe el batch con write_points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Sequence
from urllib.parse import urlparse

from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError
from requests.exceptions import RequestException

from ..core.domain.errors import ConfigError, SinkError, TransportError
from ..core.domain.metric import Metric
from ..core.domain.sink_interface import IMetricSink

if TYPE_CHECKING:
    from common.config import Settings

logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 3
VALID_PRECISIONS = ("n", "u", "ms", "s", "m", "h")

_INFLUX_ERRORS = (InfluxDBClientError, InfluxDBServerError, RequestException)


@dataclass
class InfluxOptions:
    """Opciones de conexión a InfluxDB."""
    server: str = "http://localhost:8086"
    username: str = ""
    password: str = ""
    database: str = ""
    precision: str = "ms"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "InfluxOptions":
        return cls(
            server=settings.influxdb_server_url,
            username=settings.influxdb_username,
            password=settings.influxdb_password,
            database=settings.influxdb_database,
            precision=settings.influxdb_precision,
        )


class InfluxDBSink(IMetricSink):
    """Escribe Metrics en InfluxDB."""

    def __init__(self, options: InfluxOptions, client_factory=InfluxDBClient):
        self._options = options
        self._client_factory = client_factory
        self._client: Optional[Any] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Crea el cliente HTTP y verifica el servidor con un ping."""
        if self._options.precision not in VALID_PRECISIONS:
            raise ConfigError(f"[Influxdb] invalid precision: {self._options.precision}")

        parsed = urlparse(self._options.server)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ConfigError(f"[Influxdb] invalid server url: {self._options.server}")

        client = self._client_factory(
            host=parsed.hostname,
            port=parsed.port or 8086,
            username=self._options.username,
            password=self._options.password,
            database=self._options.database or None,
            ssl=parsed.scheme == "https",
            verify_ssl=parsed.scheme == "https",
            timeout=PING_TIMEOUT_SECONDS,
        )
        try:
            version = client.ping()
        except _INFLUX_ERRORS as e:
            client.close()
            raise TransportError(f"[Influxdb] error establishing connection: {e}") from e

        self._client = client
        logger.info(
            "[INFLUX] Connected to %s (version=%s, database=%s)",
            self._options.server, version, self._options.database,
        )

    def write(self, metrics: Sequence[Metric]) -> None:
        if not metrics:
            return
        if self._client is None:
            raise SinkError("[Influxdb] write while not connected")

        points = [metric.to_point() for metric in metrics]
        try:
            self._client.write_points(
                points,
                time_precision=self._options.precision,
                database=self._options.database or None,
            )
        except _INFLUX_ERRORS as e:
            raise SinkError(f"[Influxdb] error writing batch points: {e}") from e

        logger.debug("[INFLUX] wrote %d points", len(points))

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
