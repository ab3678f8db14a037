"""Parser para uplinks JSON de DingNet.

Mismo esquema general que TTN pero sin identificador de dispositivo,
con `gtw_id` por gateway y la hora tomada de metadata.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field

from ..core.domain.errors import ValidationError
from ..core.domain.metric import Metric
from .base import DATA_RATE_METRICS, EnvelopeModel, Parser, RawPayload, Timestamp, format_float
from .payload import Payload

# data_rate → índice DR (EU868)
DATA_RATE_INDEX: Dict[str, int] = {
    "SF7BW125": 5,
    "SF8BW125": 4,
    "SF9BW125": 3,
    "SF10BW125": 2,
    "SF11BW125": 1,
    "SF12BW125": 0,
}

LOCATION_PRECISION = 4


class DingNetGateway(EnvelopeModel):
    gateway_id: str = Field("", alias="gtw_id")
    timestamp: int = 0
    time: Timestamp = None
    channel: int = 0
    rssi: int = 0
    snr: float = 0.0
    rf_chain: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0


class DingNetMetadata(EnvelopeModel):
    time: Timestamp = None
    frequency: float = 0.0
    modulation: str = ""
    data_rate: str = ""
    coding_rate: str = ""
    gateways: Optional[List[DingNetGateway]] = None


class DingNetMessage(EnvelopeModel):
    """Schema del envelope de uplink DingNet."""

    port: int = 0
    counter: int = 0
    payload_raw: RawPayload = Payload()
    metadata: DingNetMetadata = Field(default_factory=DingNetMetadata)


class DingNetParser(Parser):
    """Convierte uplinks DingNet en Metrics (una por gateway).

    - Timestamp: metadata.time (igual para todas las gateways)
    - Lat/lon con 4 decimales
    - Campo `dr` sólo para las métricas de data rate (adr / ddr)
    """

    log_prefix = "[DingNetParser]"

    def parse(self, data: bytes) -> List[Metric]:
        message = self._load(data, DingNetMessage)

        gateways = message.metadata.gateways or []
        if not gateways:
            raise ValidationError(f"{self.log_prefix} wrong number of gateways (0)")

        tags = self._base_tags(message.metadata.frequency, message.metadata.data_rate)
        if self.is_location_metric:
            tags.update(self._location_tags(message.payload_raw, LOCATION_PRECISION))

        fields = {"size": message.payload_raw.size}

        metrics: List[Metric] = []
        for gateway in gateways:
            metric = Metric(self.metric_name, tags, fields, message.metadata.time)

            if self.is_location_metric:
                metric.add_field("rssi", gateway.rssi)
                metric.add_field("snr", gateway.snr)
            else:
                metric.add_tag("rssi", str(gateway.rssi))
                metric.add_tag("snr", format_float(gateway.snr))
                if self.metric_name in DATA_RATE_METRICS:
                    metric.add_field(
                        "dr", DATA_RATE_INDEX.get(message.metadata.data_rate, 0)
                    )

            metric.add_tag("gateway_id", gateway.gateway_id)
            metrics.append(metric)

        return metrics
