"""Parser para uplinks JSON de The Things Network (v2).

Formato esperado (topic `<app>/devices/<dev>/up`):
{
    "app_id": "lora_coverage_mapping",
    "dev_id": "sodaq_one_gps_1",
    "payload_raw": "B8hBALggAQ==",
    "payload_fields": {"lat": 51.0017, "lon": 4.7136, "pwr": 1},
    "metadata": {
        "time": "2018-03-13T19:21:22.827671626Z",
        "frequency": 868.3,
        "data_rate": "SF12BW125",
        "gateways": [
            {"gateway_id": "eui-008000000000b88d", "time": "...", "rssi": -84, "snr": 8}
        ]
    }
}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.domain.errors import ValidationError
from ..core.domain.metric import Metric
from .base import EnvelopeModel, Parser, RawPayload, Timestamp, format_float
from .payload import Payload


class TTNGateway(EnvelopeModel):
    gateway_id: str = ""
    timestamp: int = 0
    time: Timestamp = None
    channel: int = 0
    rssi: int = 0
    snr: float = 0.0
    rf_chain: int = 0
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0


class TTNMetadata(EnvelopeModel):
    airtime: int = 0
    time: Timestamp = None
    frequency: float = 0.0
    modulation: str = ""
    data_rate: str = ""
    bit_rate: int = 0
    coding_rate: str = ""
    gateways: Optional[List[TTNGateway]] = None
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0


class TTNMessage(EnvelopeModel):
    """Schema del envelope de uplink TTN."""

    app_id: str = ""
    dev_id: str = ""
    hardware_serial: str = ""
    port: int = 0
    counter: int = 0
    is_retry: bool = False
    confirmed: bool = False
    payload_raw: RawPayload = Payload()
    payload_fields: Optional[Dict[str, Any]] = None
    metadata: TTNMetadata = Field(default_factory=TTNMetadata)


class TTNParser(Parser):
    """Convierte uplinks TTN en Metrics (una por gateway).

    - Timestamp: hora de recepción de cada gateway
    - Lat/lon con precisión completa
    - payload_fields se copian como fields (métricas que no son de cobertura)
    """

    log_prefix = "[TTNParser]"

    def parse(self, data: bytes) -> List[Metric]:
        message = self._load(data, TTNMessage)

        gateways = message.metadata.gateways or []
        if not gateways:
            raise ValidationError(f"{self.log_prefix} wrong number of gateways (0)")

        tags = self._base_tags(message.metadata.frequency, message.metadata.data_rate)
        tags["device_id"] = message.dev_id
        if self.is_location_metric:
            tags.update(self._location_tags(message.payload_raw))

        fields = {"size": message.payload_raw.size}

        metrics: List[Metric] = []
        for gateway in gateways:
            metric = Metric(self.metric_name, tags, fields, gateway.time)

            if self.is_location_metric:
                metric.add_field("rssi", gateway.rssi)
                metric.add_field("snr", gateway.snr)
            else:
                metric.add_tag("rssi", str(gateway.rssi))
                metric.add_tag("snr", format_float(gateway.snr))
                for key, value in _payload_fields(message.payload_fields).items():
                    metric.add_field(key, value)

            metric.add_tag("gateway_id", gateway.gateway_id)
            metrics.append(metric)

        return metrics


def _payload_fields(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Campos decodificados por TTN listos para escribir.

    Todo número JSON se escribe como float: un mismo campo puede llegar
    como 21 en un uplink y como 21.5 en el siguiente, y InfluxDB no admite
    cambiar el tipo de un field. Los valores null se omiten.
    """
    fields: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        fields[key] = value
    return fields
