"""Parser - interface común para los formatos de uplink LoRa.

Cada proveedor (TTN, DingNet) implementa esta interface para convertir
su envelope JSON en Metrics normalizadas, una por gateway que recibió
la transmisión.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Mapping, Optional, Type, TypeVar

import orjson
from pydantic import BaseModel, BeforeValidator, PlainValidator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.domain.errors import FormatError, InvalidPayload, ValidationError
from ..core.domain.metric import Metric
from .payload import Payload

logger = logging.getLogger(__name__)

# Nombre de métrica que activa el enriquecimiento con ubicación/potencia
LOCATION_DATA = "coverage"

# Métricas de mantenimiento (uplink / downlink data rate)
DATA_RATE_METRICS = ("adr", "ddr")

ModelT = TypeVar("ModelT", bound=BaseModel)

_FRACTION_RE = re.compile(r"\.(\d+)")


def format_float(value: float, precision: Optional[int] = None) -> str:
    """Formatea un float como decimal sin exponente.

    precision=None → representación más corta que preserva el valor
    (868.3 → "868.3", 8.0 → "8"); si no, número fijo de decimales.
    """
    if precision is not None:
        return f"{value:.{precision}f}"

    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_time(value: Any) -> Optional[datetime]:
    """Parsea timestamps RFC 3339 (fracción en nanosegundos → microsegundos)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")

    normalized = value.strip().replace("Z", "+00:00")
    normalized = _FRACTION_RE.sub(
        lambda m: "." + (m.group(1) + "000000")[:6], normalized, count=1
    )
    try:
        return datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ValueError(f"invalid timestamp {value!r}: {e}") from e


def _coerce_payload(value: Any) -> Payload:
    if value is None:
        return Payload()
    if isinstance(value, Payload):
        return value
    if not isinstance(value, str):
        raise ValueError("payload_raw must be a base64 string")
    try:
        return Payload.from_base64(value)
    except FormatError as e:
        raise ValueError(str(e)) from e


# Tipos anotados compartidos por los schemas de cada proveedor
RawPayload = Annotated[Payload, PlainValidator(_coerce_payload)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(parse_time)]


class EnvelopeModel(BaseModel):
    """Base de los schemas de envelope.

    Un `null` explícito equivale a la clave ausente: el campo queda en
    su valor por defecto.
    """

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Parser(ABC):
    """Interface común para todos los parsers de uplink."""

    log_prefix = "[Parser]"

    def __init__(self, metric_name: str):
        if not metric_name:
            raise ValidationError(f"{self.log_prefix} name cannot be empty")
        self._metric_name = metric_name
        self._default_tags: Dict[str, str] = {}

    @property
    def metric_name(self) -> str:
        return self._metric_name

    @property
    def default_tags(self) -> Dict[str, str]:
        return self._default_tags

    @property
    def is_location_metric(self) -> bool:
        return self._metric_name == LOCATION_DATA

    def set_default_tags(self, tags: Mapping[str, str]) -> None:
        self._default_tags = dict(tags)

    @abstractmethod
    def parse(self, data: bytes) -> List[Metric]:
        """Parsea el payload crudo de un mensaje MQTT.

        Args:
            data: Bytes del mensaje (JSON UTF-8)

        Returns:
            Una Metric por gateway (nunca vacía)

        Raises:
            FormatError: JSON o schema inválido
            ValidationError: envelope sin gateways
        """
        pass

    def _load(self, data: bytes, schema: Type[ModelT]) -> ModelT:
        """JSON → modelo pydantic del proveedor."""
        try:
            document = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise FormatError(
                f"{self.log_prefix} error unmarshalling byte buffer: {_preview(data)}"
            ) from e
        if not isinstance(document, dict):
            raise FormatError(
                f"{self.log_prefix} expected a JSON object: {_preview(data)}"
            )
        try:
            return schema.model_validate(document)
        except PydanticValidationError as e:
            raise FormatError(
                f"{self.log_prefix} invalid message ({e.error_count()} errors): {_preview(data)}"
            ) from e

    def _base_tags(self, frequency: float, data_rate: str) -> Dict[str, str]:
        tags = dict(self._default_tags)
        tags["frequency"] = format_float(frequency)
        tags["data_rate"] = data_rate
        return tags

    def _location_tags(
        self,
        payload: Payload,
        precision: Optional[int] = None,
    ) -> Dict[str, str]:
        """Tags de potencia y ubicación; best-effort, nunca falla."""
        tags: Dict[str, str] = {}
        try:
            tags["power"] = str(payload.get_power())
        except InvalidPayload as e:
            logger.debug("%s no power in payload: %s", self.log_prefix, e)
        try:
            latitude, longitude = payload.get_location()
        except InvalidPayload as e:
            logger.debug("%s no location in payload: %s", self.log_prefix, e)
        else:
            tags["latitude"] = format_float(latitude, precision)
            tags["longitude"] = format_float(longitude, precision)
        return tags


def _preview(data: Any, limit: int = 1000) -> str:
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode("utf-8", errors="replace")
    else:
        text = str(data)
    return text[:limit]
