"""Codec del payload binario embebido (base64) en los mensajes LoRa.

Layout (6 o 7 bytes, big-endian):

    byte 0..2  latitud  * 10000 (uint24)
    byte 3..5  longitud * 10000 (uint24)
    byte 6     potencia de transmisión (int8, opcional)
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Tuple, Union

import orjson

from ..core.domain.errors import FormatError, InvalidPayload

LOCATION_MULTIPLIER = 10000.0
MIN_LOCATION_SIZE = 6
POWER_SIZE = 7


@dataclass(frozen=True)
class Payload:
    """Payload crudo decodificado.

    El largo sólo se valida en get_location / get_power, no al decodificar.
    """

    size: int = 0
    data: bytes = b""

    @classmethod
    def decode(cls, text: Union[str, bytes]) -> "Payload":
        """Decodifica el token JSON (string entre comillas con base64)."""
        try:
            value = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise FormatError("[Payload] error unquoting raw payload (base64)") from e
        if not isinstance(value, str):
            raise FormatError(
                f"[Payload] raw payload must be a quoted string, got {type(value).__name__}"
            )
        return cls.from_base64(value)

    @classmethod
    def from_base64(cls, value: str) -> "Payload":
        """Decodifica base64 estándar ya sin comillas."""
        try:
            data = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FormatError("[Payload] error decoding raw payload (base64)") from e
        return cls(size=len(data), data=bytes(data))

    def encode(self) -> str:
        """Inverso de decode: base64 entre comillas, también para size 0."""
        encoded = base64.b64encode(self.data[: self.size]).decode("ascii")
        return orjson.dumps(encoded).decode("utf-8")

    def is_valid(self) -> bool:
        return MIN_LOCATION_SIZE <= len(self.data) <= POWER_SIZE

    def get_location(self) -> Tuple[float, float]:
        """Retorna (latitud, longitud) en grados."""
        if not self.is_valid():
            raise InvalidPayload(len(self.data), "6 or 7")

        latitude = int.from_bytes(self.data[0:3], "big") / LOCATION_MULTIPLIER
        longitude = int.from_bytes(self.data[3:6], "big") / LOCATION_MULTIPLIER
        return latitude, longitude

    def get_power(self) -> int:
        """Retorna el byte 6 interpretado como int8."""
        if len(self.data) != POWER_SIZE:
            raise InvalidPayload(len(self.data), "7")
        return int.from_bytes(self.data[6:7], "big", signed=True)
