"""Metric - punto de serie temporal normalizado.

Contrato único que sale de los parsers y entra al sink:
MQTT → Parser → Metric → InfluxDB
"""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from .errors import InvariantError, ValidationError

FieldValue = Union[int, float, bool, str]


class Metric:
    """Punto de dato con nombre, tags indexados y fields agregables.

    Invariantes:
    - name no vacío e inmutable
    - siempre al menos un field

    El constructor copia tags y fields: dos métricas nunca comparten
    el mismo contenedor aunque se creen desde el mismo dict.
    """

    __slots__ = ("_name", "_tags", "_fields", "_timestamp")

    def __init__(
        self,
        name: str,
        tags: Optional[Mapping[str, str]],
        fields: Optional[Mapping[str, FieldValue]],
        timestamp: Optional[datetime] = None,
    ):
        if not name:
            raise ValidationError("[Metric] missing measurement name")
        if not fields:
            raise ValidationError(
                f"[Metric] {name}: missing field(s) (at least one required)"
            )

        self._name = name
        self._tags: Dict[str, str] = dict(tags or {})
        self._fields: Dict[str, FieldValue] = dict(fields)
        self._timestamp = timestamp

    @property
    def name(self) -> str:
        return self._name

    @property
    def tags(self) -> Mapping[str, str]:
        return MappingProxyType(self._tags)

    @property
    def fields(self) -> Mapping[str, FieldValue]:
        return MappingProxyType(self._fields)

    @property
    def timestamp(self) -> Optional[datetime]:
        """None = el mensaje no traía hora; el sink usa "ahora"."""
        return self._timestamp

    def has_tag(self, key: str) -> bool:
        return key in self._tags

    def add_tag(self, key: str, value: str) -> None:
        self._tags[key] = value

    def remove_tag(self, key: str) -> None:
        self._tags.pop(key, None)

    def has_field(self, key: str) -> bool:
        return key in self._fields

    def add_field(self, key: str, value: FieldValue) -> None:
        self._fields[key] = value

    def remove_field(self, key: str) -> None:
        if len(self._fields) == 1:
            raise InvariantError(
                "[Metric] cannot remove last field (at least one required)"
            )
        self._fields.pop(key, None)

    def to_point(self) -> Dict[str, Any]:
        """Convierte a formato de punto InfluxDB (write_points)."""
        point: Dict[str, Any] = {
            "measurement": self._name,
            "tags": dict(self._tags),
            "fields": dict(self._fields),
        }
        if self._timestamp is not None:
            point["time"] = self._timestamp
        return point

    def __repr__(self) -> str:
        return (
            f"Metric(name={self._name!r}, tags={self._tags!r}, "
            f"fields={self._fields!r}, timestamp={self._timestamp!r})"
        )
