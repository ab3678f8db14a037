"""Excepciones del bridge LoRa → time-series.

Todas heredan de LoraIngestError para que el receptor pueda distinguir
errores de dominio (se loggean y se descarta el mensaje) de fallos
inesperados.
"""

from __future__ import annotations


class LoraIngestError(Exception):
    """Base de todos los errores del bridge."""


class FormatError(LoraIngestError):
    """JSON malformado, base64 inválido o documento que no cumple el schema."""


class ValidationError(LoraIngestError):
    """Entrada bien formada pero semánticamente incompleta."""


class InvalidPayload(LoraIngestError):
    """Payload binario con un largo no permitido para el valor pedido."""

    def __init__(self, size: int, expected: str):
        self.size = size
        self.expected = expected
        super().__init__(f"invalid payload: {size} bytes (expected {expected})")


class InvariantError(LoraIngestError):
    """Operación que rompería un invariante del modelo."""


class StateError(LoraIngestError):
    """Operación en un estado del ciclo de vida que no la permite."""


class ConfigError(LoraIngestError):
    """Configuración inválida detectada antes de tocar la red."""


class SelectionError(LoraIngestError):
    """Tipo de parser desconocido."""


class TransportError(LoraIngestError):
    """Fallo de red al conectar o al hablar con el broker / la base."""


class SinkError(LoraIngestError):
    """Fallo al escribir un batch de métricas."""
