"""Domain layer - modelos y contratos del bridge."""

from .errors import (
    ConfigError,
    FormatError,
    InvalidPayload,
    InvariantError,
    LoraIngestError,
    SelectionError,
    SinkError,
    StateError,
    TransportError,
    ValidationError,
)
from .metric import Metric
from .sink_interface import IMetricSink, NullSink

__all__ = [
    "ConfigError",
    "FormatError",
    "InvalidPayload",
    "InvariantError",
    "LoraIngestError",
    "SelectionError",
    "SinkError",
    "StateError",
    "TransportError",
    "ValidationError",
    "Metric",
    "IMetricSink",
    "NullSink",
]
