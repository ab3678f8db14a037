"""Abstract interface for the metric sink.

This decouples the MQTT pipeline from the time-series store.
Any store (InfluxDB, in-memory, no-op) can implement this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from .metric import Metric


class IMetricSink(ABC):
    """Abstract interface for a metric sink.

    Implementations:
    - InfluxDBSink: writes points to InfluxDB 1.x
    - NullSink: No-op for testing or dry runs
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection; raises TransportError on failure."""
        pass

    @abstractmethod
    def write(self, metrics: Sequence[Metric]) -> None:
        """Write one batch of metrics.

        Args:
            metrics: Metrics produced from a single MQTT message

        Raises:
            SinkError if the batch could not be written
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class NullSink(IMetricSink):
    """No-op sink that remembers what it was given."""

    def __init__(self) -> None:
        self.written: List[Metric] = []

    def connect(self) -> None:
        return None

    def write(self, metrics: Sequence[Metric]) -> None:
        self.written.extend(metrics)

    def close(self) -> None:
        return None
