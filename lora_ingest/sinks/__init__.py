"""Sinks para las Metrics del bridge."""

from .influxdb import InfluxDBSink, InfluxOptions

__all__ = ["InfluxDBSink", "InfluxOptions"]
