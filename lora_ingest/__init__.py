"""Bridge de uplinks LoRa (MQTT) hacia InfluxDB."""

__version__ = "0.1.0"
