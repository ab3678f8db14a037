"""Core module - Pipeline de ingesta LoRa.

Estructura:
- transport/   → Recepción MQTT y loop de consumo
- domain/      → Metric, errores y contrato del sink
- monitoring/  → Estadísticas
"""
