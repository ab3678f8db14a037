"""Handler de mensajes MQTT.

Drena la cola de entrega del MQTTClient, parsea cada uplink y escribe
las Metrics resultantes en el sink.
"""

from __future__ import annotations

import logging
import queue
from typing import TYPE_CHECKING

from prometheus_client import Counter

from ..domain.errors import LoraIngestError, SinkError
from ..domain.sink_interface import IMetricSink
from ..monitoring.stats import Stats

if TYPE_CHECKING:
    from ...parsers.base import Parser
    from .mqtt_client import MQTTClient

logger = logging.getLogger(__name__)

MESSAGES_HANDLED = Counter(
    "lora_ingest_messages_total",
    "Total MQTT messages handled by the bridge",
    ["status"],  # processed, parse_error, write_error, processing_error
)
METRICS_WRITTEN = Counter(
    "lora_ingest_metrics_written_total",
    "Total metrics written to the sink",
)

POLL_INTERVAL_SECONDS = 0.5
LOG_EVERY = 100
PAYLOAD_PREVIEW = 1000


class MessageHandler:
    """Procesa mensajes MQTT a través del pipeline parser → sink.

    Responsabilidades:
    - Parseo del uplink (el parser decide el formato)
    - Escritura del batch en el sink
    - Tracking de estadísticas

    Un mensaje inválido o una escritura fallida se loggean y se descartan;
    el loop sigue con el próximo mensaje.
    """

    def __init__(
        self,
        client: "MQTTClient",
        parser: "Parser",
        sink: IMetricSink,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self._client = client
        self._parser = parser
        self._sink = sink
        self._poll_interval = poll_interval
        self._stats = Stats()

    def handle(self, topic: str, payload: bytes) -> bool:
        """Procesa un mensaje. Retorna True si las métricas se escribieron."""
        self._stats.mark_received()
        logger.debug("[RECEIVER] received message topic=%s payload=%s", topic, _preview(payload))

        try:
            metrics = self._parser.parse(payload)
        except LoraIngestError as e:
            logger.warning(
                "[RECEIVER] could not parse payload: %s (topic=%s) payload=%s",
                e, topic, _preview(payload),
            )
            self._stats.failed += 1
            MESSAGES_HANDLED.labels(status="parse_error").inc()
            return False

        try:
            self._sink.write(metrics)
        except SinkError as e:
            # Sin reintento: las métricas del batch se pierden
            logger.error("[RECEIVER] could not write %d metrics to sink: %s", len(metrics), e)
            self._stats.write_failed += 1
            MESSAGES_HANDLED.labels(status="write_error").inc()
            return False

        self._stats.processed += 1
        self._stats.metrics_written += len(metrics)
        MESSAGES_HANDLED.labels(status="processed").inc()
        METRICS_WRITTEN.inc(len(metrics))

        if self._stats.processed % LOG_EVERY == 0:
            logger.info("[RECEIVER] %s", self._stats)
        return True

    def run(self) -> None:
        """Loop bloqueante hasta que el cliente se cierre.

        Debe llamarse después de client.connect(): toma la cola y la
        señal `done` de la conexión actual.
        """
        done = self._client.done
        incoming = self._client.incoming
        logger.info("[RECEIVER] started")

        while not done.is_set():
            try:
                message = incoming.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            # done tiene prioridad sobre mensajes ya entregados
            if done.is_set():
                break

            try:
                self.handle(message.topic, message.payload)
            except Exception as e:
                logger.exception("[RECEIVER] Processing error: %s", e)
                self._stats.failed += 1
                MESSAGES_HANDLED.labels(status="processing_error").inc()

        logger.info("[RECEIVER] shutting down receiver. %s", self._stats)

    @property
    def stats(self) -> Stats:
        return self._stats


def _preview(payload: bytes) -> str:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload[:PAYLOAD_PREVIEW]).decode("utf-8", errors="replace")
    return str(payload)[:PAYLOAD_PREVIEW]
