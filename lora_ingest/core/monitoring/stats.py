"""Contadores del pipeline MQTT → parser → sink."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Stats:
    """Resultado por mensaje recibido.

    Cada mensaje termina en exactamente uno de: processed, failed
    (no parseable) o write_failed (el sink rechazó el batch).
    """

    received: int = 0
    processed: int = 0
    failed: int = 0
    write_failed: int = 0
    metrics_written: int = 0
    last_message_at: Optional[datetime] = None
    started_at: datetime = field(default_factory=_utcnow)

    def mark_received(self) -> None:
        self.received += 1
        self.last_message_at = _utcnow()

    @property
    def dropped(self) -> int:
        return self.failed + self.write_failed

    @property
    def success_rate(self) -> float:
        total = self.processed + self.dropped
        return self.processed / total if total else 1.0

    @property
    def uptime_seconds(self) -> float:
        return (_utcnow() - self.started_at).total_seconds()

    def __str__(self) -> str:
        return (
            f"received={self.received} processed={self.processed} "
            f"failed={self.failed} write_failed={self.write_failed} "
            f"metrics_written={self.metrics_written}"
        )

    def to_dict(self) -> Dict[str, Any]:
        last = self.last_message_at.isoformat() if self.last_message_at else None
        return {
            "received": self.received,
            "processed": self.processed,
            "failed": self.failed,
            "write_failed": self.write_failed,
            "metrics_written": self.metrics_written,
            "last_message_at": last,
            "started_at": self.started_at.isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 3),
            "success_rate": self.success_rate,
        }
