"""Destinos (sinks) para os eventos extraídos.

O controlador chama `send` de forma síncrona para cada evento; qualquer
falha é registada e não volta a ser tentada (entrega best-effort, no máximo
uma tentativa por linha).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from ..exporter.promtail import DEFAULT_LOKI_URL, send_event_to_loki
from ..system.log_helpers import write_json

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Interface mínima de um destino de eventos."""

    @abstractmethod
    def send(self, event: dict[str, str]) -> bool:
        """Entrega um evento; retorna True quando foi aceito."""

    def close(self) -> None:
        """Liberta recursos (no-op por omissão)."""


class NullEventSink(EventSink):
    """Descarta os eventos, apenas os regista em debug."""

    def send(self, event: dict[str, str]) -> bool:
        logger.debug("evento descartado: %s", event)
        return True


class JsonlEventSink(EventSink):
    """Acrescenta cada evento como uma linha JSON a `path`."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def send(self, event: dict[str, str]) -> bool:
        entry = {"ts": datetime.now(timezone.utc).isoformat()}
        entry.update(event)
        try:
            write_json(self.path, entry)
        except OSError as exc:
            logger.error("JsonlEventSink: falha ao escrever %s: %s", self.path, exc)
            return False
        return True


class LokiEventSink(EventSink):
    """Envia cada evento ao Loki via HTTP (ver `svxlogd.exporter.promtail`)."""

    def __init__(self, url: str = DEFAULT_LOKI_URL, labels=None, timeout: float = 5):
        self.url = url
        self.labels = labels
        self.timeout = timeout

    def send(self, event: dict[str, str]) -> bool:
        return send_event_to_loki(event, url=self.url, labels=self.labels, timeout=self.timeout)


def build_sink(settings) -> EventSink:
    """Escolhe o sink a partir de ``settings.event_sink`` (none/jsonl/loki)."""
    kind = settings.event_sink
    if kind == "jsonl":
        return JsonlEventSink(settings.events_file)
    if kind == "loki":
        return LokiEventSink(settings.loki_url, settings.loki_labels)
    return NullEventSink()
