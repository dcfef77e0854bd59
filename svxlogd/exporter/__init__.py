"""Pacote exporter: integrações com sistemas externos de observabilidade.

Fornece as métricas Prometheus do daemon e o cliente de push do Loki.
"""

from .prometheus import start_exporter
from .promtail import send_event_to_loki

__all__ = ["start_exporter", "send_event_to_loki"]
