"""Pacote events: classificação de linhas e destinos dos eventos extraídos."""

from .classifier import LineClassifier
from .sinks import EventSink, JsonlEventSink, LokiEventSink, NullEventSink, build_sink

__all__ = ["EventSink", "JsonlEventSink", "LineClassifier", "LokiEventSink", "NullEventSink", "build_sink"]
