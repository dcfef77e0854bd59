"""Capacidade "fonte de linhas" usada pelo supervisor.

Uma `LineSource` lança (ou abre) a fonte e devolve um `LineStream`: um
iterável de linhas já decodificadas, sem o terminador, que pode ser
fechado a partir de outra thread para interromper a leitura.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator


class LineStream(ABC):
    """Fluxo de linhas de uma execução da fonte."""

    @abstractmethod
    def __iter__(self) -> Iterator[str]:
        """Produz as linhas à medida que chegam; termina no fim do fluxo."""

    @abstractmethod
    def close(self) -> None:
        """Interrompe o fluxo (idempotente, seguro de outra thread)."""

    @property
    def returncode(self) -> int | None:
        """Código de saída quando aplicável; None se desconhecido."""
        return None

    def __enter__(self) -> "LineStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class LineSource(ABC):
    """Fábrica de fluxos; cada `open` corresponde a um (re)arranque."""

    description = "source"

    @abstractmethod
    def open(self) -> LineStream:
        """Inicia a fonte. Levanta SpawnError se não puder ser lançada."""
