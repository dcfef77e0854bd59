"""Fonte simulada: reproduz um ficheiro de texto linha a linha.

Usada quando o comando real (journalctl) não existe na plataforma, por
exemplo em desenvolvimento. O fim do ficheiro termina o fluxo; o supervisor
trata isso como uma saída normal e volta a reproduzir após o backoff.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterator

from ..system.errors import SpawnError, StreamError
from .base import LineSource, LineStream

logger = logging.getLogger(__name__)


class ReplayStream(LineStream):
    def __init__(self, fh, interval: float):
        self._fh = fh
        self.interval = interval
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._started = False

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            if self._closed.is_set():
                return
            self._started = True
        try:
            for raw in self._fh:
                if self._closed.is_set():
                    return
                yield raw.rstrip("\r\n")
                # espera interrompível pelo close()
                if self.interval > 0 and self._closed.wait(self.interval):
                    return
        except OSError as exc:
            if not self._closed.is_set():
                raise StreamError(f"leitura do ficheiro de replay falhou: {exc}") from exc
        finally:
            self._fh.close()

    @property
    def returncode(self) -> int | None:
        return 0 if self._fh.closed else None

    def close(self) -> None:
        with self._lock:
            self._closed.set()
            # sem iteração em curso ninguém mais fecha o ficheiro
            if not self._started:
                self._fh.close()


class FileReplaySource(LineSource):
    """Reproduz `path` com `interval` segundos entre linhas."""

    def __init__(self, path: str | Path, interval: float = 1.0):
        self.path = Path(path)
        self.interval = interval
        self.description = f"replay:{self.path}"

    def open(self) -> ReplayStream:
        try:
            fh = self.path.open("r", encoding="utf-8", errors="replace")
        except OSError as exc:
            raise SpawnError(f"falha ao abrir ficheiro de replay {self.path}: {exc}") from exc
        logger.info("replay iniciado: %s (intervalo %.2fs)", self.path, self.interval)
        return ReplayStream(fh, self.interval)
