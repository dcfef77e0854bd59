"""Supervisor da fonte de linhas.

Mantém a fonte viva: lança, consome as linhas, e quando o fluxo termina
(saída do processo, EOF ou erro de leitura) regista o evento, espera o
backoff configurado e relança. Falhas ao lançar também esperam o backoff,
nunca há retry sem pausa.

O ciclo é um loop explícito com um `threading.Event` de cancelamento:
`stop()` fecha o fluxo ativo (terminando o subprocesso) e impede novos
arranques.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..exporter import prometheus as metrics
from ..system.errors import SpawnError, StreamError
from .base import LineSource, LineStream

logger = logging.getLogger(__name__)


class Supervisor:
    """Executa `source` em loop e entrega cada linha a `on_line`.

    Parâmetros:
        source: fonte de linhas (subprocesso real ou replay).
        on_line: callback chamado na thread do supervisor para cada linha.
        restart_wait: segundos entre uma saída/falha e o novo arranque.
        stop_event: evento de cancelamento partilhado (opcional).
    """

    def __init__(
        self,
        source: LineSource,
        on_line: Callable[[str], None],
        restart_wait: float = 3.0,
        stop_event: threading.Event | None = None,
    ):
        self.source = source
        self.on_line = on_line
        self.restart_wait = restart_wait
        self._stop = stop_event if stop_event is not None else threading.Event()
        self._stream_lock = threading.Lock()
        self._stream: LineStream | None = None
        self._thread: threading.Thread | None = None
        self.starts = 0
        self.restarts = 0
        self.spawn_failures = 0

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------
    # Ciclo principal
    # ------------------------

    def run(self) -> None:
        """Loop de (re)arranque; retorna apenas depois de `stop()`."""
        desc = getattr(self.source, "description", "source")
        while not self._stop.is_set():
            try:
                stream = self.source.open()
            except SpawnError as exc:
                self.spawn_failures += 1
                metrics.SPAWN_FAILURES.inc()
                logger.error("%s (nova tentativa em %ss)", exc, self.restart_wait)
                self._backoff()
                continue

            if not self._attach(stream):
                stream.close()
                break
            self.starts += 1
            metrics.SOURCE_STARTS.inc()

            try:
                self._consume(stream)
            except StreamError as exc:
                metrics.ERRORS.labels(kind="stream").inc()
                logger.error("erro no fluxo de %s: %s", desc, exc)
            except Exception:
                metrics.ERRORS.labels(kind="stream").inc()
                logger.exception("erro inesperado a ler %s", desc)
            finally:
                self._detach()
                stream.close()

            if self._stop.is_set():
                break
            self.restarts += 1
            logger.warning(
                "fonte %s terminou (código %s); reiniciando em %ss", desc, stream.returncode, self.restart_wait
            )
            self._backoff()
        logger.info("supervisor terminado (%d arranques, %d reinícios)", self.starts, self.restarts)

    def _consume(self, stream: LineStream) -> None:
        for line in stream:
            if self._stop.is_set():
                return
            metrics.LINES.inc()
            try:
                self.on_line(line)
            except Exception:
                logger.exception("erro ao processar linha")

    def _backoff(self) -> None:
        # espera interrompível pelo stop()
        self._stop.wait(self.restart_wait)

    def _attach(self, stream: LineStream) -> bool:
        with self._stream_lock:
            if self._stop.is_set():
                return False
            self._stream = stream
            return True

    def _detach(self) -> None:
        with self._stream_lock:
            self._stream = None

    # ------------------------
    # Controlo externo
    # ------------------------

    def start(self) -> threading.Thread:
        """Corre `run` numa thread daemon dedicada."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name="svxlogd-supervisor", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = 10.0) -> bool:
        """Cancela o loop, fecha o fluxo ativo e espera a thread terminar.

        Retorna False se a thread não terminou dentro de `timeout`.
        """
        self._stop.set()
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            stream.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("supervisor não terminou em %ss", timeout)
                return False
        return True
