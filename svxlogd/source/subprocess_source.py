"""Fonte de linhas baseada num subprocesso (por omissão `journalctl -f`).

Lê o stdout do processo em modo binário com `readline` limitado: linhas
acima de ``max_line_bytes`` são descartadas até ao próximo newline e
reportadas, sem interromper o fluxo. O encerramento termina a árvore de
processos (filhos via `psutil`) e força `kill` se o término gracioso
demorar mais que ``terminate_timeout``.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Iterator, Sequence

import psutil

from ..exporter import prometheus as metrics
from ..system.errors import SpawnError, StreamError
from .base import LineSource, LineStream

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_BYTES = 1024 * 1024
DEFAULT_TERMINATE_TIMEOUT = 3.0
_DISCARD_CHUNK = 64 * 1024


def journal_command(unit: str) -> list[str]:
    """Comando usado para seguir o journal de uma unidade systemd."""
    return ["journalctl", "-u", unit, "-f", "-o", "short-iso"]


def _strip_terminator(chunk: bytes) -> bytes:
    if chunk.endswith(b"\n"):
        chunk = chunk[:-1]
        if chunk.endswith(b"\r"):
            chunk = chunk[:-1]
    return chunk


def _content_length(chunk: bytes) -> int:
    """Bytes da linha sem o terminador ("\\n" ou "\\r\\n")."""
    return len(_strip_terminator(chunk))


def _decode_line(chunk: bytes) -> str:
    return _strip_terminator(chunk).decode("utf-8", errors="replace")


def terminate_process_tree(proc: subprocess.Popen, timeout: float) -> int | None:
    """Termina `proc` e os seus descendentes; `kill` nos que não saírem a tempo.

    Retorna o código de saída do processo principal.
    """
    if proc.poll() is not None:
        return proc.returncode

    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            continue
    proc.terminate()

    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("processo %s não terminou em %.1fs, forçando kill", proc.pid, timeout)
        proc.kill()
        proc.wait()

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            continue
    return proc.returncode


class SubprocessStream(LineStream):
    """Uma execução do subprocesso e o seu stdout."""

    def __init__(self, proc: subprocess.Popen, max_line_bytes: int, terminate_timeout: float):
        self._proc = proc
        self.max_line_bytes = max_line_bytes
        self.terminate_timeout = terminate_timeout
        self._closed = threading.Event()
        self._close_lock = threading.Lock()

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.poll()

    def __iter__(self) -> Iterator[str]:
        stdout = self._proc.stdout
        if stdout is None:
            raise StreamError("subprocesso sem stdout")
        try:
            while True:
                try:
                    # +2 para caber o terminador "\r\n" de uma linha no limite
                    chunk = stdout.readline(self.max_line_bytes + 2)
                except (OSError, ValueError) as exc:
                    if self._closed.is_set():
                        return
                    raise StreamError(f"leitura do stdout falhou: {exc}") from exc
                if not chunk:
                    return
                if _content_length(chunk) > self.max_line_bytes:
                    skipped = len(chunk)
                    if not chunk.endswith(b"\n"):
                        skipped += self._discard_rest(stdout)
                    metrics.OVERSIZED_LINES.inc()
                    logger.error(
                        "linha com %d bytes excede o limite de %d bytes; descartada", skipped, self.max_line_bytes
                    )
                    continue
                yield _decode_line(chunk)
        finally:
            try:
                stdout.close()
            except OSError as exc:
                logger.debug("falha ao fechar stdout: %s", exc)

    def _discard_rest(self, stdout) -> int:
        """Consome o resto da linha longa; retorna quantos bytes descartou."""
        total = 0
        while True:
            chunk = stdout.readline(_DISCARD_CHUNK)
            total += len(chunk)
            if not chunk or chunk.endswith(b"\n"):
                return total

    def close(self) -> None:
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()
            code = terminate_process_tree(self._proc, self.terminate_timeout)
            logger.debug("subprocesso %s encerrado (código %s)", self._proc.pid, code)


class SubprocessLineSource(LineSource):
    """Lança `argv` e expõe o seu stdout como linhas.

    Parâmetros:
        argv: comando e argumentos (sem shell).
        max_line_bytes: maior linha aceite sem ser descartada.
        terminate_timeout: espera pelo término gracioso antes do kill.
    """

    def __init__(
        self,
        argv: Sequence[str],
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ):
        self.argv = list(argv)
        self.max_line_bytes = max_line_bytes
        self.terminate_timeout = terminate_timeout
        self.description = " ".join(self.argv)

    def open(self) -> SubprocessStream:
        try:
            proc = subprocess.Popen(
                self.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            raise SpawnError(f"falha ao lançar {self.description!r}: {exc}") from exc
        logger.info("subprocesso iniciado: %s (pid %s)", self.description, proc.pid)
        return SubprocessStream(proc, self.max_line_bytes, self.terminate_timeout)
