"""Escritor de logs bufferizado e particionado por dia.

O `DailyLogWriter` é o único dono do ficheiro aberto e do seu buffer. Todas
as operações passam por um único lock: o fluxo de ingestão (append) e o
fluxo do controlador (flush/rotação) nunca se intercalam parcialmente.

O escritor não deteta sozinho a mudança de dia; quem o usa decide quando
fechar e reabrir (ver `svxlogd.system.maintenance`).
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import TextIO

import portalocker

from .errors import NotOpenError
from .log_helpers import DEFAULT_EXTENSION, format_date_for_log, log_filename

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 64 * 1024


class DailyLogWriter:
    """Escritor thread-safe com um ficheiro por DayKey.

    Parâmetros:
        directory: diretório de saída (criado na primeira abertura).
        prefix: prefixo do nome de ficheiro.
        extension: extensão sem ponto (``txt`` por omissão).
        buffer_size: tamanho do buffer de escrita em bytes.
    """

    def __init__(
        self,
        directory: str | Path,
        prefix: str,
        extension: str = DEFAULT_EXTENSION,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.extension = extension
        self.buffer_size = buffer_size

        self._lock = threading.Lock()
        self._fh: TextIO | None = None
        self._day = ""

    # ------------------------
    # Estado observável
    # ------------------------

    def path_for_day(self, day: str) -> Path:
        """Caminho do ficheiro de log para a DayKey `day`."""
        return self.directory / log_filename(self.prefix, day, self.extension)

    @property
    def current_day(self) -> str:
        """DayKey do ficheiro aberto ("" quando nenhum está aberto)."""
        with self._lock:
            return self._day

    @property
    def current_path(self) -> Path | None:
        with self._lock:
            return self.path_for_day(self._day) if self._fh is not None else None

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._fh is not None

    # ------------------------
    # Operações
    # ------------------------

    def open_for_day(self, day: str) -> Path:
        """Abre (ou reutiliza) o ficheiro de `day` em modo append.

        Idempotente para o mesmo dia. Ao trocar de dia, faz flush + fsync e
        fecha o ficheiro anterior. Levanta OSError se não for possível criar
        o diretório ou abrir o ficheiro; o chamador tenta de novo na próxima
        escrita.
        """
        with self._lock:
            path = self.path_for_day(day)
            if self._fh is not None and self._day == day:
                return path

            self._close_locked()

            self.directory.mkdir(parents=True, exist_ok=True)
            self._fh = open(path, "a", encoding="utf-8", newline="\n", buffering=self.buffer_size)
            self._day = day
            logger.debug("open_for_day: %s aberto", path)
            return path

    def append(self, line: str) -> None:
        """Acrescenta `line` + newline ao buffer do ficheiro corrente."""
        with self._lock:
            if self._fh is None:
                raise NotOpenError("writer não aberto")
            self._fh.write(line + "\n")

    def write_line(self, line: str, day: str | None = None) -> None:
        """Garante o ficheiro de `day` (hoje por omissão) e acrescenta a linha.

        Uma falha de abertura é apenas registada; o append é tentado mesmo
        assim (pode ainda haver um ficheiro aberto) e levanta NotOpenError
        quando não há nenhum.
        """
        if day is None:
            day = format_date_for_log(None)
        try:
            self.open_for_day(day)
        except OSError as exc:
            logger.error("open_for_day %s falhou: %s", day, exc)
        self.append(line)

    def flush(self) -> None:
        """Envia o buffer ao SO e força a persistência no disco (fsync).

        Sem ficheiro aberto é um no-op.
        """
        with self._lock:
            if self._fh is None:
                return
            self._sync_locked(self._fh)

    def close(self, day: str | None = None) -> Path | None:
        """Faz flush, fsync e fecha o ficheiro corrente; limpa o dia corrente.

        Com `day` definido só fecha se esse ainda for o dia aberto (a ingestão
        pode já ter trocado de ficheiro). Retorna o caminho fechado ou None.
        """
        with self._lock:
            if self._fh is None:
                return None
            if day is not None and day != self._day:
                return None
            return self._close_locked()

    # ------------------------
    # Auxiliares (chamadas com o lock adquirido)
    # ------------------------

    def _sync_locked(self, fh: TextIO) -> None:
        locked = False
        try:
            try:
                portalocker.lock(fh, portalocker.LOCK_EX | portalocker.LOCK_NB)
                locked = True
            except portalocker.LockException as exc:
                logger.debug("flush: lock de %s indisponível: %s", self._day, exc)
            fh.flush()
            os.fsync(fh.fileno())
        finally:
            if locked:
                try:
                    portalocker.unlock(fh)
                except portalocker.LockException as exc:
                    logger.debug("flush: unlock falhou: %s", exc)

    def _close_locked(self) -> Path | None:
        fh = self._fh
        if fh is None:
            return None
        path = self.path_for_day(self._day)
        self._fh = None
        self._day = ""
        try:
            self._sync_locked(fh)
        except OSError as exc:
            logger.error("close: flush/fsync de %s falhou: %s", path, exc)
        finally:
            try:
                fh.close()
            except OSError as exc:
                logger.error("close: falha ao fechar %s: %s", path, exc)
        logger.debug("close: %s fechado", path)
        return path
