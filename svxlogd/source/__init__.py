"""Pacote source: fontes de linhas e o supervisor que as mantém vivas.

`build_source` escolhe a variante a partir das configurações; o controlador
depende apenas da capacidade `LineSource`.
"""

import logging
import shutil

from .base import LineSource, LineStream
from .replay import FileReplaySource
from .subprocess_source import SubprocessLineSource, journal_command
from .supervisor import Supervisor

logger = logging.getLogger(__name__)


def build_source(settings) -> LineSource:
    """Cria a fonte de linhas de acordo com ``settings.source``.

    - ``journal``: `journalctl -u <unit> -f` como subprocesso
    - ``replay``: reprodução de ``settings.replay_file``
    - ``auto``: journal se `journalctl` existir no PATH; senão replay
      quando houver ficheiro configurado; senão journal (as falhas de
      arranque são repetidas com backoff)
    """
    kind = settings.source
    if kind == "auto":
        if shutil.which("journalctl") is None and settings.replay_file:
            logger.warning("journalctl indisponível; usando replay de %s", settings.replay_file)
            kind = "replay"
        else:
            kind = "journal"
    if kind == "replay":
        return FileReplaySource(settings.replay_file, settings.replay_interval)
    return SubprocessLineSource(
        journal_command(settings.unit),
        max_line_bytes=settings.max_line_bytes,
        terminate_timeout=settings.terminate_timeout,
    )


__all__ = [
    "FileReplaySource",
    "LineSource",
    "LineStream",
    "SubprocessLineSource",
    "Supervisor",
    "build_source",
    "journal_command",
]
