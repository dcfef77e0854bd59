"""Helpers de manutenção (rotação por dia, compressão e limpeza por retenção).

Executados a cada tick do controlador, depois do flush. A ordem é sempre
rotação -> compressão -> limpeza, para que a limpeza só veja archives
completos.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..exporter import prometheus as metrics
from .errors import CompressionError, PruneError
from .log_helpers import compress_file, day_from_filename, prune_archives
from .writer import DailyLogWriter

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceResult:
    """Resumo do que um tick de manutenção fez."""

    rotated: Path | None = None
    compressed: list[Path] = field(default_factory=list)
    pruned: list[Path] = field(default_factory=list)


def _maintenance_rotate(writer: DailyLogWriter, today: str) -> Path | None:
    """Fecha o ficheiro aberto quando pertence a um dia anterior a `today`.

    Retorna o caminho fechado (ou None quando não houve rotação).
    """
    current = writer.current_day
    if not current or current == today:
        return None
    closed = writer.close(day=current)
    if closed is not None:
        logger.info("rotação: %s fechado (dia %s -> %s)", closed, current, today)
        metrics.ROTATIONS.inc()
    return closed


def pending_files(writer: DailyLogWriter, today: str) -> list[Path]:
    """Ficheiros de dias anteriores a `today` ainda por comprimir.

    Inclui dias que a ingestão já trocou por conta própria e originais
    deixados por uma compressão falhada. Nunca inclui o ficheiro aberto.
    """
    directory = writer.directory
    if not directory.is_dir():
        return []
    open_day = writer.current_day
    found = []
    for p in sorted(directory.iterdir()):
        day = day_from_filename(p.name, writer.prefix, writer.extension)
        if day is None or day >= today or day == open_day:
            continue
        if p.is_file():
            found.append(p)
    return found


def _retry_archived(p: Path, archived: dict[Path, int]) -> Path | None:
    """Trata um original cujo archive já foi criado num tick anterior.

    Sem bytes novos apenas tenta de novo a remoção; com linhas tardias
    acrescenta só a cauda ao archive existente. Retorna o archive quando
    houve compressão nova.
    """
    done = archived[p]
    try:
        size = p.stat().st_size
    except FileNotFoundError:
        archived.pop(p, None)
        return None
    if size <= done:
        try:
            p.unlink()
        except OSError as exc:
            logger.debug("remoção de %s ainda falha: %s", p, exc)
            return None
        archived.pop(p, None)
        logger.info("original %s removido (archive já existente)", p)
        return None
    logger.info("comprimindo %d bytes tardios de %s", size - done, p)
    return _compress_one(p, archived, offset=done)


def _compress_one(p: Path, archived: dict[Path, int], offset: int = 0) -> Path | None:
    try:
        gz = compress_file(p, offset=offset)
    except CompressionError as exc:
        metrics.ERRORS.labels(kind="compression").inc()
        if not exc.partial:
            logger.error("compressão: %s", exc)
            return None
        archived[p] = exc.size
        logger.warning("compressão: %s", exc)
        gz = exc.archive
    else:
        archived.pop(p, None)
    metrics.ARCHIVES_CREATED.inc()
    return gz


def _maintenance_compress(writer: DailyLogWriter, today: str, archived: dict[Path, int]) -> list[Path]:
    """Comprime os ficheiros pendentes; falhas deixam o original no lugar.

    `archived` guarda, entre ticks, os originais cujo archive já existe mas
    que não puderam ser removidos, e quantos bytes deles já foram
    arquivados. Esses nunca são comprimidos de novo por inteiro.
    """
    created: list[Path] = []
    for p in pending_files(writer, today):
        if p in archived:
            gz = _retry_archived(p, archived)
        else:
            logger.info("comprimindo %s", p)
            gz = _compress_one(p, archived)
        if gz is not None:
            created.append(gz)
    return created


def _maintenance_prune(writer: DailyLogWriter, keep: int) -> list[Path]:
    """Aplica a janela de retenção aos archives do prefixo configurado."""
    try:
        removed = prune_archives(writer.directory, writer.prefix, keep, writer.extension)
    except PruneError as exc:
        logger.error("limpeza: %s", exc)
        metrics.ERRORS.labels(kind="prune").inc()
        return []
    if removed:
        metrics.ARCHIVES_PRUNED.inc(len(removed))
    return removed


def run_maintenance(
    writer: DailyLogWriter,
    today: str,
    compress: bool,
    keep: int,
    archived: dict[Path, int] | None = None,
) -> MaintenanceResult:
    """Executa a manutenção de um tick.

    Fecha o dia anterior quando o dia mudou, comprime (se ativo) todos os
    ficheiros de dias passados e, quando algo foi rodado ou comprimido,
    aplica a retenção. O chamador mantém `archived` entre ticks (ver
    `_maintenance_compress`).
    """
    if archived is None:
        archived = {}
    result = MaintenanceResult()
    result.rotated = _maintenance_rotate(writer, today)
    if compress:
        result.compressed = _maintenance_compress(writer, today, archived)
    if result.rotated is not None or result.compressed:
        result.pruned = _maintenance_prune(writer, keep)
    return result
