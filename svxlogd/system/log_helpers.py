# vulture: ignore
"""Helpers de baixo nível para o subsistema de logs.

Fornece nomes de ficheiro por dia, compressão atômica para archive,
limpeza por retenção e escrita durável em disco (JSONL).
"""

from pathlib import Path
import os
from datetime import datetime, date
import logging
import gzip
import shutil
import time
import json as _json
import re

import portalocker

from .errors import CompressionError, PruneError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".gz"
TMP_SUFFIX = ".tmp"
DEFAULT_EXTENSION = "txt"

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# -----------------------
# Escrita segura
# -----------------------
def write_text(path: Path, text: str) -> None:
    """Anexe texto a `path` de forma segura, usando lock e fsync.

    Cria o diretório pai quando necessário e aplica um lock exclusivo via
    `portalocker` durante a escrita. Falhas de I/O são propagadas (OSError)
    para que o chamador decida como reportar.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        locked = False
        try:
            try:
                portalocker.lock(fh, portalocker.LOCK_EX)
                locked = True
            except portalocker.LockException as exc:
                logger.debug("write_text: portalocker.lock falhou em %s: %s", path, exc)

            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        finally:
            if locked:
                try:
                    portalocker.unlock(fh)
                except portalocker.LockException as exc:
                    logger.debug("write_text: portalocker.unlock falhou em %s: %s", path, exc)


def write_json(path: Path, obj: dict) -> None:
    """Serialize um objeto como JSONL e anexe ao ficheiro `path`.

    Em caso de objetos não serializáveis por padrão, usa `default=str` como
    fallback e emite um warning.
    """
    try:
        line = _json.dumps(obj, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as exc:
        line = _json.dumps(obj, ensure_ascii=False, default=str) + "\n"
        logger.warning("write_json: fallback default=str usado em %s: %s", path, exc)
    write_text(path, line)


# -----------------------
# Normalização e nomes
# -----------------------
def sanitize_log_name(raw_name: str, fallback: str = "log_") -> str:
    """Sanitize o prefixo/nome de um ficheiro de log para uso seguro no filesystem.

    Remove caracteres potencialmente perigosos e limita o comprimento.
    """
    rn = Path(raw_name or fallback).name.lstrip(".")
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", rn)
    if not name:
        name = fallback
    if len(name) > 200:
        name = name[:200]
    return name


def format_date_for_log(dt=None) -> str:
    """Retorna a DayKey (YYYY-MM-DD, hora local) usada nos nomes de ficheiro."""
    if dt is None:
        return date.today().isoformat()
    if isinstance(dt, datetime):
        return dt.date().isoformat()
    if isinstance(dt, date):
        return dt.isoformat()
    raise TypeError(f"data inválida para DayKey: {dt!r}")


def log_filename(prefix: str, day: str, extension: str = DEFAULT_EXTENSION) -> str:
    """Nome do ficheiro do dia: ``<prefix><YYYY-MM-DD>.<ext>``."""
    return f"{prefix}{day}.{extension}"


def archive_path_for(path: Path) -> Path:
    """Caminho do archive de `path` (``<path>.gz``)."""
    return path.with_name(path.name + ARCHIVE_SUFFIX)


def day_from_filename(name: str, prefix: str, extension: str = DEFAULT_EXTENSION) -> str | None:
    """Extrai a DayKey de um nome ``<prefix><day>.<ext>``; None se não casar."""
    suffix = f".{extension}"
    if not (name.startswith(prefix) and name.endswith(suffix)):
        return None
    day = name[len(prefix) : len(name) - len(suffix)]
    if not _DAY_RE.match(day):
        return None
    try:
        date.fromisoformat(day)
    except ValueError:
        return None
    return day


# -----------------------
# Compressão
# -----------------------
def _remove_tmp(tmp: Path) -> None:
    try:
        tmp.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("compress_file: não foi possível remover temporário %s: %s", tmp, exc)


def compress_file(src: Path, offset: int = 0) -> Path:
    """Comprime `src` para ``<src>.gz`` com escrita temporária + replace atômico.

    O cabeçalho gzip guarda o nome base original e o instante atual. Se o
    archive já existir (linhas tardias de um dia já comprimido), o conteúdo
    anterior é preservado e os novos bytes entram como mais um membro gzip;
    a descompressão devolve a concatenação. `offset` ignora os primeiros
    bytes de `src` (já arquivados numa tentativa anterior).

    O original só é removido depois do rename; se essa remoção falhar o
    archive continua válido e é levantado um CompressionError com
    ``partial=True`` e ``size`` igual aos bytes de `src` já arquivados.
    Qualquer falha anterior ao rename limpa o temporário e deixa o
    original (e o archive anterior) intactos.
    """
    src = Path(src)
    dst_gz = archive_path_for(src)
    tmp = dst_gz.with_name(dst_gz.name + TMP_SUFFIX)
    try:
        with src.open("rb") as rf, tmp.open("wb") as out:
            if dst_gz.exists():
                with dst_gz.open("rb") as prev:
                    shutil.copyfileobj(prev, out)
            if offset:
                rf.seek(offset)
            with gzip.GzipFile(filename=src.name, mode="wb", fileobj=out, mtime=time.time()) as gf:
                shutil.copyfileobj(rf, gf)
            size = rf.tell()
            out.flush()
            os.fsync(out.fileno())
        os.replace(tmp, dst_gz)
    except OSError as exc:
        _remove_tmp(tmp)
        raise CompressionError(f"falha ao comprimir {src}: {exc}") from exc

    try:
        src.unlink()
    except OSError as exc:
        raise CompressionError(
            f"comprimido mas falhou a remoção do original {src}: {exc}", archive=dst_gz, partial=True, size=size
        ) from exc
    return dst_gz


# -----------------------
# Retenção
# -----------------------
def list_archives(directory: Path, prefix: str, extension: str = DEFAULT_EXTENSION) -> list[Path]:
    """Lista os archives ``<prefix>*.<ext>.gz`` de `directory`, do mais antigo ao mais recente.

    A data no nome garante que a ordem lexical é a ordem cronológica.
    """
    suffix = f".{extension}{ARCHIVE_SUFFIX}"
    names = []
    with os.scandir(directory) as it:
        for entry in it:
            if not entry.is_file(follow_symlinks=False):
                continue
            if entry.name.startswith(prefix) and entry.name.endswith(suffix):
                names.append(entry.name)
    return [Path(directory) / n for n in sorted(names)]


def prune_archives(directory: Path, prefix: str, keep: int, extension: str = DEFAULT_EXTENSION) -> list[Path]:
    """Mantém apenas os `keep` archives mais recentes; remove os mais antigos.

    `keep` <= 0 desativa a limpeza. Falhas individuais são registadas e não
    interrompem a remoção dos restantes candidatos. Retorna os caminhos
    efetivamente removidos.
    """
    if keep <= 0:
        return []
    try:
        archives = list_archives(Path(directory), prefix, extension)
    except OSError as exc:
        raise PruneError(f"não foi possível listar {directory}: {exc}") from exc

    if len(archives) <= keep:
        return []

    removed: list[Path] = []
    for p in archives[: len(archives) - keep]:
        try:
            p.unlink()
            removed.append(p)
            logger.info("prune: removido %s", p)
        except OSError as exc:
            err = PruneError(f"falha ao remover {p}: {exc}")
            logger.error("prune: %s", err)
    return removed


# -----------------------
# Diretórios / permissões
# -----------------------
def ensure_dir_writable(p: Path) -> bool:
    """Garante, em melhor esforço, que `p` existe e é gravável."""
    try:
        p.mkdir(parents=True, exist_ok=True)
        test = p / f".touch-{os.getpid()}"
        try:
            # open in append mode to minimize permission surprises
            with open(test, "a", encoding="utf-8") as f:
                f.write("ok")
                f.flush()
        except OSError as exc:
            logger.error("ensure_dir_writable: write test failed for %s: %s", p, exc)
            return False
        finally:
            try:
                test.unlink(missing_ok=True)
            except OSError:
                # nosec B110 - cleanup must not raise in best-effort path
                pass
        return True
    except OSError as exc:
        logger.error("ensure_dir_writable: failed for %s: %s", p, exc)
        return False
