"""Ponto de entrada do daemon svxlogd.

Este módulo realiza a inicialização da aplicação: parsing de argumentos CLI,
carregamento das configurações, configuração de logging, instalação de
handlers de debug e arranque do controlador. Mantemos a lógica de runtime
em `core` para facilitar testes e reutilização.
"""

import json as _json
import logging as _logging
import sys
from pathlib import Path

from . import __version__
from .config.settings import load_settings
from .core.args import get_log_config, parse_args, settings_overrides
from .core.core import run_loop
from .exporter.prometheus import start_exporter
from .system.log_helpers import ensure_dir_writable, format_date_for_log

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main(argv: list[str] | None = None) -> int:
    """Inicializa a aplicação e corre o controlador até ao término.

    Args:
        argv: Lista de argumentos (usada em testes). Quando ``None`` a função
            utiliza os argumentos de linha de comando do processo.

    Returns:
        Código de saída do processo (0 em término gracioso, 2 para
        configuração inválida).

    """
    args = parse_args(argv)
    log_conf = get_log_config(args)
    _logging.basicConfig(level=_logging.INFO, format=_LOG_FORMAT)
    logger = _logging.getLogger(__name__)

    # Configuração inválida é o único erro fatal do daemon
    try:
        settings = load_settings(settings_overrides(args))
    except ValueError as exc:
        logger.error("configuração inválida: %s", exc)
        return 2

    level = log_conf.get("level") or settings.log_level
    _logging.getLogger().setLevel(getattr(_logging, level, _logging.INFO))

    if settings.debug_dir is not None:
        try:
            _setup_debug_file_handler(settings.debug_dir)
        except OSError as exc:
            logger.warning("falha ao configurar debug file handler: %s", exc)

    logger.info("Arranque do svxlogd versão %s", __version__)
    for line in settings.describe():
        logger.info("  %s", line)

    # falha aqui não é fatal: o escritor volta a tentar a cada linha
    ensure_dir_writable(settings.out_dir)

    if settings.exporter_enable:
        start_exporter(settings.exporter_port, settings.exporter_addr)

    run_loop(settings)
    logger.info("svxlogd terminado")
    return 0


def _setup_debug_file_handler(debug_dir: Path) -> None:
    """Instala handlers de ficheiro para debug e hook global de exceções.

    Esta função adiciona dois handlers ao logger root: um human-readable
    (texto) e um JSONL (uma linha de JSON por evento) para ingestão. Ambos os
    handlers são configurados em modo "best-effort": qualquer falha na escrita
    do handler é capturada para evitar que logging provoque falhas no daemon.
    Também instala um ``sys.excepthook`` que envia exceções não tratadas para
    o logger root.
    """
    debug_dir = Path(debug_dir)
    debug_dir.mkdir(parents=True, exist_ok=True)
    debug_path = debug_dir / f"svxlogd_debug-{format_date_for_log(None)}.txt"

    # Handler texto (legível por humanos)
    fh = _logging.FileHandler(str(debug_path), encoding="utf-8")
    fh.setLevel(_logging.INFO)
    fh.setFormatter(_logging.Formatter(_LOG_FORMAT))

    jpath = debug_path.with_suffix(".jsonl")
    jfh = _logging.FileHandler(str(jpath), encoding="utf-8")
    jfh.setLevel(_logging.INFO)
    jfh.setFormatter(_get_json_formatter())

    root = _logging.getLogger()
    if not _has_existing_file_handler(root, fh, jfh):
        _wrap_emit_safe(fh)
        _wrap_emit_safe(jfh)
        root.addHandler(fh)
        root.addHandler(jfh)
    else:
        fh.close()
        jfh.close()

    def _exc_hook(exc_type, exc_value, exc_tb):
        root.error("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))

    sys.excepthook = _exc_hook


# Auxiliares extraídas para reduzir complexidade


def _get_json_formatter():
    class _JSONFormatter(_logging.Formatter):
        def format(self, record):
            obj = {
                "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
                "level": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                obj["exc"] = self.formatException(record.exc_info)
            return _json.dumps(obj, ensure_ascii=False)

    return _JSONFormatter()


def _has_existing_file_handler(root, fh, jfh):
    bases = (getattr(fh, "baseFilename", None), getattr(jfh, "baseFilename", None))
    for h in root.handlers:
        if isinstance(h, _logging.FileHandler) and getattr(h, "baseFilename", None) in bases:
            return True
    return False


def _wrap_emit_safe(handler):
    import types as _types

    orig = handler.emit

    def _emit_safe(self, record):
        try:
            return orig(record)
        except Exception:
            # um handler de diagnóstico nunca derruba o daemon
            sys.stderr.write("svxlogd: debug handler emit failed\n")

    handler.emit = _types.MethodType(_emit_safe, handler)  # type: ignore[assignment]


if __name__ == "__main__":
    sys.exit(main())
