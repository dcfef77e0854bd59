"""Parser de argumentos do daemon.

Este módulo fornece um parser simples que expõe:
- diretório, prefixo e extensão dos logs diários
- período de flush, compressão e retenção dos archives
- unidade systemd seguida e backoff de reinício
- fonte de linhas (journal/replay) e destino dos eventos
- opções de logging (nível e verbosidade)

Os argumentos têm default None: a precedência final (CLI > ENV > .env >
default) é resolvida por `svxlogd.config.settings.load_settings`.
"""

import argparse
from typing import Sequence

from .. import __version__

# ========================
# 0. Configuração do parser e argumentos padrão
# ========================

# Argumentos que são repassados como overrides para load_settings
SETTINGS_ARGS = (
    "out_dir",
    "prefix",
    "extension",
    "flush_interval",
    "compress",
    "keep",
    "unit",
    "restart_wait",
    "source",
    "replay_file",
    "event_sink",
    "events_file",
    "exporter_enable",
    "exporter_port",
    "debug_dir",
    "log_level",
)


# Função principal do módulo; cria e retorna o ArgumentParser configurado
def configure_argparser() -> argparse.ArgumentParser:
    """Cria e retorna ArgumentParser configurado para o daemon."""
    parser = argparse.ArgumentParser(
        prog="svxlogd",
        description="Captura o journal do svxlink em ficheiros diários, com compressão e retenção",
    )

    parser.add_argument("--dir", dest="out_dir", default=None, help="Diretório onde gravar os logs")
    parser.add_argument("--prefix", default=None, help="Prefixo do nome dos ficheiros de log")
    parser.add_argument("--ext", dest="extension", default=None, help="Extensão dos ficheiros de log (txt)")
    parser.add_argument(
        "--flush",
        dest="flush_interval",
        type=float,
        default=None,
        help="Flush para disco a cada N segundos",
    )
    parser.add_argument(
        "--compress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Comprimir os logs rotacionados (antigos)",
    )
    parser.add_argument(
        "--keep",
        type=int,
        default=None,
        help="Quantos backups comprimidos manter (os mais antigos são removidos; 0 = sem limite)",
    )
    parser.add_argument("--unit", default=None, help="Unidade systemd para journalctl -u <unit> -f")
    parser.add_argument(
        "--restart-wait",
        dest="restart_wait",
        type=float,
        default=None,
        help="Segundos de espera antes de relançar journalctl quando ele termina",
    )
    parser.add_argument("--source", choices=["auto", "journal", "replay"], default=None, help="Fonte de linhas")
    parser.add_argument("--replay-file", dest="replay_file", default=None, help="Ficheiro usado pela fonte replay")
    parser.add_argument(
        "--event-sink",
        dest="event_sink",
        choices=["none", "jsonl", "loki"],
        default=None,
        help="Destino dos eventos extraídos",
    )
    parser.add_argument("--events-file", dest="events_file", default=None, help="Ficheiro JSONL dos eventos")
    parser.add_argument(
        "--exporter",
        dest="exporter_enable",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Ativa o endpoint Prometheus",
    )
    parser.add_argument("--exporter-port", dest="exporter_port", type=int, default=None, help="Porta do exporter")
    parser.add_argument("--debug-dir", dest="debug_dir", default=None, help="Diretório para os logs de diagnóstico")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Aumenta a verbosidade (-v = DEBUG)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        default=None,
        help="Nível de logging (DEBUG/INFO/WARNING/ERROR). Se ausente, definido por -v",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


# ========================
# 1. Funções auxiliares para análise de argumentos
# ========================


# Auxilia svxlogd.main; criado para analisar argv
def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Analisa argv e retorna o Namespace para uso no programa."""
    parser = configure_argparser()
    return parser.parse_args(argv)


# Auxilia svxlogd.main; extrai os overrides de configuração fornecidos pela CLI
def settings_overrides(args: argparse.Namespace) -> dict:
    """Retorna apenas os argumentos de configuração passados explicitamente."""
    overrides = {}
    for name in SETTINGS_ARGS:
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    level = get_log_config(args).get("level")
    if level is not None:
        overrides["log_level"] = level
    return overrides


# ========================
# 2. Função auxiliar para configuração de logging
# ========================


# Auxilia svxlogd.main; criado para extrair configuração de logging dos argumentos
def get_log_config(args: argparse.Namespace) -> dict:
    """Retorna dict com o nível de logging pedido na CLI (None = usar configuração)."""
    if getattr(args, "log_level", None):
        level = str(args.log_level).upper()
    elif (getattr(args, "verbose", 0) or 0) >= 1:
        level = "DEBUG"
    else:
        level = None
    return {"level": level}
