"""Configurações do daemon svxlogd.

Este módulo centraliza os parâmetros do processo: diretório e prefixo dos
logs, período de flush, compressão, retenção, unidade systemd seguida,
backoff de reinício e o destino dos eventos extraídos. Carrega valores a
partir de ``DEFAULTS`` e permite overrides via arquivo ``.env`` ou
variáveis de ambiente (prefixo ``SVXLOGD_*``); a linha de comando tem a
última palavra.

As funções públicas principais são:

- ``load_settings(overrides)`` -> ``Settings`` imutável e validado.
- ``validate_settings(values)`` -> ``Settings`` (levanta ValueError).

Uma configuração inválida é o único erro fatal do daemon.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

from ..exporter.promtail import DEFAULT_LOKI_LABELS, DEFAULT_LOKI_URL
from ..system.log_helpers import sanitize_log_name

logger = logging.getLogger(__name__)

# ========================
# Constantes e padrões globais
# ========================

SOURCES = ("auto", "journal", "replay")
EVENT_SINKS = ("none", "jsonl", "loki")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")

DEFAULTS = {
    "out_dir": "/var/log/svxlink",
    "prefix": "log_svxlink_",
    "extension": "txt",
    "flush_interval": 10.0,
    "compress": True,
    "keep": 14,
    "unit": "svxlink.service",
    "restart_wait": 3.0,
    "max_line_bytes": 1024 * 1024,
    "terminate_timeout": 3.0,
    "source": "auto",
    "replay_file": None,
    "replay_interval": 1.0,
    "event_sink": "none",
    "events_file": None,
    "loki_url": DEFAULT_LOKI_URL,
    "loki_labels": DEFAULT_LOKI_LABELS,
    "exporter_enable": False,
    "exporter_port": 9101,
    "exporter_addr": "127.0.0.1",
    "debug_dir": None,
    "log_level": "INFO",
}

ENV_KEYS = {
    "out_dir": "SVXLOGD_DIR",
    "prefix": "SVXLOGD_PREFIX",
    "extension": "SVXLOGD_EXTENSION",
    "flush_interval": "SVXLOGD_FLUSH_SEC",
    "compress": "SVXLOGD_COMPRESS",
    "keep": "SVXLOGD_KEEP",
    "unit": "SVXLOGD_UNIT",
    "restart_wait": "SVXLOGD_RESTART_WAIT_SEC",
    "max_line_bytes": "SVXLOGD_MAX_LINE_BYTES",
    "terminate_timeout": "SVXLOGD_TERMINATE_TIMEOUT_SEC",
    "source": "SVXLOGD_SOURCE",
    "replay_file": "SVXLOGD_REPLAY_FILE",
    "replay_interval": "SVXLOGD_REPLAY_INTERVAL_SEC",
    "event_sink": "SVXLOGD_EVENT_SINK",
    "events_file": "SVXLOGD_EVENTS_FILE",
    "loki_url": "SVXLOGD_LOKI_URL",
    "loki_labels": "SVXLOGD_LOKI_LABELS",
    "exporter_enable": "SVXLOGD_EXPORTER_ENABLE",
    "exporter_port": "SVXLOGD_EXPORTER_PORT",
    "exporter_addr": "SVXLOGD_EXPORTER_ADDR",
    "debug_dir": "SVXLOGD_DEBUG_DIR",
    "log_level": "SVXLOGD_LOG_LEVEL",
}

_FLOATS = ("flush_interval", "restart_wait", "terminate_timeout", "replay_interval")
_INTS = ("keep", "max_line_bytes", "exporter_port")
_BOOLS = ("compress", "exporter_enable")
_PATHS = ("out_dir", "replay_file", "events_file", "debug_dir")


@dataclass(frozen=True)
# Parâmetros efetivos do processo; imutáveis durante toda a execução
class Settings:
    """Configuração efetiva do daemon (imutável)."""

    out_dir: Path
    prefix: str
    extension: str
    flush_interval: float
    compress: bool
    keep: int
    unit: str
    restart_wait: float
    max_line_bytes: int
    terminate_timeout: float
    source: str
    replay_file: Path | None
    replay_interval: float
    event_sink: str
    events_file: Path | None
    loki_url: str
    loki_labels: str
    exporter_enable: bool
    exporter_port: int
    exporter_addr: str
    debug_dir: Path | None
    log_level: str

    def describe(self) -> list[str]:
        """Linhas legíveis com a configuração efetiva (banner de arranque)."""
        return [f"{f.name:<18}: {getattr(self, f.name)}" for f in fields(self)]


# ========================
# 1. Carregamento das configurações
# ========================


# Função principal do módulo; carrega todas as configurações do ambiente
def load_settings(overrides: dict | None = None, env_file: str | Path | None = None) -> Settings:
    """Carrega configurações combinando DEFAULTS + .env + ambiente + overrides.

    Os overrides (vindos da CLI) ignoram valores None. Levanta ValueError
    quando algum valor é inválido.
    """
    values = dict(DEFAULTS)

    env_path = Path(env_file or os.getenv("SVXLOGD_ENV_FILE", ".env"))
    env_items = _merge_env_items(env_path)
    for name, key in ENV_KEYS.items():
        if key in env_items:
            values[name] = _coerce(name, env_items[key], key)

    for name, raw in (overrides or {}).items():
        if raw is None:
            continue
        if name not in DEFAULTS:
            raise ValueError(f"opção desconhecida: {name}")
        values[name] = _coerce(name, raw, f"--{name.replace('_', '-')}")

    return validate_settings(values)


# ========================
# 2. Funções auxiliares para ambiente e overrides
# ========================


# Auxilia load_settings; criado para centralizar leitura do .env
def _read_env_file(path: Path | str) -> dict:
    """Lê um arquivo `.env` e devolve um dicionário chave->valor.

    Linhas vazias e comentários (começando com '#') são ignorados.
    """
    result: dict[str, str] = {}
    p = Path(path)
    if not p.exists():
        return result
    try:
        with p.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                result[key] = val
    except OSError as exc:
        logger.warning("Falha ao ler .env em %s: %s", p, exc)
        return {}
    return result


# Auxilia load_settings; criado para unir variáveis do ambiente e .env
def _merge_env_items(env_path: Path) -> dict:
    """Retorna um mapeamento combinado de `.env` e env vars do processo.

    As variáveis do processo sobrescrevem o arquivo `.env`.
    """
    env_items = _read_env_file(env_path)
    env_items.update(os.environ)
    return env_items


# Auxilia load_settings; converte texto (env/CLI) para o tipo do campo
def _coerce(name: str, raw, origin: str):
    if raw is None:
        return None
    try:
        if name in _BOOLS:
            if isinstance(raw, bool):
                return raw
            s = str(raw).strip().lower()
            if s in _TRUE:
                return True
            if s in _FALSE:
                return False
            raise ValueError(f"booleano esperado, recebido {raw!r}")
        if name in _FLOATS:
            return float(raw)
        if name in _INTS:
            if isinstance(raw, float) and not raw.is_integer():
                raise ValueError(f"inteiro esperado, recebido {raw!r}")
            return int(raw)
        if name in _PATHS:
            s = str(raw).strip()
            return Path(s) if s else None
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{origin} inválido ('{raw}'): {exc}") from exc
    return str(raw).strip()


# ========================
# 3. Validação
# ========================


# Função principal de validação; normaliza e valida configurações
def validate_settings(values: dict) -> Settings:
    """Valida o dicionário de configurações e devolve `Settings`.

    Levanta ValueError com uma mensagem descritiva para o primeiro problema
    encontrado.
    """
    v = dict(DEFAULTS)
    v.update(values)

    if v["out_dir"] is None:
        raise ValueError("diretório de saída é obrigatório")
    v["out_dir"] = Path(v["out_dir"])

    prefix = v["prefix"] or ""
    if not prefix or sanitize_log_name(prefix) != prefix:
        raise ValueError(f"prefixo inválido: {prefix!r}")
    ext = v["extension"] or ""
    if not ext.isalnum():
        raise ValueError(f"extensão inválida: {ext!r}")

    if v["flush_interval"] <= 0:
        raise ValueError("flush deve ser > 0")
    if v["restart_wait"] < 0:
        raise ValueError("restart-wait deve ser >= 0")
    if v["terminate_timeout"] < 0:
        raise ValueError("terminate-timeout deve ser >= 0")
    if v["replay_interval"] < 0:
        raise ValueError("replay-interval deve ser >= 0")
    if v["max_line_bytes"] < 1024:
        raise ValueError("max-line-bytes deve ser >= 1024")
    if not v["unit"]:
        raise ValueError("unit é obrigatória")

    if v["source"] not in SOURCES:
        raise ValueError(f"source desconhecida: {v['source']!r} (use {', '.join(SOURCES)})")
    if v["source"] == "replay" and not v["replay_file"]:
        raise ValueError("source=replay exige replay-file")
    if v["event_sink"] not in EVENT_SINKS:
        raise ValueError(f"event-sink desconhecido: {v['event_sink']!r} (use {', '.join(EVENT_SINKS)})")
    if v["event_sink"] == "jsonl" and v["events_file"] is None:
        v["events_file"] = v["out_dir"] / "events.jsonl"

    if not 0 < v["exporter_port"] < 65536:
        raise ValueError(f"porta do exporter inválida: {v['exporter_port']}")

    level = str(v["log_level"]).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"nível de log inválido: {v['log_level']!r}")
    v["log_level"] = level

    logger.debug("Configurações validadas")
    return Settings(**v)
