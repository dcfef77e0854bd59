"""Métricas Prometheus do daemon.

Contadores para ingestão, reinícios da fonte, rotação, compressão, limpeza
e eventos extraídos, mais o estado corrente do controlador. O servidor HTTP
só é iniciado quando ``exporter_enable`` estiver ativo.
"""

import logging

from prometheus_client import Counter, Enum, start_http_server

logger = logging.getLogger(__name__)

_server_started = False

CONTROLLER_STATES = ["starting", "running", "shutting_down", "stopped"]

LINES = Counter("svxlogd_lines_total", "Linhas recebidas da fonte")
OVERSIZED_LINES = Counter("svxlogd_oversized_lines_total", "Linhas acima do limite descartadas")
SOURCE_STARTS = Counter("svxlogd_source_starts_total", "Arranques (e reinícios) da fonte de linhas")
SPAWN_FAILURES = Counter("svxlogd_spawn_failures_total", "Falhas ao lançar a fonte de linhas")
ROTATIONS = Counter("svxlogd_rotations_total", "Rotações de ficheiro por mudança de dia")
ARCHIVES_CREATED = Counter("svxlogd_archives_created_total", "Archives .gz criados")
ARCHIVES_PRUNED = Counter("svxlogd_archives_pruned_total", "Archives removidos pela retenção")
EVENTS = Counter("svxlogd_events_total", "Eventos extraídos por resultado", ["outcome"])
ERRORS = Counter("svxlogd_errors_total", "Erros não fatais por tipo", ["kind"])
STATE = Enum("svxlogd_controller_state", "Estado do controlador", states=CONTROLLER_STATES)


def start_exporter(port: int = 9101, addr: str = "127.0.0.1") -> bool:
    """Inicia o servidor HTTP do Prometheus no endereço e porta informados.

    Chamadas repetidas são ignoradas. Uma falha ao iniciar é registada e
    retorna False; o daemon continua sem exporter.
    """
    global _server_started
    if _server_started:
        logger.debug("prometheus exporter already started")
        return True

    try:
        start_http_server(port, addr)
    except OSError as exc:
        logger.error("Falha ao iniciar Prometheus exporter em %s:%d: %s", addr, port, exc)
        return False
    _server_started = True
    logger.info("Prometheus exporter iniciado em %s:%d", addr, port)
    return True
