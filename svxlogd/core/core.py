"""Core do daemon: controlador, ingestão e loop principal.

Liga o supervisor da fonte, o escritor diário, o classificador e o sink de
eventos. Dois fluxos correm em paralelo: a ingestão (thread do supervisor)
e o loop de ticks/sinal de término (thread principal). A escrita é
serializada pelo lock do `DailyLogWriter`; o lock de ingestão apenas
garante que nenhuma linha é gravada depois do término.
"""

from __future__ import annotations

import enum
import logging
import signal
import threading
from typing import Callable

from ..events.classifier import LineClassifier
from ..events.sinks import EventSink, build_sink
from ..exporter import prometheus as metrics
from ..source import LineSource, Supervisor, build_source
from ..system.errors import ParseError
from ..system.log_helpers import format_date_for_log
from ..system.maintenance import MaintenanceResult, run_maintenance
from ..system.writer import DailyLogWriter

logger = logging.getLogger(__name__)


class State(str, enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


# ========================
# 1. Controlador
# ========================


class Controller:
    """Máquina de estados Starting -> Running -> ShuttingDown -> Stopped.

    Parâmetros:
        settings: `Settings` imutável do processo.
        source: fonte de linhas supervisionada.
        writer, classifier, sink: colaboradores (criados a partir de
            `settings` quando omitidos).
        today: função que devolve a DayKey corrente (hora local).
    """

    def __init__(
        self,
        settings,
        source: LineSource,
        writer: DailyLogWriter | None = None,
        classifier: LineClassifier | None = None,
        sink: EventSink | None = None,
        today: Callable[[], str] | None = None,
    ):
        self.settings = settings
        self.writer = writer or DailyLogWriter(settings.out_dir, settings.prefix, settings.extension)
        self.classifier = classifier or LineClassifier()
        self.sink = sink or build_sink(settings)
        self.today = today or format_date_for_log
        self.supervisor = Supervisor(source, self.handle_line, settings.restart_wait)

        self._shutdown = threading.Event()
        self._ingest_lock = threading.Lock()
        self._ingest_closed = False
        # originais já arquivados mas ainda não removidos (mantido entre ticks)
        self._archived: dict = {}
        self._state = State.STARTING
        metrics.STATE.state(self._state.value)

    @property
    def state(self) -> State:
        return self._state

    def _set_state(self, state: State) -> None:
        logger.debug("controlador: %s -> %s", self._state.value, state.value)
        self._state = state
        metrics.STATE.state(state.value)

    # ------------------------
    # Fluxo de ingestão (thread do supervisor)
    # ------------------------

    def handle_line(self, line: str) -> None:
        """Grava a linha no ficheiro do dia e envia o evento extraído, se houver.

        A gravação não depende da classificação.
        """
        with self._ingest_lock:
            if self._ingest_closed:
                return
            try:
                self.writer.write_line(line, self.today())
            except OSError as exc:
                metrics.ERRORS.labels(kind="io").inc()
                logger.error("writeLine falhou: %s", exc)
        self._dispatch(line)

    def _dispatch(self, line: str) -> None:
        try:
            event = self.classifier.classify(line)
        except ParseError as exc:
            metrics.EVENTS.labels(outcome="parse_error").inc()
            logger.warning("classificação: %s", exc)
            return
        if event is None:
            return
        try:
            ok = self.sink.send(event)
        except Exception:
            logger.exception("sink falhou para o evento %s", event)
            ok = False
        metrics.EVENTS.labels(outcome="forwarded" if ok else "failed").inc()

    # ------------------------
    # Fluxo do controlador (thread principal)
    # ------------------------

    def tick(self) -> MaintenanceResult | None:
        """Flush do escritor seguido de rotação/compressão/limpeza."""
        try:
            self.writer.flush()
        except OSError as exc:
            metrics.ERRORS.labels(kind="io").inc()
            logger.error("flush falhou: %s", exc)
        try:
            return run_maintenance(
                self.writer, self.today(), self.settings.compress, self.settings.keep, self._archived
            )
        except Exception:
            metrics.ERRORS.labels(kind="maintenance").inc()
            logger.exception("erro na manutenção")
            return None

    def start(self) -> None:
        """Arma o supervisor; o timer é o loop de `run`."""
        self.supervisor.start()
        self._set_state(State.RUNNING)

    def request_shutdown(self, signum: int | None = None) -> None:
        """Pede o término gracioso (seguro a partir de um handler de sinal)."""
        if signum is not None:
            logger.info("sinal %s recebido, terminando...", signal.Signals(signum).name)
        self._shutdown.set()

    def run(self, install_signals: bool = True) -> None:
        """Corre até receber SIGINT/SIGTERM (ou `request_shutdown`)."""
        previous = self._install_signal_handlers() if install_signals else {}
        try:
            self.start()
            while not self._shutdown.wait(self.settings.flush_interval):
                self.tick()
        finally:
            self.shutdown()
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def shutdown(self) -> None:
        """Para a fonte, faz o último flush e fecha o ficheiro corrente."""
        if self._state in (State.SHUTTING_DOWN, State.STOPPED):
            return
        self._set_state(State.SHUTTING_DOWN)
        self._shutdown.set()
        self.supervisor.stop(timeout=self.settings.terminate_timeout + 5)
        with self._ingest_lock:
            self._ingest_closed = True
        try:
            self.writer.flush()
        except OSError as exc:
            logger.error("flush final falhou: %s", exc)
        closed = self.writer.close()
        if closed is not None:
            logger.info("ficheiro %s fechado", closed)
        try:
            self.sink.close()
        except Exception:
            logger.exception("falha ao fechar o sink")
        self._set_state(State.STOPPED)

    def _install_signal_handlers(self) -> dict:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("fora da thread principal; handlers de sinal não instalados")
            return {}
        previous = {}
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, lambda s, _f: self.request_shutdown(s))
        return previous


# ========================
# 2. Loop principal
# ========================


# Função principal do módulo; monta os componentes a partir das configurações e corre até ao término
def run_loop(settings) -> Controller:
    """Cria a fonte e o controlador e bloqueia até ao término gracioso."""
    source = build_source(settings)
    logger.info("fonte de linhas: %s", getattr(source, "description", source))
    controller = Controller(settings, source)
    controller.run()
    return controller
