import logging
import sys

import pytest

import svxlogd.main as main_mod
from svxlogd.config.settings import ENV_KEYS


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Isola ambiente, nível do logger root e excepthook entre testes."""
    for key in ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SVXLOGD_ENV_FILE", str(tmp_path / "nao-existe.env"))
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers = handlers
    root.setLevel(level)


def test_configuracao_invalida_retorna_2(monkeypatch, caplog):
    called = []
    monkeypatch.setattr(main_mod, "run_loop", lambda s: called.append(s))
    assert main_mod.main(["--flush", "0"]) == 2
    assert called == []
    assert any("configuração inválida" in r.getMessage() for r in caplog.records)


def test_env_invalido_retorna_2(monkeypatch):
    monkeypatch.setenv("SVXLOGD_COMPRESS", "talvez")
    monkeypatch.setattr(main_mod, "run_loop", lambda s: None)
    assert main_mod.main([]) == 2


def test_arranque_normal(monkeypatch, tmp_path):
    seen = {}
    monkeypatch.setattr(main_mod, "run_loop", lambda s: seen.setdefault("settings", s))
    started = []
    monkeypatch.setattr(main_mod, "start_exporter", lambda port, addr: started.append((addr, port)))

    out = tmp_path / "logs"
    assert main_mod.main(["--dir", str(out), "--keep", "4", "-v"]) == 0

    s = seen["settings"]
    assert s.out_dir == out and s.keep == 4 and s.log_level == "DEBUG"
    assert out.is_dir()
    assert started == []
    assert logging.getLogger().level == logging.DEBUG


def test_exporter_ativado(monkeypatch, tmp_path):
    monkeypatch.setattr(main_mod, "run_loop", lambda s: None)
    started = []
    monkeypatch.setattr(main_mod, "start_exporter", lambda port, addr: started.append((addr, port)))
    assert main_mod.main(["--dir", str(tmp_path), "--exporter", "--exporter-port", "9333"]) == 0
    assert started == [("127.0.0.1", 9333)]


def test_debug_dir_instala_handlers(monkeypatch, tmp_path):
    monkeypatch.setattr(main_mod, "run_loop", lambda s: logging.getLogger("svxlogd.teste").info("a correr"))
    debug = tmp_path / "debug"
    assert main_mod.main(["--dir", str(tmp_path / "logs"), "--debug-dir", str(debug)]) == 0

    files = {p.suffix for p in debug.iterdir()}
    assert files == {".txt", ".jsonl"}
    txt = next(debug.glob("svxlogd_debug-*.txt")).read_text(encoding="utf-8")
    assert "a correr" in txt
    assert sys.excepthook.__name__ == "_exc_hook"


def test_debug_handler_nao_duplica(tmp_path):
    root = logging.getLogger()
    main_mod._setup_debug_file_handler(tmp_path)
    count = len(root.handlers)
    main_mod._setup_debug_file_handler(tmp_path)
    assert len(root.handlers) == count


def test_json_formatter():
    fmt = main_mod._get_json_formatter()
    rec = logging.LogRecord("svxlogd.x", logging.WARNING, __file__, 1, "olá %s", ("mundo",), None)
    out = fmt.format(rec)
    assert '"msg": "olá mundo"' in out
    assert '"level": "WARNING"' in out
