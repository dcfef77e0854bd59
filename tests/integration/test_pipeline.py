"""Pipeline completo: subprocesso real -> supervisor -> escritor -> manutenção."""

import gzip
import sys
import textwrap
import threading
import time

from svxlogd.config.settings import validate_settings
from svxlogd.core.core import Controller, State
from svxlogd.events.sinks import JsonlEventSink
from svxlogd.source import SubprocessLineSource

SCRIPT = textwrap.dedent(
    r"""
    import sys, time
    counter = sys.argv[1]
    try:
        n = int(open(counter).read())
    except (OSError, ValueError):
        n = 0
    open(counter, "w").write(str(n + 1))
    if n == 0:
        print("l1")
        print("F4ABC-L: Login OK from 192.0.2.10:41000 [SvxLink/1.8.0 Linux; RaspberryPi; rpi4]")
    elif n == 1:
        print("l3")
        print("l4")
    else:
        sys.stdout.flush()
        time.sleep(60)
    """
)


class Clock:
    def __init__(self, day):
        self.day = day

    def __call__(self):
        return self.day


def _wait_for(cond, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if cond():
            return True
        time.sleep(0.02)
    return False


def test_reinicios_preservam_todas_as_linhas_e_dia_roda(tmp_path):
    out = tmp_path / "logs"
    settings = validate_settings(
        {
            "out_dir": out,
            "prefix": "p_",
            "flush_interval": 0.05,
            "restart_wait": 0.05,
            "terminate_timeout": 1.0,
            "event_sink": "jsonl",
            "keep": 1,
        }
    )
    script = tmp_path / "fonte.py"
    script.write_text(SCRIPT, encoding="utf-8")
    source = SubprocessLineSource([sys.executable, str(script), str(tmp_path / "contador")])
    clock = Clock("2024-01-01")
    ctl = Controller(settings, source, sink=JsonlEventSink(settings.events_file), today=clock)
    day1 = out / "p_2024-01-01.txt"

    def driver():
        try:
            _wait_for(lambda: day1.exists() and day1.read_text(encoding="utf-8").count("\n") >= 4)
            clock.day = "2024-01-02"
            _wait_for(lambda: (out / "p_2024-01-01.txt.gz").exists())
        finally:
            ctl.request_shutdown()

    t = threading.Thread(target=driver)
    t.start()
    ctl.run(install_signals=False)
    t.join(15)

    assert ctl.state is State.STOPPED
    assert ctl.supervisor.restarts >= 2
    with gzip.open(out / "p_2024-01-01.txt.gz", "rt", encoding="utf-8") as f:
        content = f.read()
    assert content == (
        "l1\n"
        "F4ABC-L: Login OK from 192.0.2.10:41000 [SvxLink/1.8.0 Linux; RaspberryPi; rpi4]\n"
        "l3\nl4\n"
    )
    assert not day1.exists()
    assert '"callsign": "F4ABC-L"' in (out / "events.jsonl").read_text(encoding="utf-8")
