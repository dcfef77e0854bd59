import json
from types import SimpleNamespace

from svxlogd.events import sinks
from svxlogd.events.sinks import JsonlEventSink, LokiEventSink, NullEventSink, build_sink

EVENT = {"callsign": "F4ABC-L", "application": "SvxLink", "version": "1.8.0"}


def test_null_sink_aceita_tudo():
    sink = NullEventSink()
    assert sink.send(EVENT)
    sink.close()


def test_jsonl_sink_acrescenta_linhas(tmp_path):
    path = tmp_path / "ev" / "events.jsonl"
    sink = JsonlEventSink(path)
    assert sink.send(EVENT)
    assert sink.send({"callsign": "SM0XYZ"})

    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["callsign"] for r in rows] == ["F4ABC-L", "SM0XYZ"]
    assert rows[0]["version"] == "1.8.0"
    assert rows[0]["ts"].endswith("+00:00")


def test_jsonl_sink_falha_de_escrita_retorna_false(tmp_path, caplog):
    blocker = tmp_path / "ficheiro"
    blocker.write_text("x")
    sink = JsonlEventSink(blocker / "events.jsonl")
    assert sink.send(EVENT) is False
    assert any("JsonlEventSink" in r.getMessage() for r in caplog.records)


def test_loki_sink_delegates(monkeypatch):
    calls = []

    def fake_send(event, url, labels, timeout):
        calls.append((event, url, labels, timeout))
        return False

    monkeypatch.setattr(sinks, "send_event_to_loki", fake_send)
    sink = LokiEventSink("http://loki:3100/loki/api/v1/push", "job=svx", timeout=2)
    assert sink.send(EVENT) is False
    assert calls == [(EVENT, "http://loki:3100/loki/api/v1/push", "job=svx", 2)]


def test_build_sink(tmp_path):
    def settings(kind):
        return SimpleNamespace(
            event_sink=kind,
            events_file=tmp_path / "e.jsonl",
            loki_url="http://x/push",
            loki_labels="job=a",
        )

    assert isinstance(build_sink(settings("none")), NullEventSink)
    jsonl = build_sink(settings("jsonl"))
    assert isinstance(jsonl, JsonlEventSink) and jsonl.path == tmp_path / "e.jsonl"
    loki = build_sink(settings("loki"))
    assert isinstance(loki, LokiEventSink) and loki.url == "http://x/push" and loki.labels == "job=a"
