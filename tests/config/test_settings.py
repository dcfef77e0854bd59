from pathlib import Path

import pytest

from svxlogd.config import settings as cfg
from svxlogd.config.settings import DEFAULTS, ENV_KEYS, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(ENV_KEYS.values()) + ["SVXLOGD_ENV_FILE"]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def no_env_file(tmp_path):
    return tmp_path / "nao-existe.env"


def test_defaults(no_env_file):
    s = load_settings(env_file=no_env_file)
    assert s.out_dir == Path("/var/log/svxlink")
    assert s.prefix == "log_svxlink_"
    assert s.extension == "txt"
    assert s.flush_interval == 10.0
    assert s.compress is True
    assert s.keep == 14
    assert s.unit == "svxlink.service"
    assert s.restart_wait == 3.0
    assert s.event_sink == "none"
    assert s.events_file is None
    assert s.log_level == "INFO"
    assert len(s.describe()) == len(DEFAULTS)


def test_precedencia_cli_env_dotenv(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comentário\n"
        "SVXLOGD_KEEP=3\n"
        "SVXLOGD_PREFIX='svx_'\n"
        'SVXLOGD_UNIT="svxreflector.service"\n'
        "linha sem igual\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SVXLOGD_KEEP", "5")
    monkeypatch.setenv("SVXLOGD_COMPRESS", "off")
    monkeypatch.setenv("SVXLOGD_DIR", str(tmp_path / "logs"))

    s = load_settings({"keep": 9, "flush_interval": None}, env_file=env_file)
    assert s.keep == 9
    assert s.prefix == "svx_"
    assert s.unit == "svxreflector.service"
    assert s.compress is False
    assert s.out_dir == tmp_path / "logs"
    assert s.flush_interval == 10.0

    assert load_settings(env_file=env_file).keep == 5


def test_env_file_por_variavel(tmp_path, monkeypatch):
    env_file = tmp_path / "svx.env"
    env_file.write_text("SVXLOGD_FLUSH_SEC=1.5\n", encoding="utf-8")
    monkeypatch.setenv("SVXLOGD_ENV_FILE", str(env_file))
    assert load_settings().flush_interval == 1.5


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"flush_interval": 0}, "flush"),
        ({"flush_interval": "abc"}, "flush"),
        ({"restart_wait": -1}, "restart-wait"),
        ({"prefix": "../x"}, "prefixo"),
        ({"prefix": ""}, "prefixo"),
        ({"extension": "t.xt"}, "extensão"),
        ({"source": "kafka"}, "source"),
        ({"source": "replay"}, "replay-file"),
        ({"event_sink": "s3"}, "event-sink"),
        ({"exporter_port": 70000}, "porta"),
        ({"log_level": "verbose"}, "nível"),
        ({"max_line_bytes": 10}, "max-line-bytes"),
        ({"compress": "talvez"}, "booleano"),
        ({"keep": 1.5}, "inteiro"),
        ({"nao_existe": 1}, "desconhecida"),
    ],
)
def test_valores_invalidos(no_env_file, overrides, fragment):
    with pytest.raises(ValueError, match=fragment):
        load_settings(overrides, env_file=no_env_file)


def test_env_invalido_e_fatal(no_env_file, monkeypatch):
    monkeypatch.setenv("SVXLOGD_KEEP", "muitos")
    with pytest.raises(ValueError, match="SVXLOGD_KEEP"):
        load_settings(env_file=no_env_file)


def test_keep_zero_e_negativo_sao_aceites(no_env_file):
    assert load_settings({"keep": 0}, env_file=no_env_file).keep == 0
    assert load_settings({"keep": -1}, env_file=no_env_file).keep == -1


def test_jsonl_usa_ficheiro_por_omissao(tmp_path, no_env_file):
    s = load_settings({"out_dir": str(tmp_path), "event_sink": "jsonl"}, env_file=no_env_file)
    assert s.events_file == tmp_path / "events.jsonl"


def test_replay_com_ficheiro(tmp_path, no_env_file):
    s = load_settings({"source": "replay", "replay_file": str(tmp_path / "j.txt")}, env_file=no_env_file)
    assert s.replay_file == tmp_path / "j.txt"


def test_settings_imutavel(no_env_file):
    s = load_settings(env_file=no_env_file)
    with pytest.raises(AttributeError):
        s.keep = 1


def test_read_env_file_inexistente(tmp_path):
    assert cfg._read_env_file(tmp_path / "x.env") == {}
