"""Integração com Loki (API de push do Promtail) para eventos extraídos.

Funções principais:
- send_event_to_loki: envia um evento (dict de campos) ao endpoint do Loki
- parse_labels: converte rótulos 'k=v,k2=v2' em dict

Cada evento vira uma linha JSON num único stream; os rótulos do stream vêm
da configuração (``loki_labels``).
"""

import json
import logging
import time

import requests  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_LOKI_URL = "http://loki:3100/loki/api/v1/push"
DEFAULT_LOKI_LABELS = "job=svxlogd"


def parse_labels(labels):
    """Converta rótulos em formato string 'k=v,k2=v2' ou dict para dict com valores string.

    Aceita também strings já no formato '{k="v"}' e retorna um dict {k: v}.
    """
    if labels is None:
        return {}
    if isinstance(labels, dict):
        return {str(k): str(v) for k, v in labels.items()}
    s = str(labels).strip()
    # Caso seja a forma '{k="v"}' -> remove chaves e aspas
    if s.startswith("{") and s.endswith("}"):
        s = s[1:-1].strip()
    parts = [p.strip() for p in s.split(",") if p.strip()]
    out = {}
    for p in parts:
        if "=" in p:
            k, v = p.split("=", 1)
            v = v.strip()
            if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
                v = v[1:-1]
            out[k.strip()] = v
    return out


def build_payload(event: dict, labels=None, timestamp=None) -> dict:
    """Monta o payload aceito por `/loki/api/v1/push`:

    {
      "streams": [
        {"stream": {"k":"v"}, "values": [["<unix_nano>", "<evento em JSON>"]]}
      ]
    }
    """
    if timestamp is None:
        timestamp = str(int(time.time() * 1e9))
    else:
        timestamp = str(timestamp)
    stream = parse_labels(labels if labels is not None else DEFAULT_LOKI_LABELS)
    line = json.dumps(event, ensure_ascii=False, sort_keys=True)
    return {"streams": [{"stream": stream, "values": [[timestamp, line]]}]}


def send_event_to_loki(event: dict, url: str = DEFAULT_LOKI_URL, labels=None, timestamp=None, timeout: float = 5) -> bool:
    """Envia um evento ao Loki; retorna True em sucesso, False em falha (registada)."""
    payload = build_payload(event, labels, timestamp)
    logger.debug("Loki payload: %s", payload)

    try:
        resp = requests.post(url, json=payload, headers={"Content-Type": "application/json"}, timeout=timeout)
        resp.raise_for_status()
        return True
    except requests.RequestException as exc:
        logger.warning("Falha ao enviar evento para Loki: %s", exc)
        return False
