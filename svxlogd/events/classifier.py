"""Classificação de linhas e extração de campos nomeados.

O padrão por omissão reconhece o login de um nó no refletor com a
identificação do cliente, por exemplo::

    F4ABC-L: Login OK from 192.0.2.10:41000 with protocol version 3.0 [SvxLink/1.8.0 Linux; RaspberryPi; rpi4]

A classificação nunca decide se a linha é gravada: o escritor grava todas.
"""

from __future__ import annotations

import logging
import re
from typing import Pattern, Sequence

from ..system.errors import ParseError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("callsign", "application", "platform", "device", "os", "version")

LOGIN_PATTERN = re.compile(
    r"\b(?P<callsign>[A-Z0-9]{3,}(?:-[A-Z0-9]+)?): Login OK from \S+"
    r".*?\[(?P<application>[^/\]\s]+)/(?P<version>[^\s\]]+)"
    r"(?: (?P<os>[^;\]]+))?"
    r"(?:; (?P<platform>[^;\]]+))?"
    r"(?:; (?P<device>[^\]]+))?\]"
)


class LineClassifier:
    """Aplica um padrão com grupos nomeados e devolve o ExtractedEvent.

    Parâmetros:
        pattern: expressão regular (compilada ou texto) com grupos nomeados.
        required: nomes de grupo que têm de ser capturados para o evento
            ser válido.
    """

    def __init__(self, pattern: Pattern[str] | str = LOGIN_PATTERN, required: Sequence[str] = REQUIRED_FIELDS):
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.required = tuple(required)
        missing = [name for name in self.required if name not in self.pattern.groupindex]
        if missing:
            raise ValueError(f"padrão sem grupos obrigatórios: {', '.join(missing)}")

    def classify(self, line: str) -> dict[str, str] | None:
        """Retorna o dict de campos quando `line` casa; None caso contrário.

        Levanta ParseError quando a estrutura casa mas algum campo
        obrigatório não foi capturado.
        """
        m = self.pattern.search(line)
        if m is None:
            return None
        groups = m.groupdict()
        event = {name: groups[name] for name in self.required if groups.get(name) is not None}
        if len(event) < len(self.required):
            missing = [name for name in self.required if name not in event]
            raise ParseError(f"campos em falta ({', '.join(missing)}) em: {line[:200]}")
        return event
