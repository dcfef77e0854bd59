"""svxlogd: captura contínua do journal do svxlink em logs diários.

Grava cada linha no ficheiro do dia, comprime os dias fechados, aplica a
retenção dos archives e encaminha os eventos extraídos para um sink.
"""

__version__ = "1.0.0"
