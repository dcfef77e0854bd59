"""Taxonomia de erros do daemon.

Nenhum destes erros é fatal: cada um fica isolado no ciclo que o originou
(um tick, uma linha, uma execução do subprocesso) e é apenas registado.
A única falha fatal é a validação de configuração no arranque (ValueError).
"""


class SvxlogdError(Exception):
    """Base comum para os erros do daemon."""


class SpawnError(SvxlogdError):
    """O comando externo não pôde ser lançado."""


class StreamError(SvxlogdError):
    """A saída do subprocesso ficou ilegível (ou o processo morreu)."""


class NotOpenError(OSError):
    """`append` chamado sem ficheiro aberto para o dia corrente."""


class CompressionError(SvxlogdError):
    """Falha de leitura/escrita/rename ao arquivar um ficheiro.

    Quando ``partial`` é True o archive foi criado com sucesso e apenas a
    remoção do original falhou; ``archive`` aponta para o ficheiro .gz e
    ``size`` é o número de bytes do original que já estão no archive.
    """

    def __init__(self, message: str, archive=None, partial: bool = False, size: int | None = None):
        super().__init__(message)
        self.archive = archive
        self.partial = partial
        self.size = size


class PruneError(SvxlogdError):
    """Falha ao remover (ou listar) archives durante a limpeza."""


class ParseError(SvxlogdError):
    """A linha casou com o padrão mas faltam campos capturados."""
