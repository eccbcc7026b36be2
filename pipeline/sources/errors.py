# pipeline/sources/errors.py
#
# Input errors raised by the parsers.
#
# Both abort the analyze call before any job is created. The API layer maps
# them to 4xx responses; the pipeline itself never imports from api/.
from __future__ import annotations


class EntradaVaziaError(ValueError):
    """Arquivo vazio, sem cabecalho ou sem nenhuma linha de dados."""


class RespostaIAInvalidaError(ValueError):
    """Resposta da extracao de PDF nao e um JSON interpretavel."""

    def __init__(self, message: str, trecho: str = "") -> None:
        super().__init__(message)
        self.trecho = trecho
