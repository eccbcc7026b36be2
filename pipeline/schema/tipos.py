from __future__ import annotations

from enum import StrEnum


class TipoDado(StrEnum):
    BENEFICIARIOS = "beneficiarios"
    FATURAMENTO = "faturamento"
    SINISTRALIDADE = "sinistralidade"
    MOVIMENTACOES = "movimentacoes"
    CONTRATOS = "contratos"


class StatusLinha(StrEnum):
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"
    DUPLICATE = "duplicate"
    UPDATED = "updated"


# Somente linhas com estes status sao gravadas nas tabelas de producao.
STATUS_COMITAVEIS = frozenset({StatusLinha.VALID, StatusLinha.WARNING})


def derivar_status(erros: list[str] | tuple[str, ...], avisos: list[str] | tuple[str, ...]) -> StatusLinha:
    """error se houver erro; senao warning se houver aviso; senao valid."""
    if erros:
        return StatusLinha.ERROR
    if avisos:
        return StatusLinha.WARNING
    return StatusLinha.VALID
