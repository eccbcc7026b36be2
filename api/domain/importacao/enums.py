# api/domain/importacao/enums.py
from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType

from .errors import TransicaoInvalidaError


class StatusJob(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY_FOR_REVIEW = "ready_for_review"
    APPROVED = "approved"  # aprovacao reivindicada, gravacao em andamento
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class Papel(StrEnum):
    ADMIN_VIZIO = "admin_vizio"  # super admin, todas as empresas
    ADMIN_EMPRESA = "admin_empresa"
    RH = "rh"
    VISUALIZADOR = "visualizador"


class AcaoAuditoria(StrEnum):
    ANALISAR = "analyze_import"
    APROVAR = "approve_import"
    REJEITAR = "reject_import"


class ResultadoLinhaCommit(StrEnum):
    INSERIDA = "inserted"
    ATUALIZADA = "updated"
    FALHOU = "failed"


PAPEIS_ADMIN = frozenset({Papel.ADMIN_VIZIO, Papel.ADMIN_EMPRESA})

STATUS_TERMINAIS = frozenset({StatusJob.COMPLETED, StatusJob.REJECTED, StatusJob.FAILED})

TRANSICOES: MappingProxyType[StatusJob, frozenset[StatusJob]] = MappingProxyType({
    StatusJob.PENDING: frozenset({StatusJob.PROCESSING, StatusJob.FAILED}),
    StatusJob.PROCESSING: frozenset({StatusJob.READY_FOR_REVIEW, StatusJob.FAILED}),
    StatusJob.READY_FOR_REVIEW: frozenset({StatusJob.APPROVED, StatusJob.REJECTED}),
    StatusJob.APPROVED: frozenset({StatusJob.COMPLETED, StatusJob.FAILED}),
    StatusJob.COMPLETED: frozenset(),
    StatusJob.REJECTED: frozenset(),
    StatusJob.FAILED: frozenset(),
})


def transicao_permitida(de: StatusJob, para: StatusJob) -> bool:
    return para in TRANSICOES[de]


def transicionar(de: StatusJob, para: StatusJob) -> StatusJob:
    """Retorna o novo status ou levanta TransicaoInvalidaError."""
    if not transicao_permitida(de, para):
        raise TransicaoInvalidaError(de.value, para.value)
    return para
