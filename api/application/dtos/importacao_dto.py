# api/application/dtos/importacao_dto.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from api.domain.importacao.entities import (
    CommitOutcome,
    ComparativoReimportacao,
    ImportJob,
    ImportJobRow,
    ResultadoCommit,
)
from pipeline.schema.tipos import TipoDado


class AnaliseRequestDTO(BaseModel):
    empresa_id: str
    arquivo_path: str
    parent_job_id: str | None = None
    column_mapping: dict[str, str] | None = None
    data_type: TipoDado | None = None


class ImportJobDTO(BaseModel):
    id: str
    empresa_id: str
    data_type: str
    status: str
    arquivo_nome: str
    arquivo_url: str
    total_rows: int
    valid_rows: int
    warning_rows: int
    error_rows: int
    duplicate_rows: int
    column_mapping: dict[str, str]
    ai_summary: str | None
    criado_por: str | None
    aprovado_por: str | None
    data_aprovacao: str | None
    parent_job_id: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, job: ImportJob) -> ImportJobDTO:
        return cls(
            id=job.id,
            empresa_id=job.empresa_id,
            data_type=job.data_type.value,
            status=job.status.value,
            arquivo_nome=job.arquivo_nome,
            arquivo_url=job.arquivo_url,
            total_rows=job.total_rows,
            valid_rows=job.valid_rows,
            warning_rows=job.warning_rows,
            error_rows=job.error_rows,
            duplicate_rows=job.duplicate_rows,
            column_mapping=job.column_mapping,
            ai_summary=job.ai_summary,
            criado_por=job.criado_por,
            aprovado_por=job.aprovado_por,
            data_aprovacao=job.data_aprovacao.isoformat() if job.data_aprovacao else None,
            parent_job_id=job.parent_job_id,
            created_at=job.created_at.isoformat() if job.created_at else None,
        )


class ImportJobRowDTO(BaseModel):
    id: str
    row_number: int
    status: str
    original_data: dict[str, str]
    mapped_data: dict[str, Any]
    validation_errors: list[str] | None
    validation_warnings: list[str] | None

    @classmethod
    def from_domain(cls, linha: ImportJobRow) -> ImportJobRowDTO:
        return cls(
            id=linha.id,
            row_number=linha.row_number,
            status=linha.status.value,
            original_data=linha.original_data,
            mapped_data=linha.mapped_data,
            validation_errors=list(linha.validation_errors) if linha.validation_errors else None,
            validation_warnings=list(linha.validation_warnings) if linha.validation_warnings else None,
        )


class PaginaLinhasDTO(BaseModel):
    total: int
    limit: int
    offset: int
    linhas: list[ImportJobRowDTO]


class CommitFalhaDTO(BaseModel):
    row_number: int
    mensagem: str | None

    @classmethod
    def from_domain(cls, outcome: CommitOutcome) -> CommitFalhaDTO:
        return cls(row_number=outcome.row_number, mensagem=outcome.mensagem)


class ResultadoCommitDTO(BaseModel):
    inserted: int
    updated: int
    errors: int
    falhas: list[CommitFalhaDTO] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, resultado: ResultadoCommit) -> ResultadoCommitDTO:
        return cls(
            inserted=resultado.inseridos,
            updated=resultado.atualizados,
            errors=resultado.erros,
            falhas=[CommitFalhaDTO.from_domain(f) for f in resultado.falhas],
        )


class ComparativoDTO(BaseModel):
    job_id: str
    parent_job_id: str
    parent: dict[str, int]
    atual: dict[str, int]
    erros_resolvidos: int
    avisos_resolvidos: int
    problemas_resolvidos: int
    delta_validas: int
    delta_erros: int
    mensagem: str

    @classmethod
    def from_domain(cls, c: ComparativoReimportacao) -> ComparativoDTO:
        return cls(
            job_id=c.job_id,
            parent_job_id=c.parent_job_id,
            parent={
                "total": c.parent_total,
                "validas": c.parent_validas,
                "avisos": c.parent_avisos,
                "erros": c.parent_erros,
            },
            atual={"total": c.total, "validas": c.validas, "avisos": c.avisos, "erros": c.erros},
            erros_resolvidos=c.erros_resolvidos,
            avisos_resolvidos=c.avisos_resolvidos,
            problemas_resolvidos=c.problemas_resolvidos,
            delta_validas=c.delta_validas,
            delta_erros=c.delta_erros,
            mensagem=c.mensagem,
        )
