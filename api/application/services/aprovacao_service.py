# api/application/services/aprovacao_service.py
#
# Approve / reject a staged import.
#
# Design decisions:
#   - The job is claimed with a compare-and-swap ready_for_review → approved
#     before any production write. A second concurrent approve loses the CAS
#     and gets TransicaoInvalidaError, so rows are never committed twice.
#   - Best effort per row: each committable row yields a CommitOutcome
#     (inserted / updated / failed). A failing row is recorded with its
#     message and the loop goes on; the job still ends completed.
#   - Anything that breaks outside the per-row handling (reading the staged
#     rows, the final flip) moves the claimed job approved → failed and
#     propagates.
#   - Rows are rebuilt into their typed record from mapped_data before the
#     write. Nothing loosely typed reaches a production table.
#   - Beneficiarios: titulars are written before dependents so a dependent
#     in the same file finds its titular's id. Otherwise file order.
#   - Staged rows are only read, never rewritten.
from __future__ import annotations

import time

from api.domain.importacao.entities import (
    CommitOutcome,
    ImportJob,
    ImportJobRow,
    RegistroAuditoria,
    ResultadoCommit,
)
from api.domain.importacao.enums import AcaoAuditoria, ResultadoLinhaCommit, StatusJob, transicionar
from api.domain.importacao.errors import JobNaoEncontradoError, TransicaoInvalidaError
from api.domain.importacao.repository import ImportJobRepository, TabelasDominio
from api.domain.importacao.value_objects import CPF, Usuario
from pipeline.log import inicio_operacao, log
from pipeline.schema.registros import BeneficiarioImportado, construir_registro
from pipeline.schema.tipos import TipoDado

from .autorizacao_service import autorizar_escrita


def ordenar_para_commit(job: ImportJob, linhas: list[ImportJobRow]) -> list[ImportJobRow]:
    if job.data_type is not TipoDado.BENEFICIARIOS:
        return sorted(linhas, key=lambda r: r.row_number)
    return sorted(
        linhas,
        key=lambda r: (r.mapped_data.get("tipo") == "dependente", r.row_number),
    )


class AprovacaoService:
    def __init__(self, job_repo: ImportJobRepository, tabelas: TabelasDominio) -> None:
        self._job_repo = job_repo
        self._tabelas = tabelas

    def _buscar_para_acao(self, job_id: str, usuario: Usuario, para: StatusJob) -> ImportJob:
        job = self._job_repo.buscar(job_id)
        if job is None:
            raise JobNaoEncontradoError(job_id)
        autorizar_escrita(usuario, job.empresa_id)
        transicionar(job.status, para)
        return job

    def _reivindicar(self, job: ImportJob, para: StatusJob) -> None:
        if self._job_repo.transicionar(job.id, StatusJob.READY_FOR_REVIEW, para) is None:
            atual = self._job_repo.buscar(job.id)
            raise TransicaoInvalidaError(atual.status.value if atual else job.status.value, para.value)

    # ------------------------------------------------------------------
    # Aprovar
    # ------------------------------------------------------------------

    def aprovar(self, job_id: str, usuario: Usuario) -> ResultadoCommit:
        inicio = time.monotonic()
        inicio_operacao()
        job = self._buscar_para_acao(job_id, usuario, StatusJob.APPROVED)
        self._reivindicar(job, StatusJob.APPROVED)

        try:
            linhas = ordenar_para_commit(job, self._job_repo.listar_linhas_para_commit(job.id))
            log(f"Aprovacao {job.id}: {len(linhas)} linhas para gravar em {job.data_type.value}")

            outcomes = [self._gravar_linha(job, linha) for linha in linhas]
            resultado = ResultadoCommit.de_outcomes(outcomes)

            self._job_repo.transicionar(
                job.id, StatusJob.APPROVED, StatusJob.COMPLETED, aprovado_por=usuario.id
            )
        except Exception as err:
            self._marcar_falha(job, usuario, err, inicio)
            raise
        log(
            f"  {resultado.inseridos} inseridos, {resultado.atualizados} atualizados, "
            f"{resultado.erros} erros"
        )
        self._job_repo.registrar_auditoria(
            RegistroAuditoria(
                usuario_id=usuario.id,
                empresa_id=job.empresa_id,
                acao=AcaoAuditoria.APROVAR.value,
                job_id=job.id,
                data_type=job.data_type.value,
                input_summary=f"Job {job.id}: {len(linhas)} linhas para processar",
                output_summary=(
                    f"Inseridos: {resultado.inseridos}, Atualizados: {resultado.atualizados}, "
                    f"Erros: {resultado.erros}"
                ),
                rows_processed=len(linhas),
                duration_ms=int((time.monotonic() - inicio) * 1000),
            )
        )
        return resultado

    def _marcar_falha(self, job: ImportJob, usuario: Usuario, err: Exception, inicio: float) -> None:
        """approved → failed: o job reivindicado nunca fica preso em approved."""
        log(f"  aprovacao {job.id} interrompida ({type(err).__name__}: {err})")
        self._job_repo.transicionar(job.id, StatusJob.APPROVED, StatusJob.FAILED)
        self._job_repo.registrar_auditoria(
            RegistroAuditoria(
                usuario_id=usuario.id,
                empresa_id=job.empresa_id,
                acao=AcaoAuditoria.APROVAR.value,
                job_id=job.id,
                data_type=job.data_type.value,
                input_summary=f"Job {job.id}",
                output_summary=f"Falha: {type(err).__name__}: {err}",
                duration_ms=int((time.monotonic() - inicio) * 1000),
            )
        )

    def _gravar_linha(self, job: ImportJob, linha: ImportJobRow) -> CommitOutcome:
        try:
            registro = construir_registro(job.data_type, linha.mapped_data)
            if isinstance(registro, BeneficiarioImportado):
                resultado = self._gravar_beneficiario(job.empresa_id, registro)
            else:
                resultado = self._tabelas.upsert_registro(job.empresa_id, registro)
        except Exception as err:  # noqa: BLE001 - falha de uma linha nao aborta o lote
            log(f"  linha {linha.row_number}: falha ao gravar ({type(err).__name__}: {err})")
            return CommitOutcome(linha.row_number, ResultadoLinhaCommit.FALHOU, str(err))
        return CommitOutcome(linha.row_number, resultado)

    def _gravar_beneficiario(self, empresa_id: str, registro: BeneficiarioImportado) -> ResultadoLinhaCommit:
        cpf = CPF(registro.cpf)
        titular_id = None
        if registro.dependente:
            if not registro.titular_cpf:
                raise ValueError("Dependente sem titular_cpf")
            titular_id = self._tabelas.buscar_beneficiario_id(empresa_id, registro.titular_cpf)
            if titular_id is None:
                raise ValueError(f"Titular não encontrado (CPF: {CPF(registro.titular_cpf).mascarado})")

        existente = self._tabelas.buscar_beneficiario_id(empresa_id, cpf.valor)
        if existente is not None:
            self._tabelas.atualizar_beneficiario(existente, registro, titular_id)
            return ResultadoLinhaCommit.ATUALIZADA
        self._tabelas.inserir_beneficiario(empresa_id, registro, titular_id)
        return ResultadoLinhaCommit.INSERIDA

    # ------------------------------------------------------------------
    # Rejeitar
    # ------------------------------------------------------------------

    def rejeitar(self, job_id: str, usuario: Usuario) -> None:
        inicio = time.monotonic()
        inicio_operacao()
        job = self._buscar_para_acao(job_id, usuario, StatusJob.REJECTED)
        self._reivindicar(job, StatusJob.REJECTED)
        log(f"Rejeicao {job.id}: {job.total_rows} linhas descartadas")
        self._job_repo.registrar_auditoria(
            RegistroAuditoria(
                usuario_id=usuario.id,
                empresa_id=job.empresa_id,
                acao=AcaoAuditoria.REJEITAR.value,
                job_id=job.id,
                data_type=job.data_type.value,
                input_summary=f"Job {job.id}",
                output_summary="Importação rejeitada",
                rows_processed=0,
                duration_ms=int((time.monotonic() - inicio) * 1000),
            )
        )
