# api/application/services/reimportacao_service.py
from __future__ import annotations

from api.domain.importacao.entities import ComparativoReimportacao, ImportJob
from api.domain.importacao.errors import ImportacaoReferenciaInvalidaError, JobNaoEncontradoError
from api.domain.importacao.repository import ImportJobRepository
from api.domain.importacao.value_objects import Usuario

from .autorizacao_service import autorizar_leitura


def validar_referencia(repo: ImportJobRepository, parent_job_id: str, empresa_id: str) -> ImportJob:
    """O job de origem de uma reimportacao deve existir e ser da mesma empresa."""
    parent = repo.buscar(parent_job_id)
    if parent is None:
        raise JobNaoEncontradoError(parent_job_id)
    if parent.empresa_id != empresa_id:
        raise ImportacaoReferenciaInvalidaError(
            "Importação de origem pertence a outra empresa"
        )
    return parent


def comparar_jobs(parent: ImportJob, filho: ImportJob) -> ComparativoReimportacao:
    return ComparativoReimportacao(
        job_id=filho.id,
        parent_job_id=parent.id,
        parent_total=parent.total_rows,
        parent_validas=parent.valid_rows,
        parent_avisos=parent.warning_rows,
        parent_erros=parent.error_rows,
        total=filho.total_rows,
        validas=filho.valid_rows,
        avisos=filho.warning_rows,
        erros=filho.error_rows,
    )


class ReimportacaoService:
    def __init__(self, job_repo: ImportJobRepository) -> None:
        self._job_repo = job_repo

    def _buscar(self, job_id: str, usuario: Usuario) -> ImportJob:
        job = self._job_repo.buscar(job_id)
        if job is None:
            raise JobNaoEncontradoError(job_id)
        autorizar_leitura(usuario, job.empresa_id)
        return job

    def comparar(self, job_id: str, usuario: Usuario) -> ComparativoReimportacao:
        job = self._buscar(job_id, usuario)
        if job.parent_job_id is None:
            raise ImportacaoReferenciaInvalidaError("Importação não é uma reimportação")
        parent = self._job_repo.buscar(job.parent_job_id)
        if parent is None:
            raise JobNaoEncontradoError(job.parent_job_id)
        return comparar_jobs(parent, job)

    def linhagem(self, job_id: str, usuario: Usuario) -> list[ImportJob]:
        """Cadeia de importacoes da raiz ate job_id (inclusive)."""
        job = self._buscar(job_id, usuario)
        cadeia = [job]
        vistos = {job.id}
        while cadeia[-1].parent_job_id is not None:
            parent_id = cadeia[-1].parent_job_id
            if parent_id in vistos:
                break
            parent = self._job_repo.buscar(parent_id)
            if parent is None:
                break
            vistos.add(parent.id)
            cadeia.append(parent)
        cadeia.reverse()
        return cadeia

    def reimportacoes(self, job_id: str, usuario: Usuario) -> list[ImportJob]:
        self._buscar(job_id, usuario)
        return self._job_repo.listar_filhos(job_id)
