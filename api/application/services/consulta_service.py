# api/application/services/consulta_service.py
from __future__ import annotations

from dataclasses import dataclass

from api.domain.importacao.entities import ImportJob, ImportJobRow
from api.domain.importacao.errors import AcessoNegadoError, JobNaoEncontradoError
from api.domain.importacao.repository import ImportJobRepository
from api.domain.importacao.value_objects import Usuario
from pipeline.schema.tipos import StatusLinha

from .autorizacao_service import autorizar_leitura


@dataclass(frozen=True)
class PaginaLinhas:
    total: int
    linhas: list[ImportJobRow]


class ConsultaImportacaoService:
    """Leitura para a tela de revisao: jobs, linhas filtradas e paginadas."""

    def __init__(self, job_repo: ImportJobRepository) -> None:
        self._job_repo = job_repo

    def obter_job(self, job_id: str, usuario: Usuario) -> ImportJob:
        job = self._job_repo.buscar(job_id)
        if job is None:
            raise JobNaoEncontradoError(job_id)
        autorizar_leitura(usuario, job.empresa_id)
        return job

    def listar_jobs(
        self,
        usuario: Usuario,
        empresa_id: str | None,
        limit: int,
        offset: int,
    ) -> list[ImportJob]:
        if empresa_id is None:
            if usuario.super_admin:
                return self._job_repo.listar_jobs(None, limit, offset)
            if usuario.empresa_id is None:
                raise AcessoNegadoError("Usuário sem empresa vinculada")
            empresa_id = usuario.empresa_id
        autorizar_leitura(usuario, empresa_id)
        return self._job_repo.listar_jobs(empresa_id, limit, offset)

    def listar_linhas(
        self,
        job_id: str,
        usuario: Usuario,
        status: StatusLinha | None,
        busca: str | None,
        limit: int,
        offset: int,
    ) -> PaginaLinhas:
        self.obter_job(job_id, usuario)
        return PaginaLinhas(
            total=self._job_repo.contar_linhas(job_id, status=status, busca=busca),
            linhas=self._job_repo.listar_linhas(job_id, status=status, busca=busca, limit=limit, offset=offset),
        )
