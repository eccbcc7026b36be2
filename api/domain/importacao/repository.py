# api/domain/importacao/repository.py
from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pipeline.schema.registros import BeneficiarioImportado, Registro
from pipeline.schema.tipos import StatusLinha

from .entities import ImportJob, ImportJobRow, RegistroAuditoria, ResumoGerado
from .enums import ResultadoLinhaCommit, StatusJob
from .value_objects import Usuario


class ImportJobRepository(Protocol):
    def criar_job_com_linhas(self, job: ImportJob, linhas: Sequence[ImportJobRow]) -> None: ...
    def buscar(self, job_id: str) -> ImportJob | None: ...
    def listar_jobs(self, empresa_id: str | None, limit: int, offset: int) -> list[ImportJob]: ...
    def listar_filhos(self, job_id: str) -> list[ImportJob]: ...
    def listar_linhas(
        self,
        job_id: str,
        status: StatusLinha | None = None,
        busca: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ImportJobRow]: ...
    def contar_linhas(self, job_id: str, status: StatusLinha | None = None, busca: str | None = None) -> int: ...
    def listar_linhas_para_commit(self, job_id: str) -> list[ImportJobRow]: ...
    def transicionar(
        self,
        job_id: str,
        de: StatusJob,
        para: StatusJob,
        aprovado_por: str | None = None,
    ) -> ImportJob | None: ...
    def registrar_auditoria(self, registro: RegistroAuditoria) -> None: ...


class TabelasDominio(Protocol):
    """Tabelas de producao (beneficiarios, faturamento, sinistralidade, contratos, movimentacoes)."""
    def cpfs_existentes(self, empresa_id: str) -> set[str]: ...
    def cpfs_titulares(self, empresa_id: str) -> set[str]: ...
    def buscar_beneficiario_id(self, empresa_id: str, cpf: str) -> str | None: ...
    def inserir_beneficiario(
        self, empresa_id: str, registro: BeneficiarioImportado, titular_id: str | None
    ) -> str: ...
    def atualizar_beneficiario(
        self, beneficiario_id: str, registro: BeneficiarioImportado, titular_id: str | None
    ) -> None: ...
    def upsert_registro(self, empresa_id: str, registro: Registro) -> ResultadoLinhaCommit: ...


class BlobStorage(Protocol):
    def baixar(self, caminho: str) -> bytes: ...
    def enviar(self, caminho: str, conteudo: bytes, content_type: str) -> str: ...


class IdentityProvider(Protocol):
    def obter_usuario(self, usuario_id: str) -> Usuario | None: ...


class GeradorResumo(Protocol):
    def gerar(self, prompt_sistema: str, prompt_usuario: str) -> ResumoGerado: ...
