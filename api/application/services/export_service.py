# api/application/services/export_service.py
#
# Export staged rows of a job as CSV for offline review and correction.
#
# Format: ';' separator, UTF-8 with BOM (opens correctly in Excel pt-BR),
# list fields joined with " | ". beneficiarios use a fixed column list; other
# types export row_number, status, up to 10 mapped fields (first seen order)
# and the validation lists.
from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import date
from pathlib import PurePosixPath

import polars as pl

from api.domain.importacao.entities import ImportJob, ImportJobRow
from api.domain.importacao.errors import JobNaoEncontradoError
from api.domain.importacao.repository import BlobStorage, ImportJobRepository
from api.domain.importacao.value_objects import Usuario
from pipeline.schema.tipos import StatusLinha, TipoDado

from .autorizacao_service import autorizar_leitura

CAMPOS_BENEFICIARIOS = (
    "row_number", "status", "cpf", "nome_completo", "tipo", "titular_cpf",
    "data_nascimento", "email", "telefone", "plano_saude", "plano_vida",
    "plano_odonto", "status_beneficiario", "validation_errors", "validation_warnings",
)
_MAX_CAMPOS_DINAMICOS = 10


@dataclass(frozen=True)
class ArquivoExportado:
    nome: str
    conteudo: bytes
    caminho: str | None = None


def _texto(valor: object) -> str:
    if valor is None:
        return ""
    if isinstance(valor, bool):
        return "true" if valor else "false"
    if isinstance(valor, (list, tuple)):
        return " | ".join(str(v) for v in valor)
    return str(valor)


def _valor_campo(linha: ImportJobRow, campo: str) -> object:
    if campo == "row_number":
        return linha.row_number
    if campo == "status":
        return linha.status.value
    if campo == "validation_errors":
        return linha.validation_errors
    if campo == "validation_warnings":
        return linha.validation_warnings
    if campo == "status_beneficiario":
        return linha.mapped_data.get("status")
    return linha.mapped_data.get(campo)


def campos_exportacao(tipo: TipoDado, linhas: list[ImportJobRow]) -> list[str]:
    if tipo is TipoDado.BENEFICIARIOS:
        return list(CAMPOS_BENEFICIARIOS)
    dinamicos: list[str] = []
    for linha in linhas:
        for chave in linha.mapped_data:
            if chave not in dinamicos:
                dinamicos.append(chave)
    return ["row_number", "status", *dinamicos[:_MAX_CAMPOS_DINAMICOS], "validation_errors", "validation_warnings"]


def gerar_csv(tipo: TipoDado, linhas: list[ImportJobRow]) -> bytes:
    campos = campos_exportacao(tipo, linhas)
    df = pl.DataFrame(
        {campo: [_texto(_valor_campo(linha, campo)) for linha in linhas] for campo in campos},
        schema={campo: pl.Utf8 for campo in campos},
    )
    buffer = io.BytesIO()
    df.write_csv(buffer, separator=";", include_bom=True)
    return buffer.getvalue()


def nome_arquivo(job: ImportJob, status: StatusLinha | None, hoje: date) -> str:
    base = PurePosixPath(job.arquivo_nome).stem or "export"
    sufixo = f"_{status.value}" if status is not None else ""
    return f"{base}{sufixo}_{hoje.isoformat()}.csv"


class ExportService:
    def __init__(self, job_repo: ImportJobRepository, storage: BlobStorage | None = None) -> None:
        self._job_repo = job_repo
        self._storage = storage

    def exportar_linhas(
        self,
        job_id: str,
        usuario: Usuario,
        status: StatusLinha | None = None,
        busca: str | None = None,
        salvar: bool = False,
    ) -> ArquivoExportado:
        job = self._job_repo.buscar(job_id)
        if job is None:
            raise JobNaoEncontradoError(job_id)
        autorizar_leitura(usuario, job.empresa_id)

        linhas = self._job_repo.listar_linhas(job_id, status=status, busca=busca)
        nome = nome_arquivo(job, status, date.today())
        conteudo = gerar_csv(job.data_type, linhas)

        caminho = None
        if salvar and self._storage is not None:
            caminho = self._storage.enviar(
                f"exports/{job.empresa_id}/{nome}", conteudo, "text/csv; charset=utf-8"
            )
        return ArquivoExportado(nome=nome, conteudo=conteudo, caminho=caminho)
