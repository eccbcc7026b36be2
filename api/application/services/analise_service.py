# api/application/services/analise_service.py
#
# Analyze: uploaded file → staged ImportJob ready for review.
#
# Imperative shell around the pipeline core: IO (blob storage, domain table
# lookups, AI gateway, staging store) happens here; parsing, detection,
# mapping and validation are the pure functions under pipeline/.
#
# Design decisions:
#   - Authorization and the parent-job check run before the file is read.
#   - Input errors (file missing, empty file, unparseable AI JSON, bad
#     mapping) propagate before anything is written: no job is created.
#   - The job goes pending → processing → ready_for_review in memory and is
#     persisted once, header and rows in one transaction, so no reader ever
#     sees a job whose total_rows differs from its persisted rows.
#   - The AI summary is best effort. On ResumoIndisponivelError (or when no
#     gateway is configured) the templated summary is stored instead.
from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from pathlib import PurePosixPath

from api.domain.importacao.entities import ImportJob, ImportJobRow, RegistroAuditoria, ResumoGerado
from api.domain.importacao.enums import AcaoAuditoria, StatusJob
from api.domain.importacao.errors import ArquivoIndisponivelError, ResumoIndisponivelError
from api.domain.importacao.repository import BlobStorage, GeradorResumo, ImportJobRepository, TabelasDominio
from api.domain.importacao.value_objects import Usuario
from pipeline.log import inicio_operacao, log
from pipeline.schema.registry import detectar_tipo, mapear_colunas, validar_mapeamento
from pipeline.schema.tipos import TipoDado
from pipeline.sources.base import ArquivoParseado, FonteImportacao
from pipeline.sources.pdf.parse import ExtracaoPDF
from pipeline.sources.planilha.parse import PlanilhaCSV
from pipeline.validate.lote import ResultadoLote, validar_lote

from .autorizacao_service import autorizar_escrita
from .reimportacao_service import validar_referencia

_FONTE_CSV = PlanilhaCSV()
_FONTE_PDF = ExtracaoPDF()

_PROMPT_SISTEMA = (
    "Você é um assistente especializado em análise de dados para importação em sistemas "
    "de gestão de benefícios corporativos. Seja conciso e objetivo. "
    "Responda sempre em português do Brasil."
)

_AMOSTRA_LINHAS = 5


def escolher_fonte(arquivo_path: str) -> FonteImportacao:
    """.json (resultado da extracao de PDF) → ExtracaoPDF; qualquer outro → CSV."""
    if arquivo_path.lower().endswith(".json"):
        return _FONTE_PDF
    return _FONTE_CSV


def resumo_padrao(tipo: TipoDado, lote: ResultadoLote) -> str:
    c = lote.contagens
    return (
        f"Resumo automático: {c.total} linhas detectadas como {tipo.value}. "
        f"{c.validas} válidas, {c.avisos} com avisos, {c.erros} com erros."
    )


def _prompt_resumo(
    tipo: TipoDado,
    arquivo: ArquivoParseado,
    mapeamento: Mapping[str, str],
    lote: ResultadoLote,
) -> str:
    c = lote.contagens
    amostra = [linha.valores for linha in arquivo.linhas[:_AMOSTRA_LINHAS]]
    return (
        "Analise estes dados de importação e forneça um resumo conciso em português:\n\n"
        f"Tipo detectado: {tipo.value}\n"
        f"Total de linhas: {c.total}\n"
        f"Linhas válidas: {c.validas}\n"
        f"Linhas com avisos: {c.avisos}\n"
        f"Linhas com erros: {c.erros}\n"
        f"Duplicados: {c.duplicadas}\n\n"
        f"Colunas encontradas: {', '.join(arquivo.headers)}\n"
        f"Mapeamento aplicado: {json.dumps(dict(mapeamento), ensure_ascii=False)}\n\n"
        f"Amostra (primeiras {_AMOSTRA_LINHAS} linhas):\n"
        f"{json.dumps(amostra, ensure_ascii=False, indent=2)}\n\n"
        "Forneça:\n"
        "1. Um resumo do que será importado (2-3 frases)\n"
        "2. Principais problemas encontrados (se houver)\n"
        "3. Sugestões para melhorar os dados"
    )


class AnaliseService:
    """Imperative Shell: orquestra IO e chama o pipeline puro (parse, schema, validacao)."""

    def __init__(
        self,
        job_repo: ImportJobRepository,
        tabelas: TabelasDominio,
        storage: BlobStorage,
        gerador_resumo: GeradorResumo | None = None,
    ) -> None:
        self._job_repo = job_repo
        self._tabelas = tabelas
        self._storage = storage
        self._gerador_resumo = gerador_resumo

    def analisar(
        self,
        arquivo_path: str,
        empresa_id: str,
        usuario: Usuario,
        parent_job_id: str | None = None,
        mapeamento: Mapping[str, str] | None = None,
        data_type: TipoDado | None = None,
    ) -> ImportJob:
        inicio = time.monotonic()
        inicio_operacao()
        autorizar_escrita(usuario, empresa_id)
        if parent_job_id is not None:
            validar_referencia(self._job_repo, parent_job_id, empresa_id)

        try:
            conteudo = self._storage.baixar(arquivo_path)
        except FileNotFoundError as err:
            raise ArquivoIndisponivelError(arquivo_path) from err

        fonte = escolher_fonte(arquivo_path)
        arquivo = fonte.parse(conteudo)
        log(
            f"Analise {arquivo_path} ({fonte.nome}): {len(arquivo.linhas)} linhas, "
            f"{len(arquivo.malformadas)} malformadas, {len(arquivo.headers)} colunas"
        )

        tipo = data_type or detectar_tipo(arquivo.headers)
        if mapeamento:
            colunas = validar_mapeamento(mapeamento, tipo)
        else:
            colunas = mapear_colunas(arquivo.headers, tipo)
        log(f"  tipo={tipo.value}, {len(colunas)}/{len(arquivo.headers)} colunas mapeadas")

        cpfs: set[str] = set()
        titulares: set[str] = set()
        if tipo is TipoDado.BENEFICIARIOS:
            cpfs = self._tabelas.cpfs_existentes(empresa_id)
            titulares = self._tabelas.cpfs_titulares(empresa_id)

        lote = validar_lote(arquivo, colunas, tipo, cpfs, titulares)
        resumo = self._resumir(tipo, arquivo, colunas, lote)

        c = lote.contagens
        job = ImportJob(
            id=str(uuid.uuid4()),
            empresa_id=empresa_id,
            data_type=tipo,
            status=StatusJob.PENDING,
            arquivo_nome=PurePosixPath(arquivo_path).name,
            arquivo_url=arquivo_path,
            total_rows=c.total,
            valid_rows=c.validas,
            warning_rows=c.avisos,
            error_rows=c.erros,
            duplicate_rows=c.duplicadas,
            column_mapping=dict(colunas),
            ai_summary=resumo.texto,
            criado_por=usuario.id,
            parent_job_id=parent_job_id,
        )
        job = job.com_status(StatusJob.PROCESSING).com_status(StatusJob.READY_FOR_REVIEW)
        linhas = [
            ImportJobRow(
                id=str(uuid.uuid4()),
                job_id=job.id,
                row_number=linha.row_number,
                status=linha.status,
                original_data=linha.original_data,
                mapped_data=linha.mapped_data,
                validation_errors=linha.erros or None,
                validation_warnings=linha.avisos or None,
            )
            for linha in lote.linhas
        ]
        self._job_repo.criar_job_com_linhas(job, linhas)
        log(f"  job {job.id} em staging: {c.total} linhas")

        self._job_repo.registrar_auditoria(
            RegistroAuditoria(
                usuario_id=usuario.id,
                empresa_id=empresa_id,
                acao=AcaoAuditoria.ANALISAR.value,
                job_id=job.id,
                data_type=tipo.value,
                input_summary=f"Arquivo: {arquivo_path}, {c.total} linhas",
                output_summary=(
                    f"Tipo: {tipo.value}, Válidas: {c.validas}, Avisos: {c.avisos}, Erros: {c.erros}"
                ),
                model_used=resumo.modelo,
                tokens_used=resumo.tokens,
                rows_processed=c.total,
                duration_ms=int((time.monotonic() - inicio) * 1000),
            )
        )
        return self._job_repo.buscar(job.id) or job

    def _resumir(
        self,
        tipo: TipoDado,
        arquivo: ArquivoParseado,
        mapeamento: Mapping[str, str],
        lote: ResultadoLote,
    ) -> ResumoGerado:
        if self._gerador_resumo is None:
            return ResumoGerado(texto=resumo_padrao(tipo, lote))
        try:
            return self._gerador_resumo.gerar(
                _PROMPT_SISTEMA, _prompt_resumo(tipo, arquivo, mapeamento, lote)
            )
        except ResumoIndisponivelError as err:
            log(f"  resumo IA indisponivel ({err}); usando resumo automatico")
            return ResumoGerado(texto=resumo_padrao(tipo, lote))
