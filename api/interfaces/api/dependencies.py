# api/interfaces/api/dependencies.py
from collections.abc import Generator
from pathlib import Path

import duckdb
from fastapi import Depends, Header, HTTPException

from api.application.services.analise_service import AnaliseService
from api.application.services.aprovacao_service import AprovacaoService
from api.application.services.autorizacao_service import resolver_usuario
from api.application.services.consulta_service import ConsultaImportacaoService
from api.application.services.export_service import ExportService
from api.application.services.reimportacao_service import ReimportacaoService
from api.domain.importacao.errors import UsuarioNaoAutenticadoError
from api.domain.importacao.repository import BlobStorage, GeradorResumo
from api.domain.importacao.value_objects import Usuario
from api.infrastructure.ai_gateway import HttpxGeradorResumo
from api.infrastructure.blob_storage import LocalBlobStorage
from api.infrastructure.config import get_settings
from api.infrastructure.duckdb_connection import get_connection
from api.infrastructure.repositories.duckdb_identity import DuckDBIdentityProvider
from api.infrastructure.repositories.duckdb_import_job_repo import DuckDBImportJobRepo
from api.infrastructure.repositories.duckdb_tabelas_dominio import DuckDBTabelasDominio


def get_cursor() -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """Um cursor por request: as rotas sync rodam no threadpool e a conexao
    compartilhada nao pode ser usada por duas threads ao mesmo tempo."""
    cursor = get_connection().cursor()
    try:
        yield cursor
    finally:
        cursor.close()


def get_job_repo(
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),  # noqa: B008
) -> DuckDBImportJobRepo:
    return DuckDBImportJobRepo(cursor)


def get_tabelas_dominio(
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),  # noqa: B008
) -> DuckDBTabelasDominio:
    return DuckDBTabelasDominio(cursor)


def get_identity_provider(
    cursor: duckdb.DuckDBPyConnection = Depends(get_cursor),  # noqa: B008
) -> DuckDBIdentityProvider:
    return DuckDBIdentityProvider(cursor)


def get_storage() -> BlobStorage:
    return LocalBlobStorage(Path(get_settings().storage_dir))


def get_gerador_resumo() -> GeradorResumo | None:
    settings = get_settings()
    if not settings.ia_habilitada:
        return None
    return HttpxGeradorResumo(
        url=settings.ai_gateway_url,
        api_key=settings.ai_api_key,
        modelo=settings.ai_model,
        timeout=settings.ai_timeout_seconds,
    )


def get_usuario_atual(
    x_user_id: str | None = Header(default=None),
    identity: DuckDBIdentityProvider = Depends(get_identity_provider),  # noqa: B008
) -> Usuario:
    try:
        return resolver_usuario(identity, x_user_id)
    except UsuarioNaoAutenticadoError as err:
        raise HTTPException(status_code=401, detail=str(err)) from err


def get_analise_service(
    job_repo: DuckDBImportJobRepo = Depends(get_job_repo),  # noqa: B008
    tabelas: DuckDBTabelasDominio = Depends(get_tabelas_dominio),  # noqa: B008
    storage: BlobStorage = Depends(get_storage),  # noqa: B008
    gerador: GeradorResumo | None = Depends(get_gerador_resumo),  # noqa: B008
) -> AnaliseService:
    return AnaliseService(
        job_repo=job_repo,
        tabelas=tabelas,
        storage=storage,
        gerador_resumo=gerador,
    )


def get_aprovacao_service(
    job_repo: DuckDBImportJobRepo = Depends(get_job_repo),  # noqa: B008
    tabelas: DuckDBTabelasDominio = Depends(get_tabelas_dominio),  # noqa: B008
) -> AprovacaoService:
    return AprovacaoService(job_repo=job_repo, tabelas=tabelas)


def get_consulta_service(
    job_repo: DuckDBImportJobRepo = Depends(get_job_repo),  # noqa: B008
) -> ConsultaImportacaoService:
    return ConsultaImportacaoService(job_repo=job_repo)


def get_reimportacao_service(
    job_repo: DuckDBImportJobRepo = Depends(get_job_repo),  # noqa: B008
) -> ReimportacaoService:
    return ReimportacaoService(job_repo=job_repo)


def get_export_service(
    job_repo: DuckDBImportJobRepo = Depends(get_job_repo),  # noqa: B008
    storage: BlobStorage = Depends(get_storage),  # noqa: B008
) -> ExportService:
    return ExportService(job_repo=job_repo, storage=storage)
