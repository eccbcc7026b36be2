# tests/integration/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import duckdb
import httpx
import pytest
from fastapi.testclient import TestClient

from api.infrastructure.duckdb_connection import init_schema

# Desabilitar rate limit em testes
os.environ["API_RATE_LIMIT_PER_MINUTE"] = "0"

Analisar = Callable[..., httpx.Response]


@pytest.fixture()
def test_db() -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """DuckDB in-memory com schema e usuarios deterministicos. Um banco por teste:
    commits alteram as tabelas de producao."""
    conn = duckdb.connect(":memory:")
    init_schema(conn)

    conn.execute("""
        INSERT INTO profiles (id, nome_completo, email, empresa_id, ativo) VALUES
        ('admin-a', 'Ana Admin', 'ana@empresa-a.com.br', 'emp-a', TRUE),
        ('rh-a', 'Rui RH', 'rui@empresa-a.com.br', 'emp-a', TRUE),
        ('admin-b', 'Bia Admin', 'bia@empresa-b.com.br', 'emp-b', TRUE),
        ('super', 'Suporte Vizio', 'suporte@vizio.com.br', NULL, TRUE),
        ('inativo', 'Ex Admin', 'ex@empresa-a.com.br', 'emp-a', FALSE)
    """)
    conn.execute("""
        INSERT INTO user_roles (user_id, role) VALUES
        ('admin-a', 'admin_empresa'),
        ('rh-a', 'rh'),
        ('admin-b', 'admin_empresa'),
        ('super', 'admin_vizio'),
        ('inativo', 'admin_empresa')
    """)

    yield conn
    conn.close()


@pytest.fixture()
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture()
def enviar_arquivo(storage_dir: Path) -> Callable[[str, str | bytes], str]:
    """Grava um arquivo no storage e retorna a chave usada em arquivo_path."""

    def _enviar(caminho: str, conteudo: str | bytes) -> str:
        destino = storage_dir / caminho
        destino.parent.mkdir(parents=True, exist_ok=True)
        destino.write_bytes(conteudo.encode("utf-8") if isinstance(conteudo, str) else conteudo)
        return caminho

    return _enviar


@pytest.fixture()
def client(test_db: duckdb.DuckDBPyConnection, storage_dir: Path) -> Generator[TestClient, None, None]:
    """TestClient do FastAPI com DuckDB in-memory e storage em tmp_path injetados."""
    from api.infrastructure import duckdb_connection
    duckdb_connection.set_connection(test_db)

    # Limpar cache de settings para pegar API_RATE_LIMIT_PER_MINUTE=0
    from api.infrastructure.config import get_settings
    get_settings.cache_clear()

    from api.infrastructure.blob_storage import LocalBlobStorage
    from api.interfaces.api.dependencies import get_gerador_resumo, get_storage
    from api.interfaces.api.main import app

    app.dependency_overrides[get_storage] = lambda: LocalBlobStorage(storage_dir)
    app.dependency_overrides[get_gerador_resumo] = lambda: None
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def analisar(client: TestClient, enviar_arquivo: Callable[[str, str | bytes], str]) -> Analisar:
    """Envia o arquivo para o storage e chama POST /api/importacoes."""

    def _analisar(
        nome: str,
        conteudo: str | bytes,
        empresa_id: str = "emp-a",
        usuario: str = "admin-a",
        **body: object,
    ) -> httpx.Response:
        caminho = enviar_arquivo(f"{empresa_id}/{nome}", conteudo)
        return client.post(
            "/api/importacoes",
            json={"empresa_id": empresa_id, "arquivo_path": caminho, **body},
            headers={"X-User-Id": usuario},
        )

    return _analisar
