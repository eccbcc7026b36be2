# tests/integration/test_api_analise.py
#
# POST /api/importacoes (analyze) and the read endpoints of the review screen.
from __future__ import annotations

import json

import duckdb
import httpx
import pytest
from fastapi.testclient import TestClient

from api.application.services.analise_service import escolher_fonte
from api.domain.importacao.entities import ResumoGerado
from api.domain.importacao.errors import ResumoIndisponivelError
from api.infrastructure.ai_gateway import HttpxGeradorResumo
from api.interfaces.api.dependencies import get_gerador_resumo
from pipeline.sources.base import FonteImportacao
from pipeline.sources.pdf.parse import ExtracaoPDF
from pipeline.sources.planilha.parse import PlanilhaCSV

ADMIN_A = {"X-User-Id": "admin-a"}
RH_A = {"X-User-Id": "rh-a"}
ADMIN_B = {"X-User-Id": "admin-b"}
SUPER = {"X-User-Id": "super"}

BENEFICIARIOS = (
    "nome_completo;cpf;data_nascimento;tipo;titular_cpf;email\n"
    "João Silva;111.444.777-35;15/03/1985;titular;;joao@empresa-a.com.br\n"
    "Maria Silva;529.982.247-25;20/07/1988;dependente;111.444.777-35;\n"
)


def test_analisar_cria_job_pronto_para_revisao(analisar, test_db: duckdb.DuckDBPyConnection) -> None:
    response = analisar("beneficiarios.csv", BENEFICIARIOS)
    assert response.status_code == 201
    job = response.json()

    assert job["status"] == "ready_for_review"
    assert job["data_type"] == "beneficiarios"
    assert job["empresa_id"] == "emp-a"
    assert job["arquivo_nome"] == "beneficiarios.csv"
    assert job["arquivo_url"] == "emp-a/beneficiarios.csv"
    assert (job["total_rows"], job["valid_rows"], job["warning_rows"], job["error_rows"]) == (2, 2, 0, 0)
    assert job["column_mapping"]["cpf"] == "cpf"
    assert job["criado_por"] == "admin-a"
    assert job["ai_summary"] == (
        "Resumo automático: 2 linhas detectadas como beneficiarios. 2 válidas, 0 com avisos, 0 com erros."
    )

    linhas = test_db.execute(
        "SELECT count(*) FROM import_job_rows WHERE job_id = ?", [job["id"]]
    ).fetchone()
    assert linhas == (2,)
    # staging nao toca producao
    assert test_db.execute("SELECT count(*) FROM beneficiarios").fetchone() == (0,)


def test_analisar_registra_auditoria(analisar, test_db: duckdb.DuckDBPyConnection) -> None:
    job = analisar("beneficiarios.csv", BENEFICIARIOS).json()

    row = test_db.execute(
        "SELECT user_id, empresa_id, action, data_type, rows_processed, model_used "
        "FROM ai_audit_logs WHERE job_id = ?",
        [job["id"]],
    ).fetchone()
    assert row == ("admin-a", "emp-a", "analyze_import", "beneficiarios", 2, None)


def test_cpf_com_digitos_repetidos(analisar, client: TestClient) -> None:
    csv = "nome_completo;cpf;data_nascimento;tipo\nJoão Silva;111.111.111-11;15/03/1985;titular\n"
    job = analisar("cpf_invalido.csv", csv).json()

    assert job["error_rows"] == 1
    assert job["valid_rows"] == 0
    pagina = client.get(f"/api/importacoes/{job['id']}/linhas", headers=ADMIN_A).json()
    linha = pagina["linhas"][0]
    assert linha["status"] == "error"
    assert "CPF inválido" in linha["validation_errors"]
    assert linha["original_data"]["cpf"] == "111.111.111-11"


def test_dependente_sem_titular(analisar, client: TestClient) -> None:
    csv = (
        "nome_completo;cpf;data_nascimento;tipo;titular_cpf\n"
        "Maria Silva;529.982.247-25;20/07/1988;dependente;111.444.777-35\n"
    )
    job = analisar("orfao.csv", csv).json()

    linha = client.get(f"/api/importacoes/{job['id']}/linhas", headers=ADMIN_A).json()["linhas"][0]
    assert linha["status"] == "error"
    assert any("Titular não encontrado" in e for e in linha["validation_errors"])


def test_cpf_duplicado_no_arquivo(analisar, client: TestClient) -> None:
    csv = (
        "nome_completo;cpf;data_nascimento\n"
        "Ana Souza;123.456.789-09;01/01/1990\n"
        "Ana Souza;123.456.789-09;01/01/1990\n"
    )
    job = analisar("duplicado.csv", csv).json()

    assert (job["valid_rows"], job["warning_rows"], job["duplicate_rows"]) == (1, 1, 1)
    linhas = client.get(f"/api/importacoes/{job['id']}/linhas", headers=ADMIN_A).json()["linhas"]
    assert linhas[1]["status"] == "warning"
    assert linhas[1]["validation_warnings"] == ["CPF duplicado neste arquivo"]


def test_linha_malformada_vira_linha_de_erro(analisar, client: TestClient) -> None:
    csv = (
        "nome_completo;cpf;data_nascimento\n"
        "João Silva;111.444.777-35;15/03/1985\n"
        "sem;colunas;suficientes;demais\n"
    )
    job = analisar("malformado.csv", csv).json()

    assert (job["total_rows"], job["error_rows"]) == (2, 1)
    linha = client.get(
        f"/api/importacoes/{job['id']}/linhas", params={"status": "error"}, headers=ADMIN_A
    ).json()["linhas"][0]
    assert linha["row_number"] == 2
    assert linha["original_data"] == {"_linha": "3", "_conteudo": "sem;colunas;suficientes;demais"}
    assert linha["validation_errors"] == ["Linha malformada: 4 colunas, esperado 3"]


def test_mapeamento_informado_pelo_usuario(analisar) -> None:
    csv = "colaborador;documento_id;nasc\nJoão Silva;111.444.777-35;15/03/1985\n"
    response = analisar(
        "colunas_proprias.csv",
        csv,
        data_type="beneficiarios",
        column_mapping={"colaborador": "nome_completo", "documento_id": "cpf", "nasc": "data_nascimento"},
    )

    assert response.status_code == 201
    assert response.json()["valid_rows"] == 1


def test_mapeamento_para_campo_inexistente(analisar) -> None:
    response = analisar(
        "colunas_proprias.csv",
        "colaborador;salario\nJoão;1000\n",
        column_mapping={"salario": "salario"},
    )

    assert response.status_code == 422
    assert "salario" in response.json()["detail"]


def test_tipo_informado_prevalece_sobre_deteccao(analisar) -> None:
    csv = "competencia;categoria;valor\n03/2024;Vida;1.200,00\n"
    job = analisar("financeiro.csv", csv, data_type="faturamento").json()

    assert job["data_type"] == "faturamento"
    assert job["valid_rows"] == 1


def test_extracao_pdf_em_json(analisar, client: TestClient) -> None:
    resposta = {
        "meta": {"operadora": "Unimed", "produto": "Empresarial"},
        "rows": [{"competencia": "2024-01", "valor_premio": 100000.0, "valor_sinistros": 75000.0}],
    }
    job = analisar("demonstrativo.json", "```json\n" + json.dumps(resposta) + "\n```").json()

    assert job["data_type"] == "sinistralidade"
    assert job["valid_rows"] == 1
    linha = client.get(f"/api/importacoes/{job['id']}/linhas", headers=ADMIN_A).json()["linhas"][0]
    assert linha["mapped_data"]["operadora"] == "Unimed"
    assert linha["mapped_data"]["categoria"] == "saude"
    assert linha["mapped_data"]["indice_sinistralidade"] == "75.00"


def test_extracao_pdf_invalida(analisar) -> None:
    response = analisar("demonstrativo.json", "Não foi possível ler o PDF")

    assert response.status_code == 422


def test_extracao_pdf_com_bytes_invalidos(analisar, client: TestClient) -> None:
    response = analisar("extracao.json", b'{"rows": [{"competencia": "\xff\xfe"}]}')

    assert response.status_code == 422
    assert "UTF-8" in response.json()["detail"]
    assert client.get("/api/importacoes", headers=ADMIN_A).json() == []


def test_arquivo_inexistente(client: TestClient) -> None:
    response = client.post(
        "/api/importacoes",
        json={"empresa_id": "emp-a", "arquivo_path": "emp-a/nao-existe.csv"},
        headers=ADMIN_A,
    )

    assert response.status_code == 400
    assert "nao-existe.csv" in response.json()["detail"]


def test_caminho_fora_do_storage(client: TestClient) -> None:
    response = client.post(
        "/api/importacoes",
        json={"empresa_id": "emp-a", "arquivo_path": "../../etc/passwd"},
        headers=ADMIN_A,
    )

    assert response.status_code == 400


def test_arquivo_vazio_nao_cria_job(analisar, test_db: duckdb.DuckDBPyConnection) -> None:
    response = analisar("vazio.csv", "nome_completo;cpf;data_nascimento\n")

    assert response.status_code == 400
    assert test_db.execute("SELECT count(*) FROM import_jobs").fetchone() == (0,)


# ---------------------------------------------------------------------------
# Autenticacao e escopo por empresa
# ---------------------------------------------------------------------------


def test_sem_usuario_retorna_401(client: TestClient) -> None:
    assert client.get("/api/importacoes").status_code == 401
    assert client.get("/api/importacoes", headers={"X-User-Id": "fantasma"}).status_code == 401
    assert client.get("/api/importacoes", headers={"X-User-Id": "inativo"}).status_code == 401


def test_admin_de_outra_empresa_nao_importa(analisar) -> None:
    response = analisar("beneficiarios.csv", BENEFICIARIOS, usuario="admin-b")

    assert response.status_code == 403


def test_rh_nao_importa(analisar) -> None:
    response = analisar("beneficiarios.csv", BENEFICIARIOS, usuario="rh-a")

    assert response.status_code == 403
    assert "Apenas administradores" in response.json()["detail"]


def test_super_admin_importa_para_qualquer_empresa(analisar) -> None:
    response = analisar("beneficiarios.csv", BENEFICIARIOS, empresa_id="emp-b", usuario="super")

    assert response.status_code == 201
    assert response.json()["empresa_id"] == "emp-b"


def test_leitura_restrita_a_empresa(analisar, client: TestClient) -> None:
    job_id = analisar("beneficiarios.csv", BENEFICIARIOS).json()["id"]

    assert client.get(f"/api/importacoes/{job_id}", headers=RH_A).status_code == 200
    assert client.get(f"/api/importacoes/{job_id}", headers=SUPER).status_code == 200
    assert client.get(f"/api/importacoes/{job_id}", headers=ADMIN_B).status_code == 403
    assert client.get(f"/api/importacoes/{job_id}/linhas", headers=ADMIN_B).status_code == 403


def test_job_inexistente_retorna_404(client: TestClient) -> None:
    assert client.get("/api/importacoes/nao-existe", headers=ADMIN_A).status_code == 404


def test_listagem_por_empresa(analisar, client: TestClient) -> None:
    job_a = analisar("beneficiarios.csv", BENEFICIARIOS).json()["id"]
    job_b = analisar("beneficiarios.csv", BENEFICIARIOS, empresa_id="emp-b", usuario="admin-b").json()["id"]

    assert {j["id"] for j in client.get("/api/importacoes", headers=ADMIN_A).json()} == {job_a}
    assert {j["id"] for j in client.get("/api/importacoes", headers=SUPER).json()} == {job_a, job_b}
    assert {
        j["id"] for j in client.get("/api/importacoes", params={"empresa_id": "emp-b"}, headers=SUPER).json()
    } == {job_b}
    response = client.get("/api/importacoes", params={"empresa_id": "emp-b"}, headers=ADMIN_A)
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Linhas: filtro, busca e paginacao
# ---------------------------------------------------------------------------


def test_linhas_filtradas_e_paginadas(analisar, client: TestClient) -> None:
    csv = (
        "nome_completo;cpf;data_nascimento\n"
        "João Silva;111.444.777-35;15/03/1985\n"
        "Maria Souza;529.982.247-25;20/07/1988\n"
        "Erro;111.111.111-11;01/01/1990\n"
    )
    job_id = analisar("beneficiarios.csv", csv).json()["id"]
    url = f"/api/importacoes/{job_id}/linhas"

    pagina = client.get(url, params={"limit": 1, "offset": 1}, headers=ADMIN_A).json()
    assert pagina["total"] == 3
    assert [linha["row_number"] for linha in pagina["linhas"]] == [2]

    por_status = client.get(url, params={"status": "valid"}, headers=ADMIN_A).json()
    assert por_status["total"] == 2

    por_nome = client.get(url, params={"busca": "maria"}, headers=ADMIN_A).json()
    assert [linha["row_number"] for linha in por_nome["linhas"]] == [2]

    por_cpf = client.get(url, params={"busca": "111.444"}, headers=ADMIN_A).json()
    assert [linha["row_number"] for linha in por_cpf["linhas"]] == [1]


# ---------------------------------------------------------------------------
# Resumo por IA
# ---------------------------------------------------------------------------


class _GeradorFixo:
    def gerar(self, prompt_sistema: str, prompt_usuario: str) -> ResumoGerado:
        assert "Tipo detectado: beneficiarios" in prompt_usuario
        return ResumoGerado(texto="Dois beneficiários prontos para importar.", modelo="modelo-teste", tokens=321)


class _GeradorIndisponivel:
    def gerar(self, prompt_sistema: str, prompt_usuario: str) -> ResumoGerado:
        raise ResumoIndisponivelError("Gateway de IA indisponível: timeout")


def test_resumo_gerado_pela_ia(analisar, client: TestClient, test_db: duckdb.DuckDBPyConnection) -> None:
    client.app.dependency_overrides[get_gerador_resumo] = _GeradorFixo  # type: ignore[attr-defined]
    job = analisar("beneficiarios.csv", BENEFICIARIOS).json()

    assert job["ai_summary"] == "Dois beneficiários prontos para importar."
    row = test_db.execute(
        "SELECT model_used, tokens_used FROM ai_audit_logs WHERE job_id = ?", [job["id"]]
    ).fetchone()
    assert row == ("modelo-teste", 321)


def test_ia_indisponivel_usa_resumo_automatico(analisar, client: TestClient) -> None:
    client.app.dependency_overrides[get_gerador_resumo] = _GeradorIndisponivel  # type: ignore[attr-defined]
    response = analisar("beneficiarios.csv", BENEFICIARIOS)

    assert response.status_code == 201
    assert response.json()["ai_summary"].startswith("Resumo automático: 2 linhas")


def test_resposta_da_ia_fora_do_formato_usa_resumo_automatico(
    analisar, client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    url = "https://gateway.test/v1/chat/completions"
    monkeypatch.setattr(
        httpx, "post",
        lambda *args, **kwargs: httpx.Response(200, json=["unexpected"], request=httpx.Request("POST", url)),
    )
    client.app.dependency_overrides[get_gerador_resumo] = lambda: HttpxGeradorResumo(  # type: ignore[attr-defined]
        url=url, api_key="chave", modelo="modelo-teste"
    )

    response = analisar("beneficiarios.csv", BENEFICIARIOS)

    assert response.status_code == 201
    assert response.json()["ai_summary"].startswith("Resumo automático: 2 linhas")


@pytest.mark.parametrize(
    ("caminho", "fonte"),
    [
        ("emp-a/beneficiarios.csv", PlanilhaCSV),
        ("emp-a/sem_extensao", PlanilhaCSV),
        ("emp-a/demonstrativo.json", ExtracaoPDF),
        ("emp-a/DEMONSTRATIVO.JSON", ExtracaoPDF),
    ],
)
def test_fonte_escolhida_pela_extensao(caminho: str, fonte: type) -> None:
    escolhida = escolher_fonte(caminho)

    assert isinstance(escolhida, fonte)
    assert isinstance(escolhida, FonteImportacao)
