# tests/pipeline/test_parse_pdf_json.py
#
# Tests for the parser of the PDF extraction answer (JSON).
from __future__ import annotations

import json

import pytest

from pipeline.sources.base import FonteImportacao
from pipeline.sources.errors import EntradaVaziaError, RespostaIAInvalidaError
from pipeline.sources.pdf.parse import ExtracaoPDF, parse_resposta_ia

RESPOSTA = {
    "meta": {"operadora": "Unimed", "produto": "Empresarial Plus"},
    "rows": [
        {"competencia": "2024-01", "valor_premio": 100000.0, "valor_sinistros": 75000.0, "vidas": 120},
        {"competencia": "2024-02", "valor_premio": 100000.0, "valor_sinistros": None},
    ],
}


def test_json_direto() -> None:
    arquivo = parse_resposta_ia(json.dumps(RESPOSTA))

    assert arquivo.headers[:4] == ("competencia", "valor_premio", "valor_sinistros", "vidas")
    assert len(arquivo.linhas) == 2
    assert arquivo.linhas[0].valores["valor_premio"] == "100000.0"
    assert arquivo.linhas[0].valores["vidas"] == "120"


def test_meta_e_copiado_para_cada_linha() -> None:
    arquivo = parse_resposta_ia(json.dumps(RESPOSTA))

    for linha in arquivo.linhas:
        assert linha.valores["operadora"] == "Unimed"
        assert linha.valores["produto"] == "Empresarial Plus"
    assert arquivo.metadados["operadora"] == "Unimed"


def test_categoria_padrao_saude() -> None:
    """Demonstrativo sem categoria explicita e tratado como plano de saude."""
    arquivo = parse_resposta_ia(json.dumps(RESPOSTA))

    assert arquivo.metadados["categoria"] == "saude"
    assert all(linha.valores["categoria"] == "saude" for linha in arquivo.linhas)


def test_categoria_da_linha_prevalece_sobre_meta() -> None:
    resposta = {
        "meta": {"categoria": "saude"},
        "rows": [{"competencia": "2024-01", "categoria": "odonto"}],
    }
    arquivo = parse_resposta_ia(json.dumps(resposta))

    assert arquivo.linhas[0].valores["categoria"] == "odonto"


def test_null_vira_vazio_e_linhas_completadas_com_headers() -> None:
    arquivo = parse_resposta_ia(json.dumps(RESPOSTA))
    segunda = arquivo.linhas[1].valores

    assert segunda["valor_sinistros"] == ""
    assert segunda["vidas"] == ""
    assert set(segunda) == set(arquivo.headers)


def test_numero_linha_comeca_em_dois() -> None:
    arquivo = parse_resposta_ia(json.dumps(RESPOSTA))

    assert [linha.numero_linha for linha in arquivo.linhas] == [2, 3]


def test_json_dentro_de_bloco_markdown() -> None:
    texto = "```json\n" + json.dumps(RESPOSTA) + "\n```"
    arquivo = parse_resposta_ia(texto)

    assert len(arquivo.linhas) == 2


def test_json_cercado_de_texto() -> None:
    texto = "Segue o resultado da extração:\n" + json.dumps(RESPOSTA) + "\nQualquer dúvida, avise."
    arquivo = parse_resposta_ia(texto)

    assert len(arquivo.linhas) == 2


def test_resposta_nao_json_levanta_erro_com_trecho() -> None:
    with pytest.raises(RespostaIAInvalidaError) as exc_info:
        parse_resposta_ia("Não consegui ler o documento.")

    assert exc_info.value.trecho == "Não consegui ler o documento."


def test_json_que_nao_e_objeto_levanta_erro() -> None:
    with pytest.raises(RespostaIAInvalidaError, match="não é um objeto"):
        parse_resposta_ia("[1, 2, 3]")


def test_sem_linhas_levanta_entrada_vazia() -> None:
    with pytest.raises(EntradaVaziaError):
        parse_resposta_ia(json.dumps({"meta": {"operadora": "Unimed"}, "rows": []}))
    with pytest.raises(EntradaVaziaError):
        parse_resposta_ia(json.dumps({"rows": ["texto solto", 42]}))
    with pytest.raises(EntradaVaziaError):
        parse_resposta_ia(json.dumps({"meta": {}}))


def test_booleanos_viram_texto() -> None:
    arquivo = parse_resposta_ia(json.dumps({"rows": [{"competencia": "2024-01", "reajuste": True}]}))

    assert arquivo.linhas[0].valores["reajuste"] == "true"


def test_extracao_pdf_cumpre_protocolo() -> None:
    fonte = ExtracaoPDF()

    assert isinstance(fonte, FonteImportacao)
    assert fonte.nome == "pdf"
    arquivo = fonte.parse(json.dumps(RESPOSTA).encode("utf-8"))
    assert len(arquivo.linhas) == 2


def test_bytes_que_nao_sao_utf8_levantam_resposta_invalida() -> None:
    with pytest.raises(RespostaIAInvalidaError, match="UTF-8") as exc_info:
        ExtracaoPDF().parse(b'{"rows": [{"competencia": "\xff\xfe"}]}')

    assert "competencia" in exc_info.value.trecho


def test_bom_utf8_e_aceito() -> None:
    arquivo = ExtracaoPDF().parse(b"\xef\xbb\xbf" + json.dumps(RESPOSTA).encode("utf-8"))

    assert len(arquivo.linhas) == 2
