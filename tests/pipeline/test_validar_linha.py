# tests/pipeline/test_validar_linha.py
#
# Tests for per-row validation: required fields, normalization
# per data type and status derivation.
from __future__ import annotations

from pipeline.schema.registros import BeneficiarioImportado, SinistralidadeImportada
from pipeline.schema.registry import mapear_colunas
from pipeline.schema.tipos import StatusLinha, TipoDado
from pipeline.validate.linha import (
    MSG_CPF_INVALIDO,
    MSG_CPF_JA_CADASTRADO,
    MSG_DATA_NASCIMENTO,
    projetar,
    validar_linha,
)

_HEADERS_BENEFICIARIOS = [
    "nome_completo", "cpf", "data_nascimento", "tipo", "titular_cpf",
    "status", "plano_saude", "sexo", "uf", "observacao_rh",
]
MAPEAMENTO_BENEFICIARIOS = mapear_colunas(_HEADERS_BENEFICIARIOS, TipoDado.BENEFICIARIOS)


def _beneficiario(**valores: str) -> dict[str, str]:
    linha = {
        "nome_completo": "João Silva",
        "cpf": "111.444.777-35",
        "data_nascimento": "15/03/1985",
        "tipo": "titular",
    }
    linha.update(valores)
    return linha


def test_projetar_descarta_colunas_sem_mapeamento_e_vazias() -> None:
    dados = projetar({"cpf": "1", "observacao_rh": "x", "email": ""}, {"cpf": "cpf", "email": "email"})

    assert dados == {"cpf": "1"}


def test_beneficiario_valido() -> None:
    resultado = validar_linha(_beneficiario(), MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS)

    assert resultado.status is StatusLinha.VALID
    assert resultado.erros == ()
    assert resultado.avisos == ()
    assert resultado.dados["cpf"] == "11144477735"
    assert resultado.dados["data_nascimento"] == "1985-03-15"
    assert resultado.dados["tipo"] == "titular"
    assert resultado.dados["status"] == "ativo"
    assert isinstance(resultado.registro, BeneficiarioImportado)


def test_cpf_com_digitos_repetidos_e_erro() -> None:
    resultado = validar_linha(
        _beneficiario(cpf="111.111.111-11"), MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS
    )

    assert resultado.status is StatusLinha.ERROR
    assert MSG_CPF_INVALIDO in resultado.erros
    assert resultado.dados["cpf"] == "11111111111"
    assert resultado.registro is None


def test_campo_obrigatorio_ausente() -> None:
    linha = _beneficiario()
    del linha["data_nascimento"]
    resultado = validar_linha(linha, MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS)

    assert resultado.status is StatusLinha.ERROR
    assert resultado.erros == ("Campo obrigatório ausente: data_nascimento",)


def test_data_de_nascimento_invalida() -> None:
    resultado = validar_linha(
        _beneficiario(data_nascimento="31/02/1985"), MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS
    )

    assert resultado.erros == (MSG_DATA_NASCIMENTO,)


def test_cpf_ja_cadastrado_gera_aviso() -> None:
    resultado = validar_linha(
        _beneficiario(),
        MAPEAMENTO_BENEFICIARIOS,
        TipoDado.BENEFICIARIOS,
        cpfs_existentes=frozenset({"11144477735"}),
    )

    assert resultado.status is StatusLinha.WARNING
    assert resultado.avisos == (MSG_CPF_JA_CADASTRADO,)
    assert resultado.registro is not None


def test_status_desconhecido_vira_ativo_com_aviso() -> None:
    resultado = validar_linha(
        _beneficiario(status="Afastado"), MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS
    )

    assert resultado.status is StatusLinha.WARNING
    assert resultado.avisos == ("Status desconhecido 'Afastado', será usado 'ativo'",)
    assert resultado.dados["status"] == "ativo"


def test_campos_opcionais_normalizados() -> None:
    resultado = validar_linha(
        _beneficiario(plano_saude="Sim", sexo="Feminino", uf="rj", status="INATIVO"),
        MAPEAMENTO_BENEFICIARIOS,
        TipoDado.BENEFICIARIOS,
    )

    assert resultado.status is StatusLinha.VALID
    assert resultado.dados["plano_saude"] is True
    assert resultado.dados["sexo"] == "F"
    assert resultado.dados["uf"] == "RJ"
    assert resultado.dados["status"] == "inativo"
    assert "observacao_rh" not in resultado.dados


def test_opcional_nao_reconhecido_e_descartado_com_aviso() -> None:
    resultado = validar_linha(_beneficiario(uf="ZZ"), MAPEAMENTO_BENEFICIARIOS, TipoDado.BENEFICIARIOS)

    assert resultado.status is StatusLinha.WARNING
    assert "uf" not in resultado.dados
    assert "Valor não reconhecido em uf: 'ZZ' (ignorado)" in resultado.avisos


def test_dependente_tem_titular_cpf_normalizado() -> None:
    resultado = validar_linha(
        _beneficiario(cpf="529.982.247-25", tipo="Dependente", titular_cpf="111.444.777-35"),
        MAPEAMENTO_BENEFICIARIOS,
        TipoDado.BENEFICIARIOS,
    )

    assert resultado.dados["tipo"] == "dependente"
    assert resultado.dados["titular_cpf"] == "11144477735"


# ---------------------------------------------------------------------------
# Faturamento / sinistralidade / movimentacoes / contratos
# ---------------------------------------------------------------------------


def test_faturamento_normalizado() -> None:
    linha = {"competencia": "03/2024", "categoria": "Saúde", "valor_total": "R$ 10.500,00", "vidas": "120"}
    mapeamento = mapear_colunas(linha, TipoDado.FATURAMENTO)
    resultado = validar_linha(linha, mapeamento, TipoDado.FATURAMENTO)

    assert resultado.status is StatusLinha.VALID
    assert resultado.dados == {
        "competencia": "2024-03-01",
        "categoria": "saude",
        "valor_total": "10500.00",
        "total_vidas": 120,
    }


def test_categoria_nao_reconhecida_e_erro() -> None:
    linha = {"competencia": "2024-03", "categoria": "Auto", "valor_total": "100"}
    resultado = validar_linha(linha, mapear_colunas(linha, TipoDado.FATURAMENTO), TipoDado.FATURAMENTO)

    assert resultado.status is StatusLinha.ERROR
    assert resultado.erros == ("Categoria não reconhecida: Auto",)


def test_competencia_invalida_e_erro() -> None:
    linha = {"competencia": "março", "categoria": "vida", "valor_total": "100"}
    resultado = validar_linha(linha, mapear_colunas(linha, TipoDado.FATURAMENTO), TipoDado.FATURAMENTO)

    assert resultado.erros == ("Competência em formato inválido",)


def test_data_opcional_invalida_e_aviso() -> None:
    linha = {"competencia": "2024-03", "categoria": "vida", "valor_total": "100", "vencimento": "99/99/2024"}
    resultado = validar_linha(linha, mapear_colunas(linha, TipoDado.FATURAMENTO), TipoDado.FATURAMENTO)

    assert resultado.status is StatusLinha.WARNING
    assert "data_vencimento" not in resultado.dados


def test_sinistralidade_calcula_indice() -> None:
    linha = {"competencia": "2024-01", "categoria": "saude", "premio": "100.000,00", "sinistros": "75.000,00"}
    resultado = validar_linha(
        linha, mapear_colunas(linha, TipoDado.SINISTRALIDADE), TipoDado.SINISTRALIDADE
    )

    assert resultado.status is StatusLinha.VALID
    assert resultado.dados["indice_sinistralidade"] == "75.00"
    assert isinstance(resultado.registro, SinistralidadeImportada)


def test_sinistralidade_indice_divergente_gera_aviso() -> None:
    linha = {
        "competencia": "2024-01", "categoria": "saude",
        "premio": "100000", "sinistros": "75000", "indice": "80",
    }
    resultado = validar_linha(
        linha, mapear_colunas(linha, TipoDado.SINISTRALIDADE), TipoDado.SINISTRALIDADE
    )

    assert resultado.status is StatusLinha.WARNING
    assert resultado.avisos == ("Índice informado (80%) difere do calculado (75.00%)",)


def test_sinistralidade_indice_dentro_da_tolerancia() -> None:
    linha = {
        "competencia": "2024-01", "categoria": "saude",
        "premio": "100000", "sinistros": "75000", "indice": "75,3",
    }
    resultado = validar_linha(
        linha, mapear_colunas(linha, TipoDado.SINISTRALIDADE), TipoDado.SINISTRALIDADE
    )

    assert resultado.status is StatusLinha.VALID


def test_sinistralidade_premio_zerado() -> None:
    linha = {"competencia": "2024-01", "categoria": "saude", "premio": "0", "sinistros": "500"}
    resultado = validar_linha(
        linha, mapear_colunas(linha, TipoDado.SINISTRALIDADE), TipoDado.SINISTRALIDADE
    )

    assert resultado.avisos == ("Prêmio zerado com sinistros informados",)
    assert "indice_sinistralidade" not in resultado.dados


def test_movimentacao() -> None:
    linha = {"tipo_movimentacao": "Inclusão", "categoria": "Vida"}
    resultado = validar_linha(
        linha, mapear_colunas(linha, TipoDado.MOVIMENTACOES), TipoDado.MOVIMENTACOES
    )

    assert resultado.status is StatusLinha.VALID
    assert resultado.dados == {"tipo": "inclusao", "categoria": "vida"}


def test_contrato_com_fim_antes_do_inicio() -> None:
    linha = {"titulo": "Plano Saúde", "inicio_vigencia": "01/01/2025", "fim_vigencia": "31/12/2024"}
    resultado = validar_linha(linha, mapear_colunas(linha, TipoDado.CONTRATOS), TipoDado.CONTRATOS)

    assert resultado.status is StatusLinha.ERROR
    assert resultado.erros == ("Data de fim anterior à data de início",)


def test_contrato_valido() -> None:
    linha = {
        "titulo": "Plano Saúde", "numero_contrato": "CT-001",
        "inicio_vigencia": "01/01/2025", "fim_vigencia": "31/12/2025", "valor_mensal": "45.000,00",
    }
    resultado = validar_linha(linha, mapear_colunas(linha, TipoDado.CONTRATOS), TipoDado.CONTRATOS)

    assert resultado.status is StatusLinha.VALID
    assert resultado.dados["data_inicio"] == "2025-01-01"
    assert resultado.dados["valor_mensal"] == "45000.00"
