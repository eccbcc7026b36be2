# pipeline/validate/linha.py
#
# Per-row validation: project → required fields → type-specific
# normalization → status.
#
# Design decisions:
#   - validar_linha is pure. Cross-row rules (duplicate CPF in the same file,
#     dependent without holder) need the whole file and live in lote.py.
#   - Normalizers run even when a required field is missing, so the staged
#     mapped_data is already in canonical form for the review screen.
#   - CPF is stored digits-only whether or not it passes the check-digit test.
#   - When the row has no errors its typed record is built; a failure there is
#     reported as an error on the row instead of surfacing at commit time.
#   - Messages are in Portuguese because they are shown verbatim to HR users
#     in the review screen and in the exported CSV.
#
# Invariants:
#   - status == derivar_status(erros, avisos).
#   - every key of `dados` is a canonical field of `tipo`.
#   - registro is not None iff status != error.
from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from pipeline.schema.normalizers import (
    STATUS_BENEFICIARIO,
    normalizar_booleano,
    normalizar_categoria,
    normalizar_competencia,
    normalizar_cpf,
    normalizar_data,
    normalizar_grau_parentesco,
    normalizar_inteiro,
    normalizar_sexo,
    normalizar_tipo_beneficiario,
    normalizar_tipo_movimentacao,
    normalizar_uf,
    normalizar_valor,
    validar_cpf,
)
from pipeline.schema.registros import Registro, construir_registro
from pipeline.schema.registry import obter_schema
from pipeline.schema.tipos import StatusLinha, TipoDado, derivar_status

MSG_CAMPO_AUSENTE = "Campo obrigatório ausente: {campo}"
MSG_CPF_INVALIDO = "CPF inválido"
MSG_CPF_JA_CADASTRADO = "CPF já cadastrado - será atualizado"
MSG_DATA_NASCIMENTO = "Data de nascimento em formato inválido"
MSG_COMPETENCIA = "Competência em formato inválido"
MSG_CATEGORIA = "Categoria não reconhecida: {valor}"

_CAMPOS_BOOLEANOS = ("plano_saude", "plano_vida", "plano_odonto")

_CAMPOS_MONETARIOS = frozenset({
    "valor_total", "valor_mensalidade", "valor_coparticipacao", "valor_reembolsos",
    "valor_premio", "valor_sinistros", "sinistros_consultas", "sinistros_exames",
    "sinistros_internacoes", "sinistros_procedimentos", "sinistros_outros",
    "indice_sinistralidade", "valor_mensal",
})
_CAMPOS_CONTAGEM = frozenset({
    "total_vidas", "total_titulares", "total_dependentes", "quantidade_sinistros", "vidas",
})

# Diferenca maxima (pontos percentuais) entre o indice informado e o calculado.
_TOLERANCIA_INDICE = Decimal("0.5")


@dataclass(frozen=True)
class ResultadoValidacao:
    status: StatusLinha
    erros: tuple[str, ...] = ()
    avisos: tuple[str, ...] = ()
    dados: dict[str, object] = field(default_factory=dict)
    registro: Registro | None = None

    def com_aviso(self, aviso: str) -> ResultadoValidacao:
        avisos = (*self.avisos, aviso)
        return ResultadoValidacao(
            status=derivar_status(self.erros, avisos),
            erros=self.erros,
            avisos=avisos,
            dados=self.dados,
            registro=self.registro,
        )

    def com_erro(self, erro: str) -> ResultadoValidacao:
        erros = (*self.erros, erro)
        return ResultadoValidacao(
            status=StatusLinha.ERROR,
            erros=erros,
            avisos=self.avisos,
            dados=self.dados,
            registro=None,
        )


# ---------------------------------------------------------------------------
# Normalizacao por tipo
# ---------------------------------------------------------------------------


def _normalizar_beneficiario(
    dados: dict[str, object],
    erros: list[str],
    avisos: list[str],
    cpfs_existentes: Collection[str],
) -> None:
    cpf_bruto = dados.get("cpf")
    if cpf_bruto:
        cpf = normalizar_cpf(str(cpf_bruto))
        if not validar_cpf(cpf):
            erros.append(MSG_CPF_INVALIDO)
        elif cpf in cpfs_existentes:
            avisos.append(MSG_CPF_JA_CADASTRADO)
        dados["cpf"] = cpf

    nascimento = dados.get("data_nascimento")
    if nascimento:
        normalizada = normalizar_data(str(nascimento))
        if normalizada is None:
            erros.append(MSG_DATA_NASCIMENTO)
        else:
            dados["data_nascimento"] = normalizada

    for campo in _CAMPOS_BOOLEANOS:
        if dados.get(campo):
            dados[campo] = normalizar_booleano(str(dados[campo]))

    dados["tipo"] = normalizar_tipo_beneficiario(_opcional(dados, "tipo"))

    status = _opcional(dados, "status")
    if status is None:
        dados["status"] = "ativo"
    elif status.lower() in STATUS_BENEFICIARIO:
        dados["status"] = status.lower()
    else:
        avisos.append(f"Status desconhecido '{status}', será usado 'ativo'")
        dados["status"] = "ativo"

    if dados.get("titular_cpf"):
        dados["titular_cpf"] = normalizar_cpf(str(dados["titular_cpf"]))

    for campo, normalizador in (
        ("sexo", normalizar_sexo),
        ("grau_parentesco", normalizar_grau_parentesco),
        ("uf", normalizar_uf),
    ):
        bruto = _opcional(dados, campo)
        if bruto is None:
            continue
        normalizado = normalizador(bruto)
        if normalizado is None:
            avisos.append(f"Valor não reconhecido em {campo}: '{bruto}' (ignorado)")
            del dados[campo]
        else:
            dados[campo] = normalizado

    inclusao = _opcional(dados, "data_inclusao")
    if inclusao is not None:
        normalizada = normalizar_data(inclusao)
        if normalizada is None:
            avisos.append("Data de inclusão em formato inválido (ignorada)")
            del dados["data_inclusao"]
        else:
            dados["data_inclusao"] = normalizada


def _normalizar_financeiro(dados: dict[str, object], erros: list[str], avisos: list[str]) -> None:
    competencia = _opcional(dados, "competencia")
    if competencia is not None:
        normalizada = normalizar_competencia(competencia)
        if normalizada is None:
            erros.append(MSG_COMPETENCIA)
        else:
            dados["competencia"] = normalizada

    categoria = _opcional(dados, "categoria")
    if categoria is not None:
        normalizada_cat = normalizar_categoria(categoria)
        if normalizada_cat is None:
            erros.append(MSG_CATEGORIA.format(valor=categoria))
        else:
            dados["categoria"] = normalizada_cat

    for campo in list(dados):
        if campo in _CAMPOS_MONETARIOS:
            dados[campo] = str(normalizar_valor(str(dados[campo])))
        elif campo in _CAMPOS_CONTAGEM:
            dados[campo] = normalizar_inteiro(str(dados[campo]))

    for campo in ("data_vencimento", "data_pagamento"):
        bruto = _opcional(dados, campo)
        if bruto is None:
            continue
        normalizada = normalizar_data(bruto)
        if normalizada is None:
            avisos.append(f"Data inválida em {campo} (ignorada)")
            del dados[campo]
        else:
            dados[campo] = normalizada


def _normalizar_sinistralidade(dados: dict[str, object], erros: list[str], avisos: list[str]) -> None:
    _normalizar_financeiro(dados, erros, avisos)

    premio = Decimal(str(dados["valor_premio"])) if "valor_premio" in dados else None
    sinistros = Decimal(str(dados["valor_sinistros"])) if "valor_sinistros" in dados else None
    if premio is None or sinistros is None:
        return
    if premio == 0:
        if sinistros:
            avisos.append("Prêmio zerado com sinistros informados")
        return

    calculado = (sinistros / premio * 100).quantize(Decimal("0.01"))
    informado = dados.get("indice_sinistralidade")
    if informado is None:
        dados["indice_sinistralidade"] = str(calculado)
    elif abs(Decimal(str(informado)) - calculado) > _TOLERANCIA_INDICE:
        avisos.append(f"Índice informado ({informado}%) difere do calculado ({calculado}%)")


def _normalizar_movimentacao(dados: dict[str, object], erros: list[str], avisos: list[str]) -> None:
    tipo = _opcional(dados, "tipo")
    if tipo is not None:
        dados["tipo"] = normalizar_tipo_movimentacao(tipo)
    categoria = _opcional(dados, "categoria")
    if categoria is not None:
        normalizada = normalizar_categoria(categoria)
        if normalizada is None:
            erros.append(MSG_CATEGORIA.format(valor=categoria))
        else:
            dados["categoria"] = normalizada


def _normalizar_contrato(dados: dict[str, object], erros: list[str], avisos: list[str]) -> None:
    for campo, rotulo in (("data_inicio", "início"), ("data_fim", "fim")):
        bruto = _opcional(dados, campo)
        if bruto is None:
            continue
        normalizada = normalizar_data(bruto)
        if normalizada is None:
            erros.append(f"Data de {rotulo} em formato inválido")
        else:
            dados[campo] = normalizada

    if "valor_mensal" in dados:
        dados["valor_mensal"] = str(normalizar_valor(str(dados["valor_mensal"])))
    if dados.get("status"):
        dados["status"] = str(dados["status"]).strip().lower()

    inicio, fim = dados.get("data_inicio"), dados.get("data_fim")
    if not erros and isinstance(inicio, str) and isinstance(fim, str) and fim < inicio:
        erros.append("Data de fim anterior à data de início")


def _opcional(dados: Mapping[str, object], campo: str) -> str | None:
    valor = dados.get(campo)
    if valor is None or valor == "":
        return None
    return str(valor).strip()


_Normalizador = Callable[[dict[str, object], list[str], list[str]], None]

_NORMALIZADORES: dict[TipoDado, _Normalizador] = {
    TipoDado.FATURAMENTO: _normalizar_financeiro,
    TipoDado.SINISTRALIDADE: _normalizar_sinistralidade,
    TipoDado.MOVIMENTACOES: _normalizar_movimentacao,
    TipoDado.CONTRATOS: _normalizar_contrato,
}


# ---------------------------------------------------------------------------
# Entrada publica
# ---------------------------------------------------------------------------


def projetar(linha: Mapping[str, str], mapeamento: Mapping[str, str]) -> dict[str, object]:
    """Somente celulas mapeadas e nao-vazias sobrevivem."""
    dados: dict[str, object] = {}
    for coluna, valor in linha.items():
        campo = mapeamento.get(coluna)
        if campo and valor:
            dados[campo] = valor
    return dados


def validar_linha(
    linha: Mapping[str, str],
    mapeamento: Mapping[str, str],
    tipo: TipoDado,
    cpfs_existentes: Collection[str] = frozenset(),
) -> ResultadoValidacao:
    """Valida uma linha isolada.

    Args:
        linha: coluna original → valor bruto.
        mapeamento: coluna original → campo canonico.
        tipo: tipo de dado detectado (ou informado) para o arquivo.
        cpfs_existentes: CPFs (so digitos) ja cadastrados na empresa; usados
            apenas para beneficiarios, geram aviso de atualizacao.

    Returns:
        ResultadoValidacao com status derivado, mensagens, dados normalizados
        e o registro tipado quando nao ha erros.
    """
    schema = obter_schema(tipo)
    dados = projetar(linha, mapeamento)
    erros: list[str] = []
    avisos: list[str] = []

    for campo in schema.obrigatorios:
        if not dados.get(campo):
            erros.append(MSG_CAMPO_AUSENTE.format(campo=campo))

    if tipo is TipoDado.BENEFICIARIOS:
        _normalizar_beneficiario(dados, erros, avisos, cpfs_existentes)
    else:
        _NORMALIZADORES[tipo](dados, erros, avisos)

    registro: Registro | None = None
    if not erros:
        try:
            registro = construir_registro(tipo, dados)
        except ValueError as err:
            erros.append(str(err))

    return ResultadoValidacao(
        status=derivar_status(erros, avisos),
        erros=tuple(erros),
        avisos=tuple(avisos),
        dados=dados,
        registro=registro,
    )
