# pipeline/schema/registros.py
#
# Canonical typed records, one per TipoDado.
#
# Design decisions:
#   - The set of canonical fields of a data type IS the set of fields of its
#     record class. The synonym tables in registry.py may only point at these
#     names (checked when the registry module is imported).
#   - mapped_data (JSON, staged per row) holds the normalized values in
#     JSON-safe form: ISO date strings, Decimal as string, bool, int. de_dados()
#     rebuilds the strict record from it; the commit engine never writes a
#     loosely-typed dict into a production table.
#   - de_dados() raises ValueError on a missing required field or an
#     unparseable value. For rows that already passed validation this never
#     happens; when it does, the commit engine records a per-row failure.
#   - para_linha() returns the column → value mapping for the domain table,
#     with None for absent optional fields.
from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from .tipos import TipoDado


def _texto(dados: Mapping[str, object], campo: str) -> str | None:
    valor = dados.get(campo)
    if valor is None or valor == "":
        return None
    return str(valor)


def _obrigatorio(dados: Mapping[str, object], campo: str) -> str:
    valor = _texto(dados, campo)
    if valor is None:
        raise ValueError(f"Campo obrigatório ausente: {campo}")
    return valor


def _data(dados: Mapping[str, object], campo: str) -> date | None:
    valor = _texto(dados, campo)
    if valor is None:
        return None
    try:
        return date.fromisoformat(valor)
    except ValueError as err:
        raise ValueError(f"Data inválida em {campo}: {valor}") from err


def _data_obrigatoria(dados: Mapping[str, object], campo: str) -> date:
    valor = _data(dados, campo)
    if valor is None:
        raise ValueError(f"Campo obrigatório ausente: {campo}")
    return valor


def _decimal(dados: Mapping[str, object], campo: str) -> Decimal | None:
    valor = _texto(dados, campo)
    if valor is None:
        return None
    try:
        return Decimal(valor)
    except InvalidOperation as err:
        raise ValueError(f"Valor numérico inválido em {campo}: {valor}") from err


def _decimal_obrigatorio(dados: Mapping[str, object], campo: str) -> Decimal:
    valor = _decimal(dados, campo)
    if valor is None:
        raise ValueError(f"Campo obrigatório ausente: {campo}")
    return valor


def _inteiro(dados: Mapping[str, object], campo: str) -> int | None:
    valor = _decimal(dados, campo)
    return int(valor) if valor is not None else None


def _booleano(dados: Mapping[str, object], campo: str) -> bool | None:
    valor = dados.get(campo)
    if valor is None or valor == "":
        return None
    if isinstance(valor, bool):
        return valor
    return str(valor).lower() == "true"


class _Registro:
    def para_linha(self) -> dict[str, object]:
        return dataclasses.asdict(self)  # type: ignore[call-overload]


@dataclass(frozen=True)
class BeneficiarioImportado(_Registro):
    nome_completo: str
    cpf: str
    data_nascimento: date
    tipo: str = "titular"
    status: str = "ativo"
    titular_cpf: str | None = None
    email: str | None = None
    telefone: str | None = None
    sexo: str | None = None
    cep: str | None = None
    endereco: str | None = None
    numero: str | None = None
    complemento: str | None = None
    bairro: str | None = None
    cidade: str | None = None
    uf: str | None = None
    matricula: str | None = None
    cargo: str | None = None
    departamento: str | None = None
    grau_parentesco: str | None = None
    plano_saude: bool | None = None
    plano_vida: bool | None = None
    plano_odonto: bool | None = None
    data_inclusao: date | None = None

    def __post_init__(self) -> None:
        if len(self.cpf) != 11 or not self.cpf.isdigit():
            raise ValueError("CPF inválido")
        if self.tipo not in ("titular", "dependente"):
            raise ValueError(f"Tipo de beneficiário inválido: {self.tipo}")

    @classmethod
    def de_dados(cls, dados: Mapping[str, object]) -> BeneficiarioImportado:
        return cls(
            nome_completo=_obrigatorio(dados, "nome_completo"),
            cpf=_obrigatorio(dados, "cpf"),
            data_nascimento=_data_obrigatoria(dados, "data_nascimento"),
            tipo=_texto(dados, "tipo") or "titular",
            status=_texto(dados, "status") or "ativo",
            titular_cpf=_texto(dados, "titular_cpf"),
            email=_texto(dados, "email"),
            telefone=_texto(dados, "telefone"),
            sexo=_texto(dados, "sexo"),
            cep=_texto(dados, "cep"),
            endereco=_texto(dados, "endereco"),
            numero=_texto(dados, "numero"),
            complemento=_texto(dados, "complemento"),
            bairro=_texto(dados, "bairro"),
            cidade=_texto(dados, "cidade"),
            uf=_texto(dados, "uf"),
            matricula=_texto(dados, "matricula"),
            cargo=_texto(dados, "cargo"),
            departamento=_texto(dados, "departamento"),
            grau_parentesco=_texto(dados, "grau_parentesco"),
            plano_saude=_booleano(dados, "plano_saude"),
            plano_vida=_booleano(dados, "plano_vida"),
            plano_odonto=_booleano(dados, "plano_odonto"),
            data_inclusao=_data(dados, "data_inclusao"),
        )

    @property
    def dependente(self) -> bool:
        return self.tipo == "dependente"


@dataclass(frozen=True)
class FaturamentoImportado(_Registro):
    competencia: date
    categoria: str
    valor_total: Decimal
    valor_mensalidade: Decimal | None = None
    valor_coparticipacao: Decimal | None = None
    valor_reembolsos: Decimal | None = None
    total_vidas: int | None = None
    total_titulares: int | None = None
    total_dependentes: int | None = None
    data_vencimento: date | None = None
    data_pagamento: date | None = None
    status: str | None = None

    @classmethod
    def de_dados(cls, dados: Mapping[str, object]) -> FaturamentoImportado:
        return cls(
            competencia=_data_obrigatoria(dados, "competencia"),
            categoria=_obrigatorio(dados, "categoria"),
            valor_total=_decimal_obrigatorio(dados, "valor_total"),
            valor_mensalidade=_decimal(dados, "valor_mensalidade"),
            valor_coparticipacao=_decimal(dados, "valor_coparticipacao"),
            valor_reembolsos=_decimal(dados, "valor_reembolsos"),
            total_vidas=_inteiro(dados, "total_vidas"),
            total_titulares=_inteiro(dados, "total_titulares"),
            total_dependentes=_inteiro(dados, "total_dependentes"),
            data_vencimento=_data(dados, "data_vencimento"),
            data_pagamento=_data(dados, "data_pagamento"),
            status=_texto(dados, "status"),
        )


@dataclass(frozen=True)
class SinistralidadeImportada(_Registro):
    competencia: date
    categoria: str
    valor_premio: Decimal
    valor_sinistros: Decimal
    quantidade_sinistros: int | None = None
    sinistros_consultas: Decimal | None = None
    sinistros_exames: Decimal | None = None
    sinistros_internacoes: Decimal | None = None
    sinistros_procedimentos: Decimal | None = None
    sinistros_outros: Decimal | None = None
    indice_sinistralidade: Decimal | None = None
    vidas: int | None = None
    operadora: str | None = None
    produto: str | None = None
    observacoes: str | None = None

    @classmethod
    def de_dados(cls, dados: Mapping[str, object]) -> SinistralidadeImportada:
        return cls(
            competencia=_data_obrigatoria(dados, "competencia"),
            categoria=_obrigatorio(dados, "categoria"),
            valor_premio=_decimal_obrigatorio(dados, "valor_premio"),
            valor_sinistros=_decimal_obrigatorio(dados, "valor_sinistros"),
            quantidade_sinistros=_inteiro(dados, "quantidade_sinistros"),
            sinistros_consultas=_decimal(dados, "sinistros_consultas"),
            sinistros_exames=_decimal(dados, "sinistros_exames"),
            sinistros_internacoes=_decimal(dados, "sinistros_internacoes"),
            sinistros_procedimentos=_decimal(dados, "sinistros_procedimentos"),
            sinistros_outros=_decimal(dados, "sinistros_outros"),
            indice_sinistralidade=_decimal(dados, "indice_sinistralidade"),
            vidas=_inteiro(dados, "vidas"),
            operadora=_texto(dados, "operadora"),
            produto=_texto(dados, "produto"),
            observacoes=_texto(dados, "observacoes"),
        )


@dataclass(frozen=True)
class MovimentacaoImportada(_Registro):
    tipo: str
    categoria: str
    observacoes: str | None = None

    @classmethod
    def de_dados(cls, dados: Mapping[str, object]) -> MovimentacaoImportada:
        return cls(
            tipo=_obrigatorio(dados, "tipo"),
            categoria=_obrigatorio(dados, "categoria"),
            observacoes=_texto(dados, "observacoes"),
        )


@dataclass(frozen=True)
class ContratoImportado(_Registro):
    titulo: str
    data_inicio: date
    data_fim: date
    tipo: str | None = None
    status: str | None = None
    numero_contrato: str | None = None
    valor_mensal: Decimal | None = None
    observacoes: str | None = None

    def __post_init__(self) -> None:
        if self.data_fim < self.data_inicio:
            raise ValueError("Data de fim anterior à data de início")

    @classmethod
    def de_dados(cls, dados: Mapping[str, object]) -> ContratoImportado:
        return cls(
            titulo=_obrigatorio(dados, "titulo"),
            data_inicio=_data_obrigatoria(dados, "data_inicio"),
            data_fim=_data_obrigatoria(dados, "data_fim"),
            tipo=_texto(dados, "tipo"),
            status=_texto(dados, "status"),
            numero_contrato=_texto(dados, "numero_contrato"),
            valor_mensal=_decimal(dados, "valor_mensal"),
            observacoes=_texto(dados, "observacoes"),
        )


Registro = (
    BeneficiarioImportado
    | FaturamentoImportado
    | SinistralidadeImportada
    | MovimentacaoImportada
    | ContratoImportado
)

REGISTRO_POR_TIPO: dict[TipoDado, type[Registro]] = {
    TipoDado.BENEFICIARIOS: BeneficiarioImportado,
    TipoDado.FATURAMENTO: FaturamentoImportado,
    TipoDado.SINISTRALIDADE: SinistralidadeImportada,
    TipoDado.MOVIMENTACOES: MovimentacaoImportada,
    TipoDado.CONTRATOS: ContratoImportado,
}


def campos_canonicos(tipo: TipoDado) -> frozenset[str]:
    return frozenset(f.name for f in dataclasses.fields(REGISTRO_POR_TIPO[tipo]))


def construir_registro(tipo: TipoDado, dados: Mapping[str, object]) -> Registro:
    """mapped_data → registro tipado. ValueError se incompleto ou invalido."""
    return REGISTRO_POR_TIPO[tipo].de_dados(dados)
