# pipeline/schema/registry.py
#
# Static schema registry: required/optional fields and header synonyms per
# TipoDado, plus data-type detection and column mapping.
#
# Design decisions:
#   - The registry is an immutable mapping keyed by the TipoDado enum and built
#     once at import time. Field names are checked against the canonical record
#     classes in registros.py; a synonym pointing at a field that the record
#     does not have fails the import, not a user upload.
#   - Synonym keys are stored lowercased and without accents. Lookup tries the
#     header as written (lowercased, trimmed) and then its accent-free form, so
#     "Endereço", "endereco" and "ENDERECO" all map to "endereco".
#   - Detection inspects header tokens with '_', '-' and spaces removed, in a
#     fixed priority order. When nothing matches the result is BENEFICIARIOS:
#     an explicit default, because it is by far the most common upload.
#   - Headers without a synonym are left out of the mapping. Their values stay
#     in original_data but never reach mapped_data or validation.
#
# Invariants:
#   - For every tipo: obrigatorios ∪ opcionais == campos_canonicos(tipo).
#   - Every synonym value is a canonical field of its tipo.
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .normalizers import sem_acentos
from .registros import campos_canonicos
from .tipos import TipoDado


@dataclass(frozen=True)
class SchemaTipo:
    tipo: TipoDado
    obrigatorios: tuple[str, ...]
    opcionais: tuple[str, ...]
    sinonimos: Mapping[str, str]

    @property
    def campos(self) -> frozenset[str]:
        return frozenset(self.obrigatorios) | frozenset(self.opcionais)


class MapeamentoInvalidoError(ValueError):
    """Mapeamento informado pelo usuario aponta para campo inexistente no schema."""


_SINONIMOS: dict[TipoDado, dict[str, str]] = {
    TipoDado.BENEFICIARIOS: {
        "nome": "nome_completo",
        "nome completo": "nome_completo",
        "nome_completo": "nome_completo",
        "cpf": "cpf",
        "documento": "cpf",
        "data nascimento": "data_nascimento",
        "data de nascimento": "data_nascimento",
        "data_nascimento": "data_nascimento",
        "dt_nascimento": "data_nascimento",
        "nascimento": "data_nascimento",
        "e-mail": "email",
        "email": "email",
        "telefone": "telefone",
        "celular": "telefone",
        "fone": "telefone",
        "sexo": "sexo",
        "genero": "sexo",
        "cep": "cep",
        "endereco": "endereco",
        "logradouro": "endereco",
        "numero": "numero",
        "num": "numero",
        "complemento": "complemento",
        "bairro": "bairro",
        "cidade": "cidade",
        "municipio": "cidade",
        "uf": "uf",
        "estado": "uf",
        "matricula": "matricula",
        "cargo": "cargo",
        "funcao": "cargo",
        "departamento": "departamento",
        "setor": "departamento",
        "tipo": "tipo",
        "titular_dependente": "tipo",
        "titular_cpf": "titular_cpf",
        "cpf_titular": "titular_cpf",
        "cpf do titular": "titular_cpf",
        "parentesco": "grau_parentesco",
        "grau_parentesco": "grau_parentesco",
        "plano_saude": "plano_saude",
        "saude": "plano_saude",
        "plano_vida": "plano_vida",
        "vida": "plano_vida",
        "seguro_vida": "plano_vida",
        "plano_odonto": "plano_odonto",
        "odonto": "plano_odonto",
        "dental": "plano_odonto",
        "status": "status",
        "situacao": "status",
        "data_inclusao": "data_inclusao",
        "data_admissao": "data_inclusao",
        "admissao": "data_inclusao",
    },
    TipoDado.FATURAMENTO: {
        "competencia": "competencia",
        "mes": "competencia",
        "categoria": "categoria",
        "tipo": "categoria",
        "produto": "categoria",
        "valor_total": "valor_total",
        "valor": "valor_total",
        "total": "valor_total",
        "fatura": "valor_total",
        "mensalidade": "valor_mensalidade",
        "valor_mensalidade": "valor_mensalidade",
        "coparticipacao": "valor_coparticipacao",
        "valor_coparticipacao": "valor_coparticipacao",
        "reembolsos": "valor_reembolsos",
        "valor_reembolsos": "valor_reembolsos",
        "vidas": "total_vidas",
        "total_vidas": "total_vidas",
        "titulares": "total_titulares",
        "total_titulares": "total_titulares",
        "dependentes": "total_dependentes",
        "total_dependentes": "total_dependentes",
        "vencimento": "data_vencimento",
        "data_vencimento": "data_vencimento",
        "pagamento": "data_pagamento",
        "data_pagamento": "data_pagamento",
        "status": "status",
    },
    TipoDado.SINISTRALIDADE: {
        "competencia": "competencia",
        "mes": "competencia",
        "categoria": "categoria",
        "tipo": "categoria",
        "premio": "valor_premio",
        "valor_premio": "valor_premio",
        "faturamento": "valor_premio",
        "sinistros": "valor_sinistros",
        "valor_sinistros": "valor_sinistros",
        "quantidade": "quantidade_sinistros",
        "qtd_sinistros": "quantidade_sinistros",
        "quantidade_sinistros": "quantidade_sinistros",
        "consultas": "sinistros_consultas",
        "exames": "sinistros_exames",
        "internacoes": "sinistros_internacoes",
        "procedimentos": "sinistros_procedimentos",
        "outros": "sinistros_outros",
        "indice": "indice_sinistralidade",
        "indice_sinistralidade": "indice_sinistralidade",
        "iu": "indice_sinistralidade",
        "vidas": "vidas",
        "operadora": "operadora",
        "produto": "produto",
        "observacoes": "observacoes",
        "obs": "observacoes",
    },
    TipoDado.MOVIMENTACOES: {
        "tipo": "tipo",
        "movimentacao": "tipo",
        "tipo_movimentacao": "tipo",
        "categoria": "categoria",
        "observacoes": "observacoes",
        "obs": "observacoes",
    },
    TipoDado.CONTRATOS: {
        "titulo": "titulo",
        "nome": "titulo",
        "contrato": "titulo",
        "data_inicio": "data_inicio",
        "inicio": "data_inicio",
        "inicio_vigencia": "data_inicio",
        "data_fim": "data_fim",
        "fim": "data_fim",
        "fim_vigencia": "data_fim",
        "vencimento": "data_fim",
        "tipo": "tipo",
        "status": "status",
        "numero": "numero_contrato",
        "numero_contrato": "numero_contrato",
        "valor": "valor_mensal",
        "valor_mensal": "valor_mensal",
        "observacoes": "observacoes",
    },
}

_OBRIGATORIOS: dict[TipoDado, tuple[str, ...]] = {
    TipoDado.BENEFICIARIOS: ("nome_completo", "cpf", "data_nascimento"),
    TipoDado.FATURAMENTO: ("competencia", "categoria", "valor_total"),
    TipoDado.SINISTRALIDADE: ("competencia", "categoria", "valor_premio", "valor_sinistros"),
    TipoDado.MOVIMENTACOES: ("tipo", "categoria"),
    TipoDado.CONTRATOS: ("titulo", "data_inicio", "data_fim"),
}

# Ordem importa: primeira regra que casar define o tipo.
_REGRAS_DETECCAO: tuple[tuple[TipoDado, tuple[str, ...]], ...] = (
    (TipoDado.BENEFICIARIOS, ("cpf", "nascimento")),
    (TipoDado.SINISTRALIDADE, ("sinistro", "premio")),
    (TipoDado.FATURAMENTO, ("fatura", "mensalidade", "coparticipa")),
    (TipoDado.CONTRATOS, ("contrato", "vigencia")),
    (TipoDado.MOVIMENTACOES, ("movimenta", "inclusao", "exclusao")),
)

TIPO_PADRAO = TipoDado.BENEFICIARIOS


def _construir_registry() -> Mapping[TipoDado, SchemaTipo]:
    registry: dict[TipoDado, SchemaTipo] = {}
    for tipo in TipoDado:
        canonicos = campos_canonicos(tipo)
        obrigatorios = _OBRIGATORIOS[tipo]
        sinonimos = _SINONIMOS[tipo]
        invalidos = (set(sinonimos.values()) | set(obrigatorios)) - canonicos
        if invalidos:
            raise RuntimeError(f"Schema de {tipo}: campos fora do registro canonico {sorted(invalidos)}")
        opcionais = tuple(sorted(canonicos - set(obrigatorios)))
        registry[tipo] = SchemaTipo(
            tipo=tipo,
            obrigatorios=obrigatorios,
            opcionais=opcionais,
            sinonimos=MappingProxyType(dict(sinonimos)),
        )
    return MappingProxyType(registry)


REGISTRY: Mapping[TipoDado, SchemaTipo] = _construir_registry()


def obter_schema(tipo: TipoDado) -> SchemaTipo:
    return REGISTRY[tipo]


def _token(header: str) -> str:
    return re.sub(r"[_\s-]", "", sem_acentos(header).lower())


def detectar_tipo(headers: Iterable[str]) -> TipoDado:
    """Detecta o tipo de dado pelos nomes das colunas. Default: beneficiarios."""
    tokens = [_token(h) for h in headers]
    for tipo, marcadores in _REGRAS_DETECCAO:
        if any(m in t for t in tokens for m in marcadores):
            return tipo
    return TIPO_PADRAO


def mapear_colunas(headers: Iterable[str], tipo: TipoDado) -> dict[str, str]:
    """header original → campo canonico. Headers sem sinonimo ficam de fora."""
    sinonimos = REGISTRY[tipo].sinonimos
    mapeamento: dict[str, str] = {}
    for header in headers:
        chave = header.lower().strip()
        campo = sinonimos.get(chave) or sinonimos.get(sem_acentos(chave))
        if campo:
            mapeamento[header] = campo
    return mapeamento


def validar_mapeamento(mapeamento: Mapping[str, str], tipo: TipoDado) -> dict[str, str]:
    """Confere um mapeamento informado pelo usuario contra os campos do schema."""
    campos = REGISTRY[tipo].campos
    invalidos = sorted({c for c in mapeamento.values() if c not in campos})
    if invalidos:
        raise MapeamentoInvalidoError(
            f"Campos desconhecidos para {tipo}: {', '.join(invalidos)}"
        )
    return {str(k).lower().strip(): v for k, v in mapeamento.items()}
