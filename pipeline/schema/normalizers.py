# pipeline/schema/normalizers.py
#
# Field normalizers and business validators used by the row validator.
#
# Design decisions:
#   - Every function is pure and independently testable. None of them raises
#     on bad input: they return None (dates, CPF check) or a documented default
#     (currency → Decimal("0"), boolean → False) and the validator decides
#     whether that is an error.
#   - Money is Decimal, never float. In mapped_data it is serialized as a
#     string so the staged JSON keeps the exact value.
#   - Dates must be real calendar dates: "31/02/2024" matches the DD/MM/YYYY
#     pattern but is rejected, so a wrong date is never silently stored.
#   - Accent stripping uses unicodedata NFKD so "Saúde", "SAUDE" and "saude"
#     all normalize the same way.
from __future__ import annotations

import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation

_TRUTHY = frozenset({"sim", "s", "true", "1", "x", "yes", "y"})

_DATA_BR = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_DATA_BR_HIFEN = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")
_DATA_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_COMPETENCIA_ISO = re.compile(r"^(\d{4})-(\d{2})$")
_COMPETENCIA_BR = re.compile(r"^(\d{2})/(\d{4})$")

UFS = frozenset({
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
    "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
})
STATUS_BENEFICIARIO = frozenset({"ativo", "inativo", "suspenso"})
GRAUS_PARENTESCO = frozenset({"conjuge", "filho", "pai", "mae", "outro"})


def sem_acentos(valor: str) -> str:
    decomposto = unicodedata.normalize("NFKD", valor)
    return "".join(c for c in decomposto if not unicodedata.combining(c))


# ---------------------------------------------------------------------------
# CPF
# ---------------------------------------------------------------------------


def normalizar_cpf(cpf: str) -> str:
    """Somente digitos."""
    return "".join(c for c in cpf if c.isdigit())


def _verificar_cpf(digitos: str) -> bool:
    """Algoritmo padrao brasileiro de verificacao de CPF."""
    pesos_1 = [10, 9, 8, 7, 6, 5, 4, 3, 2]
    soma = sum(int(digitos[i]) * pesos_1[i] for i in range(9))
    resto = soma % 11
    d1 = 0 if resto < 2 else 11 - resto
    if int(digitos[9]) != d1:
        return False

    pesos_2 = [11, 10, 9, 8, 7, 6, 5, 4, 3, 2]
    soma = sum(int(digitos[i]) * pesos_2[i] for i in range(10))
    resto = soma % 11
    d2 = 0 if resto < 2 else 11 - resto
    return int(digitos[10]) == d2


def validar_cpf(cpf: str) -> bool:
    """True para CPF com 11 digitos, nao repetidos, e digitos verificadores corretos.

    Aceita o valor formatado ("123.456.789-09") ou so digitos.
    """
    digitos = normalizar_cpf(cpf)
    if len(digitos) != 11 or len(set(digitos)) == 1:
        return False
    return _verificar_cpf(digitos)


# ---------------------------------------------------------------------------
# Datas
# ---------------------------------------------------------------------------


def _iso_se_valida(ano: str, mes: str, dia: str) -> str | None:
    try:
        return date(int(ano), int(mes), int(dia)).isoformat()
    except ValueError:
        return None


def normalizar_data(valor: str | None) -> str | None:
    """DD/MM/YYYY, DD-MM-YYYY ou YYYY-MM-DD → YYYY-MM-DD. None se invalida."""
    if not valor:
        return None
    texto = valor.strip()
    if m := _DATA_BR.match(texto):
        return _iso_se_valida(m.group(3), m.group(2), m.group(1))
    if m := _DATA_BR_HIFEN.match(texto):
        return _iso_se_valida(m.group(3), m.group(2), m.group(1))
    if m := _DATA_ISO.match(texto):
        return _iso_se_valida(m.group(1), m.group(2), m.group(3))
    return None


def normalizar_competencia(valor: str | None) -> str | None:
    """Data completa, YYYY-MM ou MM/YYYY → primeiro dia do mes quando so ha mes/ano."""
    if not valor:
        return None
    completa = normalizar_data(valor)
    if completa is not None:
        return completa
    texto = valor.strip()
    if m := _COMPETENCIA_ISO.match(texto):
        return _iso_se_valida(m.group(1), m.group(2), "01")
    if m := _COMPETENCIA_BR.match(texto):
        return _iso_se_valida(m.group(2), m.group(1), "01")
    return None


# ---------------------------------------------------------------------------
# Valores, booleanos e enumeracoes
# ---------------------------------------------------------------------------


def normalizar_valor(valor: str | None) -> Decimal:
    """'R$ 1.234,56' → Decimal('1234.56'). Virgula e separador decimal. Falha → 0."""
    if not valor:
        return Decimal("0")
    texto = re.sub(r"[^\d.,]", "", str(valor))
    if "," in texto:
        texto = texto.replace(".", "").replace(",", ".")
    try:
        return Decimal(texto)
    except InvalidOperation:
        return Decimal("0")


def normalizar_inteiro(valor: str | None) -> int:
    return int(normalizar_valor(valor))


def normalizar_booleano(valor: str | None) -> bool:
    if not valor:
        return False
    return valor.strip().lower() in _TRUTHY


def normalizar_categoria(valor: str) -> str | None:
    """saude/med → saude, vid → vida, odo/dent → odonto. None se nao reconhecida."""
    texto = sem_acentos(valor).lower()
    if "saud" in texto or "med" in texto:
        return "saude"
    if "vid" in texto:
        return "vida"
    if "odo" in texto or "dent" in texto:
        return "odonto"
    return None


def normalizar_tipo_beneficiario(valor: str | None) -> str:
    if valor and "dep" in valor.lower():
        return "dependente"
    return "titular"


def normalizar_sexo(valor: str | None) -> str | None:
    if not valor:
        return None
    texto = valor.strip().lower()
    if texto in ("m", "masculino"):
        return "M"
    if texto in ("f", "feminino"):
        return "F"
    return None


def normalizar_grau_parentesco(valor: str | None) -> str | None:
    if not valor:
        return None
    texto = sem_acentos(valor).strip().lower()
    if texto in GRAUS_PARENTESCO:
        return texto
    if texto == "filha":
        return "filho"
    if texto in ("esposa", "esposo", "companheiro", "companheira"):
        return "conjuge"
    return None


def normalizar_uf(valor: str | None) -> str | None:
    if not valor:
        return None
    texto = valor.strip().upper()
    return texto if texto in UFS else None


def normalizar_tipo_movimentacao(valor: str) -> str:
    texto = sem_acentos(valor).lower()
    if "inclus" in texto:
        return "inclusao"
    if "exclus" in texto:
        return "exclusao"
    if "altera" in texto:
        return "alteracao"
    return texto.strip()
