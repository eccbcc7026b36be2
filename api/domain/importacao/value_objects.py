# api/domain/importacao/value_objects.py
from __future__ import annotations

from dataclasses import dataclass

from pipeline.schema.normalizers import normalizar_cpf, validar_cpf

from .enums import PAPEIS_ADMIN, Papel


@dataclass(frozen=True)
class CPF:
    """Value Object imutavel para CPF. NUNCA expoe valor completo em repr/str (LGPD)."""
    _valor: str  # sempre 11 digitos

    def __init__(self, raw: str) -> None:
        digitos = normalizar_cpf(raw)
        if len(digitos) != 11:
            raise ValueError(f"CPF invalido: comprimento {len(digitos)}, esperado 11")
        if not validar_cpf(digitos):
            raise ValueError("CPF invalido: digitos verificadores incorretos ou repetidos")
        object.__setattr__(self, "_valor", digitos)

    @property
    def valor(self) -> str:
        """11 digitos sem formatacao. Nunca logar."""
        return self._valor

    @property
    def mascarado(self) -> str:
        d = self._valor
        return f"***.{d[3:6]}.{d[6:9]}-**"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CPF):
            return NotImplemented
        return self._valor == other._valor

    def __hash__(self) -> int:
        return hash(self._valor)

    def __repr__(self) -> str:
        return f"CPF({self.mascarado!r})"

    def __str__(self) -> str:
        return self.mascarado


@dataclass(frozen=True)
class Usuario:
    """Ator de uma acao. empresa_id None para usuarios sem vinculo (ex: admin_vizio)."""
    id: str
    empresa_id: str | None
    papeis: frozenset[Papel]
    nome: str | None = None

    @property
    def super_admin(self) -> bool:
        return Papel.ADMIN_VIZIO in self.papeis

    @property
    def admin(self) -> bool:
        return bool(self.papeis & PAPEIS_ADMIN)
