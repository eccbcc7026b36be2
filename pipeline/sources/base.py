# pipeline/sources/base.py
#
# Protocol and result types shared by every import source parser.
#
# Design decisions:
#   - Uses typing.Protocol (structural subtyping) rather than ABC so that
#     concrete parsers don't need to inherit from a base; they only need to
#     expose the right interface. This keeps sources decoupled.
#   - runtime_checkable is set so the analyze service can pick a parser from a
#     registry and assert the contract with isinstance().
#   - parse is a pure transformation: raw bytes → ArquivoParseado. Downloading
#     the bytes (blob storage) and the PDF vision/OCR step happen before this
#     stage and are not part of the pipeline.
#   - Lines whose column count differs from the header are not discarded
#     silently: they are returned in `malformadas` so the caller can stage them
#     as error rows and the uploader sees them in the review screen.
#
# Invariants:
#   - headers are lowercased, trimmed and quote-stripped.
#   - every LinhaLida.valores has exactly the keys in headers.
#   - numero_linha is the 1-based physical line in the file (1 = header), so
#     linhas and malformadas can be merged back into file order.
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class LinhaLida:
    numero_linha: int
    valores: dict[str, str]


@dataclass(frozen=True)
class LinhaMalformada:
    numero_linha: int
    conteudo: str
    esperado: int
    encontrado: int

    @property
    def mensagem(self) -> str:
        return f"Linha malformada: {self.encontrado} colunas, esperado {self.esperado}"


@dataclass(frozen=True)
class ArquivoParseado:
    """Headers plus the ordered data lines of one uploaded file."""

    headers: tuple[str, ...]
    linhas: tuple[LinhaLida, ...]
    malformadas: tuple[LinhaMalformada, ...] = ()
    metadados: dict[str, str] = field(default_factory=dict)

    @property
    def total_linhas(self) -> int:
        return len(self.linhas) + len(self.malformadas)


@runtime_checkable
class FonteImportacao(Protocol):
    """Contract for import source parsers.

        nome:  identifier used in logging and stored in the audit trail.
        parse: raw uploaded bytes → ArquivoParseado.

    Raises EntradaVaziaError when the content has no header or no data lines.
    """

    nome: str

    def parse(self, conteudo: bytes) -> ArquivoParseado:
        ...
