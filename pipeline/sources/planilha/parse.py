# pipeline/sources/planilha/parse.py
#
# Parse uploaded CSV spreadsheets (beneficiarios, faturamento, sinistralidade,
# movimentacoes, contratos) into an ArquivoParseado.
#
# Design decisions:
#   - Uploads come from Excel/Sheets exports made by HR teams: UTF-8 (with or
#     without BOM) or Latin-1. UTF-8 is tried first; Latin-1 never fails to
#     decode, so it is the fallback.
#   - The delimiter is detected from the header line only: ';' if present,
#     otherwise ','. Brazilian Excel exports use ';' because ',' is the
#     decimal separator.
#   - csv.reader handles quoted cells that contain the delimiter. After
#     splitting, stray quote characters (" and ') are removed from headers and
#     cells, which is what uploaders expect when a spreadsheet adds them.
#   - Blank lines (every cell empty) are skipped without being reported.
#   - A line with a different number of cells than the header is returned as
#     LinhaMalformada instead of being dropped.
#
# Invariants:
#   - parse_csv is pure: same bytes → same ArquivoParseado.
#   - Raises EntradaVaziaError for empty content, header-only content, or a
#     header with no non-empty column name.
from __future__ import annotations

import csv
import io

from pipeline.sources.base import ArquivoParseado, LinhaLida, LinhaMalformada
from pipeline.sources.errors import EntradaVaziaError

_QUOTES = str.maketrans("", "", "\"'")


def decodificar(conteudo: bytes) -> str:
    """Decode upload bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return conteudo.decode("utf-8-sig")
    except UnicodeDecodeError:
        return conteudo.decode("latin-1")


def detectar_separador(linha_cabecalho: str) -> str:
    return ";" if ";" in linha_cabecalho else ","


def _limpar(valor: str) -> str:
    return valor.translate(_QUOTES).strip()


def parse_csv(conteudo: bytes) -> ArquivoParseado:
    """Parse raw CSV bytes into headers and ordered data lines.

    Args:
        conteudo: Raw uploaded bytes.

    Returns:
        ArquivoParseado with lowercased headers, well-formed lines and the
        lines whose cell count does not match the header.

    Raises:
        EntradaVaziaError: if there is no header or no data line at all.
    """
    texto = decodificar(conteudo).strip()
    if not texto:
        raise EntradaVaziaError("Arquivo vazio ou formato inválido")

    linhas_texto = texto.splitlines()
    separador = detectar_separador(linhas_texto[0])
    reader = csv.reader(io.StringIO(texto), delimiter=separador)

    headers: tuple[str, ...] = ()
    linhas: list[LinhaLida] = []
    malformadas: list[LinhaMalformada] = []

    for celulas in reader:
        numero_linha = reader.line_num
        if not headers:
            headers = tuple(_limpar(c).lower() for c in celulas)
            if not any(headers):
                raise EntradaVaziaError("Arquivo sem cabeçalho")
            continue

        valores = [_limpar(c) for c in celulas]
        if not any(valores):
            continue
        if len(valores) != len(headers):
            malformadas.append(
                LinhaMalformada(
                    numero_linha=numero_linha,
                    conteudo=separador.join(celulas),
                    esperado=len(headers),
                    encontrado=len(valores),
                )
            )
            continue
        linhas.append(LinhaLida(numero_linha, dict(zip(headers, valores, strict=True))))

    if not linhas and not malformadas:
        raise EntradaVaziaError("Arquivo vazio ou formato inválido")

    return ArquivoParseado(headers=headers, linhas=tuple(linhas), malformadas=tuple(malformadas))


class PlanilhaCSV:
    """FonteImportacao for CSV uploads."""

    nome = "csv"

    def parse(self, conteudo: bytes) -> ArquivoParseado:
        return parse_csv(conteudo)
