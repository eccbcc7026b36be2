# pipeline/sources/pdf/parse.py
#
# Parse the JSON produced by the PDF vision/OCR extraction (claims-ratio
# statements from the health plan operator) into an ArquivoParseado.
#
# Design decisions:
#   - The extraction itself (page rendering + model call) is external. This
#     module receives the model's text answer, which is supposed to be JSON but
#     often comes wrapped in markdown fences or surrounded by prose. Three
#     attempts are made, in order: direct json.loads, fence stripping, and the
#     substring between the first '{' and the last '}'.
#   - Each element of "rows" becomes one data line; values are stringified so
#     the rest of the pipeline (column mapping, validation) handles PDF rows
#     exactly like CSV rows. null becomes "".
#   - meta.operadora, meta.produto and meta.categoria (default "saude") are
#     copied into every line that does not already carry them, so they reach
#     mapped_data and the committed record.
#   - Headers are the union of row keys in first-seen order.
#   - The saved answer is always UTF-8 (no Latin-1 fallback as for CSV); bytes
#     that do not decode mean a corrupted answer and raise RespostaIAInvalidaError.
#
# Invariants:
#   - numero_linha is the 1-based position in "rows" plus one (line 1 is the
#     virtual header), keeping the same numbering convention as the CSV parser.
from __future__ import annotations

import json

from pipeline.sources.base import ArquivoParseado, LinhaLida
from pipeline.sources.errors import EntradaVaziaError, RespostaIAInvalidaError

_META_COPIADOS = ("operadora", "produto", "categoria")
# Demonstrativos de sinistralidade sem categoria explicita sao de plano de saude.
_CATEGORIA_PADRAO = "saude"


def _carregar_json(conteudo: str) -> object:
    texto = conteudo.strip()
    try:
        return json.loads(texto)
    except json.JSONDecodeError:
        pass

    if texto.startswith("```json"):
        texto = texto[7:]
    elif texto.startswith("```"):
        texto = texto[3:]
    if texto.endswith("```"):
        texto = texto[:-3]
    texto = texto.strip()
    try:
        return json.loads(texto)
    except json.JSONDecodeError:
        pass

    inicio = texto.find("{")
    fim = texto.rfind("}")
    if inicio != -1 and fim > inicio:
        try:
            return json.loads(texto[inicio : fim + 1])
        except json.JSONDecodeError:
            pass

    raise RespostaIAInvalidaError(
        "Falha ao interpretar resposta da IA como JSON", trecho=conteudo[:1200]
    )


def _como_texto(valor: object) -> str:
    if valor is None:
        return ""
    if isinstance(valor, bool):
        return "true" if valor else "false"
    return str(valor).strip()


def parse_resposta_ia(conteudo: str) -> ArquivoParseado:
    """Turn the extraction model's answer into headers + data lines.

    Raises:
        RespostaIAInvalidaError: content is not JSON or not a JSON object.
        EntradaVaziaError: the JSON has no usable rows.
    """
    dados = _carregar_json(conteudo)
    if not isinstance(dados, dict):
        raise RespostaIAInvalidaError("Resposta da IA não é um objeto JSON", trecho=conteudo[:1200])

    meta_bruto = dados.get("meta")
    metadados: dict[str, str] = {}
    if isinstance(meta_bruto, dict):
        metadados = {str(k).lower(): _como_texto(v) for k, v in meta_bruto.items() if v is not None}
    metadados.setdefault("categoria", _CATEGORIA_PADRAO)

    rows = dados.get("rows")
    if not isinstance(rows, list):
        rows = []

    headers: list[str] = []
    registros: list[dict[str, str]] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        registro = {str(k).strip().lower(): _como_texto(v) for k, v in row.items()}
        for chave in _META_COPIADOS:
            if chave in metadados and not registro.get(chave):
                registro[chave] = metadados[chave]
        if not any(registro.values()):
            continue
        for chave in registro:
            if chave not in headers:
                headers.append(chave)
        registros.append(registro)

    if not registros:
        raise EntradaVaziaError("Nenhum registro extraído do PDF")

    linhas = tuple(
        LinhaLida(indice + 2, {h: registro.get(h, "") for h in headers})
        for indice, registro in enumerate(registros)
    )
    return ArquivoParseado(headers=tuple(headers), linhas=linhas, metadados=metadados)


class ExtracaoPDF:
    """FonteImportacao for the JSON saved after the PDF extraction step."""

    nome = "pdf"

    def parse(self, conteudo: bytes) -> ArquivoParseado:
        try:
            texto = conteudo.decode("utf-8-sig")
        except UnicodeDecodeError as err:
            raise RespostaIAInvalidaError(
                "Resposta da extração não é UTF-8 válido",
                trecho=conteudo[max(0, err.start - 40) : err.start + 40].decode("utf-8", errors="replace"),
            ) from err
        return parse_resposta_ia(texto)
