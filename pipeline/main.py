# pipeline/main.py
#
# Offline dry run: validate an import file locally, without the API, staging
# store or production tables.
#
# Design decisions:
#   - Same pure functions as the analyze service (parse → detect → map →
#     validate_lote), so a dry run reports exactly what the review screen
#     would show, except for checks that need the tenant's existing records
#     (duplicate vs. registered CPF, holders already registered).
#   - The optional report is a ';' CSV with BOM, one line per staged row,
#     written with polars like the export in the API.
#   - Usage: python -m pipeline.main <arquivo> [relatorio.csv]
#     Exit code 1 when any row has errors, so it can gate a batch script.
from __future__ import annotations

import sys
from pathlib import Path

import polars as pl

from pipeline.log import inicio_operacao, log
from pipeline.schema.registry import detectar_tipo, mapear_colunas
from pipeline.schema.tipos import TipoDado
from pipeline.sources.base import FonteImportacao
from pipeline.sources.pdf.parse import ExtracaoPDF
from pipeline.sources.planilha.parse import PlanilhaCSV
from pipeline.validate.lote import ResultadoLote, validar_lote


def _fonte(path: Path) -> FonteImportacao:
    return ExtracaoPDF() if path.suffix.lower() == ".json" else PlanilhaCSV()


def validar_arquivo(path: Path, tipo: TipoDado | None = None) -> ResultadoLote:
    """Parse + validacao completa de um arquivo local."""
    inicio_operacao()
    fonte = _fonte(path)
    arquivo = fonte.parse(path.read_bytes())
    tipo = tipo or detectar_tipo(arquivo.headers)
    mapeamento = mapear_colunas(arquivo.headers, tipo)
    log(f"{path.name} ({fonte.nome}): tipo={tipo.value}, {len(mapeamento)} colunas mapeadas")
    ignoradas = [h for h in arquivo.headers if h not in mapeamento]
    if ignoradas:
        log(f"  colunas sem mapeamento: {', '.join(ignoradas)}")
    return validar_lote(arquivo, mapeamento, tipo)


def escrever_relatorio(lote: ResultadoLote, destino: Path) -> Path:
    df = pl.DataFrame(
        {
            "row_number": [linha.row_number for linha in lote.linhas],
            "status": [linha.status.value for linha in lote.linhas],
            "validation_errors": [" | ".join(linha.erros) for linha in lote.linhas],
            "validation_warnings": [" | ".join(linha.avisos) for linha in lote.linhas],
        },
        schema={
            "row_number": pl.Int64,
            "status": pl.Utf8,
            "validation_errors": pl.Utf8,
            "validation_warnings": pl.Utf8,
        },
    )
    destino.parent.mkdir(parents=True, exist_ok=True)
    df.write_csv(destino, separator=";", include_bom=True)
    log(f"  relatorio: {destino}")
    return destino


def main(argv: list[str]) -> int:
    if not argv:
        sys.stderr.write("uso: python -m pipeline.main <arquivo> [relatorio.csv]\n")
        return 2
    lote = validar_arquivo(Path(argv[0]))
    if len(argv) > 1:
        escrever_relatorio(lote, Path(argv[1]))
    return 1 if lote.contagens.erros else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
