# pipeline/validate/lote.py
#
# Batch validation: runs validar_linha over a parsed file and applies the
# rules that need the whole file.
#
# Design decisions:
#   - Two passes. The first validates each row and tracks CPFs already seen in
#     the file; the second resolves dependents against the titulars of the
#     file, so a dependent may appear before its titular.
#   - Only titular rows that did not fail validation can be a holder. An
#     invalid titular row is never committed, so its dependents would be
#     orphaned.
#   - Malformed lines from the parser become error rows in file order. They
#     keep their raw content under original_data["_linha"].
#   - row_number is 1..N over the staged rows (valid + malformed), in file
#     order. The source line number is kept in original_data only for
#     malformed lines, where the user needs it to find the line.
#   - Counts are computed here, locally, from the final statuses.
#
# Invariants:
#   - contagens.total == valid + warning + error == len(linhas).
#   - duplicate counts rows whose CPF repeats an earlier row of the file or
#     matches an existing record; it is not additive.
from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass

from pipeline.log import log
from pipeline.schema.tipos import StatusLinha, TipoDado
from pipeline.sources.base import ArquivoParseado

from .linha import MSG_CPF_JA_CADASTRADO, ResultadoValidacao, validar_linha

MSG_CPF_DUPLICADO = "CPF duplicado neste arquivo"
MSG_DEPENDENTE_SEM_TITULAR = "Dependente sem titular_cpf"
MSG_TITULAR_NAO_ENCONTRADO = "Titular não encontrado (CPF: {cpf})"


@dataclass(frozen=True)
class LinhaValidada:
    row_number: int
    status: StatusLinha
    original_data: dict[str, str]
    mapped_data: dict[str, object]
    erros: tuple[str, ...] = ()
    avisos: tuple[str, ...] = ()


@dataclass(frozen=True)
class Contagens:
    total: int = 0
    validas: int = 0
    avisos: int = 0
    erros: int = 0
    duplicadas: int = 0


@dataclass(frozen=True)
class ResultadoLote:
    tipo: TipoDado
    linhas: tuple[LinhaValidada, ...]
    contagens: Contagens


def _contar(linhas: Collection[LinhaValidada], duplicadas: int) -> Contagens:
    por_status = {s: 0 for s in StatusLinha}
    for linha in linhas:
        por_status[linha.status] += 1
    return Contagens(
        total=len(linhas),
        validas=por_status[StatusLinha.VALID],
        avisos=por_status[StatusLinha.WARNING],
        erros=por_status[StatusLinha.ERROR],
        duplicadas=duplicadas,
    )


def _resolver_dependente(
    resultado: ResultadoValidacao,
    titulares: Collection[str],
) -> ResultadoValidacao:
    if resultado.status is StatusLinha.ERROR or resultado.dados.get("tipo") != "dependente":
        return resultado
    titular_cpf = resultado.dados.get("titular_cpf")
    if not titular_cpf:
        return resultado.com_erro(MSG_DEPENDENTE_SEM_TITULAR)
    if titular_cpf not in titulares:
        return resultado.com_erro(MSG_TITULAR_NAO_ENCONTRADO.format(cpf=titular_cpf))
    return resultado


def validar_lote(
    arquivo: ArquivoParseado,
    mapeamento: Mapping[str, str],
    tipo: TipoDado,
    cpfs_existentes: Collection[str] = frozenset(),
    titulares_existentes: Collection[str] = frozenset(),
) -> ResultadoLote:
    """Valida todas as linhas de um arquivo parseado.

    Args:
        arquivo: saida do parser.
        mapeamento: coluna original → campo canonico.
        tipo: tipo de dado do arquivo.
        cpfs_existentes: CPFs ja cadastrados na empresa (beneficiarios).
        titulares_existentes: CPFs de titulares ja cadastrados na empresa.

    Returns:
        ResultadoLote com as linhas numeradas 1..N e as contagens.
    """
    beneficiarios = tipo is TipoDado.BENEFICIARIOS
    vistos: set[str] = set()
    duplicadas = 0
    resultados: list[tuple[int, ResultadoValidacao, dict[str, str]]] = []

    for lida in arquivo.linhas:
        resultado = validar_linha(lida.valores, mapeamento, tipo, cpfs_existentes)
        cpf = resultado.dados.get("cpf") if beneficiarios else None
        if isinstance(cpf, str) and len(cpf) == 11:
            if cpf in vistos:
                duplicadas += 1
                resultado = resultado.com_aviso(MSG_CPF_DUPLICADO)
            elif MSG_CPF_JA_CADASTRADO in resultado.avisos:
                duplicadas += 1
            vistos.add(cpf)
        resultados.append((lida.numero_linha, resultado, dict(lida.valores)))

    if beneficiarios:
        titulares = set(titulares_existentes)
        titulares.update(
            str(r.dados["cpf"])
            for _, r, _ in resultados
            if r.status is not StatusLinha.ERROR and r.dados.get("tipo") == "titular"
        )
        resultados = [(n, _resolver_dependente(r, titulares), o) for n, r, o in resultados]

    staged: list[tuple[int, StatusLinha, dict[str, str], dict[str, object], tuple[str, ...], tuple[str, ...]]] = [
        (n, r.status, o, r.dados, r.erros, r.avisos) for n, r, o in resultados
    ]
    for malformada in arquivo.malformadas:
        staged.append((
            malformada.numero_linha,
            StatusLinha.ERROR,
            {"_linha": str(malformada.numero_linha), "_conteudo": malformada.conteudo},
            {},
            (malformada.mensagem,),
            (),
        ))
    staged.sort(key=lambda item: item[0])

    linhas = tuple(
        LinhaValidada(
            row_number=i,
            status=status,
            original_data=original,
            mapped_data=dados,
            erros=erros,
            avisos=avisos,
        )
        for i, (_, status, original, dados, erros, avisos) in enumerate(staged, start=1)
    )
    contagens = _contar(linhas, duplicadas)
    log(
        f"  {tipo}: {contagens.total} linhas → {contagens.validas} validas, "
        f"{contagens.avisos} com aviso, {contagens.erros} com erro, {contagens.duplicadas} duplicadas"
    )
    return ResultadoLote(tipo=tipo, linhas=linhas, contagens=contagens)
