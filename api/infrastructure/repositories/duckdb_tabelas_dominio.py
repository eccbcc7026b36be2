# api/infrastructure/repositories/duckdb_tabelas_dominio.py
from __future__ import annotations

import uuid

import duckdb

from api.domain.importacao.enums import ResultadoLinhaCommit
from pipeline.schema.registros import (
    BeneficiarioImportado,
    ContratoImportado,
    FaturamentoImportado,
    MovimentacaoImportada,
    Registro,
    SinistralidadeImportada,
)

# Colunas de beneficiarios gravadas a partir do registro (titular_id e resolvido a parte).
_COLUNAS_BENEFICIARIO = tuple(
    c for c in BeneficiarioImportado.__dataclass_fields__ if c not in ("titular_cpf", "cpf")
)


class DuckDBTabelasDominio:
    """Tabelas de producao. Upsert por chave natural:

    beneficiarios (empresa_id, cpf); faturamento e sinistralidade
    (empresa_id, competencia, categoria); contratos (empresa_id, numero_contrato)
    quando ha numero; movimentacoes sempre insert.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Beneficiarios
    # ------------------------------------------------------------------

    def cpfs_existentes(self, empresa_id: str) -> set[str]:
        rows = self._conn.execute(
            "SELECT cpf FROM beneficiarios WHERE empresa_id = ?",
            [empresa_id],
        ).fetchall()
        return {str(r[0]) for r in rows}

    def cpfs_titulares(self, empresa_id: str) -> set[str]:
        rows = self._conn.execute(
            "SELECT cpf FROM beneficiarios WHERE empresa_id = ? AND tipo = 'titular'",
            [empresa_id],
        ).fetchall()
        return {str(r[0]) for r in rows}

    def buscar_beneficiario_id(self, empresa_id: str, cpf: str) -> str | None:
        row = self._conn.execute(
            "SELECT id FROM beneficiarios WHERE empresa_id = ? AND cpf = ?",
            [empresa_id, cpf],
        ).fetchone()
        return str(row[0]) if row else None

    def inserir_beneficiario(
        self, empresa_id: str, registro: BeneficiarioImportado, titular_id: str | None
    ) -> str:
        beneficiario_id = str(uuid.uuid4())
        valores = registro.para_linha()
        colunas = ["id", "empresa_id", "cpf", "titular_id", *_COLUNAS_BENEFICIARIO]
        params = [beneficiario_id, empresa_id, registro.cpf, titular_id]
        params += [valores[c] for c in _COLUNAS_BENEFICIARIO]
        if registro.data_inclusao is None:
            # data_inclusao tem default no banco
            idx = colunas.index("data_inclusao")
            del colunas[idx]
            del params[idx]
        self._conn.execute(
            f"INSERT INTO beneficiarios ({', '.join(colunas)}) VALUES ({', '.join('?' * len(colunas))})",
            params,
        )
        return beneficiario_id

    def atualizar_beneficiario(
        self, beneficiario_id: str, registro: BeneficiarioImportado, titular_id: str | None
    ) -> None:
        """Campos opcionais ausentes na planilha nao apagam o que ja esta gravado."""
        valores = registro.para_linha()
        sets = ["titular_id = COALESCE(?, titular_id)"]
        params: list[object] = [titular_id]
        for coluna in _COLUNAS_BENEFICIARIO:
            sets.append(f"{coluna} = COALESCE(?, {coluna})")
            params.append(valores[coluna])
        sets.append("updated_at = current_timestamp")
        self._conn.execute(
            f"UPDATE beneficiarios SET {', '.join(sets)} WHERE id = ?",
            [*params, beneficiario_id],
        )

    # ------------------------------------------------------------------
    # Demais tabelas
    # ------------------------------------------------------------------

    def upsert_registro(self, empresa_id: str, registro: Registro) -> ResultadoLinhaCommit:
        if isinstance(registro, FaturamentoImportado):
            return self._upsert_por_competencia("faturamento", empresa_id, registro)
        if isinstance(registro, SinistralidadeImportada):
            return self._upsert_por_competencia("sinistralidade", empresa_id, registro)
        if isinstance(registro, ContratoImportado):
            return self._upsert_contrato(empresa_id, registro)
        if isinstance(registro, MovimentacaoImportada):
            self._inserir("movimentacoes", empresa_id, registro.para_linha())
            return ResultadoLinhaCommit.INSERIDA
        raise TypeError(f"Registro sem tabela de destino: {type(registro).__name__}")

    def _upsert_por_competencia(
        self,
        tabela: str,
        empresa_id: str,
        registro: FaturamentoImportado | SinistralidadeImportada,
    ) -> ResultadoLinhaCommit:
        row = self._conn.execute(
            f"SELECT id FROM {tabela} WHERE empresa_id = ? AND competencia = ? AND categoria = ?",
            [empresa_id, registro.competencia, registro.categoria],
        ).fetchone()
        valores = registro.para_linha()
        if row is None:
            self._inserir(tabela, empresa_id, valores)
            return ResultadoLinhaCommit.INSERIDA
        chave = ("competencia", "categoria")
        self._atualizar(tabela, str(row[0]), {k: v for k, v in valores.items() if k not in chave})
        return ResultadoLinhaCommit.ATUALIZADA

    def _upsert_contrato(self, empresa_id: str, registro: ContratoImportado) -> ResultadoLinhaCommit:
        valores = registro.para_linha()
        if registro.numero_contrato:
            row = self._conn.execute(
                "SELECT id FROM contratos WHERE empresa_id = ? AND numero_contrato = ?",
                [empresa_id, registro.numero_contrato],
            ).fetchone()
            if row is not None:
                self._atualizar("contratos", str(row[0]), valores)
                return ResultadoLinhaCommit.ATUALIZADA
        self._inserir("contratos", empresa_id, valores)
        return ResultadoLinhaCommit.INSERIDA

    def _inserir(self, tabela: str, empresa_id: str, valores: dict[str, object]) -> None:
        colunas = ["id", "empresa_id", *valores]
        self._conn.execute(
            f"INSERT INTO {tabela} ({', '.join(colunas)}) VALUES ({', '.join('?' * len(colunas))})",
            [str(uuid.uuid4()), empresa_id, *valores.values()],
        )

    def _atualizar(self, tabela: str, registro_id: str, valores: dict[str, object]) -> None:
        sets = ", ".join(f"{c} = ?" for c in valores)
        self._conn.execute(
            f"UPDATE {tabela} SET {sets}, updated_at = current_timestamp WHERE id = ?",
            [*valores.values(), registro_id],
        )
