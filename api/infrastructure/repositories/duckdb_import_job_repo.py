# api/infrastructure/repositories/duckdb_import_job_repo.py
from __future__ import annotations

import json
import uuid
from collections.abc import Sequence

import duckdb

from api.domain.importacao.entities import ImportJob, ImportJobRow, RegistroAuditoria
from api.domain.importacao.enums import StatusJob, transicionar
from pipeline.schema.normalizers import normalizar_cpf
from pipeline.schema.tipos import STATUS_COMITAVEIS, StatusLinha, TipoDado

_JOB_COLUNAS = """
    id, empresa_id, data_type, status, arquivo_nome, arquivo_url,
    total_rows, valid_rows, warning_rows, error_rows, duplicate_rows,
    column_mapping, ai_summary, criado_por, aprovado_por, data_aprovacao,
    parent_job_id, created_at, updated_at
"""

_LINHA_COLUNAS = """
    id, job_id, row_number, status, original_data, mapped_data,
    validation_errors, validation_warnings
"""


def _json(valor: object) -> str | None:
    if valor is None:
        return None
    return json.dumps(valor, ensure_ascii=False)


def _lista(valor: Sequence[str] | None) -> str | None:
    return _json(list(valor)) if valor else None


class DuckDBImportJobRepo:
    """Staging store: cabecalho do job + linhas, nunca toca tabelas de producao."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Escrita
    # ------------------------------------------------------------------

    def criar_job_com_linhas(self, job: ImportJob, linhas: Sequence[ImportJobRow]) -> None:
        """Cabecalho + linhas numa unica transacao: leitores nunca veem lote parcial."""
        if job.total_rows != len(linhas):
            raise ValueError(
                f"ImportJob {job.id}: total_rows={job.total_rows} mas {len(linhas)} linhas"
            )
        # Cursor proprio: a transacao nao se mistura com a de outra thread que
        # compartilhe esta conexao.
        cur = self._conn.cursor()
        try:
            cur.begin()
            try:
                cur.execute(
                    """
                    INSERT INTO import_jobs (
                        id, empresa_id, data_type, status, arquivo_nome, arquivo_url,
                        total_rows, valid_rows, warning_rows, error_rows, duplicate_rows,
                        column_mapping, ai_summary, criado_por, parent_job_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    [
                        job.id, job.empresa_id, job.data_type.value, job.status.value,
                        job.arquivo_nome, job.arquivo_url,
                        job.total_rows, job.valid_rows, job.warning_rows, job.error_rows,
                        job.duplicate_rows, _json(job.column_mapping), job.ai_summary,
                        job.criado_por, job.parent_job_id,
                    ],
                )
                if linhas:
                    cur.executemany(
                        """
                        INSERT INTO import_job_rows (
                            id, job_id, row_number, status, original_data, mapped_data,
                            validation_errors, validation_warnings
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                        [
                            [
                                linha.id, job.id, linha.row_number, linha.status.value,
                                _json(linha.original_data), _json(linha.mapped_data),
                                _lista(linha.validation_errors), _lista(linha.validation_warnings),
                            ]
                            for linha in linhas
                        ],
                    )
                cur.commit()
            except Exception:
                cur.rollback()
                raise
        finally:
            cur.close()

    def transicionar(
        self,
        job_id: str,
        de: StatusJob,
        para: StatusJob,
        aprovado_por: str | None = None,
    ) -> ImportJob | None:
        """Compare-and-swap do status. None se o job nao estava em `de`.

        Levanta TransicaoInvalidaError se de → para nao existe na tabela de transicoes.
        """
        transicionar(de, para)
        if para is StatusJob.COMPLETED:
            row = self._conn.execute(
                """
                UPDATE import_jobs
                SET status = ?, aprovado_por = ?, data_aprovacao = current_timestamp,
                    updated_at = current_timestamp
                WHERE id = ? AND status = ?
                RETURNING id
            """,
                [para.value, aprovado_por, job_id, de.value],
            ).fetchone()
        else:
            row = self._conn.execute(
                """
                UPDATE import_jobs
                SET status = ?, updated_at = current_timestamp
                WHERE id = ? AND status = ?
                RETURNING id
            """,
                [para.value, job_id, de.value],
            ).fetchone()
        if row is None:
            return None
        return self.buscar(job_id)

    def registrar_auditoria(self, registro: RegistroAuditoria) -> None:
        self._conn.execute(
            """
            INSERT INTO ai_audit_logs (
                id, user_id, empresa_id, job_id, action, data_type, input_summary,
                output_summary, model_used, tokens_used, rows_processed, duration_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            [
                str(uuid.uuid4()), registro.usuario_id, registro.empresa_id, registro.job_id,
                registro.acao, registro.data_type, registro.input_summary,
                registro.output_summary, registro.model_used, registro.tokens_used,
                registro.rows_processed, registro.duration_ms,
            ],
        )

    # ------------------------------------------------------------------
    # Leitura de jobs
    # ------------------------------------------------------------------

    def buscar(self, job_id: str) -> ImportJob | None:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUNAS} FROM import_jobs WHERE id = ?",
            [job_id],
        ).fetchone()
        return self._to_job(row) if row else None

    def listar_jobs(self, empresa_id: str | None, limit: int, offset: int) -> list[ImportJob]:
        """empresa_id None lista todas as empresas (super admin)."""
        if empresa_id is None:
            rows = self._conn.execute(
                f"""
                SELECT {_JOB_COLUNAS} FROM import_jobs
                ORDER BY created_at DESC, id
                LIMIT ? OFFSET ?
            """,
                [limit, offset],
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"""
                SELECT {_JOB_COLUNAS} FROM import_jobs
                WHERE empresa_id = ?
                ORDER BY created_at DESC, id
                LIMIT ? OFFSET ?
            """,
                [empresa_id, limit, offset],
            ).fetchall()
        return [self._to_job(r) for r in rows]

    def listar_filhos(self, job_id: str) -> list[ImportJob]:
        rows = self._conn.execute(
            f"""
            SELECT {_JOB_COLUNAS} FROM import_jobs
            WHERE parent_job_id = ?
            ORDER BY created_at, id
        """,
            [job_id],
        ).fetchall()
        return [self._to_job(r) for r in rows]

    # ------------------------------------------------------------------
    # Leitura de linhas
    # ------------------------------------------------------------------

    def _filtro_linhas(
        self,
        job_id: str,
        status: StatusLinha | None,
        busca: str | None,
    ) -> tuple[str, list[object]]:
        where = ["r.job_id = ?"]
        params: list[object] = [job_id]
        if status is not None:
            where.append("r.status = ?")
            params.append(status.value)
        termo = (busca or "").strip()
        if termo:
            digitos = normalizar_cpf(termo)
            where.append(
                """(
                    CASE WHEN j.data_type = ? THEN
                        json_extract_string(r.mapped_data, '$.nome_completo') ILIKE ?
                        OR (? <> '' AND json_extract_string(r.mapped_data, '$.cpf') LIKE ?)
                    ELSE r.mapped_data ILIKE ?
                    END
                )"""
            )
            params.extend([
                TipoDado.BENEFICIARIOS.value,
                f"%{termo}%",
                digitos,
                f"%{digitos}%",
                f"%{termo}%",
            ])
        return " AND ".join(where), params

    def listar_linhas(
        self,
        job_id: str,
        status: StatusLinha | None = None,
        busca: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ImportJobRow]:
        """Filtro por status e busca (CPF/nome para beneficiarios, qualquer valor
        mapeado para os demais tipos). Sempre ordenado por row_number."""
        where, params = self._filtro_linhas(job_id, status, busca)
        sql = f"""
            SELECT {", ".join("r." + c.strip() for c in _LINHA_COLUNAS.split(","))}
            FROM import_job_rows r
            JOIN import_jobs j ON j.id = r.job_id
            WHERE {where}
            ORDER BY r.row_number
        """
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        rows = self._conn.execute(sql, params).fetchall()
        return [self._to_linha(r) for r in rows]

    def contar_linhas(self, job_id: str, status: StatusLinha | None = None, busca: str | None = None) -> int:
        where, params = self._filtro_linhas(job_id, status, busca)
        row = self._conn.execute(
            f"""
            SELECT count(*)
            FROM import_job_rows r
            JOIN import_jobs j ON j.id = r.job_id
            WHERE {where}
        """,
            params,
        ).fetchone()
        return int(row[0]) if row else 0

    def listar_linhas_para_commit(self, job_id: str) -> list[ImportJobRow]:
        """Somente valid + warning, em ordem de row_number."""
        status = sorted(s.value for s in STATUS_COMITAVEIS)
        rows = self._conn.execute(
            f"""
            SELECT {_LINHA_COLUNAS} FROM import_job_rows
            WHERE job_id = ? AND status IN (?, ?)
            ORDER BY row_number
        """,
            [job_id, *status],
        ).fetchall()
        return [self._to_linha(r) for r in rows]

    # ------------------------------------------------------------------
    # Mapeamento
    # ------------------------------------------------------------------

    def _to_job(self, row: tuple) -> ImportJob:  # type: ignore[type-arg]
        return ImportJob(
            id=str(row[0]),
            empresa_id=str(row[1]),
            data_type=TipoDado(row[2]),
            status=StatusJob(row[3]),
            arquivo_nome=str(row[4]),
            arquivo_url=str(row[5]),
            total_rows=int(row[6]),
            valid_rows=int(row[7]),
            warning_rows=int(row[8]),
            error_rows=int(row[9]),
            duplicate_rows=int(row[10]),
            column_mapping=json.loads(row[11]) if row[11] else {},
            ai_summary=row[12],
            criado_por=row[13],
            aprovado_por=row[14],
            data_aprovacao=row[15],
            parent_job_id=row[16],
            created_at=row[17],
            updated_at=row[18],
        )

    def _to_linha(self, row: tuple) -> ImportJobRow:  # type: ignore[type-arg]
        erros = json.loads(row[6]) if row[6] else None
        avisos = json.loads(row[7]) if row[7] else None
        return ImportJobRow(
            id=str(row[0]),
            job_id=str(row[1]),
            row_number=int(row[2]),
            status=StatusLinha(row[3]),
            original_data=json.loads(row[4]),
            mapped_data=json.loads(row[5]) if row[5] else {},
            validation_errors=tuple(erros) if erros else None,
            validation_warnings=tuple(avisos) if avisos else None,
        )
