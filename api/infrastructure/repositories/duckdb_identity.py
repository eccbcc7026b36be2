# api/infrastructure/repositories/duckdb_identity.py
from __future__ import annotations

import duckdb

from api.domain.importacao.enums import Papel
from api.domain.importacao.value_objects import Usuario


class DuckDBIdentityProvider:
    """profiles + user_roles. Papeis desconhecidos sao ignorados."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def obter_usuario(self, usuario_id: str) -> Usuario | None:
        perfil = self._conn.execute(
            "SELECT id, empresa_id, nome_completo FROM profiles WHERE id = ? AND ativo",
            [usuario_id],
        ).fetchone()
        if perfil is None:
            return None
        papeis = self._conn.execute(
            "SELECT role FROM user_roles WHERE user_id = ?",
            [usuario_id],
        ).fetchall()
        validos = {p.value for p in Papel}
        return Usuario(
            id=str(perfil[0]),
            empresa_id=str(perfil[1]) if perfil[1] else None,
            papeis=frozenset(Papel(r[0]) for r in papeis if r[0] in validos),
            nome=perfil[2],
        )
