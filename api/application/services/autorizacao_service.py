# api/application/services/autorizacao_service.py
#
# Pure authorization checks. Called by every service before any read or
# mutation of a job.
#
#   escrita (analyze / approve / reject): admin_vizio anywhere, admin_empresa
#       only in its own empresa.
#   leitura (job, rows, export, comparison): admin_vizio anywhere, any user
#       of the job's empresa.
from __future__ import annotations

from api.domain.importacao.errors import AcessoNegadoError, UsuarioNaoAutenticadoError
from api.domain.importacao.repository import IdentityProvider
from api.domain.importacao.value_objects import Usuario


def resolver_usuario(identity: IdentityProvider, usuario_id: str | None) -> Usuario:
    if not usuario_id:
        raise UsuarioNaoAutenticadoError("Usuário não identificado")
    usuario = identity.obter_usuario(usuario_id)
    if usuario is None:
        raise UsuarioNaoAutenticadoError("Usuário não encontrado ou inativo")
    return usuario


def autorizar_escrita(usuario: Usuario, empresa_id: str) -> None:
    if not usuario.admin:
        raise AcessoNegadoError("Acesso negado. Apenas administradores podem importar dados.")
    if not usuario.super_admin and usuario.empresa_id != empresa_id:
        raise AcessoNegadoError("Acesso negado a esta empresa")


def autorizar_leitura(usuario: Usuario, empresa_id: str) -> None:
    if not usuario.super_admin and usuario.empresa_id != empresa_id:
        raise AcessoNegadoError("Acesso negado a esta empresa")
