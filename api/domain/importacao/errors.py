# api/domain/importacao/errors.py
from __future__ import annotations


class ImportacaoError(Exception):
    """Base de todos os erros de acao sobre importacoes."""


class JobNaoEncontradoError(ImportacaoError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Importação não encontrada: {job_id}")
        self.job_id = job_id


class TransicaoInvalidaError(ImportacaoError):
    """Acao pedida nao e legal no status atual do job (ex: aprovar job ja aprovado)."""

    def __init__(self, de: str, para: str) -> None:
        super().__init__(f"Transição de status inválida: {de} → {para}")
        self.de = de
        self.para = para


class AcessoNegadoError(ImportacaoError):
    """Usuario sem papel de admin ou de outra empresa."""


class UsuarioNaoAutenticadoError(ImportacaoError):
    """Nenhum usuario identificado na requisicao."""


class ArquivoIndisponivelError(ImportacaoError):
    """Arquivo de origem nao pode ser lido do storage."""

    def __init__(self, caminho: str) -> None:
        super().__init__(f"Arquivo não encontrado no storage: {caminho}")
        self.caminho = caminho


class ImportacaoReferenciaInvalidaError(ImportacaoError):
    """parent_job_id de uma reimportacao aponta para job de outra empresa."""


class ResumoIndisponivelError(ImportacaoError):
    """Gateway de IA falhou ou respondeu sem texto; o chamador usa o resumo padrao."""
