# api/domain/importacao/entities.py
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from pipeline.schema.tipos import StatusLinha, TipoDado

from .enums import ResultadoLinhaCommit, StatusJob, transicionar


@dataclass(frozen=True)
class ImportJob:
    """Aggregate Root da importacao. Contagens sao calculadas na analise e nunca
    incrementadas depois; status so muda pela tabela de transicoes."""
    id: str
    empresa_id: str
    data_type: TipoDado
    status: StatusJob
    arquivo_nome: str
    arquivo_url: str
    total_rows: int = 0
    valid_rows: int = 0
    warning_rows: int = 0
    error_rows: int = 0
    duplicate_rows: int = 0
    column_mapping: dict[str, str] = field(default_factory=dict)
    ai_summary: str | None = None
    criado_por: str | None = None
    aprovado_por: str | None = None
    data_aprovacao: datetime | None = None
    parent_job_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.total_rows != self.valid_rows + self.warning_rows + self.error_rows:
            raise ValueError(
                f"ImportJob {self.id}: total_rows={self.total_rows} difere de "
                f"valid+warning+error={self.valid_rows + self.warning_rows + self.error_rows}"
            )
        if self.duplicate_rows > self.total_rows:
            raise ValueError(f"ImportJob {self.id}: duplicate_rows maior que total_rows")

    @property
    def linhas_comitaveis(self) -> int:
        return self.valid_rows + self.warning_rows

    def com_status(self, novo: StatusJob) -> ImportJob:
        return replace(self, status=transicionar(self.status, novo))


@dataclass(frozen=True)
class ImportJobRow:
    """Linha em staging. Imutavel depois de criada: o commit le, nunca reescreve."""
    id: str
    job_id: str
    row_number: int
    status: StatusLinha
    original_data: dict[str, str]
    mapped_data: dict[str, object]
    validation_errors: tuple[str, ...] | None = None
    validation_warnings: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.row_number < 1:
            raise ValueError(f"row_number deve ser >= 1, recebido {self.row_number}")


@dataclass(frozen=True)
class CommitOutcome:
    row_number: int
    resultado: ResultadoLinhaCommit
    mensagem: str | None = None


@dataclass(frozen=True)
class ResultadoCommit:
    inseridos: int
    atualizados: int
    erros: int
    falhas: tuple[CommitOutcome, ...] = ()

    @classmethod
    def de_outcomes(cls, outcomes: Iterable[CommitOutcome]) -> ResultadoCommit:
        lista = list(outcomes)
        return cls(
            inseridos=sum(1 for o in lista if o.resultado is ResultadoLinhaCommit.INSERIDA),
            atualizados=sum(1 for o in lista if o.resultado is ResultadoLinhaCommit.ATUALIZADA),
            erros=sum(1 for o in lista if o.resultado is ResultadoLinhaCommit.FALHOU),
            falhas=tuple(o for o in lista if o.resultado is ResultadoLinhaCommit.FALHOU),
        )

    @property
    def total(self) -> int:
        return self.inseridos + self.atualizados + self.erros


@dataclass(frozen=True)
class ComparativoReimportacao:
    job_id: str
    parent_job_id: str
    parent_total: int
    parent_validas: int
    parent_avisos: int
    parent_erros: int
    total: int
    validas: int
    avisos: int
    erros: int

    @property
    def erros_resolvidos(self) -> int:
        return max(0, self.parent_erros - self.erros)

    @property
    def avisos_resolvidos(self) -> int:
        return max(0, self.parent_avisos - self.avisos)

    @property
    def delta_validas(self) -> int:
        return self.validas - self.parent_validas

    @property
    def delta_erros(self) -> int:
        return self.erros - self.parent_erros

    @property
    def problemas_resolvidos(self) -> int:
        return self.erros_resolvidos + self.avisos_resolvidos

    @property
    def mensagem(self) -> str:
        n = self.problemas_resolvidos
        if n == 0:
            return "Nenhum problema resolvido"
        if n == 1:
            return "1 problema resolvido"
        return f"{n} problemas resolvidos"


@dataclass(frozen=True)
class RegistroAuditoria:
    """Trilha de compliance de uma acao (analise, aprovacao, rejeicao)."""
    usuario_id: str
    empresa_id: str | None
    acao: str
    job_id: str | None = None
    data_type: str | None = None
    input_summary: str | None = None
    output_summary: str | None = None
    model_used: str | None = None
    tokens_used: int | None = None
    rows_processed: int | None = None
    duration_ms: int | None = None


@dataclass(frozen=True)
class ResumoGerado:
    texto: str
    modelo: str | None = None
    tokens: int | None = None
