# api/interfaces/api/routes/importacao_routes.py
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from api.application.dtos.importacao_dto import (
    AnaliseRequestDTO,
    ComparativoDTO,
    ImportJobDTO,
    ImportJobRowDTO,
    PaginaLinhasDTO,
    ResultadoCommitDTO,
)
from api.application.services.analise_service import AnaliseService
from api.application.services.aprovacao_service import AprovacaoService
from api.application.services.consulta_service import ConsultaImportacaoService
from api.application.services.export_service import ExportService
from api.application.services.reimportacao_service import ReimportacaoService
from api.domain.importacao.errors import (
    AcessoNegadoError,
    ArquivoIndisponivelError,
    ImportacaoError,
    ImportacaoReferenciaInvalidaError,
    JobNaoEncontradoError,
    TransicaoInvalidaError,
    UsuarioNaoAutenticadoError,
)
from api.domain.importacao.value_objects import Usuario
from api.interfaces.api.dependencies import (
    get_analise_service,
    get_aprovacao_service,
    get_consulta_service,
    get_export_service,
    get_reimportacao_service,
    get_usuario_atual,
)
from pipeline.schema.registry import MapeamentoInvalidoError
from pipeline.schema.tipos import StatusLinha
from pipeline.sources.errors import EntradaVaziaError, RespostaIAInvalidaError

router = APIRouter()

_ERROS_ENTRADA = (EntradaVaziaError, RespostaIAInvalidaError, MapeamentoInvalidoError)


def _http_error(err: Exception) -> HTTPException:
    if isinstance(err, JobNaoEncontradoError):
        return HTTPException(status_code=404, detail=str(err))
    if isinstance(err, UsuarioNaoAutenticadoError):
        return HTTPException(status_code=401, detail=str(err))
    if isinstance(err, AcessoNegadoError):
        return HTTPException(status_code=403, detail=str(err))
    if isinstance(err, TransicaoInvalidaError):
        return HTTPException(status_code=409, detail=str(err))
    if isinstance(err, (ArquivoIndisponivelError, EntradaVaziaError)):
        return HTTPException(status_code=400, detail=str(err))
    if isinstance(err, (RespostaIAInvalidaError, MapeamentoInvalidoError, ImportacaoReferenciaInvalidaError)):
        return HTTPException(status_code=422, detail=str(err))
    return HTTPException(status_code=400, detail=str(err))


@router.post("/importacoes", response_model=ImportJobDTO, status_code=201)
def analisar(
    body: AnaliseRequestDTO,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: AnaliseService = Depends(get_analise_service),  # noqa: B008
) -> ImportJobDTO:
    try:
        job = service.analisar(
            arquivo_path=body.arquivo_path,
            empresa_id=body.empresa_id,
            usuario=usuario,
            parent_job_id=body.parent_job_id,
            mapeamento=body.column_mapping,
            data_type=body.data_type,
        )
    except (ImportacaoError, *_ERROS_ENTRADA) as err:
        raise _http_error(err) from err
    return ImportJobDTO.from_domain(job)


@router.get("/importacoes", response_model=list[ImportJobDTO])
def listar(
    empresa_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ConsultaImportacaoService = Depends(get_consulta_service),  # noqa: B008
) -> list[ImportJobDTO]:
    try:
        jobs = service.listar_jobs(usuario, empresa_id, limit, offset)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return [ImportJobDTO.from_domain(j) for j in jobs]


@router.get("/importacoes/{job_id}", response_model=ImportJobDTO)
def obter(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ConsultaImportacaoService = Depends(get_consulta_service),  # noqa: B008
) -> ImportJobDTO:
    try:
        job = service.obter_job(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return ImportJobDTO.from_domain(job)


@router.get("/importacoes/{job_id}/linhas", response_model=PaginaLinhasDTO)
def listar_linhas(
    job_id: str,
    status: StatusLinha | None = Query(default=None),
    busca: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ConsultaImportacaoService = Depends(get_consulta_service),  # noqa: B008
) -> PaginaLinhasDTO:
    try:
        pagina = service.listar_linhas(job_id, usuario, status, busca, limit, offset)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return PaginaLinhasDTO(
        total=pagina.total,
        limit=limit,
        offset=offset,
        linhas=[ImportJobRowDTO.from_domain(r) for r in pagina.linhas],
    )


@router.post("/importacoes/{job_id}/aprovar", response_model=ResultadoCommitDTO)
def aprovar(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: AprovacaoService = Depends(get_aprovacao_service),  # noqa: B008
) -> ResultadoCommitDTO:
    try:
        resultado = service.aprovar(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return ResultadoCommitDTO.from_domain(resultado)


@router.post("/importacoes/{job_id}/rejeitar", status_code=204)
def rejeitar(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: AprovacaoService = Depends(get_aprovacao_service),  # noqa: B008
) -> Response:
    try:
        service.rejeitar(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return Response(status_code=204)


@router.get("/importacoes/{job_id}/export")
def exportar(
    job_id: str,
    status: StatusLinha | None = Query(default=None),
    busca: str | None = Query(default=None, max_length=100),
    salvar: bool = Query(default=False),
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ExportService = Depends(get_export_service),  # noqa: B008
) -> Response:
    try:
        arquivo = service.exportar_linhas(job_id, usuario, status=status, busca=busca, salvar=salvar)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return Response(
        content=arquivo.conteudo,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{arquivo.nome}"'},
    )


@router.get("/importacoes/{job_id}/comparativo", response_model=ComparativoDTO)
def comparativo(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ReimportacaoService = Depends(get_reimportacao_service),  # noqa: B008
) -> ComparativoDTO:
    try:
        resultado = service.comparar(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return ComparativoDTO.from_domain(resultado)


@router.get("/importacoes/{job_id}/linhagem", response_model=list[ImportJobDTO])
def linhagem(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ReimportacaoService = Depends(get_reimportacao_service),  # noqa: B008
) -> list[ImportJobDTO]:
    try:
        cadeia = service.linhagem(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return [ImportJobDTO.from_domain(j) for j in cadeia]


@router.get("/importacoes/{job_id}/reimportacoes", response_model=list[ImportJobDTO])
def reimportacoes(
    job_id: str,
    usuario: Usuario = Depends(get_usuario_atual),  # noqa: B008
    service: ReimportacaoService = Depends(get_reimportacao_service),  # noqa: B008
) -> list[ImportJobDTO]:
    try:
        filhos = service.reimportacoes(job_id, usuario)
    except ImportacaoError as err:
        raise _http_error(err) from err
    return [ImportJobDTO.from_domain(j) for j in filhos]
