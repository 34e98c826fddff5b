import shutil
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from reporter import __version__
from reporter.config import settings
from reporter.shared.exceptions import (
    MalformedTimeSpecError,
    ReporterError,
    TemplateNotFoundError,
)
from reporter.shared.logging import (
    correlation_id_var,
    generate_id,
    get_logger,
    request_id_var,
    setup_logging,
)
from reporter.shared.schemas import HealthResponse, MessageResponse

# Inicializa logging estruturado antes de qualquer outro codigo
setup_logging(
    log_level=settings.log_level,
    log_format=settings.log_format,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Gerencia o ciclo de vida da aplicacao (startup/shutdown)."""
    logger.info(
        'grafana-reporter v%s iniciado. Grafana em %s (api %s)',
        __version__,
        settings.grafana_url,
        settings.grafana_api_version,
    )
    if shutil.which(settings.latex_command) is None:
        logger.warning(
            'Executavel "%s" nao encontrado no PATH; relatorios vao falhar '
            'na compilacao.',
            settings.latex_command,
        )
    yield
    logger.info('grafana-reporter encerrado.')


app = FastAPI(
    title='grafana-reporter',
    description='Gera relatorios PDF a partir de dashboards do Grafana',
    version=__version__,
    lifespan=lifespan,
    docs_url='/docs',
    redoc_url='/redoc',
)

# -------------------------------------------------------------------------
# CORS Middleware
# -------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=['GET', 'OPTIONS'],
    allow_headers=['Accept', 'Origin', 'X-Requested-With', 'X-Correlation-ID'],
    expose_headers=['Content-Disposition', 'X-Request-ID', 'X-Correlation-ID'],
)

# -------------------------------------------------------------------------
# Prometheus Instrumentation
# -------------------------------------------------------------------------
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_group_untemplated=True,
    excluded_handlers=['/metrics', '/docs', '/redoc', '/openapi.json'],
).instrument(app).expose(app, endpoint='/metrics', include_in_schema=False)


@app.middleware('http')
async def request_context_middleware(request: Request, call_next):
    """
    Gera request_id e correlation_id para cada request HTTP.

    O correlation_id pode ser propagado pelo cliente via header
    X-Correlation-ID, ou sera gerado automaticamente.
    """
    req_id = generate_id()
    corr_id = request.headers.get('x-correlation-id') or generate_id()

    req_token = request_id_var.set(req_id)
    corr_token = correlation_id_var.set(corr_id)
    try:
        response = await call_next(request)
        response.headers['X-Request-ID'] = req_id
        response.headers['X-Correlation-ID'] = corr_id
        return response
    finally:
        request_id_var.reset(req_token)
        correlation_id_var.reset(corr_token)


# -------------------------------------------------------------------------
# Handlers globais de excecoes
# -------------------------------------------------------------------------


def _error_response(status_code: int, exc: ReporterError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=MessageResponse(success=False, message=exc.message).model_dump(),
    )


@app.exception_handler(MalformedTimeSpecError)
async def malformed_time_handler(
    request: Request, exc: MalformedTimeSpecError
) -> JSONResponse:
    return _error_response(400, exc)


@app.exception_handler(TemplateNotFoundError)
async def template_not_found_handler(
    request: Request, exc: TemplateNotFoundError
) -> JSONResponse:
    return _error_response(400, exc)


@app.exception_handler(ReporterError)
async def reporter_error_handler(
    request: Request, exc: ReporterError
) -> JSONResponse:
    logger.error('Erro ao gerar relatorio: %s', exc.message)
    return _error_response(500, exc)


# -------------------------------------------------------------------------
# Routers dos modulos
# -------------------------------------------------------------------------
from reporter.modules.reports.router import router as reports_router

app.include_router(reports_router)


# -------------------------------------------------------------------------
# Health Check
# -------------------------------------------------------------------------


@app.get('/', tags=['Health'], response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Endpoint de health check simples, com os endpoints disponiveis."""
    return HealthResponse(
        status='healthy',
        service='grafana-reporter',
        version=__version__,
        details={
            'endpoints': [
                '/api/report/{dashboard_id}',
                '/api/v5/report/{dashboard_id}',
            ],
        },
    )


@app.get('/api/health', tags=['Health'], response_model=HealthResponse)
async def api_health_check() -> HealthResponse:
    """
    Health check com o estado das dependencias locais.

    Verifica se o compilador LaTeX esta disponivel no PATH. Sem ele o
    servico sobe, mas nenhum relatorio e gerado (status degraded).
    """
    latex_path = shutil.which(settings.latex_command)
    return HealthResponse(
        status='healthy' if latex_path else 'degraded',
        service='grafana-reporter',
        version=__version__,
        details={
            'latex': latex_path or 'nao encontrado',
            'grafana_url': settings.grafana_url,
            'grafana_api_version': settings.grafana_api_version,
        },
    )
