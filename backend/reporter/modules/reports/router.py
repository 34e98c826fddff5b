import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from reporter.dependencies import get_report_service
from reporter.modules.grafana.client import GrafanaApiVersion
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.service import ReportService
from reporter.shared.logging import dashboard_id_var

logger = logging.getLogger(__name__)

router = APIRouter(tags=['Reports'])

_VARIABLE_PREFIX = 'var-'


def dashboard_variables(request: Request) -> dict[str, list[str]]:
    """Extrai as variaveis do Grafana (var-<nome>) da query string."""
    variables: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        if key.startswith(_VARIABLE_PREFIX):
            variables.setdefault(key, []).append(value)
    if variables:
        logger.info('Chamado com variaveis: %s', variables)
    return variables


def content_disposition(title: str) -> str:
    """Header Content-Disposition com o titulo do dashboard em ASCII."""
    filename = json.dumps(title, ensure_ascii=True)[1:-1]
    return f'inline; filename="{filename}.pdf"'


def _serve_report(
    request: Request,
    service: ReportService,
    api_version: GrafanaApiVersion,
    dashboard_id: str,
    apitoken: str,
    from_spec: str,
    to_spec: str,
    timezone: str,
    template: str,
) -> FileResponse:
    dashboard_id_var.set(dashboard_id)
    time_range = TimeRange(from_spec, to_spec, timezone)
    logger.info(
        'Relatorio solicitado: dashboard=%s, api=%s, intervalo=%s, template=%s',
        dashboard_id, api_version.value, time_range, template or 'padrao',
    )

    report = service.new_report(
        dashboard_id=dashboard_id,
        time_range=time_range,
        api_token=apitoken,
        api_version=api_version,
        template_name=template,
        variables=dashboard_variables(request),
    )
    try:
        pdf_path = report.generate()
    except Exception:
        report.cleanup()
        raise

    logger.info('Relatorio do dashboard %s gerado corretamente', dashboard_id)
    # O workspace so e removido depois que o PDF foi enviado
    return FileResponse(
        pdf_path,
        media_type='application/pdf',
        headers={'Content-Disposition': content_disposition(report.title)},
        background=BackgroundTask(report.cleanup),
    )


@router.get('/api/report/{dashboard_id}', response_class=FileResponse)
def get_report_v4(
    request: Request,
    dashboard_id: str,
    apitoken: str = '',
    from_spec: str = Query('', alias='from'),
    to_spec: str = Query('', alias='to'),
    timezone: str = '',
    template: str = '',
    service: ReportService = Depends(get_report_service),
) -> FileResponse:
    """
    Gera o PDF de um dashboard do Grafana v4 (identificado pelo slug).

    Parametros de query: apitoken, from, to, timezone, template e
    variaveis do Grafana no formato var-<nome>=<valor>.
    """
    return _serve_report(
        request, service, GrafanaApiVersion.V4, dashboard_id,
        apitoken, from_spec, to_spec, timezone, template,
    )


@router.get('/api/v5/report/{dashboard_id}', response_class=FileResponse)
def get_report_v5(
    request: Request,
    dashboard_id: str,
    apitoken: str = '',
    from_spec: str = Query('', alias='from'),
    to_spec: str = Query('', alias='to'),
    timezone: str = '',
    template: str = '',
    service: ReportService = Depends(get_report_service),
) -> FileResponse:
    """
    Gera o PDF de um dashboard do Grafana v5+ (identificado pelo uid).

    Mesmos parametros de /api/report/{dashboard_id}.
    """
    return _serve_report(
        request, service, GrafanaApiVersion.V5, dashboard_id,
        apitoken, from_spec, to_spec, timezone, template,
    )
