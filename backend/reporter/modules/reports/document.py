import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import jinja2

from reporter.modules.grafana.models import Dashboard
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.templates import default_template
from reporter.modules.reports.workspace import Workspace
from reporter.shared.exceptions import LocalIOError, TemplateError

logger = logging.getLogger(__name__)

_ENVIRONMENT = jinja2.Environment(
    block_start_string='[%',
    block_end_string='%]',
    variable_start_string='[[',
    variable_end_string=']]',
    comment_start_string='[#',
    comment_end_string='#]',
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,
)


def build_context(
    dashboard: Dashboard,
    time_range: TimeRange,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Campos disponiveis para o template.

    As duas pontas do intervalo sao resolvidas contra o mesmo instante.
    """
    anchor = now or datetime.now(UTC)
    return {
        'title': dashboard.title,
        'description': dashboard.description,
        'variable_values': dashboard.variable_values,
        'variables': dict(dashboard.variables),
        'layout': dashboard.layout.value,
        'rows': dashboard.rows,
        'panels': dashboard.panels,
        'from_formatted': time_range.from_formatted(anchor),
        'to_formatted': time_range.to_formatted(anchor),
        'time_range': time_range,
    }


class DocumentAssembler:
    """
    Gera o documento LaTeX do relatorio a partir de um template Jinja2.

    A ordem dos paineis no documento e a ordem do dashboard, independente
    da ordem em que as imagens foram baixadas.
    """

    def __init__(self, grid_layout: bool = False) -> None:
        self._grid_layout = grid_layout

    def compile_template(self, template: str | None = None) -> jinja2.Template:
        """
        Faz o parse do template (ou do padrao, se vazio).

        Raises:
            TemplateError: Sintaxe invalida.
        """
        source = template or default_template(self._grid_layout)
        try:
            return _ENVIRONMENT.from_string(source)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateError(
                f'Erro de sintaxe no template (linha {exc.lineno}): {exc.message}'
            ) from exc

    def assemble(
        self,
        dashboard: Dashboard,
        time_range: TimeRange,
        template: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """
        Renderiza o documento.

        Raises:
            TemplateError: Sintaxe invalida ou falha durante a renderizacao.
            MalformedTimeSpecError: Intervalo de tempo invalido.
        """
        compiled = self.compile_template(template)
        context = build_context(dashboard, time_range, now)
        try:
            return compiled.render(context)
        except jinja2.TemplateError as exc:
            raise TemplateError(f'Erro ao executar template: {exc}') from exc

    def write(
        self,
        workspace: Workspace,
        dashboard: Dashboard,
        time_range: TimeRange,
        template: str | None = None,
        now: datetime | None = None,
    ) -> Path:
        """Renderiza e grava o documento em report.tex no workspace."""
        document = self.assemble(dashboard, time_range, template, now)
        path = workspace.tex_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(document, encoding='utf-8')
        except OSError as exc:
            raise LocalIOError(f'Erro ao criar arquivo tex em {path}: {exc}') from exc
        logger.info('Documento LaTeX gerado em %s', path)
        return path
