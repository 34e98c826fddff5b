import logging
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from reporter.config import Settings
from reporter.modules.grafana.client import GrafanaApiVersion, GrafanaClient
from reporter.modules.grafana.models import Dashboard
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.compiler import LatexCompiler
from reporter.modules.reports.document import DocumentAssembler
from reporter.modules.reports.fetcher import DEFAULT_WORKERS, PanelFetchPipeline
from reporter.modules.reports.templates import load_named_template
from reporter.modules.reports.workspace import Workspace
from reporter.shared.exceptions import ReporterError
from reporter.shared.metrics import REPORT_DURATION_SECONDS, REPORTS_TOTAL

logger = logging.getLogger(__name__)


class Report:
    """
    Uma geracao de relatorio PDF para um dashboard.

    O workspace e criado no construtor e pertence exclusivamente a esta
    instancia. Depois de ler o PDF retornado por generate(), chame cleanup()
    (ou use `with Report(...) as report:`) para remover os arquivos,
    inclusive quando a geracao falhar.
    """

    def __init__(
        self,
        client: GrafanaClient,
        dashboard_id: str,
        time_range: TimeRange,
        template: str | None = None,
        variables: Mapping[str, Sequence[str]] | None = None,
        grid_layout: bool = False,
        workers: int = DEFAULT_WORKERS,
        workspace_root: str | Path | None = None,
        compiler: LatexCompiler | None = None,
    ) -> None:
        self._client = client
        self._dashboard_id = dashboard_id
        self._time_range = time_range
        self._template = template
        self._variables = dict(variables or {})
        self._workspace = Workspace(workspace_root)
        try:
            self._pipeline = PanelFetchPipeline(client, self._workspace, workers=workers)
        except ValueError:
            self._workspace.cleanup()
            raise
        self._assembler = DocumentAssembler(grid_layout=grid_layout)
        self._compiler = compiler or LatexCompiler()
        self._dashboard: Dashboard | None = None

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def compiler(self) -> LatexCompiler:
        return self._compiler

    @property
    def dashboard_id(self) -> str:
        return self._dashboard_id

    @property
    def title(self) -> str:
        """Titulo do dashboard (ou o ID, se ainda nao foi carregado)."""
        if self._dashboard is None:
            return self._dashboard_id
        return self._dashboard.title or self._dashboard_id

    def generate(self) -> Path:
        """
        Gera o report.pdf.

        Fluxo: valida o intervalo -> busca o dashboard -> baixa os paineis
        em paralelo -> gera o report.tex -> compila com o LaTeX.

        Returns:
            Caminho do PDF dentro do workspace.

        Raises:
            ReporterError: Qualquer falha; o workspace continua valido para cleanup().
        """
        start = time.monotonic()
        try:
            self._time_range.validate()

            dashboard = self._client.get_dashboard(self._dashboard_id, self._variables)
            self._dashboard = dashboard

            self._pipeline.fetch(
                dashboard,
                self._dashboard_id,
                self._time_range,
                self._variables,
            )
            self._assembler.write(
                self._workspace,
                dashboard,
                self._time_range,
                self._template,
            )
            pdf_path = self._compiler.compile(self._workspace)
        except ReporterError as exc:
            REPORTS_TOTAL.labels(status='error').inc()
            logger.error(
                'Erro ao gerar relatorio do dashboard %s: %s',
                self._dashboard_id, exc.message,
            )
            raise

        REPORTS_TOTAL.labels(status='success').inc()
        REPORT_DURATION_SECONDS.observe(time.monotonic() - start)
        logger.info(
            'Relatorio do dashboard %s gerado em %s (%.1fs)',
            self._dashboard_id, pdf_path, time.monotonic() - start,
        )
        return pdf_path

    def cleanup(self) -> None:
        """Remove o workspace (imagens, .tex e PDF)."""
        self._workspace.cleanup()

    def __enter__(self) -> 'Report':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


class ReportService:
    """
    Cria clientes do Grafana e relatorios a partir das configuracoes.

    Cada requisicao recebe seu proprio cliente (token da requisicao) e seu
    proprio Report (workspace exclusivo).
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def new_client(
        self,
        api_token: str = '',
        api_version: GrafanaApiVersion | str | None = None,
    ) -> GrafanaClient:
        return GrafanaClient(
            base_url=self._settings.grafana_url,
            api_token=api_token,
            api_version=api_version or self._settings.grafana_api_version,
            ssl_check=self._settings.ssl_check,
            grid_layout=self._settings.grid_layout,
            retry_attempts=self._settings.panel_retry_attempts,
            retry_delay=self._settings.panel_retry_delay,
            timeout=self._settings.grafana_timeout,
        )

    def load_template(self, name: str | None) -> str | None:
        """Le um template nomeado; None/vazio usa o padrao."""
        if not name:
            return None
        return load_named_template(self._settings.templates_dir, name)

    def new_report(
        self,
        dashboard_id: str,
        time_range: TimeRange,
        api_token: str = '',
        api_version: GrafanaApiVersion | str | None = None,
        template_name: str | None = None,
        variables: Mapping[str, Sequence[str]] | None = None,
    ) -> Report:
        """
        Monta um Report pronto para generate().

        Raises:
            TemplateNotFoundError: Template nomeado inexistente.
        """
        template = self.load_template(template_name)
        client = self.new_client(api_token, api_version)
        return Report(
            client=client,
            dashboard_id=dashboard_id,
            time_range=time_range,
            template=template,
            variables=variables,
            grid_layout=self._settings.grid_layout,
            workers=self._settings.panel_fetch_workers,
            workspace_root=self._settings.workspace_root or None,
            compiler=LatexCompiler(
                self._settings.latex_command,
                timeout=self._settings.latex_timeout,
            ),
        )
