"""
Download concorrente das imagens dos paineis.

Um pool fixo de threads consome os jobs (um por painel). Cada job baixa o
PNG do painel e grava em images/image<id>.png no workspace. Falhas sao
registradas por painel sem interromper os demais jobs; ao final, se algum
painel falhou, um PanelFetchError agregado e levantado. As imagens baixadas
com sucesso permanecem no disco.
"""

import contextvars
import logging
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from reporter.modules.grafana.client import GrafanaClient
from reporter.modules.grafana.models import Dashboard, Panel
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.workspace import Workspace
from reporter.shared.exceptions import (
    LocalIOError,
    PanelFetchError,
    RemoteFetchError,
    ReporterError,
)
from reporter.shared.metrics import PANEL_FETCH_DURATION_SECONDS, PANEL_FETCH_TOTAL

logger = logging.getLogger(__name__)

# Tamanho default do pool (evita sobrecarregar o renderer do Grafana)
DEFAULT_WORKERS: int = 5


@dataclass(frozen=True)
class FetchJob:
    """Unidade de trabalho: baixar a imagem de um painel."""

    panel: Panel
    dashboard_id: str
    time_range: TimeRange
    variables: Mapping[str, Sequence[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchResult:
    """Resultado de um job: caminho da imagem ou erro."""

    panel: Panel
    path: Path | None = None
    error: ReporterError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class PanelFetchPipeline:
    """
    Baixa as imagens de todos os paineis de um dashboard em paralelo.

    Uso:
        pipeline = PanelFetchPipeline(client, workspace, workers=5)
        paths = pipeline.fetch(dashboard, 'dash-uid', time_range, variables)
    """

    def __init__(
        self,
        client: GrafanaClient,
        workspace: Workspace,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        if workers < 1:
            raise ValueError('O pool de download precisa de ao menos 1 worker')
        self._client = client
        self._workspace = workspace
        self._workers = workers

    @property
    def workers(self) -> int:
        return self._workers

    def fetch(
        self,
        dashboard: Dashboard,
        dashboard_id: str,
        time_range: TimeRange,
        variables: Mapping[str, Sequence[str]] | None = None,
    ) -> list[Path]:
        """
        Baixa e grava as imagens de todos os paineis.

        Todos os jobs rodam ate o fim, mesmo apos a primeira falha.

        Returns:
            Caminhos das imagens, na ordem dos paineis do dashboard.

        Raises:
            PanelFetchError: Se ao menos um painel falhou.
        """
        jobs = [
            FetchJob(
                panel=panel,
                dashboard_id=dashboard_id,
                time_range=time_range,
                variables=variables or {},
            )
            for panel in dashboard.panels
        ]
        if not jobs:
            logger.warning('Dashboard %s sem paineis para baixar', dashboard_id)
            return []

        logger.info(
            'Baixando %d painel(is) do dashboard %s com %d worker(s)',
            len(jobs), dashboard_id, min(self._workers, len(jobs)),
        )

        with ThreadPoolExecutor(
            max_workers=min(self._workers, len(jobs)),
            thread_name_prefix='panel-fetch',
        ) as pool:
            # Cada job roda numa copia do contexto para manter request_id nos logs
            futures = [
                pool.submit(contextvars.copy_context().run, self._run_job, job)
                for job in jobs
            ]
        results: list[FetchResult] = [future.result() for future in futures]

        failures = [(r.panel.id, r.error) for r in results if r.error is not None]
        if failures:
            logger.error(
                'Falha em %d de %d painel(is) do dashboard %s',
                len(failures), len(results), dashboard_id,
            )
            raise PanelFetchError(dashboard_id, failures)

        logger.info('Todas as %d imagens do dashboard %s baixadas', len(results), dashboard_id)
        return [r.path for r in results if r.path is not None]

    def _run_job(self, job: FetchJob) -> FetchResult:
        start = time.monotonic()
        try:
            result = FetchResult(panel=job.panel, path=self._fetch_panel(job))
        except ReporterError as exc:
            result = FetchResult(panel=job.panel, error=exc)
        except Exception as exc:
            logger.exception('Erro inesperado no painel %d', job.panel.id)
            result = FetchResult(
                panel=job.panel,
                error=RemoteFetchError(f'Erro ao obter painel {job.panel.id}: {exc}'),
            )
        finally:
            PANEL_FETCH_DURATION_SECONDS.observe(time.monotonic() - start)

        if result.success:
            PANEL_FETCH_TOTAL.labels(status='success').inc()
        else:
            PANEL_FETCH_TOTAL.labels(status='error').inc()
            logger.warning('Erro ao criar imagem do painel %d: %s', job.panel.id, result.error)
        return result

    def _fetch_panel(self, job: FetchJob) -> Path:
        image = self._client.get_panel_png(
            job.panel,
            job.dashboard_id,
            job.time_range,
            job.variables,
        )

        path = self._workspace.image_path(job.panel.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LocalIOError(f'Erro ao criar diretorio de imagens {path.parent}: {exc}') from exc
        try:
            path.write_bytes(image)
        except OSError as exc:
            raise LocalIOError(f'Erro ao gravar imagem {path}: {exc}') from exc
        return path
