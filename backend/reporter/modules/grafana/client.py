import logging
import threading
import time
from collections.abc import Mapping, Sequence
from enum import Enum
from urllib.parse import quote

import requests

from reporter import __version__
from reporter.modules.grafana.models import Dashboard, Panel, decode_dashboard
from reporter.modules.grafana.timerange import TimeRange
from reporter.shared.exceptions import DashboardFetchError, RemoteFetchError

logger = logging.getLogger(__name__)

# Timeout padrao (connect, read); o render de paineis pesados e lento
_DEFAULT_TIMEOUT = 300.0

# Fator de conversao de unidades de grid para pixels
_GRID_UNIT_PIXELS = 40

# Codigos HTTP transientes (retry vale a pena)
_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

# Tamanhos de imagem quando o layout em grid esta desligado
_SINGLE_STAT_SIZE = (300, 150)
_TEXT_SIZE = (1000, 100)
_DEFAULT_SIZE = (1000, 500)


class GrafanaApiVersion(str, Enum):
    """Versao da API do Grafana (muda os endpoints usados)."""

    V4 = 'v4'
    V5 = 'v5'


_DASHBOARD_PATHS = {
    GrafanaApiVersion.V4: '/api/dashboards/db/{dashboard_id}',
    GrafanaApiVersion.V5: '/api/dashboards/uid/{dashboard_id}',
}

_RENDER_PATHS = {
    GrafanaApiVersion.V4: '/render/dashboard-solo/db/{dashboard_id}',
    GrafanaApiVersion.V5: '/render/d-solo/{dashboard_id}/_',
}

Variables = Mapping[str, Sequence[str]]


class GrafanaClient:
    """
    Cliente HTTP da API do Grafana.

    Busca a definicao de dashboards e o PNG renderizado de cada painel.
    As variaveis de template do Grafana (var-<nome>=<valor>) sao passadas
    explicitamente em cada chamada, nunca guardadas no cliente.

    O download de paineis faz retry em erros transientes (5xx, 429, falha
    de rede) com espera crescente: retry_delay, 2*retry_delay, ...
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = '',
        api_version: GrafanaApiVersion | str = GrafanaApiVersion.V5,
        ssl_check: bool = True,
        grid_layout: bool = False,
        retry_attempts: int = 3,
        retry_delay: float = 10.0,
        timeout: float = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Inicializa o cliente.

        Args:
            base_url: URL do Grafana (ex: http://localhost:3000).
            api_token: Token da API. Vazio omite o header Authorization.
            api_version: 'v4' (slug) ou 'v5' (uid).
            ssl_check: Se deve verificar o certificado TLS.
            grid_layout: Se o tamanho das imagens segue o gridPos do painel.
            retry_attempts: Total de tentativas por painel (minimo 1).
            retry_delay: Espera base entre tentativas, em segundos.
            timeout: Timeout de cada request HTTP, em segundos.
            session: Sessao requests compartilhada (injetavel em testes).
                Sem ela, cada thread do pool de download usa a sua propria.
        """
        self._base_url = base_url.rstrip('/')
        self._api_token = api_token
        self._api_version = GrafanaApiVersion(api_version)
        self._ssl_check = ssl_check
        self._grid_layout = grid_layout
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._session = session
        self._local = threading.local()

    @property
    def api_version(self) -> GrafanaApiVersion:
        return self._api_version

    def _get_session(self) -> requests.Session:
        """Sessao injetada ou uma requests.Session por thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def _path(self, paths: Mapping[GrafanaApiVersion, str], dashboard_id: str) -> str:
        # O uid/slug vai num segmento do path; '/', '?' e '#' nao podem vazar
        return paths[self._api_version].format(dashboard_id=quote(dashboard_id, safe=''))

    def _headers(self) -> dict[str, str]:
        headers = {'User-Agent': f'grafana-reporter/{__version__}'}
        if self._api_token:
            headers['Authorization'] = f'Bearer {self._api_token}'
        return headers

    @staticmethod
    def _variable_params(variables: Variables | None) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        for key, values in (variables or {}).items():
            for value in values:
                params.append((key, value))
        return params

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    def dashboard_url(self, dashboard_id: str) -> str:
        path = self._path(_DASHBOARD_PATHS, dashboard_id)
        return f'{self._base_url}{path}'

    def get_dashboard(
        self,
        dashboard_id: str,
        variables: Variables | None = None,
    ) -> Dashboard:
        """
        Busca e decodifica a definicao de um dashboard.

        Raises:
            DashboardFetchError: Falha de rede, resposta nao-200 ou JSON invalido.
        """
        url = self.dashboard_url(dashboard_id)
        logger.info('Conectando ao dashboard em %s', url)

        try:
            response = self._get_session().get(
                url,
                params=self._variable_params(variables),
                headers=self._headers(),
                timeout=self._timeout,
                verify=self._ssl_check,
            )
        except requests.RequestException as exc:
            raise DashboardFetchError(dashboard_id, str(exc)) from exc

        if response.status_code != 200:
            logger.error(
                'Erro ao obter dashboard %s (status=%d)',
                dashboard_id, response.status_code,
            )
            raise DashboardFetchError(
                dashboard_id,
                f'HTTP {response.status_code}: {response.text[:500]}',
            )

        try:
            return decode_dashboard(response.content, variables)
        except ValueError as exc:
            raise DashboardFetchError(dashboard_id, str(exc)) from exc

    # -------------------------------------------------------------------------
    # Render de paineis
    # -------------------------------------------------------------------------

    def panel_size(self, panel: Panel) -> tuple[int, int]:
        """Largura e altura (px) pedidas ao renderer para o painel."""
        if self._grid_layout:
            return (
                int(panel.grid_pos.w * _GRID_UNIT_PIXELS),
                int(panel.grid_pos.h * _GRID_UNIT_PIXELS),
            )
        if panel.is_single_stat:
            return _SINGLE_STAT_SIZE
        if panel.is_text:
            return _TEXT_SIZE
        return _DEFAULT_SIZE

    def panel_request(
        self,
        panel: Panel,
        dashboard_id: str,
        time_range: TimeRange,
        variables: Variables | None = None,
    ) -> tuple[str, list[tuple[str, str]]]:
        """Monta URL e parametros do render de um painel."""
        path = self._path(_RENDER_PATHS, dashboard_id)
        width, height = self.panel_size(panel)
        params: list[tuple[str, str]] = [
            ('theme', 'light'),
            ('panelId', str(panel.id)),
            ('from', time_range.from_spec),
            ('to', time_range.to_spec),
            ('width', str(width)),
            ('height', str(height)),
        ]
        if time_range.timezone:
            params.append(('tz', time_range.timezone))
        params.extend(self._variable_params(variables))
        return f'{self._base_url}{path}', params

    def get_panel_png(
        self,
        panel: Panel,
        dashboard_id: str,
        time_range: TimeRange,
        variables: Variables | None = None,
    ) -> bytes:
        """
        Baixa o PNG renderizado de um painel.

        Raises:
            RemoteFetchError: Redirecionamento (login), erro permanente ou
                esgotamento das tentativas.
        """
        url, params = self.panel_request(panel, dashboard_id, time_range, variables)
        logger.info('Baixando imagem do painel %d: %s', panel.id, url)

        last_error = ''
        last_status: int | None = None
        for attempt in range(1, self._retry_attempts + 1):
            try:
                response = self._get_session().get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self._timeout,
                    verify=self._ssl_check,
                    allow_redirects=False,
                )
            except requests.RequestException as exc:
                last_error = f'erro de rede: {exc}'
                last_status = None
            else:
                if response.status_code == 200:
                    return response.content

                last_status = response.status_code
                if 300 <= response.status_code < 400:
                    raise RemoteFetchError(
                        f'Erro ao obter render do painel {panel.id}: '
                        'redirecionado para o login',
                        status_code=response.status_code,
                    )
                last_error = f'HTTP {response.status_code}: {response.text[:200]}'
                if response.status_code not in _TRANSIENT_STATUS_CODES:
                    logger.error(
                        'Render do painel %d rejeitado (status=%d): %s',
                        panel.id, response.status_code, last_error,
                    )
                    break

            if attempt < self._retry_attempts:
                delay = self._retry_delay * attempt
                logger.warning(
                    'Falha ao obter render do painel %d (tentativa=%d): %s. '
                    'Nova tentativa em %.1fs',
                    panel.id, attempt, last_error, delay,
                )
                time.sleep(delay)

        raise RemoteFetchError(
            f'Erro ao obter render do painel {panel.id}: {last_error}',
            status_code=last_status,
        )
