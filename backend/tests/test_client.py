"""Testes do cliente HTTP do Grafana (sessao requests falsa)."""

import threading

import pytest
import requests

from reporter.modules.grafana.client import GrafanaApiVersion, GrafanaClient
from reporter.modules.grafana.models import GridPos, Panel
from reporter.modules.grafana.timerange import TimeRange
from reporter.shared.exceptions import DashboardFetchError, RemoteFetchError

PNG_BYTES = b'\x89PNG\r\n\x1a\nfake-image'


def make_response(status_code: int = 200, content: bytes = b'') -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.encoding = 'utf-8'
    return response


class FakeSession:
    """Sessao que devolve respostas pre-definidas, em ordem."""

    def __init__(self, *responses) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []

    def get(self, url, **kwargs):
        self.calls.append({'url': url, **kwargs})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(session: FakeSession, **kwargs) -> GrafanaClient:
    kwargs.setdefault('retry_delay', 0)
    return GrafanaClient('http://grafana:3000/', session=session, **kwargs)


PANEL = Panel(id=4, type='graph', title='CPU', grid_pos=GridPos(h=8, w=12))
TIME_RANGE = TimeRange('now-1h', 'now')


class TestDashboard:

    @pytest.mark.parametrize(
        'version, path',
        [
            (GrafanaApiVersion.V4, '/api/dashboards/db/infra'),
            (GrafanaApiVersion.V5, '/api/dashboards/uid/infra'),
        ],
    )
    def test_dashboard_url_per_version(self, version, path) -> None:
        client = make_client(FakeSession(make_response()), api_version=version)
        assert client.dashboard_url('infra') == f'http://grafana:3000{path}'

    def test_get_dashboard_decodes_payload(self, v5_payload: bytes) -> None:
        session = FakeSession(make_response(200, v5_payload))
        client = make_client(session, api_token='secret')

        dashboard = client.get_dashboard('abc', {'var-host': ['a']})

        assert dashboard.title == 'Visao Geral'
        assert dashboard.variable_values == 'a'
        call = session.calls[0]
        assert call['url'] == 'http://grafana:3000/api/dashboards/uid/abc'
        assert call['headers']['Authorization'] == 'Bearer secret'
        assert ('var-host', 'a') in call['params']

    def test_no_token_means_no_authorization_header(self, v5_payload: bytes) -> None:
        session = FakeSession(make_response(200, v5_payload))
        make_client(session).get_dashboard('abc')
        assert 'Authorization' not in session.calls[0]['headers']

    def test_non_200_raises(self) -> None:
        client = make_client(FakeSession(make_response(404, b'not found')))
        with pytest.raises(DashboardFetchError, match='abc'):
            client.get_dashboard('abc')

    def test_invalid_json_raises(self) -> None:
        client = make_client(FakeSession(make_response(200, b'<html>')))
        with pytest.raises(DashboardFetchError):
            client.get_dashboard('abc')

    def test_network_error_raises(self) -> None:
        client = make_client(FakeSession(requests.ConnectionError('refused')))
        with pytest.raises(DashboardFetchError, match='refused'):
            client.get_dashboard('abc')


class TestPanelRequest:

    def test_v5_render_url_and_params(self) -> None:
        client = make_client(FakeSession(make_response()))
        url, params = client.panel_request(
            PANEL, 'abc', TIME_RANGE, {'var-host': ['a', 'b']},
        )
        assert url == 'http://grafana:3000/render/d-solo/abc/_'
        assert params[:6] == [
            ('theme', 'light'),
            ('panelId', '4'),
            ('from', 'now-1h'),
            ('to', 'now'),
            ('width', '1000'),
            ('height', '500'),
        ]
        assert params[-2:] == [('var-host', 'a'), ('var-host', 'b')]

    def test_v4_render_url(self) -> None:
        client = make_client(FakeSession(make_response()), api_version='v4')
        url, _ = client.panel_request(PANEL, 'infra', TIME_RANGE)
        assert url == 'http://grafana:3000/render/dashboard-solo/db/infra'

    def test_timezone_is_forwarded(self) -> None:
        client = make_client(FakeSession(make_response()))
        _, params = client.panel_request(PANEL, 'abc', TimeRange('now-1h', 'now', 'UTC'))
        assert ('tz', 'UTC') in params

    @pytest.mark.parametrize(
        'panel_type, size',
        [('singlestat', (300, 150)), ('text', (1000, 100)), ('graph', (1000, 500))],
    )
    def test_fixed_sizes(self, panel_type: str, size: tuple[int, int]) -> None:
        client = make_client(FakeSession(make_response()))
        assert client.panel_size(Panel(id=1, type=panel_type)) == size

    def test_grid_layout_sizes(self) -> None:
        client = make_client(FakeSession(make_response()), grid_layout=True)
        assert client.panel_size(PANEL) == (480, 320)


class TestGetPanelPng:

    def test_returns_image_bytes(self) -> None:
        session = FakeSession(make_response(200, PNG_BYTES))
        client = make_client(session)

        assert client.get_panel_png(PANEL, 'abc', TIME_RANGE) == PNG_BYTES
        assert session.calls[0]['allow_redirects'] is False

    def test_transient_error_is_retried(self) -> None:
        session = FakeSession(
            make_response(503, b'busy'),
            requests.Timeout('slow'),
            make_response(200, PNG_BYTES),
        )
        client = make_client(session, retry_attempts=3)

        assert client.get_panel_png(PANEL, 'abc', TIME_RANGE) == PNG_BYTES
        assert len(session.calls) == 3

    def test_persistent_500_raises_after_all_attempts(self) -> None:
        session = FakeSession(make_response(500, b'boom'))
        client = make_client(session, retry_attempts=3)

        with pytest.raises(RemoteFetchError) as exc_info:
            client.get_panel_png(PANEL, 'abc', TIME_RANGE)

        assert exc_info.value.status_code == 500
        assert 'painel 4' in exc_info.value.message
        assert len(session.calls) == 3

    def test_permanent_error_is_not_retried(self) -> None:
        session = FakeSession(make_response(404, b'no panel'))
        client = make_client(session, retry_attempts=3)

        with pytest.raises(RemoteFetchError):
            client.get_panel_png(PANEL, 'abc', TIME_RANGE)
        assert len(session.calls) == 1

    def test_redirect_to_login_fails_immediately(self) -> None:
        session = FakeSession(make_response(302))
        client = make_client(session, retry_attempts=3)

        with pytest.raises(RemoteFetchError, match='login'):
            client.get_panel_png(PANEL, 'abc', TIME_RANGE)
        assert len(session.calls) == 1

    def test_retry_waits_longer_each_attempt(self, monkeypatch) -> None:
        delays: list[float] = []
        monkeypatch.setattr('reporter.modules.grafana.client.time.sleep', delays.append)
        session = FakeSession(make_response(502))
        client = make_client(session, retry_attempts=3, retry_delay=10)

        with pytest.raises(RemoteFetchError):
            client.get_panel_png(PANEL, 'abc', TIME_RANGE)
        assert delays == [10, 20]


class TestUrlQuoting:

    def test_dashboard_id_is_a_single_path_segment(self) -> None:
        client = make_client(FakeSession(make_response()))
        assert client.dashboard_url('a/b?c#d') == (
            'http://grafana:3000/api/dashboards/uid/a%2Fb%3Fc%23d'
        )

    def test_render_url_quotes_dashboard_id(self) -> None:
        client = make_client(FakeSession(make_response()), api_version='v4')
        url, _ = client.panel_request(PANEL, '../admin', TIME_RANGE)
        assert url == 'http://grafana:3000/render/dashboard-solo/db/..%2Fadmin'


class TestSessions:

    def test_injected_session_is_shared(self) -> None:
        session = FakeSession(make_response())
        client = make_client(session)
        seen = []
        worker = threading.Thread(target=lambda: seen.append(client._get_session()))
        worker.start()
        worker.join()
        assert seen == [session]
        assert client._get_session() is session

    def test_one_session_per_thread(self) -> None:
        client = GrafanaClient('http://grafana:3000')
        seen = []
        worker = threading.Thread(target=lambda: seen.append(client._get_session()))
        worker.start()
        worker.join()

        main_session = client._get_session()
        assert isinstance(main_session, requests.Session)
        assert client._get_session() is main_session
        assert seen[0] is not main_session
