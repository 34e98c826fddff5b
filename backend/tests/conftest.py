"""Fixtures compartilhadas dos testes do grafana-reporter."""

import json
import threading
import time
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from reporter.modules.grafana.models import Dashboard, Panel, decode_dashboard
from reporter.modules.grafana.timerange import TimeRange
from reporter.modules.reports.workspace import Workspace
from reporter.shared.exceptions import RemoteFetchError

# Qua 06 Jan 2016 16:34:32 UTC
ANCHOR = datetime(2016, 1, 6, 16, 34, 32, tzinfo=UTC)

PNG_BYTES = b'\x89PNG\r\n\x1a\nfake-image'


V4_DASHBOARD = {
    'dashboard': {
        'title': 'Infra & Servicos',
        'description': 'Uso de CPU_memoria',
        'rows': [
            {
                'title': 'Linha 1',
                'showTitle': True,
                'panels': [
                    {'id': 1, 'type': 'graph', 'title': 'CPU'},
                    {'id': 2, 'type': 'singlestat', 'title': 'Uptime'},
                ],
            },
            {
                'title': 'Linha 2',
                'showTitle': False,
                'panels': [{'id': 3, 'type': 'text', 'title': 'Notas'}],
            },
        ],
    },
    'meta': {'slug': 'infra-servicos'},
}

V5_DASHBOARD = {
    'dashboard': {
        'title': 'Visao Geral',
        'panels': [
            {'id': 10, 'type': 'row', 'title': 'Marcador'},
            {
                'id': 11,
                'type': 'graph',
                'title': 'Requests',
                'gridPos': {'h': 8, 'w': 12, 'x': 0, 'y': 1},
            },
            {
                'id': 12,
                'type': 'singlestat',
                'title': 'Erros',
                'gridPos': {'h': 4, 'w': 24, 'x': 0, 'y': 9},
            },
        ],
    },
    'meta': {'slug': 'visao-geral'},
}


@pytest.fixture
def anchor() -> datetime:
    return ANCHOR


@pytest.fixture
def v4_payload() -> bytes:
    return json.dumps(V4_DASHBOARD).encode()


@pytest.fixture
def v5_payload() -> bytes:
    return json.dumps(V5_DASHBOARD).encode()


@pytest.fixture
def v4_dashboard(v4_payload: bytes) -> Dashboard:
    return decode_dashboard(v4_payload)


@pytest.fixture
def v5_dashboard(v5_payload: bytes) -> Dashboard:
    return decode_dashboard(v5_payload)


@pytest.fixture
def time_range() -> TimeRange:
    return TimeRange('1453206447000', '1453213647000')


@pytest.fixture
def workspace(tmp_path: Path) -> Generator[Workspace, None, None]:
    ws = Workspace(tmp_path)
    yield ws
    ws.cleanup()


class FakeGrafanaClient:
    """
    Cliente falso para o pipeline de download.

    Registra o numero maximo de downloads simultaneos e falha para os
    paineis listados em `failing`.
    """

    def __init__(
        self,
        dashboard: Dashboard | None = None,
        failing: set[int] | None = None,
        delay: float = 0.01,
    ) -> None:
        self.dashboard = dashboard
        self.failing = failing or set()
        self.delay = delay
        self.calls: list[int] = []
        self.dashboard_calls: list[tuple[str, dict]] = []
        self.high_water = 0
        self._active = 0
        self._lock = threading.Lock()

    def get_dashboard(self, dashboard_id, variables=None) -> Dashboard:
        self.dashboard_calls.append((dashboard_id, dict(variables or {})))
        return self.dashboard

    def get_panel_png(self, panel: Panel, dashboard_id, time_range, variables=None) -> bytes:
        with self._lock:
            self._active += 1
            self.high_water = max(self.high_water, self._active)
            self.calls.append(panel.id)
        try:
            time.sleep(self.delay)
            if panel.id in self.failing:
                raise RemoteFetchError(
                    f'Erro ao obter render do painel {panel.id}: HTTP 500',
                    status_code=500,
                )
            return PNG_BYTES
        finally:
            with self._lock:
                self._active -= 1


@pytest.fixture
def fake_client_factory():
    return FakeGrafanaClient
