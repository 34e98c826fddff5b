"""Testes da decodificacao de dashboards do Grafana."""

import json

import pytest

from reporter.modules.grafana.models import (
    Dashboard,
    DashboardLayout,
    decode_dashboard,
    sanitize_latex,
)


class TestSanitizeLatex:

    def test_escapes_special_characters(self) -> None:
        assert sanitize_latex('100% & $x_1 #{a}') == r'100\% \& \$x\_1 \#\{a\}'

    def test_backslash_is_escaped_once(self) -> None:
        assert sanitize_latex('a\\b') == r'a\textbackslash b'

    def test_tilde_and_caret(self) -> None:
        assert sanitize_latex('~^') == r'\textasciitilde \textasciicircum '

    def test_plain_text_is_unchanged(self) -> None:
        assert sanitize_latex('CPU usage') == 'CPU usage'


class TestRowsLayout:
    """Grafana v4: paineis aninhados em linhas."""

    def test_layout_and_panel_order(self, v4_dashboard: Dashboard) -> None:
        assert v4_dashboard.layout is DashboardLayout.ROWS
        assert [p.id for p in v4_dashboard.panels] == [1, 2, 3]
        assert len(v4_dashboard.rows) == 2

    def test_rows_keep_their_panels(self, v4_dashboard: Dashboard) -> None:
        first, second = v4_dashboard.rows
        assert [p.id for p in first.panels] == [1, 2]
        assert first.is_visible
        assert not second.is_visible

    def test_texts_are_escaped(self, v4_dashboard: Dashboard) -> None:
        assert v4_dashboard.title == r'Infra \& Servicos'
        assert v4_dashboard.description == r'Uso de CPU\_memoria'

    def test_panel_kinds(self, v4_dashboard: Dashboard) -> None:
        graph, stat, text = v4_dashboard.panels
        assert not graph.is_single_stat and not graph.is_text
        assert stat.is_single_stat
        assert text.is_text


class TestFlatLayout:
    """Grafana v5+: lista plana com marcadores de linha."""

    def test_row_markers_are_not_panels(self, v5_dashboard: Dashboard) -> None:
        assert v5_dashboard.layout is DashboardLayout.FLAT
        assert [p.id for p in v5_dashboard.panels] == [11, 12]
        assert v5_dashboard.rows == ()

    def test_grid_fractions(self, v5_dashboard: Dashboard) -> None:
        half, full = v5_dashboard.panels
        assert half.width == 0.48
        assert half.height == 0.32
        assert half.is_partial_width
        assert full.width == 0.96
        assert not full.is_partial_width

    def test_image_name(self, v5_dashboard: Dashboard) -> None:
        assert [p.image_name for p in v5_dashboard.panels] == ['image11', 'image12']


class TestDecoding:

    def test_keys_are_case_insensitive(self) -> None:
        payload = json.dumps({
            'Dashboard': {
                'TITLE': 'Maiusculas',
                'Panels': [
                    {'ID': 7, 'Type': 'graph', 'GRIDPOS': {'W': 6, 'H': 5}},
                ],
            },
        })
        dashboard = decode_dashboard(payload)
        assert dashboard.title == 'Maiusculas'
        assert dashboard.panels[0].id == 7
        assert dashboard.panels[0].grid_pos.w == 6

    def test_unknown_fields_and_nulls_are_ignored(self) -> None:
        payload = json.dumps({
            'dashboard': {
                'title': 'T',
                'description': None,
                'rows': None,
                'panels': [{'id': 1, 'type': 'graph', 'datasource': 'x', 'title': None}],
                'templating': {'list': []},
            },
        })
        dashboard = decode_dashboard(payload)
        assert dashboard.description == ''
        assert dashboard.layout is DashboardLayout.FLAT
        assert dashboard.panels[0].title == ''

    def test_variables_are_exposed_to_templates(self, v5_payload: bytes) -> None:
        variables = {'var-host': ['web_1', 'web2'], 'var-env': ['prod']}
        dashboard = decode_dashboard(v5_payload, variables)
        assert dashboard.variable_values == r'web\_1, web2, prod'
        assert dashboard.variables == {'var-host': r'web\_1, web2', 'var-env': 'prod'}

    @pytest.mark.parametrize('payload', [b'not json', b'[1, 2]', b'{"dashboard": 3}'])
    def test_invalid_payload_raises_value_error(self, payload: bytes) -> None:
        with pytest.raises(ValueError):
            decode_dashboard(payload)
