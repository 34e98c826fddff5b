from reporter.modules.grafana.client import GrafanaApiVersion, GrafanaClient
from reporter.modules.grafana.models import (
    Dashboard,
    DashboardLayout,
    GridPos,
    Panel,
    Row,
    build_dashboard,
    decode_dashboard,
    sanitize_latex,
)
from reporter.modules.grafana.timerange import Boundary, TimeRange, format_unix_date, resolve

__all__ = [
    'Boundary',
    'Dashboard',
    'DashboardLayout',
    'GrafanaApiVersion',
    'GrafanaClient',
    'GridPos',
    'Panel',
    'Row',
    'TimeRange',
    'build_dashboard',
    'decode_dashboard',
    'format_unix_date',
    'resolve',
    'sanitize_latex',
]
