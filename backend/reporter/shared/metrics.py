"""
Metricas Prometheus customizadas para o grafana-reporter.

Define contadores e histogramas para monitorar relatorios gerados,
downloads de paineis e compilacoes LaTeX.
"""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Metricas de relatorios
# ---------------------------------------------------------------------------

REPORTS_TOTAL = Counter(
    'grafana_reporter_reports_total',
    'Total de relatorios por status',
    ['status'],  # status: success/error
)

REPORT_DURATION_SECONDS = Histogram(
    'grafana_reporter_report_duration_seconds',
    'Duracao da geracao de relatorios em segundos',
    buckets=[1, 2, 5, 10, 20, 30, 60, 120, 300],
)

# ---------------------------------------------------------------------------
# Metricas de paineis
# ---------------------------------------------------------------------------

PANEL_FETCH_TOTAL = Counter(
    'grafana_reporter_panel_fetch_total',
    'Total de downloads de imagens de paineis',
    ['status'],  # status: success/error
)

PANEL_FETCH_DURATION_SECONDS = Histogram(
    'grafana_reporter_panel_fetch_duration_seconds',
    'Duracao do download de cada painel em segundos',
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30, 60],
)

# ---------------------------------------------------------------------------
# Metricas do LaTeX
# ---------------------------------------------------------------------------

LATEX_RUNS_TOTAL = Counter(
    'grafana_reporter_latex_runs_total',
    'Total de execucoes do pdflatex por passo e status',
    ['step', 'status'],  # step: draft/final
)
