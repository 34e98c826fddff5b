"""
Logging estruturado do grafana-reporter.

Os modulos usam `logging.getLogger(__name__)` normalmente; o structlog so
formata a saida (JSON ou console) e acrescenta os ids da requisicao e do
dashboard em processamento, inclusive nas threads de download de paineis.
"""

import logging
import logging.config
import uuid
from contextvars import ContextVar

import structlog

SERVICE_NAME = 'grafana-reporter'

request_id_var: ContextVar[str | None] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[str | None] = ContextVar('correlation_id', default=None)
dashboard_id_var: ContextVar[str | None] = ContextVar('dashboard_id', default=None)

_CONTEXT_VARS = (
    ('request_id', request_id_var),
    ('correlation_id', correlation_id_var),
    ('dashboard_id', dashboard_id_var),
)

# Bibliotecas que so interessam em WARNING ou acima
_QUIET_LOGGERS = ('uvicorn', 'uvicorn.access', 'urllib3', 'httpx', 'httpcore')

_configured = False


def generate_id() -> str:
    """Id curto (12 hex) para request_id e correlation_id."""
    return uuid.uuid4().hex[:12]


def add_report_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Processor: servico + ids da requisicao/dashboard que estiverem definidos."""
    event_dict['service'] = SERVICE_NAME
    for key, var in _CONTEXT_VARS:
        value = var.get()
        if value:
            event_dict[key] = value
    return event_dict


def setup_logging(log_level: str = 'INFO', log_format: str = 'json') -> None:
    """
    Configura o logging uma unica vez (main.py e cli.py chamam no startup).

    Args:
        log_level: Nivel global (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: 'json' (padrao) ou 'console'.
    """
    global _configured
    if _configured:
        return
    _configured = True

    # Usados tanto pelo structlog quanto pelos registros do logging stdlib
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        add_report_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'structlog': {
                '()': structlog.stdlib.ProcessorFormatter,
                'processors': [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                'foreign_pre_chain': shared_processors,
            },
        },
        'handlers': {
            'default': {
                'class': 'logging.StreamHandler',
                'formatter': 'structlog',
                'stream': 'ext://sys.stdout',
            },
        },
        'root': {'handlers': ['default'], 'level': log_level.upper()},
        'loggers': {name: {'level': 'WARNING'} for name in _QUIET_LOGGERS},
    })

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger structlog (usado em main.py e cli.py)."""
    return structlog.get_logger(name)
