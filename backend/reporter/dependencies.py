from reporter.config import Settings, settings
from reporter.modules.reports.service import ReportService


def get_settings() -> Settings:
    """Dependency que fornece as configuracoes da aplicacao."""
    return settings


def get_report_service() -> ReportService:
    """Dependency que fornece o servico de relatorios."""
    return ReportService(get_settings())
