from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuracoes da aplicacao carregadas de variaveis de ambiente."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Grafana
    # -------------------------------------------------------------------------
    grafana_url: str = 'http://localhost:3000'
    grafana_api_version: str = 'v5'
    grafana_timeout: float = 300.0
    ssl_check: bool = True
    grid_layout: bool = False

    # -------------------------------------------------------------------------
    # Download das imagens dos paineis
    # -------------------------------------------------------------------------
    panel_fetch_workers: int = Field(default=5, ge=1)
    panel_retry_attempts: int = Field(default=3, ge=1)
    panel_retry_delay: float = 10.0

    # -------------------------------------------------------------------------
    # Relatorio (templates, diretorio de trabalho, LaTeX)
    # -------------------------------------------------------------------------
    templates_dir: str = 'templates/'
    workspace_root: str = ''
    latex_command: str = 'pdflatex'
    # Limite de cada execucao do LaTeX, em segundos
    latex_timeout: float = Field(default=120.0, gt=0)

    # -------------------------------------------------------------------------
    # Servidor HTTP
    # -------------------------------------------------------------------------
    host: str = '0.0.0.0'
    port: int = 8686
    cors_origins: str = '*'

    @property
    def cors_origins_list(self) -> list[str]:
        """Retorna lista de origens permitidas para CORS."""
        return [origin.strip() for origin in self.cors_origins.split(',')]

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = 'INFO'
    log_format: str = 'json'


# Instancia global de configuracoes
settings = Settings()
