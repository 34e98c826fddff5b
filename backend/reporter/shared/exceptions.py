class ReporterError(Exception):
    """Excecao base para falhas na geracao de relatorios."""

    def __init__(self, message: str = 'Erro ao gerar relatorio') -> None:
        self.message = message
        super().__init__(self.message)


class MalformedTimeSpecError(ReporterError):
    """Especificacao de tempo nao reconhecida (HTTP 400)."""

    def __init__(self, spec: str) -> None:
        self.spec = spec
        super().__init__(f'"{spec}" nao e um formato de tempo reconhecido')


class RemoteFetchError(ReporterError):
    """Falha de rede ou resposta nao-2xx vinda do Grafana."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class DashboardFetchError(ReporterError):
    """Falha ao obter os metadados do dashboard."""

    def __init__(self, dashboard_id: str, reason: str) -> None:
        self.dashboard_id = dashboard_id
        super().__init__(f'Erro ao obter dashboard {dashboard_id}: {reason}')


class LocalIOError(ReporterError):
    """Falha ao criar diretorio ou escrever arquivo no workspace."""


class PanelFetchError(ReporterError):
    """
    Erro agregado das falhas de download de paineis.

    Attributes:
        dashboard_id: Dashboard cujos paineis estavam sendo baixados.
        failures: Lista de (panel_id, erro) de cada painel que falhou.
    """

    def __init__(
        self,
        dashboard_id: str,
        failures: list[tuple[int, ReporterError]],
    ) -> None:
        self.dashboard_id = dashboard_id
        self.failures = failures
        details = '; '.join(
            f'painel {panel_id}: {error.message}' for panel_id, error in failures
        )
        super().__init__(
            f'Falha ao obter {len(failures)} painel(is) do dashboard '
            f'{dashboard_id}: {details}'
        )

    @property
    def panel_ids(self) -> list[int]:
        """IDs dos paineis que falharam."""
        return [panel_id for panel_id, _ in self.failures]


class TemplateError(ReporterError):
    """Template LaTeX com sintaxe invalida ou falha na renderizacao."""


class TemplateNotFoundError(ReporterError):
    """Template nomeado nao encontrado no diretorio de templates (HTTP 400)."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Template "{name}" nao encontrado')


class CompilationError(ReporterError):
    """
    Falha do pdflatex.

    Attributes:
        output: Saida combinada (stdout + stderr) do compilador, sem alteracoes.
    """

    def __init__(self, message: str, output: str = '') -> None:
        self.output = output
        super().__init__(f'{message}. Saida do LaTeX: {output}' if output else message)
