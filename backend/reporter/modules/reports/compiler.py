import logging
import subprocess
from pathlib import Path

from reporter.modules.reports.workspace import REPORT_TEX_FILE, Workspace
from reporter.shared.exceptions import CompilationError
from reporter.shared.metrics import LATEX_RUNS_TOTAL

logger = logging.getLogger(__name__)

# Sem modo interativo: um erro no .tex encerra o processo em vez de pedir entrada
_LATEX_FLAGS = ('-interaction=nonstopmode', '-halt-on-error')


class LatexCompiler:
    """
    Compila o report.tex do workspace em PDF com o pdflatex.

    Executa dois passos: um pre-processamento em modo draft (resolve
    referencias e layout) e a compilacao final. Qualquer saida diferente de
    zero interrompe o relatorio com a saida completa do LaTeX no erro.
    """

    def __init__(self, command: str = 'pdflatex', timeout: float | None = None) -> None:
        """
        Args:
            command: Executavel do LaTeX.
            timeout: Limite de cada passo em segundos (None = sem limite).
        """
        self._command = command
        self._timeout = timeout

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def compile(self, workspace: Workspace) -> Path:
        """
        Gera o report.pdf.

        Returns:
            Caminho do PDF gerado.

        Raises:
            CompilationError: Falha em algum passo ou PDF ausente.
        """
        logger.info('Chamando LaTeX - pre-processamento')
        self._run(workspace, [*_LATEX_FLAGS, '-draftmode', REPORT_TEX_FILE], step='draft')
        logger.info('Chamando LaTeX e gerando o PDF')
        self._run(workspace, [*_LATEX_FLAGS, REPORT_TEX_FILE], step='final')

        if not workspace.pdf_path.exists():
            raise CompilationError(f'LaTeX terminou sem gerar {workspace.pdf_path}')
        return workspace.pdf_path

    def _run(self, workspace: Workspace, args: list[str], step: str) -> str:
        try:
            completed = subprocess.run(
                [self._command, *args],
                cwd=workspace.path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            LATEX_RUNS_TOTAL.labels(step=step, status='error').inc()
            output = (exc.output or b'').decode('utf-8', errors='replace')
            raise CompilationError(
                f'LaTeX ({step}) excedeu o tempo limite de {self._timeout}s', output,
            ) from exc
        except OSError as exc:
            LATEX_RUNS_TOTAL.labels(step=step, status='error').inc()
            raise CompilationError(f'Erro ao executar {self._command}: {exc}') from exc

        output = (completed.stdout or b'').decode('utf-8', errors='replace')
        if completed.returncode != 0:
            LATEX_RUNS_TOTAL.labels(step=step, status='error').inc()
            logger.error(
                'LaTeX (%s) falhou com codigo %d', step, completed.returncode,
            )
            raise CompilationError(
                f'Erro ao chamar LaTeX ({step}), codigo {completed.returncode}', output,
            )

        LATEX_RUNS_TOTAL.labels(step=step, status='success').inc()
        return output
