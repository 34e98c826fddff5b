import logging
import shutil
import tempfile
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

IMAGES_DIR = 'images'
REPORT_TEX_FILE = 'report.tex'
REPORT_PDF_FILE = 'report.pdf'
IMAGE_EXTENSION = 'png'


class Workspace:
    """
    Diretorio temporario exclusivo de uma geracao de relatorio.

    O nome unico (uuid4) isola relatorios concorrentes entre si; nenhum
    lock e necessario. Estrutura:

        <root>/<uuid>/
            images/image<panel_id>.png
            report.tex
            report.pdf
    """

    def __init__(self, root: str | Path | None = None) -> None:
        """
        Cria o diretorio do workspace.

        Args:
            root: Diretorio pai. Vazio/None usa o temporario do sistema.
        """
        base = Path(root) if root else Path(tempfile.gettempdir()) / 'grafana-reporter'
        self._path = base / uuid.uuid4().hex
        self._path.mkdir(parents=True, exist_ok=False)
        logger.debug('Workspace criado em %s', self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def images_dir(self) -> Path:
        return self._path / IMAGES_DIR

    @property
    def tex_path(self) -> Path:
        return self._path / REPORT_TEX_FILE

    @property
    def pdf_path(self) -> Path:
        return self._path / REPORT_PDF_FILE

    def image_path(self, panel_id: int) -> Path:
        """Caminho deterministico da imagem de um painel."""
        return self.images_dir / f'image{panel_id}.{IMAGE_EXTENSION}'

    def exists(self) -> bool:
        return self._path.exists()

    def cleanup(self) -> None:
        """Remove o workspace e todo o seu conteudo. Idempotente."""
        if not self._path.exists():
            return
        try:
            shutil.rmtree(self._path)
            logger.debug('Workspace removido: %s', self._path)
        except OSError as exc:
            logger.error('Erro ao remover workspace %s: %s', self._path, exc)

    def __repr__(self) -> str:
        return f'Workspace({str(self._path)!r})'
