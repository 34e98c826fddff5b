from pathlib import Path

from reporter.modules.reports.workspace import Workspace


class TestWorkspace:

    def test_unique_directories(self, tmp_path: Path) -> None:
        first, second = Workspace(tmp_path), Workspace(tmp_path)
        assert first.path != second.path
        assert first.exists() and second.exists()

    def test_layout(self, tmp_path: Path) -> None:
        ws = Workspace(tmp_path)
        assert ws.tex_path == ws.path / 'report.tex'
        assert ws.pdf_path == ws.path / 'report.pdf'
        assert ws.image_path(7) == ws.path / 'images' / 'image7.png'

    def test_cleanup_is_idempotent(self, tmp_path: Path) -> None:
        ws = Workspace(tmp_path)
        ws.images_dir.mkdir()
        ws.image_path(1).write_bytes(b'png')

        ws.cleanup()
        ws.cleanup()

        assert not ws.exists()
