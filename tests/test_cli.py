# tests/test_cli.py
"""
Tests pour le module CLI.
"""

from unittest.mock import MagicMock, patch

from epub_emoji_x.cli import cli_process_batch, cli_process_epub, cli_process_html, print_summary
from epub_emoji_x.core.models import AssetDelivery, AssetSource, TransformReport
from epub_emoji_x.main import build_parser, run_cli, settings_from_args


class TestCliProcess:
    """Tests pour les fonctions cli_process_*."""

    @patch("epub_emoji_x.cli.EmojiReplacerService")
    def test_cli_process_epub(self, mock_service_class):
        mock_service = MagicMock()
        mock_service_class.return_value = mock_service
        mock_service.replace_in_epub.return_value = MagicMock(spec=TransformReport)

        result = cli_process_epub("/fake/in.epub", "/fake/out.epub")

        assert len(result) == 1
        mock_service.replace_in_epub.assert_called_once_with("/fake/in.epub", "/fake/out.epub")

    @patch("epub_emoji_x.cli.EmojiReplacerService")
    def test_cli_process_html(self, mock_service_class):
        mock_service = MagicMock()
        mock_service_class.return_value = mock_service

        cli_process_html("/fake/page.html", "/fake/out.html", "icons")

        mock_service.replace_in_html.assert_called_once_with(
            "/fake/page.html", "/fake/out.html", "icons"
        )

    @patch("epub_emoji_x.cli.EmojiReplacerService")
    def test_cli_process_batch(self, mock_service_class):
        mock_service = MagicMock()
        mock_service_class.return_value = mock_service
        mock_service.process_batch.return_value = []

        assert cli_process_batch(["/fake/folder"], "/fake/out") == []
        mock_service.process_batch.assert_called_once_with(["/fake/folder"], "/fake/out")


class TestPrintSummary:
    """Tests pour print_summary."""

    def test_print_empty_list(self, capsys):
        print_summary([])

        captured = capsys.readouterr()
        assert "Fichiers traités: 0" in captured.out

    def test_print_success(self, capsys):
        report = TransformReport(
            input_path="/fake/in.epub",
            output_path="/fake/out.epub",
            manifest_path="OEBPS/content.opf",
            manifest_patched=True,
            documents_rewritten=2,
            emoji_replaced=5,
            assets=["1f600", "1f389"],
            unresolved=["1f4a9"],
            success=True,
        )

        print_summary([report])

        out = capsys.readouterr().out
        assert "Réussis: 1" in out
        assert "Emoji remplacés: 5" in out
        assert "Images: 2" in out
        assert "Manifest mis à jour: OEBPS/content.opf" in out
        assert "Laissés en texte: 1f4a9" in out

    def test_print_failure(self, capsys):
        report = TransformReport(
            input_path="/fake/bad.epub", output_path="/fake/out.epub", note="Error: boom"
        )

        print_summary([report])

        out = capsys.readouterr().out
        assert "Réussis: 0" in out
        assert "Échec: Error: boom" in out


class TestRunCli:
    """Tests pour run_cli (analyse des arguments et choix du mode)."""

    def test_no_input(self, capsys):
        assert run_cli([]) == 1
        assert "no input" in capsys.readouterr().out

    def test_output_requires_single_input(self):
        assert run_cli(["a.epub", "b.epub", "-o", "out.epub"]) == 1

    @patch("epub_emoji_x.cli.cli_process_epub")
    def test_single_file_mode(self, mock_process):
        mock_process.return_value = [TransformReport("in.epub", "out.epub", success=True)]

        assert run_cli(["-i", "in.epub", "-o", "out.epub"]) == 0
        assert mock_process.call_args.args[:2] == ("in.epub", "out.epub")

    @patch("epub_emoji_x.cli.cli_process_html")
    def test_html_mode_defaults_to_in_place(self, mock_process):
        mock_process.return_value = [TransformReport("p.html", "p.html", success=True)]

        assert run_cli(["--html", "p.html", "--img-dir", "icons"]) == 0
        assert mock_process.call_args.args[:3] == ("p.html", "p.html", "icons")

    @patch("epub_emoji_x.cli.cli_process_batch")
    def test_batch_mode_failure_exit_code(self, mock_process):
        mock_process.return_value = [
            TransformReport("a.epub", "a_emoji.epub", success=True),
            TransformReport("b.epub", "b_emoji.epub", success=False, note="Error: x"),
        ]

        assert run_cli(["a.epub", "b.epub", "--output-dir", "out"]) == 1
        assert mock_process.call_args.args[:2] == (["a.epub", "b.epub"], "out")

    @patch("epub_emoji_x.cli.cli_process_epub", side_effect=RuntimeError("boom"))
    def test_unexpected_error(self, mock_process, capsys):
        assert run_cli(["in.epub", "-o", "out.epub"]) == 1
        assert "Error: boom" in capsys.readouterr().out


class TestSettingsFromArgs:
    def test_flags(self, monkeypatch):
        monkeypatch.delenv("EPUB_EMOJI_X_OFFLINE", raising=False)
        args = build_parser().parse_args(
            ["x.epub", "--emoji-dir", "/tmp/cache", "--delivery", "data-uri", "--offline"]
        )

        settings = settings_from_args(args)

        assert settings.cache_dir == "/tmp/cache"
        assert settings.delivery is AssetDelivery.EMBEDDED_DATA_URI
        assert settings.source is AssetSource.LOCAL_ONLY

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("EPUB_EMOJI_X_CACHE_DIR", "/env/cache")
        monkeypatch.setenv("EPUB_EMOJI_X_CDN_BASE", "https://mirror.test/72x72")
        monkeypatch.setenv("EPUB_EMOJI_X_OFFLINE", "1")

        settings = settings_from_args(build_parser().parse_args(["x.epub"]))

        assert settings.cache_dir == "/env/cache"
        assert settings.cdn_base == "https://mirror.test/72x72"
        assert settings.source is AssetSource.LOCAL_ONLY
        assert settings.delivery is AssetDelivery.REFERENCED_FILE
