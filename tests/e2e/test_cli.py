# ABOUTME: End-to-end tests for the bibgate CLI.
# ABOUTME: Tests CLI commands via Click's CliRunner with the fixture translators and pages.

from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from rich.console import Console

from bibgate.cli import cli
from bibgate.cli.commands import deproxify_cmd, fetch_cmd, serve_cmd, translators_cmd
from bibgate.http import HttpFetcher
from tests.fixtures import pages


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep rich tables on one line per row so output can be searched."""
    for module in (deproxify_cmd, fetch_cmd, serve_cmd, translators_cmd):
        monkeypatch.setattr(module, "console", Console(width=200))


class TestCliTranslators:
    """E2e tests for `bibgate translators`."""

    def test_lists_all(self, translators_dir: Path) -> None:
        """Without a URL every loadable translator is listed."""
        runner = CliRunner()
        result = runner.invoke(cli, ["translators", "--translators-dir", str(translators_dir)])
        assert result.exit_code == 0
        for label in ("Test Web", "Test Generic", "Test Frame", "Test BibTeX Import"):
            assert label in result.output
        assert "5 translator(s)" in result.output

    def test_filter_by_type(self, translators_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["translators", "--translators-dir", str(translators_dir), "--type", "search"]
        )
        assert result.exit_code == 0
        assert "Test DOI Search" in result.output
        assert "Test Web" not in result.output

    def test_matching_url(self, translators_dir: Path) -> None:
        """With a URL only matching web translators are shown, with a proxy column."""
        runner = CliRunner()
        result = runner.invoke(
            cli, ["translators", "http://test.local/page", "--translators-dir", str(translators_dir)]
        )
        assert result.exit_code == 0
        assert "Test Web" in result.output
        assert "Test Generic" in result.output
        assert "Test Frame" not in result.output
        assert "Proxy" in result.output

    def test_no_match(self, translators_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "translators",
                "http://test.local/page",
                "--translators-dir",
                str(translators_dir),
                "--type",
                "import",
            ],
        )
        assert result.exit_code == 0
        assert "No matching translators" in result.output

    def test_missing_directory(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["translators", "--translators-dir", str(tmp_path / "nope")]
        )
        assert result.exit_code == 1

    def test_no_directory(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["translators"], env={"BIBGATE_TRANSLATORS_DIR": None})
        assert result.exit_code == 1
        assert "No translators directory" in result.output


class TestCliDeproxify:
    """E2e tests for `bibgate deproxify`."""

    def test_candidates_in_order(self) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["deproxify", "https://www-example-co-uk.mutex.gmu.edu/path"]
        )
        assert result.exit_code == 0
        output = result.output
        assert output.index("https://www.example.co.uk/path") < output.index(
            "https://www.example.co/path"
        )
        assert "%h.mutex.gmu.edu/%p (hyphens)" in output
        assert "original" in output


class TestCliFetch:
    """E2e tests for `bibgate fetch`."""

    @pytest.fixture(autouse=True)
    def canned_pages(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_fetcher(**kwargs: Any) -> HttpFetcher:
            return HttpFetcher(transport=pages.transport(), **kwargs)

        monkeypatch.setattr(fetch_cmd, "HttpFetcher", fake_fetcher)

    def test_html_page(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["fetch", f"{pages.BASE_URL}/redirect"])
        assert result.exit_code == 0
        assert f"{pages.BASE_URL}/single" in result.output
        assert "text/html (document)" in result.output
        assert "Single Item" in result.output

    def test_import_format(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["fetch", f"{pages.BASE_URL}/bibtex"])
        assert result.exit_code == 0
        assert "application/x-bibtex (text)" in result.output
        assert f"{len(pages.BIBTEX)} characters" in result.output

    def test_size_cap(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["fetch", f"{pages.BASE_URL}/large", "--max-size", "100"])
        assert result.exit_code == 1

    def test_upstream_error(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["fetch", f"{pages.BASE_URL}/nowhere"])
        assert result.exit_code == 1
        assert "404" in result.output


class TestCliServe:
    """E2e tests for `bibgate serve`."""

    def test_runs_uvicorn(self, translators_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[dict[str, Any]] = []

        def fake_run(app: Any, **kwargs: Any) -> None:
            calls.append({"app": app, **kwargs})

        monkeypatch.setattr(serve_cmd.uvicorn, "run", fake_run)
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["serve", "--port", "8123", "--translators-dir", str(translators_dir)],
        )
        assert result.exit_code == 0
        assert calls[0]["port"] == 8123
        assert calls[0]["host"] == "127.0.0.1"
        assert "listening on http://127.0.0.1:8123" in result.output

    def test_bad_translators_dir(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["serve", "--translators-dir", str(tmp_path / "nope")])
        assert result.exit_code == 1


class TestCliVersion:
    """E2e tests for version flag."""

    def test_version(self) -> None:
        """--version flag shows version."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
