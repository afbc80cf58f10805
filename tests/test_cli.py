"""Smoke tests for the CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from blogpipe.cli import app


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner(env={"NO_COLOR": "1", "FORCE_COLOR": None})


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run from an empty directory so no stray .blogpipe.toml is picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("blogpipe.config.GLOBAL_CONFIG", tmp_path / "absent.toml")
    for var in ("BLOGPIPE_CONTENT_ROOT", "BLOGPIPE_OUTPUT_DIR", "BLOGPIPE_INCLUDE_DRAFTS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def content(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    root.mkdir()
    (root / "one.md").write_text(
        "---\ntitle: One\ndate: 2024-01-01\n---\nFirst *post*.\n", encoding="utf-8"
    )
    (root / "two.md").write_text(
        "---\ntitle: Two\ndate: 2024-02-01\ndraft: true\n---\nDraft post.\n", encoding="utf-8"
    )
    return root


@pytest.fixture
def broken_content(content: Path) -> Path:
    (content / "broken.md").write_text("---\ndate: 2024-03-01\n---\nNo title\n", encoding="utf-8")
    return content


class TestCLI:
    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("build", "list", "show", "check", "status"):
            assert command in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "blogpipe" in result.output


class TestBuildCommand:
    def test_build_writes_site(self, runner, content, tmp_path):
        out = tmp_path / "public"
        result = runner.invoke(app, ["build", "-c", str(content), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Built 1 post(s)" in result.output
        assert (out / "index.json").exists()
        assert (out / "posts" / "2024-01-01-one.html").exists()
        assert (out / ".blogpipe-last-run.json").exists()

    def test_build_with_drafts(self, runner, content, tmp_path):
        out = tmp_path / "public"
        result = runner.invoke(app, ["build", "-c", str(content), "-o", str(out), "--drafts"])
        assert result.exit_code == 0, result.output
        assert (out / "posts" / "2024-02-01-two.html").exists()

    def test_build_missing_root_fails(self, runner, tmp_path):
        result = runner.invoke(app, ["build", "-c", str(tmp_path / "nope"), "-o", str(tmp_path / "o")])
        assert result.exit_code == 1

    def test_build_reads_config_file(self, runner, content, tmp_path):
        out = tmp_path / "from-config"
        config = tmp_path / "site.toml"
        config.write_text(f'[content]\nroot = "{content.as_posix()}"\n\n[output]\ndirectory = "{out.as_posix()}"\n')
        result = runner.invoke(app, ["build", "--config", str(config), "--quiet"])
        assert result.exit_code == 0, result.output
        assert result.output == ""
        assert (out / "index.json").exists()


class TestListCommand:
    def test_list_table(self, runner, content):
        result = runner.invoke(app, ["list", "-c", str(content)])
        assert result.exit_code == 0, result.output
        assert "One" in result.output
        assert "Two" not in result.output

    def test_list_json_with_drafts(self, runner, content):
        result = runner.invoke(app, ["list", "-c", str(content), "--drafts", "--json"])
        assert result.exit_code == 0, result.output
        titles = [p["title"] for p in json.loads(result.output)]
        assert titles == ["Two", "One"]

    def test_list_empty(self, runner, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(app, ["list", "-c", str(empty)])
        assert result.exit_code == 0
        assert "No posts found" in result.output


class TestShowCommand:
    def test_show_by_id(self, runner, content):
        result = runner.invoke(
            app, ["show", "2024-01-01T00:00:00+00:00::one", "-c", str(content)]
        )
        assert result.exit_code == 0, result.output
        assert "<em>post</em>" in result.output
        assert "title: One" in result.output

    def test_show_by_slug(self, runner, content):
        result = runner.invoke(app, ["show", "2024-01-01-one", "-c", str(content)])
        assert result.exit_code == 0, result.output
        assert "<em>post</em>" in result.output

    def test_show_unknown(self, runner, content):
        result = runner.invoke(app, ["show", "nope", "-c", str(content)])
        assert result.exit_code == 1

    def test_show_hides_drafts_by_default(self, runner, content):
        for ref in ("2024-02-01-two", "2024-02-01T00:00:00+00:00::two"):
            result = runner.invoke(app, ["show", ref, "-c", str(content)])
            assert result.exit_code == 1
            assert "Draft post" not in result.output

    def test_show_draft_with_flag(self, runner, content):
        result = runner.invoke(app, ["show", "2024-02-01-two", "-c", str(content), "--drafts"])
        assert result.exit_code == 0, result.output
        assert "draft: true" in result.output
        assert "Draft post" in result.output


class TestCheckCommand:
    def test_check_clean(self, runner, content):
        result = runner.invoke(app, ["check", "-c", str(content)])
        assert result.exit_code == 0, result.output
        assert "no problems found" in result.output

    def test_check_reports_problems(self, runner, broken_content):
        result = runner.invoke(app, ["check", "-c", str(broken_content)])
        assert result.exit_code == 1
        assert "malformed_metadata broken.md" in result.output
        assert "dropped_post" in result.output


class TestStatusCommand:
    def test_status_without_run(self, runner, tmp_path):
        result = runner.invoke(app, ["status", "-o", str(tmp_path / "none")])
        assert result.exit_code == 1
        assert "No previous run" in result.output

    def test_status_after_build(self, runner, broken_content, tmp_path):
        out = tmp_path / "public"
        runner.invoke(app, ["build", "-c", str(broken_content), "-o", str(out)])
        result = runner.invoke(app, ["status", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Pipeline completed" in result.output
        assert "Diagnostics: 2" in result.output

    def test_status_json(self, runner, content, tmp_path):
        out = tmp_path / "public"
        runner.invoke(app, ["build", "-c", str(content), "-o", str(out)])
        result = runner.invoke(app, ["status", "-o", str(out), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["items_processed"]["posts"] == 2
