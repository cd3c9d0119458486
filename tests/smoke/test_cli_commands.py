"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import subprocess
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from config import get_settings
from fluency.cli.main import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway JSON store."""
    monkeypatch.setenv("PROGRESS_BACKEND", "json")
    monkeypatch.setenv("JSON_STORE_PATH", str(tmp_path / "data.json"))
    monkeypatch.setenv("LOAD_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("LOG_FILE", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run the CLI in a subprocess and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m fluency.cli.main')
        timeout: Maximum time to wait
    """
    full_command = f"{sys.executable} -m fluency.cli.main {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help_subprocess(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "practice" in stdout
        assert "dashboard" in stdout

    @pytest.mark.parametrize("command", ["login", "practice", "dashboard", "history", "feedback", "info"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0, result.output


class TestInfoAndFeedback:
    def test_info(self):
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0, result.output
        assert "json" in result.output
        assert "America/Chicago" in result.output

    def test_info_store_health_ok(self):
        result = runner.invoke(app, ["info"])
        assert "Store Health" in result.output
        assert "ok" in result.output

    def test_info_store_health_corrupt_json(self, tmp_path, monkeypatch):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        monkeypatch.setenv("JSON_STORE_PATH", str(path))
        get_settings.cache_clear()

        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0, result.output
        assert "error" in result.output

    def test_info_store_health_sql(self, monkeypatch):
        monkeypatch.setenv("PROGRESS_BACKEND", "sql")
        monkeypatch.setenv("DATABASE_URL", "sqlite://")
        get_settings.cache_clear()

        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0, result.output
        assert "Database URL" in result.output
        assert "Store Health" in result.output
        assert "error" not in result.output

    def test_feedback(self):
        result = runner.invoke(app, ["feedback", "45"])
        assert result.exit_code == 0, result.output
        assert "Functional automaticity" in result.output

    def test_feedback_low_score(self):
        result = runner.invoke(app, ["feedback", "12"])
        assert "Developing foundational fluency" in result.output


class TestStudentCommands:
    def test_login(self):
        result = runner.invoke(app, ["login", "maya"])
        assert result.exit_code == 0, result.output
        assert "maya" in result.output
        assert "Level" in result.output

    def test_blank_login_fails(self):
        result = runner.invoke(app, ["login", "  "])
        assert result.exit_code == 1

    def test_dashboard_lists_students(self):
        runner.invoke(app, ["login", "maya"])
        runner.invoke(app, ["login", "leo"])
        result = runner.invoke(app, ["dashboard"])
        assert result.exit_code == 0, result.output
        assert "maya" in result.output
        assert "leo" in result.output

    def test_empty_dashboard(self):
        result = runner.invoke(app, ["dashboard"])
        assert result.exit_code == 0
        assert "No students" in result.output

    def test_history_without_sessions(self):
        result = runner.invoke(app, ["history", "maya"])
        assert result.exit_code == 0
        assert "No sessions" in result.output


class TestPractice:
    def test_bad_group_rejected(self):
        result = runner.invoke(app, ["practice", "maya", "--groups", "1-3"])
        assert result.exit_code == 1

    def test_quit_immediately_saves_session(self):
        result = runner.invoke(app, ["practice", "maya", "--no-timer"], input="q\n")
        assert result.exit_code == 0, result.output
        assert "Session Complete" in result.output

        history = runner.invoke(app, ["history", "maya"])
        assert "multiplication" in history.output

    def test_daily_limit_blocks_sixth_session(self):
        for _ in range(5):
            runner.invoke(app, ["practice", "maya", "--no-timer"], input="q\n")
        result = runner.invoke(app, ["practice", "maya", "--no-timer"], input="q\n")
        assert result.exit_code == 1
        assert "Daily limit" in result.output

    def test_force_skips_daily_limit(self):
        for _ in range(5):
            runner.invoke(app, ["practice", "maya", "--no-timer"], input="q\n")
        result = runner.invoke(app, ["practice", "maya", "--no-timer", "--force"], input="q\n")
        assert result.exit_code == 0, result.output
