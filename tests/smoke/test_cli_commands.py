"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output
against a throwaway SQLite database.

Usage:
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json

import pytest
from typer.testing import CliRunner

from config import get_settings
from src.cli.main import app
from src.db.database import create_db_engine
from src.exam.sql_store import SqlSessionStore

pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def initialized(database_url):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.output
    return database_url


class TestCLIHelp:
    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "exam" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "exam-session-engine" in result.output


class TestExamCommands:
    def test_create_assign_and_list(self, initialized, tmp_path, add_questions):
        engine = create_db_engine(initialized)
        try:
            add_questions(SqlSessionStore(engine), "math", 3)
        finally:
            engine.dispose()

        created = runner.invoke(app, ["exam", "create", "Weekly", "--duration", "20"])
        assert created.exit_code == 0, created.output
        assert "Exam 1 created" in created.output

        blueprint = tmp_path / "blueprint.json"
        blueprint.write_text(json.dumps({"blueprint": [{"subject": "math", "count": 2}]}), encoding="utf-8")

        assigned = runner.invoke(app, ["exam", "assign", "1", str(blueprint), "--seed", "3"])
        assert assigned.exit_code == 0, assigned.output
        assert "Assigned 2 questions" in assigned.output

        again = runner.invoke(app, ["exam", "assign", "1", str(blueprint)])
        assert again.exit_code == 1
        assert "AlreadyAssigned" in again.output

        listed = runner.invoke(app, ["exam", "questions", "1"])
        assert listed.exit_code == 0
        assert "math question" in listed.output

    def test_sweep(self, initialized):
        result = runner.invoke(app, ["session", "sweep", "42"])
        assert result.exit_code == 0, result.output
        assert "Completed 0 expired session(s)" in result.output

    def test_drop_requires_confirmation(self, initialized):
        result = runner.invoke(app, ["db", "drop"])
        assert result.exit_code == 1
