"""Tests for the command line interface."""
import pytest
from typer.testing import CliRunner

from pocketpal.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database and no API key."""
    monkeypatch.setenv("POCKETPAL_STORE", "sqlite")
    monkeypatch.setenv("POCKETPAL_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("POCKETPAL_ENV_FILE", str(tmp_path / ".env"))
    monkeypatch.delenv("POCKETPAL_CALENDAR_PATH", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def test_parse_schedule_command():
    result = runner.invoke(app, ["parse", "remind me to call mom at 3pm tomorrow"])

    assert result.exit_code == 0
    assert "call mom" in result.output
    assert "3:00 PM" in result.output


def test_parse_chat_message():
    result = runner.invoke(app, ["parse", "how are you?"])

    assert result.exit_code == 0
    assert "Not a schedule command" in result.output


def test_say_requires_api_key():
    result = runner.invoke(app, ["say", "hello"])

    assert result.exit_code == 1
    assert "OPENAI_API_KEY not set" in result.output


def test_schedule_add_then_list_for_day():
    added = runner.invoke(app, ["schedule", "add", "Dentist", "--at", "2026-03-11 09:00"])
    listed = runner.invoke(app, ["schedule", "list", "--on", "2026-03-11"])
    other_day = runner.invoke(app, ["schedule", "list", "--on", "2026-03-12"])

    assert added.exit_code == 0
    assert "Wed, Mar 11, 2026 at 9:00 AM" in added.output
    assert listed.exit_code == 0
    assert "Dentist" in listed.output
    assert "No schedule items" in other_day.output


def test_profile_set_and_show():
    set_result = runner.invoke(app, ["profile", "set", "--name", "Ada", "--hobbies", "chess"])
    pref_result = runner.invoke(app, ["profile", "pref", "units", "metric"])
    show_result = runner.invoke(app, ["profile", "show"])

    assert set_result.exit_code == 0
    assert pref_result.exit_code == 0
    assert show_result.exit_code == 0
    assert "Ada" in show_result.output
    assert "chess" in show_result.output
    assert "metric" in show_result.output


def test_history_empty():
    result = runner.invoke(app, ["history", "list"])

    assert result.exit_code == 0
    assert "No saved conversations" in result.output


def test_health_without_key():
    result = runner.invoke(app, ["health"])

    assert result.exit_code == 0
    assert "Store (sqlite): OK" in result.output
    assert "NOT SET" in result.output
