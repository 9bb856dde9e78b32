"""Tests for CLI commands that don't start a server."""

from click.testing import CliRunner

from hookwatch.cli import cli


def test_apikey_prints_key():
    result = CliRunner().invoke(cli, ["apikey", "--length", "16"])
    assert result.exit_code == 0
    assert len(result.output.strip()) >= 16


def test_apikey_writes_new_env(tmp_path):
    env = tmp_path / ".env"
    result = CliRunner().invoke(cli, ["apikey", "--write", str(env)])

    assert result.exit_code == 0
    assert env.read_text().startswith("HOOKWATCH_API_KEY=")


def test_apikey_replaces_existing_key(tmp_path):
    env = tmp_path / ".env"
    env.write_text("OTHER=1\nHOOKWATCH_API_KEY=old\nLAST=2")

    CliRunner().invoke(cli, ["apikey", "--write", str(env)])

    lines = env.read_text().splitlines()
    assert lines[0] == "OTHER=1"
    assert lines[1].startswith("HOOKWATCH_API_KEY=") and lines[1] != "HOOKWATCH_API_KEY=old"
    assert lines[2] == "LAST=2"


def test_db_without_args_prints_help():
    result = CliRunner().invoke(cli, ["db"])
    assert result.exit_code == 0
    assert "Alembic" in result.output


def test_watch_requires_url(monkeypatch):
    monkeypatch.delenv("HOOKWATCH_URL", raising=False)
    result = CliRunner().invoke(cli, ["watch", "--api-key", "k"])
    assert result.exit_code != 0
    assert "--url" in result.output
