"""Tests for the command-line entry point."""

import asyncio
import json

import pytest

from newsreel import database
from newsreel.config import SEED_SOURCES, get_settings
from newsreel.main import build_parser, cli_main


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the cached settings and database singleton at a temp file."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("MOCK_MODE", "true")
    get_settings.cache_clear()
    monkeypatch.setattr(database, "_db", None)
    yield
    get_settings.cache_clear()


def test_seed_prints_result(cli_env, capsys):
    assert asyncio.run(cli_main(["seed"])) == 0
    assert json.loads(capsys.readouterr().out)["added"] == len(SEED_SOURCES)


def test_maintenance_commands(cli_env, capsys):
    asyncio.run(cli_main(["seed"]))
    capsys.readouterr()

    assert asyncio.run(cli_main(["health-check"])) == 0
    assert json.loads(capsys.readouterr().out)["checked"] == len(SEED_SOURCES)
    assert asyncio.run(cli_main(["retry-disabled"])) == 0
    assert json.loads(capsys.readouterr().out)["re_enabled"] == []


def test_clear_old(cli_env, capsys):
    assert asyncio.run(cli_main(["clear-old", "--days", "3"])) == 0
    assert "Deleted 0 articles" in capsys.readouterr().out


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
