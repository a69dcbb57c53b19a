"""Shared fixtures: a throwaway SQLite database per test and a registry on it."""

import pytest

from newsreel.config import Settings
from newsreel.database import Database, SourceModel
from newsreel.schemas import SourceCreate
from newsreel.sources.registry import SourceRegistry


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'news.db'}",
        classify_batch_delay=0.0,
        fetch_timeout=5.0,
        mock_mode=False,
    )


@pytest.fixture
def db(settings):
    database = Database(settings.database_url)
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def registry(db):
    return SourceRegistry(db)


@pytest.fixture
def make_source(registry):
    """Add a source; keyword overrides go to SourceCreate."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Source {counter['n']}",
            "url": f"https://source{counter['n']}.example.com/rss",
            "source_type": "rss",
        }
        data.update(overrides)
        return registry.add(SourceCreate(**data))

    return _make


@pytest.fixture
def set_stats(db, registry):
    """Force fetch statistics on a source row, bypassing fetch bookkeeping."""

    def _set(source_id, **columns):
        with db.get_session() as session:
            row = session.get(SourceModel, source_id)
            for key, value in columns.items():
                setattr(row, key, value)
        return registry.get_by_id(source_id)

    return _set
