"""Shared fixtures: every test gets its own SQLite file."""

import pytest

import database


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Point the database module at a fresh file and create the schema."""
    db_file = tmp_path / "test_harvester.db"
    monkeypatch.setattr(database, "DATABASE_FILE", db_file)
    database.ensure_schema()
    return db_file


@pytest.fixture
def make_post():
    """Factory for posts with predictable IDs."""

    def _make(index: int, **overrides) -> database.Post:
        fields = {
            "external_id": f"t3_post{index}",
            "title": f"Post number {index}",
            "score": index * 10,
            "comment_count": index,
            "link": f"https://www.reddit.com/r/test/comments/post{index}/",
        }
        fields.update(overrides)
        return database.Post(**fields)

    return _make
