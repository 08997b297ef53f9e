"""Tests for the SQLite persistence functions."""

import sqlite3

import pytest

import database
from database import (
    Place,
    count_places,
    count_posts,
    ensure_schema,
    fetch_latest,
    fetch_places_page,
    fetch_posts_page,
    store_place,
    store_post,
)


def test_ensure_schema_is_idempotent():
    ensure_schema()
    ensure_schema()
    assert count_posts() == 0
    assert count_places() == 0


def test_store_post_returns_true_for_new_row(make_post):
    assert store_post(make_post(1)) is True
    assert count_posts() == 1


def test_store_post_duplicate_is_noop(make_post):
    assert store_post(make_post(1)) is True
    # Same external ID, different content: still ignored
    assert store_post(make_post(1, title="Changed title", score=999)) is False

    assert count_posts() == 1
    stored = fetch_latest(10)[0]
    assert stored.title == "Post number 1"
    assert stored.score == 10


def test_store_post_sets_scraped_at(make_post):
    store_post(make_post(1, scraped_at="1999-01-01T00:00:00"))
    stored = fetch_latest(1)[0]

    assert stored.scraped_at is not None
    assert stored.scraped_at != "1999-01-01T00:00:00"
    assert stored.id is not None


def test_scraped_at_is_utc(make_post):
    store_post(make_post(1))
    store_place(Place(search_term="Eiffel Tower Paris", name="Eiffel Tower"))

    assert fetch_latest(1)[0].scraped_at.endswith("+00:00")
    assert fetch_places_page(1, 1)[0][0].scraped_at.endswith("+00:00")


def test_fetch_latest_respects_limit_and_order(make_post):
    for index in range(1, 6):
        store_post(make_post(index))

    latest = fetch_latest(3)

    assert len(latest) == 3
    assert [post.external_id for post in latest] == ["t3_post5", "t3_post4", "t3_post3"]
    timestamps = [post.scraped_at for post in latest]
    assert timestamps == sorted(timestamps, reverse=True)


def test_fetch_latest_with_fewer_rows_than_limit(make_post):
    store_post(make_post(1))
    assert len(fetch_latest(50)) == 1


@pytest.mark.parametrize("limit", [0, -1, 2.5, "10", None, True])
def test_fetch_latest_rejects_invalid_limit(limit):
    with pytest.raises(ValueError):
        fetch_latest(limit)


def test_fetch_posts_page_slices_by_offset(make_post):
    for index in range(1, 13):
        store_post(make_post(index))

    first, total = fetch_posts_page(1, 5)
    last, _ = fetch_posts_page(3, 5)
    beyond, beyond_total = fetch_posts_page(4, 5)

    assert total == 12
    assert [post.external_id for post in first] == [f"t3_post{i}" for i in (12, 11, 10, 9, 8)]
    assert [post.external_id for post in last] == ["t3_post2", "t3_post1"]
    assert beyond == []
    assert beyond_total == 12


def test_store_and_page_places():
    first_id = store_place(Place(search_term="Colosseum Rome", name="Colosseum", address="Piazza del Colosseo, Rome, Italy",
                                 latitude=41.8902, longitude=12.4922, country="Italy"))
    second_id = store_place(Place(search_term="Sydney Opera House", name="Sydney Opera House"))

    places, total = fetch_places_page(1, 5)

    assert second_id > first_id
    assert total == 2
    assert [place.search_term for place in places] == ["Sydney Opera House", "Colosseum Rome"]
    assert places[1].latitude == pytest.approx(41.8902)
    assert places[1].country == "Italy"
    assert places[0].to_dict()["scraped_at"] is not None


def test_store_unavailable_raises(tmp_path, monkeypatch):
    # A directory can't be opened as a database file
    monkeypatch.setattr(database, "DATABASE_FILE", tmp_path)
    with pytest.raises(sqlite3.Error):
        ensure_schema()
