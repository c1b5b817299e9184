from datetime import datetime, timedelta, timezone

from savenest.client.records import Bookmark
from savenest.client.views import (
    SORT_DATE,
    SORT_DOMAIN,
    SORT_TITLE,
    ViewPreferences,
    derive_view,
)
from savenest.services.common import domain_from_url, favicon_url

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _bookmark(title: str, url: str, minutes: int = 0):
    return Bookmark(
        id=f"{title}-{minutes}",
        title=title,
        url=url,
        created_at=BASE + timedelta(minutes=minutes),
        user_id=1,
    )


def test_domain_strips_leading_www_and_lowercases():
    assert domain_from_url("https://www.GitHub.com/org/repo") == "github.com"
    assert domain_from_url("https://docs.python.org") == "docs.python.org"
    assert domain_from_url("https://awww.example.com") == "awww.example.com"


def test_domain_returns_raw_value_when_unparsable():
    assert domain_from_url("not a url") == "not a url"
    assert domain_from_url("http://[broken") == "http://[broken"


def test_favicon_uses_full_hostname():
    assert favicon_url("https://www.github.com/x") == (
        "https://www.google.com/s2/favicons?domain=www.github.com&sz=64"
    )
    assert favicon_url("nope") is None


def test_search_is_case_insensitive_over_title_url_and_domain():
    rows = [
        _bookmark("Python docs", "https://docs.python.org", 1),
        _bookmark("Gardening", "https://www.garden.example/PYTHON-plants", 2),
        _bookmark("Travel", "https://travel.example", 3),
    ]

    result = derive_view(rows, ViewPreferences(search_query="PyThOn"))

    assert {row.title for row in result} == {"Python docs", "Gardening"}


def test_empty_query_keeps_everything_sorted_by_date_desc():
    rows = [
        _bookmark("old", "https://a.example", 1),
        _bookmark("new", "https://b.example", 5),
        _bookmark("mid", "https://c.example", 3),
    ]

    result = derive_view(rows, ViewPreferences(sort_by=SORT_DATE))

    assert [row.title for row in result] == ["new", "mid", "old"]


def test_sort_by_title_is_case_sensitive():
    rows = [
        _bookmark("banana", "https://a.example"),
        _bookmark("apple", "https://b.example"),
        _bookmark("Cherry", "https://c.example"),
    ]

    result = derive_view(rows, ViewPreferences(sort_by=SORT_TITLE))

    assert [row.title for row in result] == ["Cherry", "apple", "banana"]


def test_sort_by_domain_ignores_www_prefix():
    rows = [
        _bookmark("z", "https://www.zeta.example"),
        _bookmark("a", "https://alpha.example"),
        _bookmark("m", "https://www.mid.example"),
    ]

    result = derive_view(rows, ViewPreferences(sort_by=SORT_DOMAIN))

    assert [domain_from_url(row.url) for row in result] == [
        "alpha.example",
        "mid.example",
        "zeta.example",
    ]


def test_derive_view_does_not_mutate_input():
    rows = [
        _bookmark("b", "https://b.example", 1),
        _bookmark("a", "https://a.example", 2),
    ]
    snapshot = list(rows)

    derive_view(rows, ViewPreferences(sort_by=SORT_TITLE, search_query="a"))

    assert rows == snapshot
