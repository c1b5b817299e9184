"""Derived view over the bookmark cache.

Everything here is a pure function of the cache and the view preferences.
"""

from __future__ import annotations

from dataclasses import dataclass

from savenest.client.records import Bookmark
from savenest.services.common import domain_from_url

SORT_DATE = "date"
SORT_TITLE = "title"
SORT_DOMAIN = "domain"
SORT_KEYS = (SORT_DATE, SORT_TITLE, SORT_DOMAIN)

VIEW_GRID = "grid"
VIEW_LIST = "list"
VIEW_MODES = (VIEW_GRID, VIEW_LIST)

THEME_LIGHT = "light"
THEME_DARK = "dark"


@dataclass
class ViewPreferences:
    view_mode: str = VIEW_GRID
    sort_by: str = SORT_DATE
    search_query: str = ""
    theme: str = THEME_LIGHT


def matches_query(bookmark: Bookmark, query: str) -> bool:
    needle = query.lower()
    if not needle:
        return True
    return (
        needle in bookmark.title.lower()
        or needle in bookmark.url.lower()
        or needle in domain_from_url(bookmark.url).lower()
    )


def sort_bookmarks(bookmarks: list[Bookmark], sort_by: str) -> list[Bookmark]:
    if sort_by == SORT_TITLE:
        return sorted(bookmarks, key=lambda item: item.title)
    if sort_by == SORT_DOMAIN:
        return sorted(bookmarks, key=lambda item: domain_from_url(item.url))
    return sorted(bookmarks, key=lambda item: item.created_at, reverse=True)


def derive_view(
    bookmarks: list[Bookmark], preferences: ViewPreferences
) -> list[Bookmark]:
    filtered = [
        item for item in bookmarks if matches_query(item, preferences.search_query)
    ]
    return sort_bookmarks(filtered, preferences.sort_by)
