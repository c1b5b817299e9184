"""Local view of one user's bookmarks, kept in step with the remote store.

The engine changes its cache only after the store confirms a write. Change
notifications are treated as a signal to re-read the whole collection rather
than as deltas to apply.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from savenest.client.errors import RemoteStoreError, ValidationError
from savenest.client.export import ExportDocument, export_bookmarks
from savenest.client.notifications import Notifier
from savenest.client.records import Bookmark, ChangeEvent
from savenest.client.views import (
    SORT_KEYS,
    THEME_DARK,
    THEME_LIGHT,
    VIEW_MODES,
    ViewPreferences,
    derive_view,
)
from savenest.services.common import clean_text
from savenest.services.content import resolve_title

logger = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_UPDATED = "updated"
STATUS_DELETED = "deleted"
STATUS_REFRESHED = "refreshed"
STATUS_REJECTED = "rejected"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

TitleResolver = Callable[[str], Awaitable[str]]
ChangeListener = Callable[[], None]


@dataclass(frozen=True)
class MutationResult:
    status: str
    message: str = ""
    bookmark: Bookmark | None = None

    @property
    def ok(self) -> bool:
        return self.status not in {STATUS_REJECTED, STATUS_FAILED}


class ReconciliationEngine:
    def __init__(
        self,
        store,
        owner,
        notifier: Notifier | None = None,
        title_resolver: TitleResolver | None = None,
        preferences: ViewPreferences | None = None,
        poll_interval: float = 2.0,
    ):
        self.store = store
        self.owner = owner
        self.notifier = notifier or Notifier()
        self.title_resolver = title_resolver or resolve_title
        self.preferences = preferences or ViewPreferences()
        self.poll_interval = poll_interval

        self.bookmarks: list[Bookmark] = []
        self.selection: set[str] = set()

        self._markers = itertools.count(1)
        self._inflight: dict[str, int] = {}
        self._pending_urls: set[str] = set()
        self._refreshes_in_flight: set[int] = set()
        self._tombstones: dict[str, int] = {}
        self._listeners: list[ChangeListener] = []
        self._subscription = None
        self._consumer: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, store, owner, settings, **kwargs) -> ReconciliationEngine:
        resolver = partial(
            resolve_title,
            timeout=settings.title_fetch_timeout,
            max_bytes=settings.title_max_bytes,
        )
        kwargs.setdefault("title_resolver", resolver)
        kwargs.setdefault("notifier", Notifier(dismiss_after=settings.toast_seconds))
        kwargs.setdefault("poll_interval", settings.poll_interval)
        return cls(store, owner, **kwargs)

    async def __aenter__(self) -> ReconciliationEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def _next_marker(self) -> int:
        return next(self._markers)

    def _begin(self, bookmark_id: str) -> int:
        marker = self._next_marker()
        self._inflight[bookmark_id] = marker
        return marker

    def _finish(self, bookmark_id: str, marker: int) -> None:
        if self._inflight.get(bookmark_id) == marker:
            del self._inflight[bookmark_id]

    def is_busy(self, bookmark_id: str) -> bool:
        return bookmark_id in self._inflight

    @property
    def is_refreshing(self) -> bool:
        return bool(self._refreshes_in_flight)

    def _reject(self, message: str) -> MutationResult:
        self.notifier.error(message)
        return MutationResult(STATUS_REJECTED, message)

    def _fail(self, message: str, exc: RemoteStoreError) -> MutationResult:
        logger.warning("%s: %s", message, exc)
        self.notifier.error(message)
        return MutationResult(STATUS_FAILED, message)

    def _mark_deleted(self, bookmark_ids) -> None:
        marker = self._next_marker()
        for bookmark_id in bookmark_ids:
            self._tombstones[bookmark_id] = marker

    def _prune_tombstones(self) -> None:
        if not self._refreshes_in_flight:
            self._tombstones.clear()
            return
        oldest = min(self._refreshes_in_flight)
        self._tombstones = {
            bookmark_id: marker
            for bookmark_id, marker in self._tombstones.items()
            if marker > oldest
        }

    def get(self, bookmark_id: str) -> Bookmark | None:
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def has_url(self, url: str) -> bool:
        needle = clean_text(url)
        if needle in self._pending_urls:
            return True
        return any(clean_text(bookmark.url) == needle for bookmark in self.bookmarks)

    async def start(self) -> None:
        await self.refresh()
        self._subscription = await self.store.subscribe(
            self.owner, poll_interval=self.poll_interval
        )
        self._consumer = asyncio.create_task(
            self._consume(), name=f"savenest-engine-{self.owner}"
        )

    async def close(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

    async def _consume(self) -> None:
        async for event in self._subscription:
            await self.handle_change(event)

    async def handle_change(self, event: ChangeEvent) -> MutationResult:
        logger.debug("change notification %s for %s", event.kind, event.record.get("id"))
        return await self.refresh()

    async def refresh(self) -> MutationResult:
        marker = self._next_marker()
        self._refreshes_in_flight.add(marker)
        try:
            rows = await self.store.query(self.owner)
        except RemoteStoreError as exc:
            self._refreshes_in_flight.discard(marker)
            return self._fail("Failed to load bookmarks", exc)

        self._refreshes_in_flight.discard(marker)
        stale = {
            bookmark_id
            for bookmark_id, deleted_at in self._tombstones.items()
            if deleted_at > marker
        }
        self.bookmarks = [row for row in rows if row.id not in stale]
        self.selection &= {bookmark.id for bookmark in self.bookmarks}
        self._prune_tombstones()
        self._changed()
        return MutationResult(STATUS_REFRESHED)

    def _validated(self, title, url, require_title: bool) -> tuple[str, str]:
        title = clean_text(title)
        url = clean_text(url)
        if not url or (require_title and not title):
            raise ValidationError(
                "Title and URL are required" if require_title else "URL is required"
            )
        return title, url

    async def add(self, title: str, url: str) -> MutationResult:
        try:
            title, url = self._validated(title, url, require_title=False)
            if self.has_url(url):
                raise ValidationError("This URL is already bookmarked!")
        except ValidationError as exc:
            return self._reject(str(exc))

        self._pending_urls.add(url)
        try:
            if not title:
                title = await self.title_resolver(url)
            created = await self.store.insert(title, url, self.owner)
        except RemoteStoreError as exc:
            return self._fail("Failed to add bookmark", exc)
        finally:
            self._pending_urls.discard(url)

        self.bookmarks = [created] + [
            bookmark for bookmark in self.bookmarks if bookmark.id != created.id
        ]
        self.notifier.success("Bookmark added successfully!")
        self._changed()
        return MutationResult(STATUS_CREATED, bookmark=created)

    async def edit(self, bookmark_id: str, title: str, url: str) -> MutationResult:
        try:
            title, url = self._validated(title, url, require_title=True)
        except ValidationError as exc:
            return self._reject(str(exc))

        marker = self._begin(bookmark_id)
        try:
            await self.store.update(bookmark_id, title, url)
        except RemoteStoreError as exc:
            return self._fail("Failed to update bookmark", exc)
        finally:
            self._finish(bookmark_id, marker)

        self.bookmarks = [
            dataclasses.replace(bookmark, title=title, url=url)
            if bookmark.id == bookmark_id
            else bookmark
            for bookmark in self.bookmarks
        ]
        self.notifier.success("Bookmark updated!")
        self._changed()
        return MutationResult(STATUS_UPDATED, bookmark=self.get(bookmark_id))

    async def delete(self, bookmark_id: str) -> MutationResult:
        marker = self._begin(bookmark_id)
        try:
            await self.store.delete(bookmark_id)
        except RemoteStoreError as exc:
            return self._fail("Failed to delete bookmark", exc)
        finally:
            self._finish(bookmark_id, marker)

        self._mark_deleted([bookmark_id])
        self.bookmarks = [
            bookmark for bookmark in self.bookmarks if bookmark.id != bookmark_id
        ]
        self.selection.discard(bookmark_id)
        self.notifier.success("Bookmark deleted")
        self._changed()
        return MutationResult(STATUS_DELETED)

    async def bulk_delete(self) -> MutationResult:
        if not self.selection:
            return MutationResult(STATUS_SKIPPED)

        selected = [
            bookmark.id for bookmark in self.bookmarks if bookmark.id in self.selection
        ]
        selected += sorted(self.selection.difference(selected))
        try:
            await self.store.delete_many(selected)
        except RemoteStoreError as exc:
            return self._fail("Failed to delete bookmarks", exc)

        removed = set(selected)
        self._mark_deleted(removed)
        self.bookmarks = [
            bookmark for bookmark in self.bookmarks if bookmark.id not in removed
        ]
        self.selection.clear()
        self.notifier.success(f"{len(selected)} bookmarks deleted")
        self._changed()
        return MutationResult(STATUS_DELETED)

    def view(self) -> list[Bookmark]:
        return derive_view(self.bookmarks, self.preferences)

    def toggle_selection(self, bookmark_id: str) -> bool:
        if bookmark_id in self.selection:
            self.selection.discard(bookmark_id)
        elif self.get(bookmark_id) is not None:
            self.selection.add(bookmark_id)
        self._changed()
        return bookmark_id in self.selection

    def clear_selection(self) -> None:
        self.selection.clear()
        self._changed()

    def set_search(self, query: str) -> None:
        self.preferences.search_query = query or ""
        self._changed()

    def set_sort(self, sort_by: str) -> None:
        if sort_by not in SORT_KEYS:
            raise ValueError(f"unsupported sort key: {sort_by}")
        self.preferences.sort_by = sort_by
        self._changed()

    def set_view_mode(self, view_mode: str) -> None:
        if view_mode not in VIEW_MODES:
            raise ValueError(f"unsupported view mode: {view_mode}")
        self.preferences.view_mode = view_mode
        self._changed()

    def toggle_theme(self) -> str:
        if self.preferences.theme == THEME_DARK:
            self.preferences.theme = THEME_LIGHT
        else:
            self.preferences.theme = THEME_DARK
        self._changed()
        return self.preferences.theme

    def export_document(self) -> ExportDocument:
        document = export_bookmarks(self.bookmarks)
        self.notifier.success("Bookmarks exported!")
        return document

    def copy_url(self, bookmark_id: str) -> str | None:
        bookmark = self.get(bookmark_id)
        if bookmark is None:
            return None
        self.notifier.success("URL copied to clipboard!")
        return bookmark.url
