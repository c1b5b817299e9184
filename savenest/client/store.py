"""Async client for the SaveNest remote store API.

The store is the system of record. Every call here is a coroutine that
suspends until the store answers, and every failure surfaces as
:class:`RemoteStoreError`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import httpx

from savenest.client.errors import RemoteStoreError
from savenest.client.records import Bookmark, ChangeEvent, UserIdentity

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {response.status_code}"


class RemoteStoreClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            timeout=timeout,
            transport=transport,
        )
        self._subscriptions: list[Subscription] = []

    async def __aenter__(self) -> RemoteStoreClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._http.request(
                method, path, headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise RemoteStoreError(
                _error_message(response), status_code=response.status_code
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    async def sign_in(self, username: str, password: str) -> UserIdentity:
        payload = await self._request(
            "POST",
            "/auth/token",
            json={"username": username, "password": password, "token_name": "client"},
        )
        self.token = payload["token"]
        return UserIdentity.from_dict(payload["user"])

    async def current_authenticated_user(self) -> UserIdentity | None:
        if not self.token:
            return None
        try:
            payload = await self._request("GET", "/auth/user")
        except RemoteStoreError as exc:
            if exc.status_code == 401:
                return None
            raise
        return UserIdentity.from_dict(payload["user"])

    async def sign_out(self) -> None:
        if self.token:
            await self._request("POST", "/auth/logout")
        self.token = None

    async def query(self, owner) -> list[Bookmark]:
        payload = await self._request("GET", "/bookmarks")
        items = [Bookmark.from_dict(row) for row in payload.get("items") or []]
        return [item for item in items if str(item.user_id) == str(owner)]

    async def insert(self, title: str, url: str, owner) -> Bookmark:
        payload = await self._request(
            "POST",
            "/bookmarks",
            json={"title": title, "url": url, "user_id": owner},
        )
        return Bookmark.from_dict(payload)

    async def update(self, bookmark_id: str, title: str, url: str) -> Bookmark:
        payload = await self._request(
            "PATCH", f"/bookmarks/{bookmark_id}", json={"title": title, "url": url}
        )
        return Bookmark.from_dict(payload)

    async def delete(self, bookmark_id: str) -> None:
        await self._request("DELETE", f"/bookmarks/{bookmark_id}")

    async def delete_many(self, bookmark_ids) -> None:
        await self._request(
            "POST", "/bookmarks/delete", json={"ids": list(bookmark_ids)}
        )

    async def latest_cursor(self) -> int:
        payload = await self._request("GET", "/changes")
        return int(payload.get("cursor") or 0)

    async def changes_since(
        self, cursor: int, limit: int | None = None
    ) -> tuple[list[ChangeEvent], int, bool]:
        params = {"since": cursor}
        if limit:
            params["limit"] = limit
        payload = await self._request("GET", "/changes", params=params)
        events = [ChangeEvent.from_dict(row) for row in payload.get("events") or []]
        return events, int(payload.get("cursor") or cursor), bool(payload.get("has_more"))

    async def subscribe(self, owner, poll_interval: float = 2.0) -> Subscription:
        subscription = Subscription(self, owner, poll_interval=poll_interval)
        await subscription.start()
        self._subscriptions.append(subscription)
        return subscription

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()
        self._subscriptions.clear()
        await self._http.aclose()


class Subscription:
    """Channel of change notifications for one owner.

    Events are pulled from the store's change feed on a fixed interval and
    put on :attr:`events`. The handle must be closed by its holder.
    """

    def __init__(self, store: RemoteStoreClient, owner, poll_interval: float = 2.0):
        self.owner = owner
        self.events: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._store = store
        self._poll_interval = poll_interval
        self._cursor: int | None = None
        self._task: asyncio.Task | None = None
        self.closed = False

    @property
    def cursor(self) -> int | None:
        return self._cursor

    async def start(self) -> None:
        try:
            self._cursor = await self._store.latest_cursor()
        except RemoteStoreError as exc:
            logger.warning("change feed head unavailable, retrying on poll: %s", exc)
        self._task = asyncio.create_task(
            self._run(), name=f"savenest-subscription-{self.owner}"
        )

    async def poll_once(self) -> int:
        if self._cursor is None:
            self._cursor = await self._store.latest_cursor()
            return 0

        delivered = 0
        has_more = True
        while has_more:
            events, cursor, has_more = await self._store.changes_since(self._cursor)
            self._cursor = cursor
            for event in events:
                if event.owner is not None and str(event.owner) != str(self.owner):
                    continue
                self.events.put_nowait(event)
                delivered += 1
        return delivered

    async def poll_safely(self) -> int:
        try:
            return await self.poll_once()
        except RemoteStoreError as exc:
            logger.warning("change feed poll failed: %s", exc)
        except (KeyError, AttributeError, TypeError, ValueError) as exc:
            logger.warning("unreadable change feed page: %r", exc)
        return 0

    async def _run(self) -> None:
        while True:
            await self.poll_safely()
            await asyncio.sleep(self._poll_interval)

    async def get(self) -> ChangeEvent:
        return await self.events.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.events.get()

    async def close(self) -> None:
        self.closed = True
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
