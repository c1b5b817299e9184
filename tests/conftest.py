import asyncio
import itertools
from datetime import datetime, timedelta, timezone

import pytest

from savenest import create_app
from savenest.client.errors import RemoteStoreError
from savenest.client.records import Bookmark
from savenest.config import TestConfig
from savenest.extensions import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


class FakeSubscription:
    def __init__(self, owner):
        self.owner = owner
        self.events = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        return await self.events.get()

    async def close(self):
        self.closed = True


class FakeStore:
    """In-memory stand-in for the remote store client contract."""

    def __init__(self):
        self.rows: list[Bookmark] = []
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.query_gate: asyncio.Event | None = None
        self.subscriptions: list[FakeSubscription] = []
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failing:
            raise RemoteStoreError(f"{name} rejected", status_code=403)

    def mutation_calls(self):
        return [call for call in self.calls if call[0] != "query"]

    def seed(self, title, url, owner="user-1"):
        number = next(self._ids)
        row = Bookmark(
            id=f"bm-{number}",
            title=title,
            url=url,
            created_at=self._clock + timedelta(minutes=number),
            user_id=owner,
        )
        self.rows.append(row)
        return row

    async def query(self, owner):
        self._record("query", owner)
        snapshot = [row for row in self.rows if row.user_id == owner]
        if self.query_gate is not None:
            await self.query_gate.wait()
        return sorted(snapshot, key=lambda row: row.created_at, reverse=True)

    async def insert(self, title, url, owner):
        self._record("insert", title, url, owner)
        return self.seed(title, url, owner)

    async def update(self, bookmark_id, title, url):
        self._record("update", bookmark_id, title, url)
        for index, row in enumerate(self.rows):
            if row.id == bookmark_id:
                self.rows[index] = Bookmark(
                    id=row.id,
                    title=title,
                    url=url,
                    created_at=row.created_at,
                    user_id=row.user_id,
                )
                return self.rows[index]
        raise RemoteStoreError("bookmark not found", status_code=404)

    async def delete(self, bookmark_id):
        self._record("delete", bookmark_id)
        self.rows = [row for row in self.rows if row.id != bookmark_id]

    async def delete_many(self, bookmark_ids):
        self._record("delete_many", tuple(bookmark_ids))
        removed = set(bookmark_ids)
        self.rows = [row for row in self.rows if row.id not in removed]

    async def subscribe(self, owner, poll_interval=2.0):
        subscription = FakeSubscription(owner)
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def fake_store():
    return FakeStore()
