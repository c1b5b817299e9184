import json

import httpx
import pytest

from savenest.client.errors import RemoteStoreError
from savenest.client.store import RemoteStoreClient, Subscription

ROW = {
    "id": "0b8e",
    "user_id": 1,
    "title": "GitHub",
    "url": "https://github.com",
    "created_at": "2024-05-01T10:00:00+00:00",
}


class Recorder:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        status_code, payload = self.routes.get(key, (404, {"error": "not found"}))
        if callable(payload):
            payload = payload(request)
        return httpx.Response(status_code, json=payload)


def _store(routes, token="sn_test"):
    recorder = Recorder(routes)
    store = RemoteStoreClient(
        "http://store.test", token=token, transport=httpx.MockTransport(recorder)
    )
    return store, recorder


@pytest.mark.asyncio
async def test_query_parses_rows_and_keeps_owner_rows_only():
    other = dict(ROW, id="ffff", user_id=2)
    store, recorder = _store(
        {("GET", "/api/v1/bookmarks"): (200, {"items": [ROW, other]})}
    )

    rows = await store.query(1)
    await store.close()

    assert [row.id for row in rows] == ["0b8e"]
    assert rows[0].created_at.year == 2024
    assert recorder.requests[0].headers["Authorization"] == "Bearer sn_test"


@pytest.mark.asyncio
async def test_insert_sends_owner_and_returns_record():
    store, recorder = _store({("POST", "/api/v1/bookmarks"): (201, ROW)})

    created = await store.insert("GitHub", "https://github.com", 1)
    await store.close()

    body = json.loads(recorder.requests[0].content)
    assert body == {"title": "GitHub", "url": "https://github.com", "user_id": 1}
    assert created.id == "0b8e"


@pytest.mark.asyncio
async def test_rejected_request_raises_with_status():
    store, _ = _store(
        {("DELETE", "/api/v1/bookmarks/0b8e"): (404, {"error": "bookmark not found"})}
    )

    with pytest.raises(RemoteStoreError) as excinfo:
        await store.delete("0b8e")
    await store.close()

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "bookmark not found"


@pytest.mark.asyncio
async def test_transport_failure_raises_remote_store_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    store = RemoteStoreClient(
        "http://store.test", token="t", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(RemoteStoreError):
        await store.query(1)
    await store.close()


@pytest.mark.asyncio
async def test_delete_many_posts_ids():
    store, recorder = _store(
        {("POST", "/api/v1/bookmarks/delete"): (200, {"status": "deleted"})}
    )

    await store.delete_many(["a", "b"])
    await store.close()

    assert json.loads(recorder.requests[0].content) == {"ids": ["a", "b"]}


@pytest.mark.asyncio
async def test_current_user_is_none_when_unauthenticated():
    store, _ = _store(
        {("GET", "/api/v1/auth/user"): (401, {"error": "authentication required"})}
    )

    assert await store.current_authenticated_user() is None
    await store.close()


@pytest.mark.asyncio
async def test_sign_out_forgets_token():
    store, recorder = _store(
        {("POST", "/api/v1/auth/logout"): (200, {"status": "signed_out"})}
    )

    await store.sign_out()
    await store.close()

    assert store.token is None
    assert recorder.requests[0].url.path == "/api/v1/auth/logout"


@pytest.mark.asyncio
async def test_subscription_delivers_owner_events_after_head():
    def changes(request):
        since = request.url.params.get("since")
        if since is None:
            return {"events": [], "cursor": 5, "has_more": False}
        assert since == "5"
        return {
            "events": [
                {"cursor": 6, "kind": "insert", "record": ROW},
                {"cursor": 7, "kind": "insert", "record": dict(ROW, user_id=2)},
            ],
            "cursor": 7,
            "has_more": False,
        }

    store, _ = _store({("GET", "/api/v1/changes"): (200, changes)})
    subscription = Subscription(store, owner=1)

    assert await subscription.poll_once() == 0
    assert subscription.cursor == 5
    assert await subscription.poll_once() == 1
    assert subscription.cursor == 7
    event = subscription.events.get_nowait()
    await store.close()

    assert event.kind == "insert"
    assert event.record["id"] == "0b8e"


@pytest.mark.asyncio
async def test_subscribe_starts_task_and_close_releases_it():
    store, _ = _store(
        {("GET", "/api/v1/changes"): (200, {"events": [], "cursor": 0, "has_more": False})}
    )

    subscription = await store.subscribe(1, poll_interval=0.01)
    assert subscription.cursor == 0
    await store.close()

    assert subscription.closed


@pytest.mark.asyncio
async def test_unreadable_change_page_is_logged_and_polling_continues(caplog):
    pages = iter(
        [
            {"events": ["bad"], "cursor": 6, "has_more": False},
            {
                "events": [{"cursor": 6, "kind": "insert", "record": ROW}],
                "cursor": 6,
                "has_more": False,
            },
        ]
    )
    store, _ = _store({("GET", "/api/v1/changes"): (200, lambda request: next(pages))})
    subscription = Subscription(store, owner=1)
    subscription._cursor = 5

    assert await subscription.poll_safely() == 0
    assert subscription.cursor == 5
    assert "unreadable change feed page" in caplog.text
    assert await subscription.poll_safely() == 1
    await store.close()

    assert subscription.events.get_nowait().record["id"] == "0b8e"
