import asyncio

import pytest

from savenest.client.notifications import (
    HISTORY_LIMIT,
    KIND_ERROR,
    KIND_SUCCESS,
    Notifier,
)


def test_new_toast_replaces_current():
    notifier = Notifier()
    seen = []
    notifier.add_listener(seen.append)

    notifier.success("saved")
    notifier.error("failed")

    assert notifier.current.message == "failed"
    assert notifier.current.kind == KIND_ERROR
    assert [toast.kind for toast in seen] == [KIND_SUCCESS, KIND_ERROR]


@pytest.mark.asyncio
async def test_toast_is_dismissed_after_interval():
    notifier = Notifier(dismiss_after=0.01)
    seen = []
    notifier.add_listener(seen.append)

    notifier.success("saved")
    await asyncio.sleep(0.05)

    assert notifier.current is None
    assert seen[-1] is None


def test_history_keeps_only_recent_toasts():
    notifier = Notifier()

    for index in range(HISTORY_LIMIT + 10):
        notifier.success(f"saved {index}")

    assert len(notifier.history) == HISTORY_LIMIT
    assert notifier.history[0].message == "saved 10"
    assert notifier.history[-1].message == f"saved {HISTORY_LIMIT + 9}"
