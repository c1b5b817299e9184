from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

KIND_SUCCESS = "success"
KIND_ERROR = "error"

HISTORY_LIMIT = 50


@dataclass(frozen=True)
class Toast:
    message: str
    kind: str


ToastListener = Callable[["Toast | None"], None]


class Notifier:
    """Holds at most one transient toast and dismisses it after a delay.

    A new toast replaces the current one. Listeners are called with the toast
    when it is shown and with ``None`` when it is dismissed.
    """

    def __init__(self, dismiss_after: float = 3.0):
        self.dismiss_after = dismiss_after
        self.current: Toast | None = None
        self.history: deque[Toast] = deque(maxlen=HISTORY_LIMIT)
        self._listeners: list[ToastListener] = []
        self._dismiss_handle: asyncio.TimerHandle | None = None

    def add_listener(self, listener: ToastListener) -> None:
        self._listeners.append(listener)

    def _emit(self, toast: Toast | None) -> None:
        for listener in self._listeners:
            listener(toast)

    def show(self, message: str, kind: str) -> Toast:
        toast = Toast(message=message, kind=kind)
        log = logger.warning if kind == KIND_ERROR else logger.info
        log("toast: %s", message)
        self.current = toast
        self.history.append(toast)
        self._schedule_dismiss()
        self._emit(toast)
        return toast

    def success(self, message: str) -> Toast:
        return self.show(message, KIND_SUCCESS)

    def error(self, message: str) -> Toast:
        return self.show(message, KIND_ERROR)

    def dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
        if self.current is None:
            return
        self.current = None
        self._emit(None)

    def _schedule_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._dismiss_handle = loop.call_later(self.dismiss_after, self.dismiss)
