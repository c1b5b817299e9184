import os
from dataclasses import dataclass


@dataclass
class ClientSettings:
    base_url: str = "http://127.0.0.1:8072"
    token: str | None = None
    request_timeout: float = 15.0
    poll_interval: float = 2.0
    toast_seconds: float = 3.0
    title_fetch_timeout: float = 10.0
    title_max_bytes: int = 2_500_000

    @classmethod
    def from_env(cls, **overrides) -> "ClientSettings":
        values = {
            "base_url": os.environ.get("SAVENEST_URL", cls.base_url),
            "token": os.environ.get("SAVENEST_TOKEN") or None,
            "request_timeout": float(
                os.environ.get("SAVENEST_REQUEST_TIMEOUT", cls.request_timeout)
            ),
            "poll_interval": float(
                os.environ.get("SAVENEST_POLL_INTERVAL", cls.poll_interval)
            ),
            "toast_seconds": float(
                os.environ.get("SAVENEST_TOAST_SECONDS", cls.toast_seconds)
            ),
            "title_fetch_timeout": float(
                os.environ.get("SAVENEST_TITLE_FETCH_TIMEOUT", cls.title_fetch_timeout)
            ),
            "title_max_bytes": int(
                os.environ.get("SAVENEST_TITLE_MAX_BYTES", cls.title_max_bytes)
            ),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
