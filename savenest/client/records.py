from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from dateutil import parser as dt_parser


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = dt_parser.isoparse(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Bookmark:
    id: str
    title: str
    url: str
    created_at: datetime
    user_id: int | str | None = None

    @classmethod
    def from_dict(cls, payload: dict) -> Bookmark:
        return cls(
            id=str(payload["id"]),
            title=payload.get("title") or "",
            url=payload.get("url") or "",
            created_at=_parse_timestamp(payload["created_at"]),
            user_id=payload.get("user_id"),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "created_at": self.created_at.isoformat(),
            "user_id": self.user_id,
        }


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    record: dict = field(default_factory=dict)
    cursor: int | None = None

    @classmethod
    def from_dict(cls, payload: dict) -> ChangeEvent:
        return cls(
            kind=payload.get("kind") or "",
            record=payload.get("record") or {},
            cursor=payload.get("cursor"),
        )

    @property
    def owner(self):
        return self.record.get("user_id")


@dataclass(frozen=True)
class UserIdentity:
    id: int | str
    username: str

    @classmethod
    def from_dict(cls, payload: dict) -> UserIdentity:
        return cls(id=payload["id"], username=payload.get("username") or "")
