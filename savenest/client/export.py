from __future__ import annotations

import json
from dataclasses import dataclass

from savenest.client.records import Bookmark

EXPORT_FILENAME = "bookmarks.json"
EXPORT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ExportDocument:
    filename: str
    content_type: str
    body: str


def export_bookmarks(bookmarks: list[Bookmark]) -> ExportDocument:
    rows = [
        {
            "id": item.id,
            "title": item.title,
            "url": item.url,
            "created_at": item.created_at.isoformat(),
            "user_id": item.user_id,
        }
        for item in bookmarks
    ]
    return ExportDocument(
        filename=EXPORT_FILENAME,
        content_type=EXPORT_CONTENT_TYPE,
        body=json.dumps(rows, indent=2, ensure_ascii=False),
    )
