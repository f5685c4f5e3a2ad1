"""Structured types for catalog records and counter results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict

SOURCE_PIXABAY = "pixabay"


class MediaType(Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaRecord:
    """Canonical media record as persisted under ``media/{id}``.

    ``tags`` is kept as an ordered tuple in memory and flattened to a single
    comma-joined string on the wire and in storage.
    """

    id: str
    type: MediaType
    src: str
    thumb: str
    title: str
    tags: tuple[str, ...] = field(default_factory=tuple)
    width: int = 0
    height: int = 0
    author: str = "unknown"
    source: str = SOURCE_PIXABAY
    source_page: str = ""
    created_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "src": self.src,
            "thumb": self.thumb,
            "title": self.title,
            "tags": ",".join(self.tags),
            "width": self.width,
            "height": self.height,
            "author": self.author,
            "source": self.source,
            "sourcePage": self.source_page,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "MediaRecord":
        raw_tags = payload.get("tags") or ""
        if isinstance(raw_tags, str):
            tags = tuple(tag.strip() for tag in raw_tags.split(",") if tag.strip())
        else:
            tags = tuple(str(tag) for tag in raw_tags)
        return cls(
            id=str(payload["id"]),
            type=MediaType(payload.get("type") or MediaType.IMAGE.value),
            src=str(payload.get("src") or ""),
            thumb=str(payload.get("thumb") or ""),
            title=str(payload.get("title") or ""),
            tags=tags,
            width=as_count(payload.get("width")),
            height=as_count(payload.get("height")),
            author=str(payload.get("author") or "unknown"),
            source=str(payload.get("source") or SOURCE_PIXABAY),
            source_page=str(payload.get("sourcePage") or ""),
            created_at=as_count(payload.get("createdAt")),
        )


class LikeResult(TypedDict, total=False):
    liked: bool
    likes: int
    message: str


class CounterSnapshot(TypedDict):
    likes: int
    downloads: int


def as_count(value: Any) -> int:
    """Coerce a stored counter or dimension to a non-negative int."""
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, number)
