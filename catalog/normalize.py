"""Normalization of raw Pixabay hits into ``MediaRecord`` values."""

from __future__ import annotations

import time
from typing import Any

from catalog.errors import ValidationError
from catalog.types import SOURCE_PIXABAY, MediaRecord, MediaType

# Preferred video renditions, best first.
_VIDEO_RENDITIONS = ("medium", "small", "tiny", "large")


def normalize_hit(hit: dict[str, Any], media_type: MediaType | str, *, now: int | None = None) -> MediaRecord:
    """Return a ``MediaRecord`` for one provider hit.

    Field selection prefers the highest-quality URL the hit carries and falls
    back through a fixed order when a field is missing:

    - image ``src``: ``largeImageURL``, ``webformatURL``, ``previewURL``.
    - image ``thumb``: ``previewURL``, ``webformatURL``, ``largeImageURL``.
    - video ``src``: the first of the medium/small/tiny/large renditions with a url.
    - video ``thumb``: the medium rendition's thumbnail, else ``userImageURL``.
    - ``title``: first tag, else ``"Image"`` / ``"Video"``.

    ``now`` is the creation timestamp in epoch milliseconds; it defaults to the
    current time. The function performs no I/O.
    """
    kind = _coerce_media_type(media_type)
    hit = hit or {}
    tags = _split_tags(hit.get("tags"))
    created_at = int(now if now is not None else time.time() * 1000)

    if kind is MediaType.IMAGE:
        src = _first(hit, "largeImageURL", "webformatURL", "previewURL")
        thumb = _first(hit, "previewURL", "webformatURL", "largeImageURL")
        width = _first_int(hit, "imageWidth", "webformatWidth")
        height = _first_int(hit, "imageHeight", "webformatHeight")
    else:
        rendition = _pick_video_rendition(hit.get("videos"))
        src = str(rendition.get("url") or "")
        thumb = _video_thumbnail(hit)
        width = _first_int(rendition, "width")
        height = _first_int(rendition, "height")

    return MediaRecord(
        id=str(hit.get("id") or ""),
        type=kind,
        src=src,
        thumb=thumb,
        title=tags[0] if tags else ("Image" if kind is MediaType.IMAGE else "Video"),
        tags=tuple(tags),
        width=width,
        height=height,
        author=str(hit.get("user") or "unknown"),
        source=SOURCE_PIXABAY,
        source_page=str(hit.get("pageURL") or ""),
        created_at=created_at,
    )


def _coerce_media_type(value: MediaType | str) -> MediaType:
    if isinstance(value, MediaType):
        return value
    try:
        return MediaType(str(value or "").strip().lower())
    except ValueError as exc:
        raise ValidationError("type must be 'image' or 'video'") from exc


def _split_tags(raw: Any) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in str(raw).split(",") if tag.strip()]


def _first(payload: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value:
            return str(value)
    return ""


def _first_int(payload: dict[str, Any], *keys: str) -> int:
    for key in keys:
        try:
            value = int(payload.get(key) or 0)
        except (TypeError, ValueError):
            continue
        if value > 0:
            return value
    return 0


def _video_thumbnail(hit: dict[str, Any]) -> str:
    videos = hit.get("videos")
    medium = videos.get("medium") if isinstance(videos, dict) else None
    if isinstance(medium, dict) and medium.get("thumbnail"):
        return str(medium["thumbnail"])
    return str(hit.get("userImageURL") or "")


def _pick_video_rendition(videos: Any) -> dict[str, Any]:
    if not isinstance(videos, dict):
        return {}
    for name in _VIDEO_RENDITIONS:
        rendition = videos.get(name)
        if isinstance(rendition, dict) and rendition.get("url"):
            return rendition
    return {}
