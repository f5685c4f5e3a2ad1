#!/usr/bin/env python3
from __future__ import annotations

import sys

from app.pixabay import search_hits
from catalog.normalize import normalize_hit


def main() -> int:
    args = sys.argv[1:]
    media_type = "image"
    if args and args[0] in {"--video", "--image"}:
        media_type = args.pop(0)[2:]
    query = " ".join(args).strip()
    if not query:
        print("Usage: scripts/pixabay_smoke.py [--image|--video] <query>")
        return 1
    hits = search_hits(query, media_type, per_page=5)
    print(f"query={query!r} type={media_type} hits={len(hits)}")
    for idx, hit in enumerate(hits, start=1):
        record = normalize_hit(hit, media_type)
        print(f"{idx}. {record.id} | {record.title} | {record.width}x{record.height} | {record.author} | {record.src}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
