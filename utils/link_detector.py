"""
🔗 Link detection for broadcast messages.
Finds http(s):// and www. links, normalises www. to https:// and keeps the
first occurrence of every distinct URL together with its position.
"""

from __future__ import annotations

import re
from typing import Any

URL_PATTERN = re.compile(r"(https?://[^\s]+)|(www\.[^\s]+)", re.IGNORECASE)


def normalize_url(url: str) -> str:
    if url.lower().startswith("www."):
        return f"https://{url}"
    return url


def detect_links(text: str) -> list[dict[str, Any]]:
    if not text:
        return []
    return [
        {"url": normalize_url(match.group(0)), "position": match.start()}
        for match in URL_PATTERN.finditer(text)
    ]


def has_links(text: str) -> bool:
    return bool(text) and URL_PATTERN.search(text) is not None


def get_unique_links(text: str) -> list[dict[str, Any]]:
    seen: set[str] = set()
    unique = []
    for link in detect_links(text):
        if link["url"] in seen:
            continue
        seen.add(link["url"])
        unique.append(link)
    return unique
