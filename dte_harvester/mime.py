"""Walk Gmail payload trees."""

from __future__ import annotations

from typing import Any, Optional

from .models import MimePart
from .utils import decode_base64url

TEXT_TYPES = ("text/plain", "text/html")


def collect_parts(payload: Optional[dict[str, Any]]) -> list[MimePart]:
    """Flatten a payload tree into its leaves, depth-first and in order."""
    leaves: list[MimePart] = []
    _walk(payload, leaves)
    return leaves


def _walk(node: Optional[dict[str, Any]], acc: list[MimePart]) -> None:
    if not node:
        return
    children = node.get("parts")
    if children:
        for child in children:
            _walk(child, acc)
    else:
        acc.append(MimePart.from_payload(node))


def header_value(payload: Optional[dict[str, Any]], name: str) -> Optional[str]:
    for header in (payload or {}).get("headers") or []:
        if header.get("name", "").lower() == name.lower():
            return header.get("value")
    return None


def body_texts(parts: list[MimePart]) -> list[str]:
    """Decoded text/plain and text/html bodies."""
    texts = []
    for part in parts:
        if part.mime_type in TEXT_TYPES and part.data:
            texts.append(decode_base64url(part.data).decode("utf-8", errors="replace"))
    return texts
