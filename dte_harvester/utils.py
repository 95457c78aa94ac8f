"""Utility helpers shared across modules."""

from __future__ import annotations

import base64
import re
from datetime import UTC, date, datetime
from hashlib import sha256

_UNSAFE_SUBJECT = re.compile(r"[^a-zA-Z0-9]")
_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9._-]")


def utc_midnight_epoch(day: date) -> int:
    """Seconds since the epoch for 00:00 UTC of ``day``."""
    return int(datetime(day.year, day.month, day.day, tzinfo=UTC).timestamp())


def decode_base64url(data: str | None) -> bytes:
    """Decode Gmail's base64url payloads, which usually arrive without padding."""
    if not data:
        return b""
    cleaned = re.sub(r"\s+", "", data)
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.urlsafe_b64decode(cleaned)


def sanitize_subject(subject: str, limit: int = 50) -> str:
    """Folder-safe fragment: every non-alphanumeric becomes '_'."""
    return _UNSAFE_SUBJECT.sub("_", subject)[:limit]


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME.sub("_", name)


def sha256_hex(payload: bytes) -> str:
    """Convenience wrapper for hex digests."""
    return sha256(payload).hexdigest()


def fit_filename(name: str, prefix: str = "", limit: int = 255) -> str:
    """``prefix + name`` shortened to ``limit`` UTF-8 bytes by trimming the stem of ``name``."""
    if len((prefix + name).encode("utf-8")) <= limit:
        return prefix + name
    dot = name.rfind(".")
    stem, suffix = (name[:dot], name[dot:]) if dot > 0 else (name, "")
    budget = limit - len((prefix + suffix).encode("utf-8"))
    if budget < 1:
        raise ValueError(f"Cannot fit {name!r} after {prefix!r} within {limit} bytes")
    trimmed = stem.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
    return f"{prefix}{trimmed}{suffix}"
