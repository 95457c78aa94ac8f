"""Run-scoped dedup state shared by every worker of one harvest."""

from __future__ import annotations

import threading


class DedupeLedger:
    """Identity, content-hash and link membership sets.

    Each ``claim_*`` call is an atomic check-and-insert and returns True only
    for the first claimant. Per-message filename sets live on the message
    context, not here.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attachments: set[tuple[str, str]] = set()
        self._digests: set[str] = set()
        self._links: set[str] = set()

    def claim_attachment(self, message_id: str, attachment_id: str) -> bool:
        return self._claim(self._attachments, (message_id, attachment_id))

    def claim_content(self, digest: str) -> bool:
        return self._claim(self._digests, digest)

    def claim_link(self, url: str) -> bool:
        return self._claim(self._links, url)

    def release_content(self, digest: str) -> None:
        """Give a digest back when the save it was claimed for failed."""
        with self._lock:
            self._digests.discard(digest)

    def _claim(self, seen: set, key) -> bool:
        with self._lock:
            if key in seen:
                return False
            seen.add(key)
            return True
