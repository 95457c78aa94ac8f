"""Gmail REST helper focused on message + attachment retrieval."""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests import Response

from .utils import decode_base64url

logger = logging.getLogger(__name__)


class GmailClient:
    """Thin bearer-token wrapper around the Gmail v1 API."""

    GMAIL_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

    def __init__(self, access_token: str, page_size: int = 70, timeout: float = 45.0) -> None:
        self.access_token = access_token
        self.page_size = page_size
        self.timeout = timeout
        self.session = requests.Session()

    def list_messages(
        self, query: str, max_messages: int, include_spam: bool = False
    ) -> list[str]:
        """Page through search results and return at most ``max_messages`` ids."""
        url = f"{self.GMAIL_BASE}/messages"
        message_ids: list[str] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {"q": query, "maxResults": self.page_size}
            if page_token:
                params["pageToken"] = page_token
            if include_spam:
                params["includeSpamTrash"] = "true"

            logger.debug("Fetching Gmail messages page (token=%s)", page_token)
            payload = self._get(url, params=params).json()
            message_ids.extend(raw["id"] for raw in payload.get("messages") or [])

            page_token = payload.get("nextPageToken")
            if not page_token or len(message_ids) >= max_messages:
                break

        return message_ids[:max_messages]

    def get_message(self, message_id: str) -> dict[str, Any]:
        """Full message resource, including the MIME payload tree."""
        url = f"{self.GMAIL_BASE}/messages/{message_id}"
        return self._get(url, params={"format": "full"}).json()

    def download_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Download attachment bytes."""
        url = f"{self.GMAIL_BASE}/messages/{message_id}/attachments/{attachment_id}"
        payload = self._get(url).json()
        return decode_base64url(payload.get("data"))

    def get_profile(self) -> dict[str, Any]:
        return self._get(f"{self.GMAIL_BASE}/profile").json()

    def _get(self, url: str, params: dict | None = None) -> Response:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        resp = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        if resp.status_code >= 400:
            logger.error("Gmail request failed (%s): %s", resp.status_code, resp.text)
            resp.raise_for_status()
        return resp
