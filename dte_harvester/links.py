"""Trusted-link discovery and PDF download from message bodies."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

import requests

from .utils import sanitize_filename

logger = logging.getLogger(__name__)

_URL_PATTERN = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,;:!?)]}"


@dataclass(frozen=True)
class LinkDocument:
    url: str
    filename: str
    content: bytes


def extract_links(text: str) -> list[str]:
    """Every http(s) URL in ``text``, in order of appearance."""
    links = []
    for match in _URL_PATTERN.findall(html.unescape(text)):
        links.append(match.rstrip(_TRAILING_PUNCTUATION))
    return links


class LinkExtractor:
    """Keep only links whose hostname is on the allow-list."""

    def __init__(self, trusted_hosts: Iterable[str]) -> None:
        self.trusted_hosts = {host.lower() for host in trusted_hosts}

    def is_trusted(self, url: str) -> bool:
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            logger.debug("Ignoring malformed link %s", url)
            return False
        return bool(hostname) and hostname.lower() in self.trusted_hosts

    def trusted_links(self, texts: Iterable[str]) -> list[str]:
        found: list[str] = []
        for text in texts:
            for url in extract_links(text):
                if url in found:
                    continue
                if not self.is_trusted(url):
                    logger.debug("Ignoring untrusted link %s", url)
                    continue
                found.append(url)
        return found


def filename_from_url(url: str) -> str:
    segment = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    name = sanitize_filename(segment) or "documento"
    if not name.lower().endswith(".pdf"):
        name = f"{name}.pdf"
    return name


class LinkFetcher:
    """Download documents behind trusted links; only PDFs are kept."""

    def __init__(self, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self.session = requests.Session()

    def fetch(self, url: str) -> Optional[LinkDocument]:
        resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        if resp.status_code >= 400:
            logger.warning("Link download failed (%s): %s", resp.status_code, url)
            resp.raise_for_status()

        content_type = resp.headers.get("Content-Type", "").lower()
        if "pdf" not in content_type and not urlparse(url).path.lower().endswith(".pdf"):
            logger.debug("Skipping non-PDF link %s (content-type=%s)", url, content_type)
            return None

        return LinkDocument(url=url, filename=filename_from_url(url), content=resp.content)
