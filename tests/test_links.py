"""Tests for trusted link extraction and download."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from dte_harvester.links import LinkExtractor, LinkFetcher, extract_links, filename_from_url


class TestLinkExtractor:
    def test_only_trusted_hosts_survive(self):
        extractor = LinkExtractor(["s.edicom.eu"])
        text = "Download: https://s.edicom.eu/doc123.pdf and https://evil.example.com/malware.pdf"

        assert extractor.trusted_links([text]) == ["https://s.edicom.eu/doc123.pdf"]

    def test_host_match_is_exact_and_case_insensitive(self):
        extractor = LinkExtractor(["S.Edicom.EU"])

        assert extractor.is_trusted("https://S.EDICOM.EU/x.pdf")
        assert not extractor.is_trusted("https://s.edicom.eu.evil.com/x.pdf")
        assert not extractor.is_trusted("https://evil.com/?next=s.edicom.eu")

    def test_duplicates_across_bodies_collapse(self):
        extractor = LinkExtractor(["s.edicom.eu"])
        plain = "Ver https://s.edicom.eu/doc.pdf."
        html_body = '<a href="https://s.edicom.eu/doc.pdf">aqui</a>'

        assert extractor.trusted_links([plain, html_body]) == ["https://s.edicom.eu/doc.pdf"]

    def test_malformed_url_is_ignored(self):
        extractor = LinkExtractor(["s.edicom.eu"])

        assert not extractor.is_trusted("https://[oops")
        assert not extractor.is_trusted("https://[::1")
        assert extractor.trusted_links(["see https://[oops and https://s.edicom.eu/x.pdf"]) == [
            "https://s.edicom.eu/x.pdf"
        ]


def test_extract_links_unescapes_html_and_trims_punctuation():
    text = '<a href="https://a.example/get?id=1&amp;t=2">x</a> (http://b.example/doc.pdf),'

    assert extract_links(text) == ["https://a.example/get?id=1&t=2", "http://b.example/doc.pdf"]


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://s.edicom.eu/doc123.pdf", "doc123.pdf"),
        ("https://s.edicom.eu/files/Factura%20Enero", "Factura_Enero.pdf"),
        ("https://s.edicom.eu/", "documento.pdf"),
        ("https://s.edicom.eu/get?id=9", "get.pdf"),
    ],
)
def test_filename_from_url(url, expected):
    assert filename_from_url(url) == expected


def fake_response(status=200, content_type="application/pdf", content=b"%PDF-1.7"):
    response = MagicMock()
    response.status_code = status
    response.headers = {"Content-Type": content_type}
    response.content = content
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(str(status))
    return response


class TestLinkFetcher:
    def test_pdf_content_type_accepted(self):
        fetcher = LinkFetcher(timeout=20)
        fetcher.session = MagicMock()
        fetcher.session.get.return_value = fake_response()

        document = fetcher.fetch("https://s.edicom.eu/view?id=7")

        assert document.filename == "view.pdf"
        assert document.content == b"%PDF-1.7"
        fetcher.session.get.assert_called_once_with(
            "https://s.edicom.eu/view?id=7", timeout=20, allow_redirects=True
        )

    def test_pdf_url_accepted_despite_generic_type(self):
        fetcher = LinkFetcher()
        fetcher.session = MagicMock()
        fetcher.session.get.return_value = fake_response(content_type="application/octet-stream")

        assert fetcher.fetch("https://s.edicom.eu/doc.pdf") is not None

    def test_html_page_rejected(self):
        fetcher = LinkFetcher()
        fetcher.session = MagicMock()
        fetcher.session.get.return_value = fake_response(content_type="text/html; charset=utf-8")

        assert fetcher.fetch("https://s.edicom.eu/portal") is None

    def test_http_error_raises(self):
        fetcher = LinkFetcher()
        fetcher.session = MagicMock()
        fetcher.session.get.return_value = fake_response(status=404)

        with pytest.raises(requests.HTTPError):
            fetcher.fetch("https://s.edicom.eu/doc.pdf")
