"""Tests for payload flattening and header lookup."""

from __future__ import annotations

from dte_harvester.mime import body_texts, collect_parts, header_value
from gmail_fakes import attachment_part, b64url, text_part


def nested_payload():
    return {
        "mimeType": "multipart/mixed",
        "headers": [{"name": "subject", "value": "Factura 1"}],
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [text_part("hola"), text_part("<p>hola</p>", "text/html")],
            },
            attachment_part("a.pdf", "att1"),
            {"mimeType": "multipart/related", "parts": [attachment_part("b.json", "att2", "application/json")]},
        ],
    }


class TestCollectParts:
    def test_depth_first_order(self):
        parts = collect_parts(nested_payload())

        assert [p.mime_type for p in parts] == ["text/plain", "text/html", "application/pdf", "application/json"]
        assert [p.filename for p in parts] == ["", "", "a.pdf", "b.json"]
        assert parts[2].attachment_id == "att1"
        assert parts[3].extension == ".json"

    def test_pure_and_repeatable(self):
        payload = nested_payload()

        assert collect_parts(payload) == collect_parts(payload)
        assert payload == nested_payload()

    def test_missing_payload(self):
        assert collect_parts(None) == []
        assert collect_parts({}) == []

    def test_single_part_message_is_its_own_leaf(self):
        parts = collect_parts({"mimeType": "text/plain", "body": {"data": b64url("x")}})

        assert len(parts) == 1
        assert parts[0].data == b64url("x")


def test_header_lookup_is_case_insensitive():
    assert header_value(nested_payload(), "Subject") == "Factura 1"
    assert header_value(nested_payload(), "From") is None
    assert header_value(None, "Subject") is None


def test_body_texts_decodes_text_parts_only():
    texts = body_texts(collect_parts(nested_payload()))

    assert texts == ["hola", "<p>hola</p>"]
