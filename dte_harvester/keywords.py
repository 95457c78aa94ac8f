"""Subject keywords used to find DTE emails."""

from __future__ import annotations

import logging
from typing import Iterable

logger = logging.getLogger(__name__)

BASE_KEYWORDS: tuple[str, ...] = (
    "DTE",
    "Documento Tributario Electrónico",
    "Documento Tributario Electronico",
    "Documento Electrónico",
    "Documento Electronico",
    "Comprobante",
    "Documento DTE",
    "Factura electrónica",
    "Factura electronica",
    "Facturación electrónica",
    "Facturacion electronica",
    "Facturación digital",
    "Facturación Digital",
    "Factura",
    "facturacion",
    "Comprobante Electrónico",
    "Comprobante electronico",
    "Comprobante de pago electrónico",
    "Comprobante de pago electronico",
    "Comprobante de Crédito Fiscal",
    "Comprobante de Credito Fiscal",
    "Crédito Fiscal",
    "Credito Fiscal",
    "Boleta electrónica",
    "Boleta electronica",
    "Nota de crédito",
    "Nota de credito",
    "Nota de débito",
    "Nota de debito",
    "Factura digital",
    "Detalle de Factura",
    "Detalle de factura",
    "Notificación de DTE",
)


class KeywordError(ValueError):
    """Raised when a custom keyword is rejected."""


def normalize_keyword(keyword: str) -> str:
    return keyword.strip().lower()


def build_keyword_set(custom: Iterable[str] = ()) -> list[str]:
    """Union of the base list and ``custom``; base order first, duplicates dropped."""
    seen: set[str] = set()
    merged: list[str] = []
    for keyword in (*BASE_KEYWORDS, *custom):
        if keyword in seen:
            continue
        seen.add(keyword)
        merged.append(keyword)
    return merged


def _allowed_chars(keyword: str) -> bool:
    return all(ch.isalnum() or ch.isspace() or ch in "._-" for ch in keyword)


def validate_custom_keyword(raw: str | None, existing_custom: Iterable[str] = ()) -> str:
    """Return the trimmed keyword or raise ``KeywordError``."""
    keyword = (raw or "").strip()
    if not keyword:
        raise KeywordError("Keyword is required")
    if not 2 <= len(keyword) <= 50 or not _allowed_chars(keyword):
        raise KeywordError(
            "Invalid keyword. Use letters, numbers, spaces, dots, dashes or underscores (2-50 chars)"
        )

    normalized = normalize_keyword(keyword)
    if normalized in {normalize_keyword(base) for base in BASE_KEYWORDS}:
        raise KeywordError("Keyword already exists in base list")
    if normalized in {normalize_keyword(item) for item in existing_custom}:
        raise KeywordError("Keyword already exists in custom list")
    return keyword


def remove_custom_keyword(custom: Iterable[str], keyword: str) -> list[str]:
    """Drop every custom entry matching ``keyword`` after normalization."""
    items = list(custom)
    target = normalize_keyword(keyword)
    remaining = [item for item in items if normalize_keyword(item) != target]
    if len(remaining) == len(items):
        raise KeywordError("Keyword not found in custom list")
    return remaining


def clean_custom_keywords(raw_keywords: Iterable[str]) -> list[str]:
    """Validate configured custom keywords, dropping (and logging) rejected ones."""
    accepted: list[str] = []
    for raw in raw_keywords:
        try:
            accepted.append(validate_custom_keyword(raw, accepted))
        except KeywordError as exc:
            logger.warning("Ignoring custom keyword %r: %s", raw, exc)
    return accepted
