"""Typed containers shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional

PDF = "pdf"
JSON = "json"


@dataclass
class MimePart:
    """A leaf of a Gmail message payload tree."""

    mime_type: str
    filename: str = ""
    attachment_id: Optional[str] = None
    data: Optional[str] = None  # inline base64url body

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "MimePart":
        body = raw.get("body") or {}
        return cls(
            mime_type=raw.get("mimeType", ""),
            filename=raw.get("filename") or "",
            attachment_id=body.get("attachmentId"),
            data=body.get("data"),
        )

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


@dataclass(frozen=True)
class CandidateAttachment:
    """An attachment considered for download before any bytes are fetched."""

    message_id: str
    attachment_id: str
    filename: str

    @property
    def kind(self) -> str:
        return JSON if self.filename.lower().endswith(".json") else PDF


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range resolved into provider epochs."""

    start: date
    end: date
    start_epoch: int
    end_epoch: int
    batch_label: str


@dataclass(frozen=True)
class HarvestResult:
    """Summary of one harvest run; the output directory is left on disk."""

    processed: int
    messages_found: int
    files_saved: int
    pdf_count: int
    json_count: int
    output_dir: Path
    saved_files: tuple[str, ...] = field(default_factory=tuple)

    def summary(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "messagesFound": self.messages_found,
            "filesSaved": self.files_saved,
            "pdfCount": self.pdf_count,
            "jsonCount": self.json_count,
            "outputDir": str(self.output_dir),
        }
