"""Search Gmail for DTE emails and lay their documents out on disk."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from .config import Settings
from .dedupe_ledger import DedupeLedger
from .gmail_client import GmailClient
from .keywords import build_keyword_set
from .links import LinkExtractor, LinkFetcher
from .mime import body_texts, collect_parts, header_value
from .models import JSON, PDF, CandidateAttachment, HarvestResult, MimePart
from .pool import run_with_pool
from .query import build_search_query
from .utils import fit_filename, sanitize_subject, sha256_hex

logger = logging.getLogger(__name__)

ELIGIBLE_EXTENSIONS = (".pdf", ".json")
MESSAGES_FOLDER = "JSON_y_PDFS"
PDF_ONLY_FOLDER = "SOLO_PDF"


@dataclass
class _MessageContext:
    message_id: str
    safe_subject: str
    folder: Path
    saved: int = 0
    filenames: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def claim_filename(self, filename: str) -> bool:
        with self._lock:
            if filename in self.filenames:
                return False
            self.filenames.add(filename)
            return True


class _HarvestRun:
    """Mutable state of one harvest, shared by every worker."""

    def __init__(self, output_dir: Path, max_dtes: Optional[int]) -> None:
        self.output_dir = output_dir
        self.messages_dir = output_dir / MESSAGES_FOLDER
        self.pdf_dir = output_dir / PDF_ONLY_FOLDER
        self.max_dtes = max_dtes
        self.ledger = DedupeLedger()
        self.lock = threading.Lock()
        self.processed = 0
        self.pdf_count = 0
        self.json_count = 0
        self.saved_files: list[str] = []

    def json_quota_reached(self) -> bool:
        # Read without the lock: concurrent in-flight JSON downloads may
        # overshoot max_dtes by up to the attachment pool size.
        return self.max_dtes is not None and self.json_count >= self.max_dtes

    def record_saved(self, ctx: _MessageContext, filename: str, kind: str) -> None:
        with self.lock:
            if kind == PDF:
                self.pdf_count += 1
            else:
                self.json_count += 1
            ctx.saved += 1
            self.saved_files.append(filename)

    def mark_processed(self) -> None:
        with self.lock:
            self.processed += 1


class InvoiceHarvester:
    """Find invoice emails and save their PDF/JSON documents.

    Messages are processed on a pool of ``message_concurrency`` workers; each
    message downloads its attachments, then its trusted links, on a pool of
    ``attachment_concurrency`` workers. Failures are logged per message or per
    file and never abort the run; only the initial search propagates errors.
    """

    def __init__(
        self,
        gmail: GmailClient,
        link_fetcher: LinkFetcher,
        link_extractor: LinkExtractor,
        message_concurrency: int = 4,
        attachment_concurrency: int = 8,
    ) -> None:
        self.gmail = gmail
        self.link_fetcher = link_fetcher
        self.link_extractor = link_extractor
        self.message_concurrency = message_concurrency
        self.attachment_concurrency = attachment_concurrency

    @classmethod
    def from_settings(cls, settings: Settings, access_token: str) -> "InvoiceHarvester":
        gmail = GmailClient(
            access_token,
            page_size=settings.gmail_page_size,
            timeout=settings.google_api_timeout,
        )
        return cls(
            gmail=gmail,
            link_fetcher=LinkFetcher(timeout=settings.link_timeout),
            link_extractor=LinkExtractor(settings.trusted_link_hosts),
            message_concurrency=settings.message_concurrency,
            attachment_concurrency=settings.attachment_concurrency,
        )

    def find_messages(
        self,
        *,
        start_epoch: int,
        end_epoch: int,
        max_messages: int = 100,
        custom_keywords: Iterable[str] = (),
        include_spam: bool = False,
    ) -> list[str]:
        query = build_search_query(build_keyword_set(custom_keywords), start_epoch, end_epoch)
        logger.debug("Gmail query: %s", query)
        return self.gmail.list_messages(query, max_messages, include_spam=include_spam)

    def harvest(
        self,
        *,
        start_epoch: int,
        end_epoch: int,
        user_id: str,
        batch_label: str,
        base_dir: Path,
        max_messages: int = 100,
        custom_keywords: Iterable[str] = (),
        max_dtes: Optional[int] = None,
        include_spam: bool = False,
    ) -> HarvestResult:
        """Run one harvest; the returned output directory is the caller's to delete."""
        message_ids = self.find_messages(
            start_epoch=start_epoch,
            end_epoch=end_epoch,
            max_messages=max_messages,
            custom_keywords=custom_keywords,
            include_spam=include_spam,
        )
        logger.info("Found %s candidate messages", len(message_ids))

        run = _HarvestRun(Path(base_dir) / str(user_id) / batch_label, max_dtes)
        run.messages_dir.mkdir(parents=True, exist_ok=True)
        run.pdf_dir.mkdir(parents=True, exist_ok=True)

        tasks = [self._message_task(run, message_id) for message_id in message_ids]
        run_with_pool(tasks, self.message_concurrency)

        result = HarvestResult(
            processed=run.processed,
            messages_found=len(message_ids),
            files_saved=len(run.saved_files),
            pdf_count=run.pdf_count,
            json_count=run.json_count,
            output_dir=run.output_dir,
            saved_files=tuple(run.saved_files),
        )
        logger.info(
            "Harvest complete: processed=%s found=%s saved=%s pdf=%s json=%s",
            result.processed,
            result.messages_found,
            result.files_saved,
            result.pdf_count,
            result.json_count,
        )
        return result

    def _message_task(self, run: _HarvestRun, message_id: str) -> Callable[[], bool]:
        def task() -> bool:
            try:
                self._process_message(run, message_id)
                return True
            except Exception:
                logger.exception("Error processing message %s", message_id)
                return False

        return task

    def _process_message(self, run: _HarvestRun, message_id: str) -> None:
        message = self.gmail.get_message(message_id)
        payload = message.get("payload") or {}
        subject = header_value(payload, "Subject") or "No Subject"
        safe_subject = sanitize_subject(subject)
        ctx = _MessageContext(
            message_id=message_id,
            safe_subject=safe_subject,
            folder=run.messages_dir / f"{safe_subject}_{message_id}",
        )

        try:
            parts = collect_parts(payload)
            attachment_tasks = [
                self._attachment_task(run, ctx, candidate)
                for candidate in self._candidates(run, ctx, parts)
            ]
            if attachment_tasks:
                run_with_pool(attachment_tasks, self.attachment_concurrency)

            links = [
                url
                for url in self.link_extractor.trusted_links(body_texts(parts))
                if run.ledger.claim_link(url)
            ]
            if links:
                run_with_pool(
                    [self._link_task(run, ctx, url) for url in links], self.attachment_concurrency
                )
        finally:
            # Files already written count even if a later step fails.
            if ctx.saved:
                run.mark_processed()

    def _candidates(
        self, run: _HarvestRun, ctx: _MessageContext, parts: Sequence[MimePart]
    ) -> Iterator[CandidateAttachment]:
        for part in parts:
            if not part.filename or not part.attachment_id:
                continue
            if part.extension not in ELIGIBLE_EXTENSIONS:
                continue

            candidate = CandidateAttachment(ctx.message_id, part.attachment_id, part.filename)
            if candidate.kind == JSON and run.json_quota_reached():
                logger.debug("DTE quota reached; skipping %s", part.filename)
                continue
            if candidate.kind == PDF and part.filename in ctx.filenames:
                logger.debug("Duplicate PDF name %s in message %s", part.filename, ctx.message_id)
                continue
            if not run.ledger.claim_attachment(ctx.message_id, part.attachment_id):
                logger.debug("Attachment %s already queued", part.attachment_id)
                continue
            if candidate.kind == PDF:
                ctx.claim_filename(part.filename)
            yield candidate

    def _attachment_task(
        self, run: _HarvestRun, ctx: _MessageContext, candidate: CandidateAttachment
    ) -> Callable[[], bool]:
        def task() -> bool:
            try:
                if candidate.kind == JSON and run.json_quota_reached():
                    logger.debug("DTE quota reached; skipping %s", candidate.filename)
                    return False
                content = self.gmail.download_attachment(candidate.message_id, candidate.attachment_id)
                return self._store(run, ctx, candidate.filename, content, candidate.kind)
            except Exception as exc:
                logger.warning(
                    "Failed to save attachment %s from message %s: %s",
                    candidate.filename,
                    ctx.message_id,
                    exc,
                )
                return False

        return task

    def _link_task(self, run: _HarvestRun, ctx: _MessageContext, url: str) -> Callable[[], bool]:
        def task() -> bool:
            try:
                document = self.link_fetcher.fetch(url)
                if document is None:
                    return False
                if not ctx.claim_filename(document.filename):
                    logger.debug("Duplicate PDF name %s in message %s", document.filename, ctx.message_id)
                    return False
                return self._store(run, ctx, document.filename, document.content, PDF)
            except Exception as exc:
                logger.warning("Failed to download link %s from message %s: %s", url, ctx.message_id, exc)
                return False

        return task

    @staticmethod
    def _store(run: _HarvestRun, ctx: _MessageContext, filename: str, content: bytes, kind: str) -> bool:
        name = fit_filename(Path(filename).name)
        targets = [ctx.folder / name]
        if kind == PDF:
            targets.append(run.pdf_dir / fit_filename(name, prefix=f"{ctx.safe_subject}_{ctx.message_id}_"))

        digest = sha256_hex(content)
        if not run.ledger.claim_content(digest):
            logger.debug("Skipping %s from message %s: duplicate content", filename, ctx.message_id)
            return False

        written: list[Path] = []
        try:
            ctx.folder.mkdir(parents=True, exist_ok=True)
            for target in targets:
                written.append(target)
                target.write_bytes(content)
        except OSError:
            # Disk and counts must agree; the content stays claimable.
            for path in written:
                path.unlink(missing_ok=True)
            run.ledger.release_content(digest)
            raise

        run.record_saved(ctx, filename, kind)
        return True
