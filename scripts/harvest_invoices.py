"""Entry point that packages Gmail DTE documents into a ZIP and stores it."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from pathlib import Path
import sys

from dotenv import load_dotenv

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dte_harvester.config import Settings
from dte_harvester.gmail_client import GmailClient
from dte_harvester.harvester import InvoiceHarvester
from dte_harvester.oauth import GmailAuthError, GoogleOAuth
from dte_harvester.packages import PackageBuilder
from dte_harvester.plans import QuotaExceededError
from dte_harvester.query import DateRangeError, parse_date, resolve_date_range
from dte_harvester.storage import S3Storage
from dte_harvester.usage_store import UsageStore

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Package Gmail DTE invoices into a ZIP.")
    parser.add_argument("--start", type=parse_cli_date, help="First day to search (YYYY-MM-DD)")
    parser.add_argument("--end", type=parse_cli_date, help="Last day to search, inclusive (YYYY-MM-DD)")
    parser.add_argument("--include-spam", action="store_true", help="Also search spam and trash")
    parser.add_argument("--max-messages", type=int, help="Limit how many messages to inspect")
    parser.add_argument("--dry-run", action="store_true", help="List matching messages without downloading")
    parser.add_argument("--keep-files", action="store_true", help="Keep the local batch directory")
    parser.add_argument("--connect", action="store_true", help="Run the Gmail consent flow and exit")
    return parser


def parse_cli_date(value: str) -> date:
    try:
        return parse_date(value)
    except DateRangeError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def connect(oauth: GoogleOAuth, settings: Settings) -> None:
    logging.info("Open this URL and paste the authorization code:\n%s", oauth.authorization_url())
    code = input("Authorization code: ").strip()
    credentials = oauth.exchange_code(code)
    profile = GmailClient(credentials.token, timeout=settings.google_api_timeout).get_profile()
    oauth.remember_account(profile.get("emailAddress", ""))
    logging.info("Gmail connected: %s", oauth.account_email)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.log_level)
    oauth = GoogleOAuth(settings)

    if args.connect:
        connect(oauth, settings)
        return
    if not args.start or not args.end:
        parser.error("--start and --end are required")
    if args.max_messages is not None:
        if args.max_messages < 1:
            parser.error("--max-messages must be at least 1")
        settings.harvest_max_messages = args.max_messages

    try:
        date_range = resolve_date_range(args.start, args.end)
    except DateRangeError as exc:
        raise SystemExit(str(exc)) from exc

    storage = None
    builder = None
    if not args.dry_run:
        storage = S3Storage(settings) if settings.upload_enabled else None
        builder = PackageBuilder(settings, UsageStore(settings.usage_db), storage)
        try:
            builder.check_quota()
        except QuotaExceededError as exc:
            raise SystemExit(str(exc)) from exc

    try:
        access_token = oauth.acquire_token()
    except GmailAuthError as exc:
        if exc.code in ("NOT_CONNECTED", "REAUTH_REQUIRED"):
            raise SystemExit(f"Gmail access unavailable ({exc.code}). Run with --connect.") from exc
        raise

    harvester = InvoiceHarvester.from_settings(settings, access_token)

    if args.dry_run:
        message_ids = harvester.find_messages(
            start_epoch=date_range.start_epoch,
            end_epoch=date_range.end_epoch,
            max_messages=settings.harvest_max_messages,
            custom_keywords=settings.custom_keywords,
            include_spam=args.include_spam,
        )
        for message_id in message_ids:
            logging.info("[DRY-RUN] Would process message %s", message_id)
        logging.info("[DRY-RUN] %s messages match %s", len(message_ids), date_range.batch_label)
        return

    try:
        outcome = builder.generate(
            harvester,
            date_range,
            account_email=oauth.account_email,
            include_spam=args.include_spam,
            keep_files=args.keep_files,
        )
    except QuotaExceededError as exc:
        raise SystemExit(str(exc)) from exc

    if storage is not None and outcome.storage_key:
        url = storage.get_download_url(
            outcome.storage_key, settings.download_url_ttl, f"{date_range.batch_label}.zip"
        )
        logging.info("Download URL (valid %ss): %s", settings.download_url_ttl, url)

    logging.info("Run complete: %s", json.dumps(outcome.summary(), ensure_ascii=False))


if __name__ == "__main__":
    main()
