"""SQLite-backed bookkeeping of monthly DTE usage and generated packages."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

import sqlite_utils

from .models import HarvestResult


def current_period(now: datetime | None = None) -> str:
    now = now or datetime.now(tz=UTC)
    return f"{now.year}-{now.month:02d}"


class UsageStore:
    """Store DTE counts per user and month, plus package history."""

    USAGE_TABLE = "usage_months"
    PACKAGES_TABLE = "packages"

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = sqlite_utils.Database(str(db_path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.db[self.USAGE_TABLE].create(
            {"user_id": str, "period": str, "dte_count": int, "updated_at": str},
            pk=("user_id", "period"),
            if_not_exists=True,
        )
        self.db[self.PACKAGES_TABLE].create(
            {
                "id": str,
                "user_id": str,
                "batch_label": str,
                "start_date": str,
                "end_date": str,
                "storage_key": str,
                "status": str,
                "size_bytes": int,
                "files_saved": int,
                "messages_found": int,
                "pdf_count": int,
                "json_count": int,
                "created_at": str,
            },
            pk="id",
            if_not_exists=True,
        )

    def dte_count(self, user_id: str, period: str) -> int:
        rows = list(
            self.db[self.USAGE_TABLE].rows_where(
                "user_id = ? and period = ?", [user_id, period], limit=1
            )
        )
        return rows[0]["dte_count"] if rows else 0

    def add_dtes(self, user_id: str, period: str, count: int) -> int:
        """Increment usage for the period and return the new total."""
        total = self.dte_count(user_id, period) + count
        self.db[self.USAGE_TABLE].upsert(
            {
                "user_id": user_id,
                "period": period,
                "dte_count": total,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            pk=("user_id", "period"),
        )
        return total

    def record_package(
        self,
        *,
        package_id: str,
        user_id: str,
        batch_label: str,
        start_date: str,
        end_date: str,
        storage_key: Optional[str],
        size_bytes: int,
        result: HarvestResult,
    ) -> dict[str, Any]:
        row = {
            "id": package_id,
            "user_id": user_id,
            "batch_label": batch_label,
            "start_date": start_date,
            "end_date": end_date,
            "storage_key": storage_key,
            "status": "available",
            "size_bytes": size_bytes,
            "files_saved": result.files_saved,
            "messages_found": result.messages_found,
            "pdf_count": result.pdf_count,
            "json_count": result.json_count,
            "created_at": datetime.now(tz=UTC).isoformat(),
        }
        self.db[self.PACKAGES_TABLE].insert(row, pk="id")
        return row

    def list_packages(self, user_id: str, page: int = 1, limit: int = 10) -> list[dict[str, Any]]:
        page = max(page, 1)
        limit = min(max(limit, 1), 50)
        return list(
            self.db[self.PACKAGES_TABLE].rows_where(
                "user_id = ?",
                [user_id],
                order_by="created_at desc, rowid desc",
                limit=limit,
                offset=(page - 1) * limit,
            )
        )

    def latest_package(self, user_id: str) -> Optional[dict[str, Any]]:
        rows = self.list_packages(user_id, limit=1)
        return rows[0] if rows else None
