"""Turn a harvest into a stored ZIP package and account for DTE usage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config import Settings
from .harvester import InvoiceHarvester
from .models import DateRange, HarvestResult
from .packager import clean_old_batches, remove_paths, write_info_file, zip_directory
from .plans import Plan, QuotaExceededError, get_plan, remaining_dtes
from .storage import S3Storage, package_key
from .usage_store import UsageStore, current_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    plan: Plan
    period: str
    used: int
    remaining: int


@dataclass(frozen=True)
class PackageOutcome:
    package_id: str
    storage_key: Optional[str]
    zip_path: Optional[Path]
    size_bytes: int
    result: HarvestResult
    used_before: int
    used_after: int
    limit: int

    def summary(self) -> dict[str, Any]:
        return {
            "packageId": self.package_id,
            "storageKey": self.storage_key,
            "sizeBytes": self.size_bytes,
            "summary": self.result.summary(),
            "limitInfo": {
                "limit": self.limit,
                "usedBefore": self.used_before,
                "usedAfter": self.used_after,
                "remaining": max(self.limit - self.used_after, 0),
            },
        }


class PackageBuilder:
    """Plan checks, harvest, ZIP, size limit, upload and usage bookkeeping."""

    def __init__(
        self,
        settings: Settings,
        usage: UsageStore,
        storage: Optional[S3Storage] = None,
    ) -> None:
        self.settings = settings
        self.usage = usage
        self.storage = storage

    def check_quota(self) -> QuotaStatus:
        """Refuse early when the plan is inactive or this month's DTEs are used up."""
        settings = self.settings
        if settings.plan_status != "active":
            raise QuotaExceededError("Plan is not active. Update your subscription.")
        plan = get_plan(settings.plan)
        period = current_period()
        used = self.usage.dte_count(settings.harvest_user_id, period)
        remaining = remaining_dtes(plan, used)
        if remaining <= 0:
            raise QuotaExceededError("Monthly DTE limit reached.")
        return QuotaStatus(plan=plan, period=period, used=used, remaining=remaining)

    def generate(
        self,
        harvester: InvoiceHarvester,
        date_range: DateRange,
        *,
        account_email: Optional[str] = None,
        include_spam: bool = False,
        keep_files: bool = False,
    ) -> PackageOutcome:
        settings = self.settings
        user_id = settings.harvest_user_id
        clean_old_batches(settings.output_base_dir, settings.zip_max_age_hours)

        quota = self.check_quota()
        plan, period, used_before, remaining = quota.plan, quota.period, quota.used, quota.remaining

        result = harvester.harvest(
            start_epoch=date_range.start_epoch,
            end_epoch=date_range.end_epoch,
            user_id=user_id,
            batch_label=date_range.batch_label,
            base_dir=settings.output_base_dir,
            max_messages=settings.harvest_max_messages,
            custom_keywords=settings.custom_keywords,
            max_dtes=remaining,
            include_spam=include_spam,
        )

        source_dir = result.output_dir
        write_info_file(source_dir, date_range.start, date_range.end, account_email)
        zip_path = source_dir.parent / f"{date_range.batch_label}.zip"
        size = zip_directory(source_dir, zip_path)

        if size > plan.zip_limit_bytes:
            remove_paths(source_dir, zip_path)
            raise QuotaExceededError(
                f"ZIP exceeds the {plan.zip_limit_bytes // (1024 * 1024)} MB limit. Reduce the date range."
            )

        package_id = uuid.uuid4().hex
        storage_key = None
        if self.storage is not None:
            storage_key = package_key(user_id, package_id)
            self.storage.upload_zip(zip_path, storage_key)
        else:
            logger.info("No S3 bucket configured; keeping %s locally", zip_path)

        if not keep_files:
            remove_paths(source_dir)
            if storage_key:
                remove_paths(zip_path)

        self.usage.record_package(
            package_id=package_id,
            user_id=user_id,
            batch_label=date_range.batch_label,
            start_date=date_range.start.isoformat(),
            end_date=date_range.end.isoformat(),
            storage_key=storage_key,
            size_bytes=size,
            result=result,
        )
        # JSON documents are the DTEs that count against the plan.
        used_after = self.usage.add_dtes(user_id, period, min(result.json_count, remaining))

        return PackageOutcome(
            package_id=package_id,
            storage_key=storage_key,
            zip_path=zip_path if zip_path.exists() else None,
            size_bytes=size,
            result=result,
            used_before=used_before,
            used_after=used_after,
            limit=plan.dte_limit,
        )
