"""Tests for package generation: plan checks, ZIP limits and usage accounting."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dte_harvester.harvester import InvoiceHarvester
from dte_harvester.models import DateRange, HarvestResult
from dte_harvester.packages import PackageBuilder
from dte_harvester.plans import QuotaExceededError
from dte_harvester.storage import S3Storage
from dte_harvester.usage_store import UsageStore, current_period

DATE_RANGE = DateRange(
    start=date(2024, 11, 1),
    end=date(2024, 11, 30),
    start_epoch=1730419200,
    end_epoch=1733011200,
    batch_label="2024-11",
)


def fake_harvester(json_count=3, payload=b"%PDF small"):
    harvester = MagicMock(spec=InvoiceHarvester)

    def harvest(**kwargs):
        output_dir = Path(kwargs["base_dir"]) / kwargs["user_id"] / kwargs["batch_label"]
        folder = output_dir / "JSON_y_PDFS" / "DTE_m1"
        folder.mkdir(parents=True)
        (folder / "a.pdf").write_bytes(payload)
        return HarvestResult(
            processed=1,
            messages_found=1,
            files_saved=json_count + 1,
            pdf_count=1,
            json_count=json_count,
            output_dir=output_dir,
        )

    harvester.harvest.side_effect = harvest
    return harvester


class TestPackageBuilder:
    def test_generates_zip_and_records_usage(self, settings):
        usage = UsageStore(settings.usage_db)
        builder = PackageBuilder(settings, usage)

        outcome = builder.generate(fake_harvester(json_count=3), DATE_RANGE, account_email="user@example.com")

        assert outcome.zip_path == settings.output_base_dir / "user-1" / "2024-11.zip"
        assert outcome.zip_path.exists()
        assert not outcome.result.output_dir.exists()
        assert outcome.storage_key is None
        assert outcome.used_before == 0
        assert outcome.used_after == 3
        assert usage.dte_count("user-1", current_period()) == 3
        assert usage.latest_package("user-1")["id"] == outcome.package_id
        assert outcome.summary()["limitInfo"]["remaining"] == 97

    def test_passes_remaining_quota_to_harvest(self, settings):
        usage = UsageStore(settings.usage_db)
        usage.add_dtes("user-1", current_period(), 95)
        harvester = fake_harvester(json_count=9)

        outcome = PackageBuilder(settings, usage).generate(harvester, DATE_RANGE)

        assert harvester.harvest.call_args.kwargs["max_dtes"] == 5
        assert harvester.harvest.call_args.kwargs["max_messages"] == 100
        # Overshoot from concurrent downloads is never billed past the limit.
        assert outcome.used_after == 100

    def test_exhausted_quota_refuses_before_harvest(self, settings):
        usage = UsageStore(settings.usage_db)
        usage.add_dtes("user-1", current_period(), 100)
        harvester = fake_harvester()

        with pytest.raises(QuotaExceededError):
            PackageBuilder(settings, usage).generate(harvester, DATE_RANGE)
        harvester.harvest.assert_not_called()

    def test_inactive_plan_refused(self, settings):
        settings.plan_status = "canceled"

        with pytest.raises(QuotaExceededError):
            PackageBuilder(settings, UsageStore(settings.usage_db)).generate(fake_harvester(), DATE_RANGE)

    def test_oversized_zip_is_discarded(self, settings, monkeypatch):
        monkeypatch.setattr("dte_harvester.packages.zip_directory", lambda source, out: 10**12)
        usage = UsageStore(settings.usage_db)

        with pytest.raises(QuotaExceededError, match="MB limit"):
            PackageBuilder(settings, usage).generate(fake_harvester(), DATE_RANGE)
        assert not (settings.output_base_dir / "user-1" / "2024-11").exists()
        assert usage.dte_count("user-1", current_period()) == 0

    def test_upload_then_local_cleanup(self, settings):
        storage = MagicMock(spec=S3Storage)
        builder = PackageBuilder(settings, UsageStore(settings.usage_db), storage)

        outcome = builder.generate(fake_harvester(), DATE_RANGE)

        assert outcome.storage_key == f"zips/user-1/{outcome.package_id}.zip"
        storage.upload_zip.assert_called_once()
        assert outcome.zip_path is None

    def test_keep_files(self, settings):
        builder = PackageBuilder(settings, UsageStore(settings.usage_db))

        outcome = builder.generate(fake_harvester(), DATE_RANGE, keep_files=True)

        assert (outcome.result.output_dir / "INFO.txt").exists()


class TestCheckQuota:
    def test_reports_remaining_for_the_month(self, settings):
        usage = UsageStore(settings.usage_db)
        usage.add_dtes("user-1", current_period(), 40)

        status = PackageBuilder(settings, usage).check_quota()

        assert status.plan.id == "personal"
        assert status.period == current_period()
        assert (status.used, status.remaining) == (40, 60)

    def test_exhausted_month(self, settings):
        usage = UsageStore(settings.usage_db)
        usage.add_dtes("user-1", current_period(), 100)

        with pytest.raises(QuotaExceededError, match="limit reached"):
            PackageBuilder(settings, usage).check_quota()
