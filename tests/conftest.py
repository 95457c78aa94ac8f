"""Shared fixtures."""

from __future__ import annotations

import pytest

from dte_harvester.config import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        GOOGLE_CLIENT_ID="client-id",
        GOOGLE_CLIENT_SECRET="client-secret",
        GMAIL_TOKEN_CACHE=tmp_path / "token.json",
        OUTPUT_BASE_DIR=tmp_path / "zips",
        USAGE_DB=tmp_path / "usage.db",
        HARVEST_USER_ID="user-1",
        S3_BUCKET="",
        GMAIL_ACCESS_TOKEN="",
    )
