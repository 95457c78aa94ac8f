"""Configuration management for the Gmail DTE harvester."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Sequence

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .keywords import clean_custom_keywords

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()

DEFAULT_TRUSTED_LINK_HOSTS = "s.edicom.eu;edicom.eu;admin.factura.gob.sv;webapp.dtes.mh.gob.sv"


def _split_list(value: str | Sequence[str] | None, coerce_lower: bool = True) -> list[str]:
    """Turn delimiter-separated env strings into cleaned lists."""
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[;,]", value)
    else:
        items = list(value)
    cleaned: list[str] = []
    for item in items:
        trimmed = item.strip()
        if not trimmed:
            continue
        cleaned.append(trimmed.lower() if coerce_lower else trimmed)
    return cleaned


class Settings(BaseSettings):
    """App configuration derived from environment variables."""

    google_client_id: str = Field(..., alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(..., alias="GOOGLE_CLIENT_SECRET")
    google_redirect_uri: str = Field("urn:ietf:wg:oauth:2.0:oob", alias="GOOGLE_REDIRECT_URI")
    gmail_token_cache: Path = Field(Path("data/gmail_token.json"), alias="GMAIL_TOKEN_CACHE")
    gmail_access_token: str | None = Field(None, alias="GMAIL_ACCESS_TOKEN")
    google_api_timeout: float = Field(45.0, alias="GOOGLE_API_TIMEOUT")
    gmail_page_size: int = Field(70, alias="GMAIL_PAGE_SIZE")

    harvest_max_messages: int = Field(100, alias="HARVEST_MAX_MESSAGES")
    message_concurrency: int = Field(4, alias="MESSAGE_CONCURRENCY")
    attachment_concurrency: int = Field(8, alias="ATTACHMENT_CONCURRENCY")
    link_timeout: float = Field(20.0, alias="LINK_TIMEOUT")
    trusted_link_hosts_raw: str = Field(DEFAULT_TRUSTED_LINK_HOSTS, alias="TRUSTED_LINK_HOSTS")
    custom_keywords_raw: str = Field("", alias="CUSTOM_KEYWORDS")

    output_base_dir: Path = Field(Path("uploads/zips"), alias="OUTPUT_BASE_DIR")
    harvest_user_id: str = Field("local", alias="HARVEST_USER_ID")
    plan: str = Field("personal", alias="PLAN")
    plan_status: Literal["active", "canceled"] = Field("active", alias="PLAN_STATUS")
    zip_max_age_hours: int = Field(24, alias="ZIP_MAX_AGE_HOURS")
    usage_db: Path = Field(Path("data/usage.db"), alias="USAGE_DB")

    s3_bucket: str | None = Field(None, alias="S3_BUCKET")
    aws_region: str | None = Field(None, alias="AWS_REGION")
    aws_access_key_id: str | None = Field(None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(None, alias="AWS_SECRET_ACCESS_KEY")
    aws_endpoint_url: str | None = Field(None, alias="AWS_ENDPOINT_URL")
    download_url_ttl: int = Field(300, alias="DOWNLOAD_URL_TTL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "gmail_access_token",
        "s3_bucket",
        "aws_region",
        "aws_access_key_id",
        "aws_secret_access_key",
        "aws_endpoint_url",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator(
        "gmail_page_size",
        "harvest_max_messages",
        "message_concurrency",
        "attachment_concurrency",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def trusted_link_hosts(self) -> list[str]:
        hosts = _split_list(self.trusted_link_hosts_raw, coerce_lower=True)
        return hosts or _split_list(DEFAULT_TRUSTED_LINK_HOSTS)

    @property
    def custom_keywords(self) -> list[str]:
        return clean_custom_keywords(_split_list(self.custom_keywords_raw, coerce_lower=False))

    @property
    def upload_enabled(self) -> bool:
        return self.s3_bucket is not None
