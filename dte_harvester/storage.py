"""S3 storage for generated ZIP packages."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from .config import Settings

logger = logging.getLogger(__name__)


class StorageNotFoundError(LookupError):
    """Raised when a storage key does not exist in the bucket."""


def package_key(user_id: str, package_id: str) -> str:
    return f"zips/{user_id}/{package_id}.zip"


class S3Storage:
    """Upload archives and hand out presigned download links."""

    def __init__(self, settings: Settings, client: BaseClient | None = None) -> None:
        if not settings.s3_bucket:
            raise ValueError("S3_BUCKET is required for storage operations.")
        self.bucket = settings.s3_bucket
        self.client = client or self._build_client(settings)

    @staticmethod
    def _build_client(settings: Settings) -> BaseClient:
        session_kwargs = {"region_name": settings.aws_region}
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            session_kwargs["aws_access_key_id"] = settings.aws_access_key_id
            session_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        session = boto3.Session(**session_kwargs)
        if settings.aws_endpoint_url:
            return session.client("s3", endpoint_url=settings.aws_endpoint_url)
        return session.client("s3")

    def upload_zip(self, local_path: Path, storage_key: str) -> None:
        logger.info("Uploading %s to s3://%s/%s", local_path, self.bucket, storage_key)
        self.client.upload_file(
            str(local_path),
            self.bucket,
            storage_key,
            ExtraArgs={"ContentType": "application/zip"},
        )

    def get_download_url(
        self, storage_key: str, expires_in: int = 300, filename: Optional[str] = None
    ) -> str:
        try:
            self.client.head_object(Bucket=self.bucket, Key=storage_key)
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            code = exc.response.get("Error", {}).get("Code")
            if status == 404 or code in ("404", "NoSuchKey", "NotFound"):
                raise StorageNotFoundError(f"File not found in storage: {storage_key}") from exc
            raise

        params = {"Bucket": self.bucket, "Key": storage_key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        return self.client.generate_presigned_url("get_object", Params=params, ExpiresIn=expires_in)
