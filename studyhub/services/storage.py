"""Note file storage in an S3 (or S3-compatible) bucket."""

import logging
import secrets
import time
from functools import lru_cache
from pathlib import PurePosixPath
from uuid import UUID

import boto3
from botocore.exceptions import ClientError

from studyhub.config import Settings, get_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage operation failed."""


def build_note_path(user_id: UUID, filename: str) -> str:
    """Storage key for a new upload: notes/{user_id}/{random}_{timestamp}.{ext}"""
    ext = PurePosixPath(filename).suffix.lstrip(".").lower() or "pdf"
    return f"notes/{user_id}/{secrets.token_hex(6)}_{int(time.time() * 1000)}.{ext}"


class NoteStorage:
    """Upload, fetch and publish note files."""

    def __init__(self, settings: Settings):
        client_kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
            "region_name": settings.aws_s3_region,
        }
        # Support MinIO / LocalStack by pointing to a custom endpoint
        if settings.aws_s3_endpoint_url:
            client_kwargs["endpoint_url"] = settings.aws_s3_endpoint_url

        self.s3_client = boto3.client("s3", **client_kwargs)
        self.bucket = settings.aws_s3_bucket
        self.max_size_bytes = settings.max_note_size_bytes
        self.public_base_url = (
            settings.storage_public_base_url
            or f"https://{settings.aws_s3_bucket}.s3.{settings.aws_s3_region}.amazonaws.com"
        ).rstrip("/")

    def public_url(self, file_path: str) -> str:
        return f"{self.public_base_url}/{file_path}"

    async def generate_presigned_upload_url(
        self,
        file_path: str,
        content_type: str = "application/pdf",
        expiration: int = 300,
    ) -> dict:
        """
        Generate presigned POST data for a direct upload from the client.

        Returns:
            Dictionary with `url` and form `fields`

        Raises:
            StorageError: If S3 rejects the request
        """
        try:
            return self.s3_client.generate_presigned_post(
                self.bucket,
                file_path,
                Fields={"Content-Type": content_type},
                Conditions=[
                    {"Content-Type": content_type},
                    ["content-length-range", 1, self.max_size_bytes],
                ],
                ExpiresIn=expiration,
            )
        except ClientError as e:
            raise StorageError(f"Failed to generate presigned URL: {e}") from e

    async def download(self, file_path: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=file_path)
            return response["Body"].read()
        except ClientError as e:
            raise StorageError(f"Failed to download {file_path}: {e}") from e

    async def delete(self, file_path: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=file_path)
        except ClientError as e:
            raise StorageError(f"Failed to delete {file_path}: {e}") from e

    def exists(self, file_path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=file_path)
            return True
        except ClientError:
            return False


@lru_cache
def get_storage() -> NoteStorage:
    """Shared storage client (FastAPI dependency)."""
    return NoteStorage(get_settings())
