"""
Evidence file storage.

Files go to S3 when ``S3_BUCKET_NAME`` is configured, otherwise to a local
directory served under ``EVIDENCE_BASE_URL``. Either way the caller gets a
URL back and stores it on the submission as-is.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fpms.core.config import settings
from fpms.core.errors import ServerError, ValidationError

logger = logging.getLogger(__name__)

EVIDENCE_FOLDER = "task_evidence"


def _safe_extension(filename: str) -> str:
    ext = Path(str(filename or "")).suffix.lower().lstrip(".")
    if ext not in settings.EVIDENCE_ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported file type. Allowed: {', '.join(settings.EVIDENCE_ALLOWED_EXTENSIONS)}"
        )
    return ext


def _object_key(filename: str) -> str:
    return f"{EVIDENCE_FOLDER}/{uuid.uuid4().hex}.{_safe_extension(filename)}"


class LocalEvidenceStore:
    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.EVIDENCE_DIR)
        self.base_url = (base_url or settings.EVIDENCE_BASE_URL).rstrip("/")

    def store(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        key = _object_key(filename)
        path = self.root / key
        os.makedirs(path.parent, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        logger.info(f"Stored evidence {key} ({len(content)} bytes) locally")
        return f"{self.base_url}/{key}"


class S3EvidenceStore:
    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

    def store(self, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        key = _object_key(filename)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, **extra)
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"S3 upload of {key} failed: {exc}")
            raise ServerError("Evidence upload failed")
        logger.info(f"Stored evidence s3://{self.bucket}/{key} ({len(content)} bytes)")
        return f"https://{self.bucket}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"


def get_evidence_store():
    if settings.S3_BUCKET_NAME:
        return S3EvidenceStore(settings.S3_BUCKET_NAME)
    return LocalEvidenceStore()


def store_evidence(store, *, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
    if not content:
        raise ValidationError("File cannot be empty")
    if len(content) > settings.EVIDENCE_MAX_BYTES:
        raise ValidationError(
            f"File exceeds {settings.EVIDENCE_MAX_BYTES // (1024 * 1024)}MB limit"
        )
    return store.store(filename, content, content_type)
