"""
Rendered document storage.

WHAT: Stores rendered invoice PDFs and returns a URL to retrieve them.

WHY: Rendering happens after the invoice commits and can be retried. The
store is keyed by invoice number, so a retry overwrites the earlier object
instead of piling up copies.

HOW: Two backends behind one ``put`` call:
- S3DocumentStore: boto3 ``put_object`` + presigned GET URL (production)
- LocalDocumentStore: files under LOCAL_DOCUMENT_ROOT, ``file://`` URLs
  (development and tests)
``get_document_store()`` picks one from DOCUMENT_STORAGE_BACKEND.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from jobbilling.core.config import settings
from jobbilling.core.exceptions import DocumentStorageError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def invoice_document_key(job_id: int, invoice_number: str) -> str:
    """
    Storage key for an invoice PDF, e.g. ``jobs/42/invoices/INV-42-03.pdf``.
    """
    safe_number = invoice_number.replace("/", "_").replace("\\", "_").replace("\x00", "")
    return f"jobs/{job_id}/invoices/{safe_number}.pdf"


class DocumentStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        ...


class S3DocumentStore:
    """
    S3-backed document store.

    WHY: Presigned URLs let the CRM hand invoices to customers without
    making the bucket public.
    """

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        url_expiry: Optional[int] = None,
        s3_client=None,
    ):
        """
        Initialize S3DocumentStore.

        Args:
            bucket_name: Bucket (defaults to S3_BUCKET_NAME)
            url_expiry: Presigned URL lifetime in seconds
            s3_client: Pre-built boto3 client (tests)
        """
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self.url_expiry = url_expiry or settings.S3_PRESIGNED_URL_EXPIRY
        self.s3_client = s3_client or boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
        )

    async def put(self, key: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        """
        Upload a document and return a presigned download URL.

        Raises:
            DocumentStorageError: If S3 rejects the upload or signing
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=self.url_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            raise DocumentStorageError(
                message="Failed to upload document to storage",
                key=key,
                error=str(e),
            ) from e


class LocalDocumentStore:
    """Filesystem document store."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.LOCAL_DOCUMENT_ROOT)

    async def put(self, key: str, data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
        """
        Write a document under the root and return its ``file://`` URL.

        Raises:
            DocumentStorageError: If the file cannot be written, or the key
                escapes the root
        """
        root = self.root.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise DocumentStorageError(message="Invalid document key", key=key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise DocumentStorageError(
                message="Failed to write document to storage",
                key=key,
                error=str(e),
            ) from e
        return path.as_uri()


def get_document_store() -> DocumentStore:
    """
    Build the configured document store.

    Raises:
        DocumentStorageError: If DOCUMENT_STORAGE_BACKEND is unknown
    """
    backend = settings.DOCUMENT_STORAGE_BACKEND.lower()
    if backend == "s3":
        return S3DocumentStore()
    if backend == "local":
        return LocalDocumentStore()
    raise DocumentStorageError(
        message=f"Unknown document storage backend: {settings.DOCUMENT_STORAGE_BACKEND}",
        backend=settings.DOCUMENT_STORAGE_BACKEND,
    )
