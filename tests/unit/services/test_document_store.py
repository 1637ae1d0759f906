"""
Unit tests for document storage.

WHAT: Tests the S3 and local document stores and backend selection.

HOW: The S3 client is a MagicMock; no AWS calls are made.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from jobbilling.core.exceptions import DocumentStorageError
from jobbilling.services.document_store import (
    LocalDocumentStore,
    S3DocumentStore,
    get_document_store,
    invoice_document_key,
)


class TestInvoiceDocumentKey:

    def test_key(self):
        assert invoice_document_key(42, "INV-42-03") == "jobs/42/invoices/INV-42-03.pdf"

    def test_separators_are_neutralized(self):
        assert invoice_document_key(1, "../INV/1") == "jobs/1/invoices/.._INV_1.pdf"


class TestS3DocumentStore:

    @pytest.fixture
    def s3_client(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://bucket.s3/presigned"
        return client

    @pytest.mark.asyncio
    async def test_put_uploads_and_signs(self, s3_client):
        store = S3DocumentStore(bucket_name="invoices", url_expiry=600, s3_client=s3_client)

        url = await store.put("jobs/1/invoices/INV-1-01.pdf", b"%PDF-1.4")

        assert url == "https://bucket.s3/presigned"
        s3_client.put_object.assert_called_once_with(
            Bucket="invoices",
            Key="jobs/1/invoices/INV-1-01.pdf",
            Body=b"%PDF-1.4",
            ContentType="application/pdf",
        )
        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "invoices", "Key": "jobs/1/invoices/INV-1-01.pdf"},
            ExpiresIn=600,
        )

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self, s3_client):
        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}},
            "PutObject",
        )
        store = S3DocumentStore(bucket_name="invoices", s3_client=s3_client)

        with pytest.raises(DocumentStorageError) as exc_info:
            await store.put("jobs/1/invoices/INV-1-01.pdf", b"%PDF")

        assert exc_info.value.context["key"] == "jobs/1/invoices/INV-1-01.pdf"


class TestLocalDocumentStore:

    @pytest.mark.asyncio
    async def test_writes_file(self, tmp_path):
        store = LocalDocumentStore(str(tmp_path))

        url = await store.put("jobs/1/invoices/INV-1-01.pdf", b"%PDF-1.4")

        path = tmp_path / "jobs" / "1" / "invoices" / "INV-1-01.pdf"
        assert path.read_bytes() == b"%PDF-1.4"
        assert url == path.resolve().as_uri()

    @pytest.mark.asyncio
    async def test_overwrites_on_rerender(self, tmp_path):
        store = LocalDocumentStore(str(tmp_path))

        await store.put("a.pdf", b"first")
        await store.put("a.pdf", b"second")

        assert (tmp_path / "a.pdf").read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_rejects_keys_outside_root(self, tmp_path):
        store = LocalDocumentStore(str(tmp_path / "docs"))

        with pytest.raises(DocumentStorageError):
            await store.put("../escape.pdf", b"%PDF")

        assert not Path(tmp_path / "escape.pdf").exists()


class TestGetDocumentStore:

    def test_local_backend(self):
        with patch("jobbilling.services.document_store.settings") as mock_settings:
            mock_settings.DOCUMENT_STORAGE_BACKEND = "local"
            mock_settings.LOCAL_DOCUMENT_ROOT = "/tmp/documents"

            assert isinstance(get_document_store(), LocalDocumentStore)

    def test_s3_backend(self):
        with patch("jobbilling.services.document_store.settings") as mock_settings, \
             patch("jobbilling.services.document_store.boto3") as mock_boto3:
            mock_settings.DOCUMENT_STORAGE_BACKEND = "S3"

            store = get_document_store()

        assert isinstance(store, S3DocumentStore)
        mock_boto3.client.assert_called_once()

    def test_unknown_backend(self):
        with patch("jobbilling.services.document_store.settings") as mock_settings:
            mock_settings.DOCUMENT_STORAGE_BACKEND = "ftp"

            with pytest.raises(DocumentStorageError):
                get_document_store()
