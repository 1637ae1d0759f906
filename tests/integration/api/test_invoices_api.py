"""
Integration tests for invoice API.

WHAT: Tests invoice creation, lifecycle and document endpoints via HTTP.

WHY: The billing tab drives everything through these endpoints. These
tests ensure:
1. Amounts cross the API as two-place decimal strings
2. Both camelCase and snake_case request fields are accepted
3. Billing rejections return their status code and full message
4. The invoice is committed even when its PDF cannot be stored

HOW: Uses pytest-asyncio with AsyncClient for HTTP testing.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.deps import get_document_emitter
from jobbilling.core.exceptions import DocumentStorageError
from jobbilling.main import app
from jobbilling.models.invoice import InvoiceStatus
from jobbilling.models.job import DealType
from jobbilling.services.document_emitter import InvoiceDocumentEmitter
from tests.factories import ChangeOrderFactory, InvoiceFactory, JobFactory


class TestCreateInvoice:
    """Integration tests for the invoice creation endpoint."""

    @pytest.mark.asyncio
    async def test_create_progress_invoice(
        self, client: AsyncClient, db_session: AsyncSession, actor_headers
    ):
        job = await JobFactory.create(db_session, base_contract_value=1_000_000)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            headers=actor_headers,
            json={"invoiceType": "progress", "customAmount": "6000.00"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["invoice_number"] == f"INV-{job.id}-01"
        assert data["total_amount"] == "6000.00"
        assert data["document_url"].startswith("file://")
        assert data["document_error"] is None

        detail = (await client.get(f"/api/invoices/{data['invoice_id']}")).json()
        assert detail["status"] == "draft"
        assert detail["created_by"] == 7
        assert detail["line_items"][0]["description"] == "Progress Payment"
        assert detail["line_items"][0]["total_price"] == "6000.00"

    @pytest.mark.asyncio
    async def test_snake_case_fields_accepted(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session, deal_type=DealType.INSURANCE)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            json={"invoice_type": "deposit", "custom_amount": 4000},
        )

        assert response.status_code == 201
        detail = (await client.get(f"/api/invoices/{response.json()['invoice_id']}")).json()
        assert detail["line_items"][0]["description"] == "ACV Deposit (Insurance)"

    @pytest.mark.asyncio
    async def test_full_billing_flow(self, client: AsyncClient, db_session: AsyncSession):
        """
        Test $10,000 contract + $1,200 change order, $6,000 progress, final.

        WHY: The final invoice must bill exactly the $5,200 that is left,
        and a second final must be refused with the totals in the message.
        """
        job = await JobFactory.create(db_session, base_contract_value=1_000_000)
        await ChangeOrderFactory.create(db_session, job, amount=120_000)
        url = f"/api/jobs/{job.id}/invoices"

        progress = await client.post(url, json={"invoiceType": "progress", "customAmount": 6000})
        assert progress.status_code == 201

        final = await client.post(url, json={"invoiceType": "final"})
        assert final.status_code == 201
        assert final.json()["total_amount"] == "5200.00"

        again = await client.post(url, json={"invoiceType": "final"})
        assert again.status_code == 400
        assert again.json()["message"] == (
            "No remaining balance. Total contract: $11,200.00, Already invoiced: $11,200.00"
        )

        listing = (await client.get(url)).json()
        assert listing["total"] == 2
        assert [i["invoice_type"] for i in listing["items"]] == ["progress", "final"]

    @pytest.mark.asyncio
    async def test_supplement_then_rebill_conflicts(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        job = await JobFactory.create(db_session)
        job_id = job.id
        co1 = await ChangeOrderFactory.create(db_session, job, amount=30_000)
        co2 = await ChangeOrderFactory.create(db_session, job, amount=45_000)
        co1_id, co2_id = co1.id, co2.id
        url = f"/api/jobs/{job_id}/invoices"

        created = await client.post(
            url, json={"invoiceType": "supplement", "changeOrderIds": [co1_id, co2_id]}
        )
        assert created.status_code == 201
        assert created.json()["total_amount"] == "750.00"

        rebill = await client.post(
            url, json={"invoiceType": "supplement", "changeOrderIds": [co1_id]}
        )
        assert rebill.status_code == 409
        body = rebill.json()
        assert body["error"] == "ConflictError"
        assert body["details"]["change_order_ids"] == [co1_id]

    @pytest.mark.asyncio
    async def test_over_ceiling(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session, base_contract_value=100_000)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            json={"invoiceType": "progress", "customAmount": "1000.01"},
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith(
            "Invoice total $1,000.01 exceeds the remaining contract balance of $1,000.00."
        )

    @pytest.mark.asyncio
    async def test_missing_custom_amount(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices", json={"invoiceType": "deposit"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "customAmount is required for deposit invoices"

    @pytest.mark.asyncio
    async def test_sub_cent_amount_rejected(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            json={"invoiceType": "progress", "customAmount": "10.005"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Request validation failed"

    @pytest.mark.asyncio
    async def test_unknown_invoice_type(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices", json={"invoiceType": "retainer"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_job(self, client: AsyncClient):
        response = await client.post(
            "/api/jobs/99999/invoices", json={"invoiceType": "progress", "customAmount": 10}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "JobNotFoundError"

    @pytest.mark.asyncio
    async def test_bad_actor_header(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            headers={"X-Actor-Id": "not-a-number"},
            json={"invoiceType": "progress", "customAmount": 10},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_render_failure_still_creates(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        """
        WHY: Storage outages must not lose an invoice or its number.
        """
        job = await JobFactory.create(db_session)
        store = MagicMock()
        store.put = AsyncMock(side_effect=DocumentStorageError(message="bucket unavailable"))
        app.dependency_overrides[get_document_emitter] = lambda: InvoiceDocumentEmitter(
            db_session, document_store=store
        )

        response = await client.post(
            f"/api/jobs/{job.id}/invoices",
            json={"invoiceType": "progress", "customAmount": 100},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["document_url"] is None
        assert "bucket unavailable" in data["document_error"]
        detail = (await client.get(f"/api/invoices/{data['invoice_id']}")).json()
        assert detail["document_url"] is None


class TestInvoiceLifecycle:
    """Integration tests for send / pay / cancel."""

    @pytest.mark.asyncio
    async def test_send_and_pay(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.DRAFT)

        sent = await client.post(f"/api/invoices/{invoice.id}/send")
        assert sent.status_code == 200
        assert sent.json()["status"] == "sent"

        paid = await client.post(
            f"/api/invoices/{invoice.id}/pay", json={"paidDate": "2026-01-15"}
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"
        assert paid.json()["paid_date"] == "2026-01-15"

    @pytest.mark.asyncio
    async def test_pay_without_body(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.SENT)

        response = await client.post(f"/api/invoices/{invoice.id}/pay")

        assert response.status_code == 200
        assert response.json()["paid_date"] is not None

    @pytest.mark.asyncio
    async def test_cancel_paid_rejected(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.PAID)
        invoice_id, number = invoice.id, invoice.invoice_number

        response = await client.post(f"/api/invoices/{invoice_id}/cancel")

        assert response.status_code == 400
        assert response.json()["message"] == (
            f"Cannot mark invoice {number} as cancelled: it is paid"
        )

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.SENT)

        response = await client.post(f"/api/invoices/{invoice.id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_render_document(self, client: AsyncClient, db_session: AsyncSession):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job)

        response = await client.post(f"/api/invoices/{invoice.id}/document")

        assert response.status_code == 200
        assert response.json()["document_url"].endswith(f"{invoice.invoice_number}.pdf")

    @pytest.mark.asyncio
    async def test_get_unknown_invoice(self, client: AsyncClient):
        response = await client.get("/api/invoices/99999")

        assert response.status_code == 404
        assert response.json()["error"] == "InvoiceNotFoundError"
