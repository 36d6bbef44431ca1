"""Contract tests for invoice, line-item and payment endpoints."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from rentbill.api.deps import get_bulk_service, get_invoice_service, get_payment_service
from rentbill.main import app
from rentbill.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from rentbill.models.transaction import Transaction, TransactionType
from rentbill.services.bulk_invoice_service import BulkError, BulkResult
from rentbill.services.errors import (
    ConcurrencyConflict,
    DuplicatePeriod,
    InvalidOperation,
    MeterReadingMissing,
    NotFound,
    ValidationError,
)
from rentbill.services.invoice_service import InvoiceBuildResult


def sample_invoice(**overrides) -> Invoice:
    fields = dict(
        id=1,
        contract_id=7,
        invoice_number="HD-202502-00007",
        period_month=2,
        period_year=2025,
        invoice_date=date(2025, 2, 1),
        due_date=date(2025, 2, 10),
        actual_days=None,
        rent_amount=Decimal("3000000.00"),
        service_amount=Decimal("156000.00"),
        previous_debt=Decimal("0.00"),
        total_amount=Decimal("3156000.00"),
        paid_amount=Decimal("0.00"),
        remaining_amount=Decimal("3156000.00"),
        status=InvoiceStatus.PENDING,
        notes=None,
        line_items=[
            InvoiceLineItem(
                id=11,
                service_id=1,
                service_name="Điện",
                unit="meter",
                price=Decimal("3500.00"),
                meter_start=Decimal("1234.00"),
                meter_end=Decimal("1250.00"),
                usage=Decimal("16.00"),
                amount=Decimal("56000.00"),
            )
        ],
        transactions=[],
    )
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def invoice_service():
    return AsyncMock()


@pytest.fixture
def payment_service():
    return AsyncMock()


@pytest.fixture
def bulk_service():
    return AsyncMock()


@pytest.fixture
def client(invoice_service, payment_service, bulk_service):
    """Create FastAPI test client with mocked billing services."""
    app.dependency_overrides[get_invoice_service] = lambda: invoice_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_bulk_service] = lambda: bulk_service
    yield TestClient(app)
    app.dependency_overrides.clear()


CREATE_PAYLOAD = {
    "contract_id": 7,
    "invoice_date": "2025-02-01",
    "due_date": "2025-02-10",
    "period_month": 2,
    "period_year": 2025,
}


class TestCreateInvoice:
    """Tests for POST /api/invoices."""

    def test_created_invoice_with_warnings(self, client, invoice_service):
        warning = MeterReadingMissing(
            contract_id=7, room_id=101, service_id=2, service_name="Nước", period_month=2, period_year=2025
        )
        invoice_service.create_invoice.return_value = InvoiceBuildResult(sample_invoice(), [warning])

        response = client.post("/api/invoices", json=CREATE_PAYLOAD)

        assert response.status_code == 201
        body = response.json()
        assert body["invoice"]["invoice_number"] == "HD-202502-00007"
        assert body["invoice"]["status"] == "pending"
        assert Decimal(str(body["invoice"]["total_amount"])) == Decimal("3156000.00")
        assert body["invoice"]["line_items"][0]["service_name"] == "Điện"
        assert body["warnings"][0]["code"] == "meter_reading_missing"
        assert body["warnings"][0]["service_name"] == "Nước"

        kwargs = invoice_service.create_invoice.await_args.kwargs
        assert kwargs["contract_id"] == 7
        assert kwargs["due_date"] == date(2025, 2, 10)

    @pytest.mark.parametrize(
        ("error", "status_code", "code"),
        [
            (DuplicatePeriod("Invoice already exists"), 409, "duplicate_period"),
            (NotFound("Contract 7 not found"), 404, "not_found"),
            (ValidationError("due_date must not be before invoice_date"), 422, "validation_error"),
        ],
    )
    def test_billing_errors_are_rendered(self, client, invoice_service, error, status_code, code):
        invoice_service.create_invoice.side_effect = error

        response = client.post("/api/invoices", json=CREATE_PAYLOAD)

        assert response.status_code == status_code
        assert response.json() == {"error": {"code": code, "message": error.message}}

    def test_missing_fields_fail_request_validation(self, client, invoice_service):
        response = client.post("/api/invoices", json={"contract_id": 7})

        assert response.status_code == 422
        invoice_service.create_invoice.assert_not_called()


class TestBulkInvoices:
    """Tests for POST /api/invoices/bulk."""

    def test_partial_failure_is_a_success_response(self, client, bulk_service):
        bulk_service.create_invoices_bulk.return_value = BulkResult(
            created=[sample_invoice()],
            errors=[BulkError(contract_id=8, code="invalid_contract", message="Contract 8 is ended")],
        )

        response = client.post("/api/invoices/bulk", json={**CREATE_PAYLOAD, "contract_ids": [7, 8]})

        assert response.status_code == 200
        body = response.json()
        assert [i["contract_id"] for i in body["created"]] == [7]
        assert body["errors"] == [{"contract_id": 8, "code": "invalid_contract", "message": "Contract 8 is ended"}]
        assert bulk_service.create_invoices_bulk.await_args.args == ([7, 8],)

    def test_without_contract_ids_bills_by_room(self, client, bulk_service):
        bulk_service.create_invoices_for_rooms.return_value = BulkResult()

        response = client.post("/api/invoices/bulk", json={**CREATE_PAYLOAD, "room_ids": [101]})

        assert response.status_code == 200
        assert bulk_service.create_invoices_for_rooms.await_args.args == ([101],)
        bulk_service.create_invoices_bulk.assert_not_called()


class TestInvoiceReads:
    """Tests for GET /api/invoices and GET /api/invoices/{id}."""

    def test_list_with_status_filter(self, client, invoice_service):
        invoice_service.list_invoices.return_value = [sample_invoice(status=InvoiceStatus.OVERDUE)]

        response = client.get("/api/invoices", params={"status": "overdue", "contract_id": 7})

        assert response.status_code == 200
        assert response.json()[0]["status"] == "overdue"
        kwargs = invoice_service.list_invoices.await_args.kwargs
        assert kwargs["status"] == InvoiceStatus.OVERDUE
        assert kwargs["contract_id"] == 7

    def test_unknown_status_filter_is_rejected(self, client):
        response = client.get("/api/invoices", params={"status": "cancelled"})

        assert response.status_code == 422

    def test_get_invoice(self, client, invoice_service):
        invoice_service.get_invoice.return_value = sample_invoice()

        response = client.get("/api/invoices/1")

        assert response.status_code == 200
        assert response.json()["line_items"][0]["unit"] == "meter"

    def test_get_unknown_invoice(self, client, invoice_service):
        invoice_service.get_invoice.side_effect = NotFound("Invoice 99 not found")

        response = client.get("/api/invoices/99")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_refresh_statuses(self, client, invoice_service):
        invoice_service.refresh_statuses.return_value = 4

        response = client.post("/api/invoices/refresh-statuses")

        assert response.status_code == 200
        assert response.json() == {"updated": 4}


class TestInvoiceEdits:
    """Tests for notes, line-item edits and deletion."""

    def test_update_notes(self, client, invoice_service):
        invoice_service.update_notes.return_value = sample_invoice(notes="Pays by transfer")

        response = client.patch("/api/invoices/1", json={"notes": "Pays by transfer"})

        assert response.status_code == 200
        assert response.json()["notes"] == "Pays by transfer"
        invoice_service.update_notes.assert_awaited_once_with(1, "Pays by transfer")

    def test_update_line_item(self, client, invoice_service):
        invoice_service.update_line_item.return_value = sample_invoice()

        response = client.patch("/api/invoice-items/11", json={"meter_end": "1260"})

        assert response.status_code == 200
        kwargs = invoice_service.update_line_item.await_args.kwargs
        assert kwargs["meter_end"] == Decimal("1260")
        assert kwargs["price"] is None

    def test_update_line_item_of_paid_invoice(self, client, invoice_service):
        invoice_service.update_line_item.side_effect = InvalidOperation("Invoice is fully paid")

        response = client.patch("/api/invoice-items/11", json={"price": "1"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_operation"

    def test_delete_invoice(self, client, invoice_service):
        response = client.delete("/api/invoices/1")

        assert response.status_code == 204
        invoice_service.delete_invoice.assert_awaited_once_with(1)


class TestPayments:
    """Tests for POST /api/invoices/{id}/payments and PATCH/DELETE /api/transactions/{id}."""

    def test_add_payment(self, client, payment_service):
        invoice = sample_invoice(
            paid_amount=Decimal("1000000.00"),
            remaining_amount=Decimal("2156000.00"),
            status=InvoiceStatus.PARTIAL,
        )
        payment_service.add_payment.return_value = Transaction(
            id=5,
            transaction_number="PT-20250205-9F2C41AB",
            type=TransactionType.INCOME,
            account_id=1,
            invoice_id=1,
            invoice=invoice,
            amount=Decimal("1000000.00"),
            transaction_date=date(2025, 2, 5),
            payment_method="cash",
        )

        response = client.post(
            "/api/invoices/1/payments",
            json={"amount": "1000000", "account_id": 1, "method": "cash", "payment_date": "2025-02-05"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["transaction"]["transaction_number"] == "PT-20250205-9F2C41AB"
        assert body["transaction"]["type"] == "income"
        assert body["invoice"]["status"] == "partial"
        kwargs = payment_service.add_payment.await_args.kwargs
        assert kwargs["invoice_id"] == 1
        assert kwargs["amount"] == Decimal("1000000")

    def test_add_payment_conflict(self, client, payment_service):
        payment_service.add_payment.side_effect = ConcurrencyConflict("Invoice was modified concurrently")

        response = client.post(
            "/api/invoices/1/payments",
            json={"amount": "1000", "account_id": 1, "payment_date": "2025-02-05"},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "concurrency_conflict"

    def test_update_payment(self, client, payment_service):
        invoice = sample_invoice(
            paid_amount=Decimal("1500000.00"),
            remaining_amount=Decimal("1656000.00"),
            status=InvoiceStatus.PARTIAL,
        )
        payment_service.update_payment.return_value = Transaction(
            id=5,
            transaction_number="PT-20250205-9F2C41AB",
            type=TransactionType.INCOME,
            account_id=2,
            invoice_id=1,
            invoice=invoice,
            amount=Decimal("1500000.00"),
            transaction_date=date(2025, 2, 5),
            payment_method="transfer",
        )

        response = client.patch("/api/transactions/5", json={"amount": "1500000", "account_id": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["transaction"]["account_id"] == 2
        assert body["invoice"]["status"] == "partial"
        payment_service.update_payment.assert_awaited_once_with(
            5,
            amount=Decimal("1500000"),
            account_id=2,
            method=None,
            payment_date=None,
            description=None,
        )

    def test_update_payment_without_fields(self, client, payment_service):
        payment_service.update_payment.side_effect = ValidationError("No fields to update")

        response = client.patch("/api/transactions/5", json={})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_remove_payment(self, client, payment_service):
        payment_service.remove_payment.return_value = sample_invoice()

        response = client.delete("/api/transactions/5", params={"invoice_id": 1})

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        payment_service.remove_payment.assert_awaited_once_with(5, invoice_id=1)

    def test_remove_payment_of_other_invoice(self, client, payment_service):
        payment_service.remove_payment.side_effect = InvalidOperation("Transaction 5 does not belong to invoice 2")

        response = client.delete("/api/transactions/5", params={"invoice_id": 2})

        assert response.status_code == 400


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
