"""Integration tests for invoice reads, edits and deletion."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from rentbill.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from rentbill.models.transaction import Transaction
from rentbill.services.errors import InvalidOperation, NotFound, ValidationError
from rentbill.services.invoice_service import InvoiceService
from rentbill.services.meter_reading_service import MeterReadingService
from rentbill.services.payment_service import PaymentService

TODAY = date(2025, 2, 5)


@pytest.fixture
def invoice_service(session):
    return InvoiceService(session)


@pytest.fixture
async def invoice(invoice_service, contract, record_reading, services):
    """February invoice: rent 3,000,000 + electricity 56,000 + water 100,000 + internet 100,000."""
    await record_reading(contract.room_id, services["electricity"], 2, 2025, 1234, 1250)
    await record_reading(contract.room_id, services["water"], 2, 2025, 10, 15)
    result = await invoice_service.create_invoice(
        contract.id,
        invoice_date=date(2025, 2, 1),
        due_date=date(2025, 2, 10),
        period_month=2,
        period_year=2025,
        today=TODAY,
    )
    assert result.invoice.total_amount == Decimal("3256000.00")
    return result.invoice


def line(invoice, service_name) -> InvoiceLineItem:
    return next(item for item in invoice.line_items if item.service_name == service_name)


async def pay(session, invoice_id, account, amount):
    return await PaymentService(session).add_payment(
        invoice_id=invoice_id,
        amount=Decimal(amount),
        account_id=account.id,
        method="transfer",
        payment_date=TODAY,
        today=TODAY,
    )


async def test_get_invoice_includes_lines_and_payments(session, invoice_service, invoice, account):
    await pay(session, invoice.id, account, "1000000")

    loaded = await invoice_service.get_invoice(invoice.id, today=TODAY)

    assert len(loaded.line_items) == 3
    assert [t.amount for t in loaded.transactions] == [Decimal("1000000.00")]
    assert loaded.status == InvoiceStatus.PARTIAL


async def test_get_unknown_invoice(invoice_service):
    with pytest.raises(NotFound):
        await invoice_service.get_invoice(9999)


async def test_reading_an_invoice_after_due_date_marks_it_overdue(invoice_service, invoice):
    loaded = await invoice_service.get_invoice(invoice.id, today=date(2025, 2, 11))

    assert loaded.status == InvoiceStatus.OVERDUE


async def test_refresh_statuses_sweeps_overdue_invoices(session, invoice_service, invoice, make_contract):
    other = await make_contract(room_id=202, attach=("internet",))
    await invoice_service.create_invoice(
        other.id,
        invoice_date=date(2025, 2, 1),
        due_date=date(2025, 2, 28),
        period_month=2,
        period_year=2025,
        today=TODAY,
    )

    assert await invoice_service.refresh_statuses(today=date(2025, 2, 11)) == 1
    assert await invoice_service.refresh_statuses(today=date(2025, 2, 11)) == 0

    overdue = await invoice_service.list_invoices(status=InvoiceStatus.OVERDUE, today=date(2025, 2, 11))
    assert [i.id for i in overdue] == [invoice.id]


async def test_list_invoices_filters_and_orders_newest_first(invoice_service, invoice, contract):
    march = await invoice_service.create_invoice(
        contract.id,
        invoice_date=date(2025, 3, 1),
        due_date=date(2025, 3, 10),
        period_month=3,
        period_year=2025,
        today=TODAY,
    )

    listed = await invoice_service.list_invoices(contract_id=contract.id, today=TODAY)
    assert [i.id for i in listed] == [march.invoice.id, invoice.id]

    february = await invoice_service.list_invoices(period_month=2, period_year=2025, today=TODAY)
    assert [i.id for i in february] == [invoice.id]


async def test_update_notes(invoice_service, invoice):
    updated = await invoice_service.update_notes(invoice.id, "Tenant pays by transfer")

    assert updated.notes == "Tenant pays by transfer"


async def test_meter_correction_reprices_line_and_updates_reading(
    session, invoice_service, invoice, contract, services
):
    electricity = line(invoice, "Điện")

    updated = await invoice_service.update_line_item(electricity.id, meter_end=Decimal("1260"), today=TODAY)

    corrected = line(updated, "Điện")
    assert corrected.usage == Decimal("26.00")
    assert corrected.amount == Decimal("91000.00")
    assert updated.service_amount == Decimal("291000.00")
    assert updated.total_amount == Decimal("3291000.00")
    assert updated.remaining_amount == Decimal("3291000.00")

    reading = await MeterReadingService(session).find(contract.room_id, services["electricity"].id, 2, 2025)
    await session.refresh(reading)
    assert reading.meter_end == Decimal("1260.00")


async def test_quantity_and_price_edit(invoice_service, invoice):
    internet = line(invoice, "Internet")

    updated = await invoice_service.update_line_item(
        internet.id, quantity=Decimal("2"), price=Decimal("120000"), today=TODAY
    )

    assert line(updated, "Internet").amount == Decimal("240000.00")
    assert updated.total_amount == Decimal("3396000.00")


async def test_edit_after_partial_payment_keeps_payments(session, invoice_service, invoice, account):
    internet_id = line(invoice, "Internet").id
    await pay(session, invoice.id, account, "3000000")

    updated = await invoice_service.update_line_item(internet_id, price=Decimal("0"), today=TODAY)

    assert updated.total_amount == Decimal("3156000.00")
    assert updated.paid_amount == Decimal("3000000.00")
    assert updated.remaining_amount == Decimal("156000.00")
    assert updated.status == InvoiceStatus.PARTIAL


async def test_edit_of_fully_paid_invoice_is_rejected(session, invoice_service, invoice, account):
    internet_id = line(invoice, "Internet").id
    invoice_id = invoice.id
    await pay(session, invoice_id, account, "3256000")

    with pytest.raises(InvalidOperation):
        await invoice_service.update_line_item(internet_id, price=Decimal("1"), today=TODAY)


async def test_edit_validation(invoice_service, invoice):
    electricity_id = line(invoice, "Điện").id
    internet_id = line(invoice, "Internet").id

    with pytest.raises(ValidationError, match="No fields"):
        await invoice_service.update_line_item(electricity_id)
    with pytest.raises(ValidationError):
        await invoice_service.update_line_item(electricity_id, quantity=Decimal("2"))
    with pytest.raises(ValidationError):
        await invoice_service.update_line_item(electricity_id, meter_end=Decimal("1000"))
    with pytest.raises(ValidationError):
        await invoice_service.update_line_item(internet_id, meter_end=Decimal("5"))
    with pytest.raises(NotFound):
        await invoice_service.update_line_item(9999, price=Decimal("1"))


async def test_delete_invoice_reverses_payments(session, invoice_service, invoice, account):
    invoice_id = invoice.id
    await pay(session, invoice_id, account, "1000000")

    await invoice_service.delete_invoice(invoice_id)

    counts = [
        (await session.execute(select(func.count()).select_from(model))).scalar_one()
        for model in (Invoice, InvoiceLineItem, Transaction)
    ]
    assert counts == [0, 0, 0]
    await session.refresh(account)
    assert account.current_balance == Decimal("1000000.00")


async def test_delete_unknown_invoice(invoice_service):
    with pytest.raises(NotFound):
        await invoice_service.delete_invoice(9999)
