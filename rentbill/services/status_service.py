"""Invoice status derivation.

Status is a pure function of the invoice amounts and due date:

    remaining <= 0        -> paid      (exact payment or overpayment)
    due_date < today      -> overdue   (beats partial and pending)
    paid > 0              -> partial
    otherwise             -> pending

The due date itself is not overdue; the invoice turns overdue the day after.
"""

from datetime import date
from decimal import Decimal

from rentbill.models.invoice import Invoice, InvoiceStatus


def derive_status(
    remaining_amount: Decimal,
    paid_amount: Decimal,
    due_date: date,
    today: date,
) -> InvoiceStatus:
    """Derive invoice status from current amounts and due date."""
    if remaining_amount <= 0:
        return InvoiceStatus.PAID
    if due_date < today:
        return InvoiceStatus.OVERDUE
    if paid_amount > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.PENDING


def status_for(invoice: Invoice, today: date | None = None) -> InvoiceStatus:
    """Derive the status an invoice should have on the given day (default: today)."""
    return derive_status(
        remaining_amount=invoice.remaining_amount,
        paid_amount=invoice.paid_amount,
        due_date=invoice.due_date,
        today=today or date.today(),
    )


__all__ = ["derive_status", "status_for"]
