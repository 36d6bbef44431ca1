"""Invoice ORM models: the invoice aggregate root and its line items."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbill.models import Base, BaseModel


class InvoiceStatus(str, Enum):
    """Payment status derived from invoice amounts and due date."""

    PENDING = "pending"
    """Nothing paid yet, not past due"""

    PARTIAL = "partial"
    """Partly paid, not past due"""

    PAID = "paid"
    """Remaining amount is zero or negative (overpaid)"""

    OVERDUE = "overdue"
    """Not fully paid and the due date has passed"""


class Invoice(Base, BaseModel):
    """One contract's bill for one period.

    Amount invariants:
    - total_amount = rent_amount + service_amount + previous_debt
    - paid_amount = sum of amounts of transactions linked to the invoice
    - remaining_amount = total_amount - paid_amount (negative when overpaid)

    status is written only by the billing services, always re-derived from the
    amounts above and due_date. The version column turns concurrent
    read-modify-write of the aggregate into a detectable conflict.
    """

    __tablename__ = "invoices"

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id"),
        nullable=False,
        index=True,
    )

    invoice_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        comment="Human readable number, e.g. HD-202502-00017",
    )

    # Billing period
    period_month: Mapped[int] = mapped_column(nullable=False)
    period_year: Mapped[int] = mapped_column(nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    actual_days: Mapped[int | None] = mapped_column(
        nullable=True,
        comment="Days actually occupied; rent and quantity services are pro-rated",
    )

    # Amounts
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    service_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    previous_debt: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Unpaid remainder of earlier periods carried into this invoice",
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.PENDING,
        comment="pending, partial, paid or overdue",
    )

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    # Relationships
    contract: Mapped["Contract"] = relationship("Contract")  # noqa: F821

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.id",
    )

    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="invoice",
        order_by="Transaction.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "contract_id",
            "period_month",
            "period_year",
            name="uq_invoice_contract_period",
        ),
        Index("idx_invoice_period", "period_year", "period_month"),
        Index("idx_invoice_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, number={self.invoice_number}, contract_id={self.contract_id}, "
            f"period={self.period_month}/{self.period_year}, total={self.total_amount}, "
            f"paid={self.paid_amount}, status={self.status})>"
        )


class InvoiceLineItem(Base, BaseModel):
    """One billed service on an invoice.

    Meter items carry meter_start/meter_end/usage with amount = usage * price;
    quantity items carry quantity with amount = price * quantity.
    """

    __tablename__ = "invoice_line_items"

    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"), nullable=False)

    service_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Service name snapshot at billing time",
    )

    unit: Mapped[str] = mapped_column(String(20), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    meter_start: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    meter_end: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    usage: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="line_items")

    def __repr__(self) -> str:
        return (
            f"<InvoiceLineItem(id={self.id}, invoice_id={self.invoice_id}, "
            f"service={self.service_name!r}, amount={self.amount})>"
        )


__all__ = ["Invoice", "InvoiceLineItem", "InvoiceStatus"]
