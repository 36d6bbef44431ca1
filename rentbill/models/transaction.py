"""Transaction ORM model for money movements, optionally linked to an invoice."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbill.models import Base, BaseModel


class TransactionType(str, Enum):
    """Direction of a transaction relative to its account."""

    INCOME = "income"
    """Money received; credits the account (invoice payments)."""

    EXPENSE = "expense"
    """Money paid out; debits the account."""


class Transaction(Base, BaseModel):
    """Model representing one money movement on an account.

    Invoice payments are income transactions with invoice_id set. The invoice's
    paid_amount is always the sum of amounts of its linked transactions.
    """

    __tablename__ = "transactions"

    transaction_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        comment="Receipt number: PT-... for income, PC-... for expense",
    )

    type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
        comment="Transaction type: 'income' or 'expense'",
    )

    # Foreign keys
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
        comment="Account receiving or paying the money",
    )
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Invoice this payment settles (NULL for non-invoice transactions)",
    )
    contract_id: Mapped[int | None] = mapped_column(
        ForeignKey("contracts.id"),
        nullable=True,
        index=True,
    )

    # Transaction details
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Transaction amount (negative for corrections)",
    )
    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
        comment="cash, bank_transfer, ...",
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    account: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="transactions",
    )
    invoice: Mapped["Invoice | None"] = relationship(  # noqa: F821
        "Invoice",
        back_populates="transactions",
    )

    __table_args__ = (
        Index("idx_transaction_invoice_type", "invoice_id", "type"),
        Index("idx_transaction_date", "transaction_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, number={self.transaction_number}, type={self.type}, "
            f"account_id={self.account_id}, invoice_id={self.invoice_id}, amount={self.amount})>"
        )


__all__ = ["Transaction", "TransactionType"]
