"""Account ORM model for cash and bank accounts receiving payments."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbill.models import Base, BaseModel


class AccountType(str, Enum):
    """Account classification."""

    CASH = "cash"
    """Cash box held at a branch."""

    BANK = "bank"
    """Bank account receiving transfers."""


class Account(Base, BaseModel):
    """Model representing a money account.

    current_balance is adjusted by every linked transaction creation and removal:
    income credits the account, expense debits it.
    """

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Account name (e.g., 'Tiền mặt', 'Vietcombank')",
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(50),
        nullable=False,
        default=AccountType.CASH,
        comment="Account type: 'cash' or 'bank'",
    )

    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
    )

    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
    )

    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="account",
    )

    __table_args__ = (
        Index("idx_account_name", "name"),
        Index("idx_account_type", "account_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<Account(id={self.id}, name={self.name!r}, type={self.account_type}, "
            f"balance={self.current_balance})>"
        )


__all__ = ["Account", "AccountType"]
