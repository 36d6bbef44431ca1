"""Payment allocation: record, correct and remove payments against invoices."""

import logging
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from rentbill.models.invoice import Invoice
from rentbill.models.transaction import Transaction, TransactionType
from rentbill.services.account_service import AccountService
from rentbill.services.amounts import money
from rentbill.services.audit_service import AuditService
from rentbill.services.errors import (
    BillingError,
    ConcurrencyConflict,
    InvalidOperation,
    NotFound,
    ValidationError,
)
from rentbill.services.invoice_service import recalculate_invoice_amounts

logger = logging.getLogger(__name__)

# One retry from a fresh read, then the conflict surfaces to the caller
MAX_ATTEMPTS = 2


def generate_transaction_number(transaction_type: TransactionType, transaction_date: date) -> str:
    """Receipt number: PT- for income, PC- for expense, e.g. PT-20250215-9F2C41AB."""
    prefix = "PT" if transaction_type == TransactionType.INCOME else "PC"
    return f"{prefix}-{transaction_date:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class PaymentService:
    """Keep invoice paid/remaining/status consistent with its linked payments.

    Every operation is one read-modify-write of the invoice aggregate: the
    invoice row is locked, the transaction and the account balance change,
    and paid_amount is re-derived from the linked set before commit.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session
        self.accounts = AccountService(session)

    async def _lock_invoice(self, invoice_id: int) -> Invoice:
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.transactions))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        return invoice

    async def _run_with_retry(self, operation, description: str):
        """Run operation, retrying once if the invoice version moved underneath it."""
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return await operation()
            except StaleDataError as e:
                await self.session.rollback()
                if attempt == MAX_ATTEMPTS:
                    logger.warning("%s: concurrent update, giving up after %d attempts", description, attempt)
                    raise ConcurrencyConflict(
                        f"{description}: invoice was modified concurrently, please retry"
                    ) from e
                logger.info("%s: concurrent update, retrying from a fresh read", description)
            except BillingError:
                await self.session.rollback()
                raise

    async def add_payment(
        self,
        invoice_id: int,
        amount: Decimal,
        account_id: int,
        method: str,
        payment_date: date,
        description: str | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> Transaction:
        """Record a payment against an invoice.

        Args:
            invoice_id: Invoice being paid
            amount: Payment amount; negative values are corrections
            account_id: Cash/bank account receiving the money
            method: Payment method (cash, transfer, ...)
            payment_date: Date the money was received
            description: Optional receipt description
            actor_id: User recording the payment (for audit)
            today: Reference day for the status (default: today)

        Returns:
            The committed income Transaction

        Raises:
            ValidationError: Zero amount, missing method, or a correction that
                would make the invoice's paid sum negative
            NotFound: Invoice or account does not exist
            ConcurrencyConflict: Invoice changed concurrently twice in a row
        """
        if amount is None or money(amount) == 0:
            raise ValidationError("Payment amount must be non-zero")
        if not method:
            raise ValidationError("Payment method is required")
        if payment_date is None:
            raise ValidationError("payment_date is required")

        async def operation() -> Transaction:
            return await self._add_payment_once(
                invoice_id, money(amount), account_id, method, payment_date,
                description, actor_id, today or date.today(),
            )

        return await self._run_with_retry(operation, f"Payment on invoice {invoice_id}")

    async def _add_payment_once(
        self,
        invoice_id: int,
        amount: Decimal,
        account_id: int,
        method: str,
        payment_date: date,
        description: str | None,
        actor_id: int | None,
        today: date,
    ) -> Transaction:
        invoice = await self._lock_invoice(invoice_id)
        await self.accounts.get_for_update(account_id)

        transaction = Transaction(
            transaction_number=generate_transaction_number(TransactionType.INCOME, payment_date),
            type=TransactionType.INCOME,
            account_id=account_id,
            invoice=invoice,
            contract_id=invoice.contract_id,
            amount=amount,
            transaction_date=payment_date,
            payment_method=method,
            description=description or f"Payment for invoice {invoice.invoice_number}",
        )
        self.session.add(transaction)
        await self.session.flush()
        await self.accounts.apply(transaction)

        await recalculate_invoice_amounts(self.session, invoice, today)
        if invoice.paid_amount < 0:
            raise ValidationError(
                f"Correction of {amount} would make the paid amount of invoice "
                f"{invoice.invoice_number} negative"
            )

        AuditService.log(
            session=self.session,
            entity_type="transaction",
            entity_id=transaction.id,
            action="payment_added",
            actor_id=actor_id,
            changes={
                "invoice_id": invoice.id,
                "amount": str(amount),
                "paid_amount": str(invoice.paid_amount),
                "remaining_amount": str(invoice.remaining_amount),
            },
        )
        await self.session.commit()

        logger.info(
            "Recorded payment %s of %s on invoice %s (remaining %s, %s)",
            transaction.transaction_number,
            amount,
            invoice.invoice_number,
            invoice.remaining_amount,
            invoice.status,
        )
        return transaction

    async def update_payment(
        self,
        transaction_id: int,
        amount: Decimal | None = None,
        account_id: int | None = None,
        method: str | None = None,
        payment_date: date | None = None,
        description: str | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> Transaction:
        """Correct a recorded payment and re-derive the invoice it settles.

        The old account effect is reversed and the corrected one applied, so a
        change of amount or of receiving account keeps both balances right.

        Raises:
            ValidationError: Nothing to update, zero amount, or a paid sum below zero
            NotFound: Transaction or new account does not exist
            InvalidOperation: Transaction is not linked to an invoice
            ConcurrencyConflict: Invoice changed concurrently twice in a row
        """
        if all(v is None for v in (amount, account_id, method, payment_date, description)):
            raise ValidationError("No fields to update")
        if amount is not None and money(amount) == 0:
            raise ValidationError("Payment amount must be non-zero")
        if method is not None and not method:
            raise ValidationError("Payment method is required")

        async def operation() -> Transaction:
            return await self._update_payment_once(
                transaction_id,
                money(amount) if amount is not None else None,
                account_id, method, payment_date, description,
                actor_id, today or date.today(),
            )

        return await self._run_with_retry(operation, f"Update of transaction {transaction_id}")

    async def _update_payment_once(
        self,
        transaction_id: int,
        amount: Decimal | None,
        account_id: int | None,
        method: str | None,
        payment_date: date | None,
        description: str | None,
        actor_id: int | None,
        today: date,
    ) -> Transaction:
        transaction = await self.session.get(Transaction, transaction_id, populate_existing=True)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        if transaction.invoice_id is None:
            raise InvalidOperation(f"Transaction {transaction_id} is not linked to an invoice")

        invoice = await self._lock_invoice(transaction.invoice_id)
        transaction.invoice = invoice
        changes: dict[str, str] = {}
        if amount is not None and amount != transaction.amount:
            changes["amount"] = f"{transaction.amount} -> {amount}"
        if account_id is not None and account_id != transaction.account_id:
            changes["account_id"] = f"{transaction.account_id} -> {account_id}"

        if changes:
            await self.accounts.get_for_update(account_id or transaction.account_id)
            await self.accounts.reverse(transaction)
            if amount is not None:
                transaction.amount = amount
            if account_id is not None:
                transaction.account_id = account_id
            await self.session.flush()
            await self.accounts.apply(transaction)

        if method is not None:
            transaction.payment_method = method
        if payment_date is not None:
            transaction.transaction_date = payment_date
        if description is not None:
            transaction.description = description

        await recalculate_invoice_amounts(self.session, invoice, today)
        if invoice.paid_amount < 0:
            raise ValidationError(
                f"Correction of payment {transaction.transaction_number} would make the paid "
                f"amount of invoice {invoice.invoice_number} negative"
            )

        AuditService.log(
            session=self.session,
            entity_type="transaction",
            entity_id=transaction.id,
            action="payment_updated",
            actor_id=actor_id,
            changes={
                **changes,
                "invoice_id": invoice.id,
                "paid_amount": str(invoice.paid_amount),
                "remaining_amount": str(invoice.remaining_amount),
            },
        )
        await self.session.commit()

        logger.info(
            "Updated payment %s on invoice %s (remaining %s, %s)",
            transaction.transaction_number,
            invoice.invoice_number,
            invoice.remaining_amount,
            invoice.status,
        )
        return transaction

    async def remove_payment(
        self,
        transaction_id: int,
        invoice_id: int | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> Invoice:
        """Remove a payment and re-derive the invoice it was linked to.

        Raises:
            NotFound: Transaction does not exist
            InvalidOperation: Transaction is not linked to an invoice, or not to invoice_id
            ConcurrencyConflict: Invoice changed concurrently twice in a row

        Returns:
            The updated invoice
        """

        async def operation() -> Invoice:
            return await self._remove_payment_once(
                transaction_id, invoice_id, actor_id, today or date.today()
            )

        return await self._run_with_retry(operation, f"Removal of transaction {transaction_id}")

    async def _remove_payment_once(
        self,
        transaction_id: int,
        invoice_id: int | None,
        actor_id: int | None,
        today: date,
    ) -> Invoice:
        transaction = await self.session.get(Transaction, transaction_id, populate_existing=True)
        if transaction is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        if transaction.invoice_id is None:
            raise InvalidOperation(f"Transaction {transaction_id} is not linked to an invoice")
        if invoice_id is not None and transaction.invoice_id != invoice_id:
            raise InvalidOperation(
                f"Transaction {transaction_id} does not belong to invoice {invoice_id}"
            )

        invoice = await self._lock_invoice(transaction.invoice_id)
        await self.accounts.reverse(transaction)

        if transaction in invoice.transactions:
            invoice.transactions.remove(transaction)
        await self.session.delete(transaction)
        await recalculate_invoice_amounts(self.session, invoice, today)

        AuditService.log(
            session=self.session,
            entity_type="transaction",
            entity_id=transaction_id,
            action="payment_removed",
            actor_id=actor_id,
            changes={
                "invoice_id": invoice.id,
                "transaction_number": transaction.transaction_number,
                "amount": str(transaction.amount),
                "paid_amount": str(invoice.paid_amount),
                "remaining_amount": str(invoice.remaining_amount),
            },
        )
        await self.session.commit()

        logger.info(
            "Removed payment %s from invoice %s (remaining %s, %s)",
            transaction.transaction_number,
            invoice.invoice_number,
            invoice.remaining_amount,
            invoice.status,
        )
        return invoice


__all__ = ["PaymentService", "generate_transaction_number"]
