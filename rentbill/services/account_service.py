"""Account ledger: balance adjustments driven by transactions."""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentbill.models.account import Account
from rentbill.models.transaction import Transaction, TransactionType
from rentbill.services.amounts import money
from rentbill.services.errors import NotFound

logger = logging.getLogger(__name__)


class AccountService:
    """Adjust account balances inside the caller's transaction.

    Methods flush but never commit; payment operations commit the balance
    change together with the transaction row and the invoice aggregate.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def get_for_update(self, account_id: int) -> Account:
        """Load and row-lock an account.

        Raises:
            NotFound: Account does not exist
        """
        stmt = select(Account).where(Account.id == account_id).with_for_update()
        result = await self.session.execute(stmt)
        account = result.scalar_one_or_none()
        if account is None:
            raise NotFound(f"Account {account_id} not found")
        return account

    async def credit(self, account_id: int, amount: Decimal) -> Account:
        """Increase the account balance by amount."""
        account = await self.get_for_update(account_id)
        account.current_balance = money(account.current_balance + amount)
        await self.session.flush()
        logger.debug("Credited %s to account %d (balance %s)", amount, account_id, account.current_balance)
        return account

    async def debit(self, account_id: int, amount: Decimal) -> Account:
        """Decrease the account balance by amount."""
        account = await self.get_for_update(account_id)
        account.current_balance = money(account.current_balance - amount)
        await self.session.flush()
        logger.debug("Debited %s from account %d (balance %s)", amount, account_id, account.current_balance)
        return account

    async def apply(self, transaction: Transaction) -> Account:
        """Apply a new transaction's effect: income credits, expense debits."""
        if transaction.type == TransactionType.INCOME:
            return await self.credit(transaction.account_id, transaction.amount)
        return await self.debit(transaction.account_id, transaction.amount)

    async def reverse(self, transaction: Transaction) -> Account:
        """Undo a transaction's effect before it is removed."""
        if transaction.type == TransactionType.INCOME:
            return await self.debit(transaction.account_id, transaction.amount)
        return await self.credit(transaction.account_id, transaction.amount)


__all__ = ["AccountService"]
