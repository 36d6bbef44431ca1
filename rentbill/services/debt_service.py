"""Debt carry-forward: unpaid remainder of a contract's earlier periods."""

import logging
from decimal import Decimal

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rentbill.models.invoice import Invoice
from rentbill.services.amounts import total_of

logger = logging.getLogger(__name__)


class DebtResolver:
    """Resolve the previous debt folded into a new invoice."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    def _earlier_unpaid_filter(
        self,
        contract_id: int,
        period_month: int,
        period_year: int,
        exclude_invoice_id: int | None,
    ) -> list:
        conditions = [
            Invoice.contract_id == contract_id,
            Invoice.remaining_amount > 0,
            # Strictly earlier period, compared as (year, month)
            or_(
                Invoice.period_year < period_year,
                and_(Invoice.period_year == period_year, Invoice.period_month < period_month),
            ),
        ]
        if exclude_invoice_id is not None:
            conditions.append(Invoice.id != exclude_invoice_id)
        return conditions

    async def outstanding_invoices(
        self,
        contract_id: int,
        period_month: int,
        period_year: int,
        exclude_invoice_id: int | None = None,
    ) -> list[Invoice]:
        """Earlier-period invoices of the contract with a positive remainder.

        Ordered chronologically by period, never by id or creation time, so an
        older period backfilled after a newer one still sorts first.
        """
        stmt = (
            select(Invoice)
            .where(
                *self._earlier_unpaid_filter(
                    contract_id, period_month, period_year, exclude_invoice_id
                )
            )
            .order_by(Invoice.period_year.asc(), Invoice.period_month.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def previous_debt(
        self,
        contract_id: int,
        period_month: int,
        period_year: int,
        exclude_invoice_id: int | None = None,
    ) -> Decimal:
        """Sum of remaining_amount over the contract's earlier unpaid invoices.

        Args:
            contract_id: Contract being billed
            period_month: Target period month (1-12)
            period_year: Target period year
            exclude_invoice_id: Invoice being (re)built, never counted against itself

        Returns:
            Carried-forward debt (0 when everything earlier is settled)
        """
        stmt = select(Invoice.remaining_amount).where(
            *self._earlier_unpaid_filter(contract_id, period_month, period_year, exclude_invoice_id)
        )
        result = await self.session.execute(stmt)
        debt = total_of(result.scalars().all())

        if debt > 0:
            logger.debug(
                "Contract %d carries %s of debt into %02d/%d",
                contract_id,
                debt,
                period_month,
                period_year,
            )
        return debt


__all__ = ["DebtResolver"]
