"""Bulk invoice generation across many contracts for one period."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rentbill.config import settings
from rentbill.models.invoice import Invoice
from rentbill.services.contract_service import ContractService
from rentbill.services.errors import BillingError, MeterReadingMissing, ValidationError
from rentbill.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkError:
    """One contract that could not be billed."""

    contract_id: int
    code: str
    message: str


@dataclass
class BulkResult:
    """Outcome of a bulk run: created invoices, per-contract errors, warnings."""

    created: list[Invoice] = field(default_factory=list)
    errors: list[BulkError] = field(default_factory=list)
    warnings: list[MeterReadingMissing] = field(default_factory=list)


class BulkInvoiceService:
    """Generate invoices for many contracts, each isolated in its own session.

    A failure for one contract is recorded and never rolls back or blocks
    another contract's invoice.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        concurrency: int | None = None,
    ):
        self.session_factory = session_factory
        self.concurrency = max(1, concurrency or settings.bulk_concurrency)

    async def create_invoices_bulk(
        self,
        contract_ids: list[int],
        invoice_date: date,
        due_date: date,
        period_month: int,
        period_year: int,
        actual_days: int | None = None,
        notes: str | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> BulkResult:
        """Create one invoice per contract for the period.

        Args:
            contract_ids: Contracts to bill; duplicates are billed once
            invoice_date, due_date, period_month, period_year, actual_days, notes:
                Passed to InvoiceService.create_invoice for every contract

        Returns:
            BulkResult; per-contract failures are in errors, never raised

        Raises:
            ValidationError: Empty contract selection
        """
        unique_ids = list(dict.fromkeys(contract_ids or []))
        if not unique_ids:
            raise ValidationError("At least one contract is required")

        semaphore = asyncio.Semaphore(self.concurrency)
        result = BulkResult()

        async def bill(contract_id: int) -> None:
            async with semaphore:
                await self._bill_contract(
                    result,
                    contract_id,
                    invoice_date=invoice_date,
                    due_date=due_date,
                    period_month=period_month,
                    period_year=period_year,
                    actual_days=actual_days,
                    notes=notes,
                    actor_id=actor_id,
                    today=today,
                )

        await asyncio.gather(*(bill(contract_id) for contract_id in unique_ids))

        # gather completes out of order under concurrency; report in input order
        order = {contract_id: i for i, contract_id in enumerate(unique_ids)}
        result.created.sort(key=lambda invoice: order[invoice.contract_id])
        result.errors.sort(key=lambda error: order[error.contract_id])

        logger.info(
            "Bulk billing %02d/%d: %d created, %d failed, %d warnings",
            period_month,
            period_year,
            len(result.created),
            len(result.errors),
            len(result.warnings),
        )
        return result

    async def _bill_contract(self, result: BulkResult, contract_id: int, **kwargs) -> None:
        async with self.session_factory() as session:
            try:
                built = await InvoiceService(session).create_invoice(contract_id, **kwargs)
            except BillingError as e:
                await session.rollback()
                logger.warning("Bulk billing skipped contract %d: [%s] %s", contract_id, e.code, e.message)
                result.errors.append(BulkError(contract_id=contract_id, code=e.code, message=e.message))
                return
            except Exception as e:
                await session.rollback()
                logger.error("Unexpected error billing contract %d: %s", contract_id, e, exc_info=True)
                result.errors.append(
                    BulkError(contract_id=contract_id, code="internal_error", message=str(e))
                )
                return

        result.created.append(built.invoice)
        result.warnings.extend(built.warnings)

    async def create_invoices_for_rooms(
        self,
        room_ids: list[int] | None,
        invoice_date: date,
        due_date: date,
        period_month: int,
        period_year: int,
        actual_days: int | None = None,
        notes: str | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> BulkResult:
        """Bill every active contract of the given rooms (all rooms when None)."""
        async with self.session_factory() as session:
            contract_ids = await ContractService(session).active_contract_ids(room_ids)

        if not contract_ids:
            raise ValidationError("No active contracts found for the selected rooms")

        return await self.create_invoices_bulk(
            contract_ids,
            invoice_date=invoice_date,
            due_date=due_date,
            period_month=period_month,
            period_year=period_year,
            actual_days=actual_days,
            notes=notes,
            actor_id=actor_id,
            today=today,
        )


__all__ = ["BulkError", "BulkInvoiceService", "BulkResult"]
