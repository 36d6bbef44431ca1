"""Invoice builder and invoice ledger operations."""

import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentbill.models.contract import Contract
from rentbill.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from rentbill.models.service import ServiceUnit
from rentbill.models.transaction import Transaction
from rentbill.services.account_service import AccountService
from rentbill.services.amounts import ZERO, money, total_of
from rentbill.services.audit_service import AuditService
from rentbill.services.contract_service import ContractService
from rentbill.services.debt_service import DebtResolver
from rentbill.services.errors import (
    DuplicatePeriod,
    InvalidContract,
    InvalidOperation,
    MeterReadingMissing,
    NotFound,
    ValidationError,
)
from rentbill.services.meter_reading_service import (
    MeterReadingService,
    validate_meter_values,
    validate_period,
)
from rentbill.services.status_service import derive_status, status_for

logger = logging.getLogger(__name__)


class InvoiceBuildResult(NamedTuple):
    """A freshly built invoice plus the non-fatal warnings raised while building it."""

    invoice: Invoice
    warnings: list[MeterReadingMissing]


def invoice_number_for(contract_id: int, period_month: int, period_year: int) -> str:
    """Invoice number derived from contract and period, e.g. HD-202502-00017.

    Unique exactly when (contract, period) is unique.
    """
    return f"HD-{period_year}{period_month:02d}-{contract_id:05d}"


def days_in_period(period_month: int, period_year: int) -> int:
    return calendar.monthrange(period_year, period_month)[1]


def prorate(amount: Decimal, actual_days: int | None, period_days: int) -> Decimal:
    """Scale a monthly amount to the days actually occupied."""
    if not actual_days:
        return money(amount)
    return money(amount * Decimal(actual_days) / Decimal(period_days))


async def recalculate_invoice_amounts(
    session: AsyncSession, invoice: Invoice, today: date
) -> Invoice:
    """Re-derive paid/remaining/status from the invoice's currently linked transactions.

    paid_amount is always re-read from the linked set, never adjusted by a delta.
    """
    await session.flush()
    result = await session.execute(
        select(Transaction.amount).where(Transaction.invoice_id == invoice.id)
    )
    paid = total_of(result.scalars().all())

    invoice.paid_amount = paid
    invoice.remaining_amount = money(invoice.total_amount - paid)
    invoice.status = derive_status(
        remaining_amount=invoice.remaining_amount,
        paid_amount=paid,
        due_date=invoice.due_date,
        today=today,
    )
    return invoice


class InvoiceService:
    """Async service for invoice creation and the invoice ledger.

    Creation is the only way an invoice comes into existence; amounts are
    afterwards changed only by payments (see PaymentService) and by line-item
    edits before the invoice is fully paid.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session
        self.contracts = ContractService(session)
        self.readings = MeterReadingService(session)
        self.debts = DebtResolver(session)

    # === Creation ===

    async def create_invoice(
        self,
        contract_id: int,
        invoice_date: date,
        due_date: date,
        period_month: int,
        period_year: int,
        actual_days: int | None = None,
        notes: str | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> InvoiceBuildResult:
        """Build and persist the invoice of one contract for one period.

        Args:
            contract_id: Contract to bill
            invoice_date: Issue date
            due_date: Payment due date (not before invoice_date)
            period_month: Billed month (1-12)
            period_year: Billed year
            actual_days: Days actually occupied, pro-rates rent and quantity services
            notes: Free-text notes printed on the invoice
            actor_id: User creating the invoice (for audit)
            today: Reference day for the initial status (default: today)

        Returns:
            InvoiceBuildResult with the committed invoice and MeterReadingMissing warnings

        Raises:
            ValidationError: Malformed period, dates or actual_days
            NotFound: Contract does not exist
            InvalidContract: Contract is not active
            DuplicatePeriod: Contract already has an invoice for the period
        """
        today = today or date.today()
        self._validate_request(invoice_date, due_date, period_month, period_year, actual_days)

        contract = await self.contracts.get(contract_id)
        if contract is None:
            raise NotFound(f"Contract {contract_id} not found")
        if not contract.is_active:
            raise InvalidContract(f"Contract {contract_id} is {contract.status}, not active")

        if await self.get_invoice_for_period(contract_id, period_month, period_year):
            raise DuplicatePeriod(self._duplicate_message(contract_id, period_month, period_year))

        period_days = days_in_period(period_month, period_year)
        line_items, warnings = await self._build_line_items(
            contract, period_month, period_year, actual_days, period_days
        )

        rent_amount = prorate(contract.monthly_rent, actual_days, period_days)
        service_amount = total_of(item.amount for item in line_items)
        previous_debt = await self.debts.previous_debt(contract_id, period_month, period_year)
        if previous_debt > 0:
            carried = await self.debts.outstanding_invoices(contract_id, period_month, period_year)
            logger.info(
                "Contract %d %02d/%d carries debt %s from %s",
                contract_id,
                period_month,
                period_year,
                previous_debt,
                ", ".join(earlier.invoice_number for earlier in carried),
            )
        total_amount = money(rent_amount + service_amount + previous_debt)

        invoice = Invoice(
            contract_id=contract_id,
            invoice_number=invoice_number_for(contract_id, period_month, period_year),
            period_month=period_month,
            period_year=period_year,
            invoice_date=invoice_date,
            due_date=due_date,
            actual_days=actual_days,
            rent_amount=rent_amount,
            service_amount=service_amount,
            previous_debt=previous_debt,
            total_amount=total_amount,
            paid_amount=ZERO,
            remaining_amount=total_amount,
            status=derive_status(total_amount, ZERO, due_date, today),
            notes=notes,
            line_items=line_items,
            transactions=[],
        )
        self.session.add(invoice)

        # The unique (contract, period) constraint turns this insert into the
        # compare-and-insert: a concurrent creator loses here, never double-bills.
        try:
            await self.session.flush()
            AuditService.log(
                session=self.session,
                entity_type="invoice",
                entity_id=invoice.id,
                action="create",
                actor_id=actor_id,
                changes={
                    "contract_id": contract_id,
                    "period": f"{period_month:02d}/{period_year}",
                    "rent_amount": str(rent_amount),
                    "service_amount": str(service_amount),
                    "previous_debt": str(previous_debt),
                    "total_amount": str(total_amount),
                    "missing_readings": [w.service_id for w in warnings],
                },
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Concurrent invoice creation for contract %d %02d/%d rejected",
                contract_id,
                period_month,
                period_year,
            )
            raise DuplicatePeriod(
                self._duplicate_message(contract_id, period_month, period_year)
            ) from e

        logger.info(
            "Created invoice %s for contract %d %02d/%d: total=%s (rent=%s services=%s debt=%s)",
            invoice.invoice_number,
            contract_id,
            period_month,
            period_year,
            total_amount,
            rent_amount,
            service_amount,
            previous_debt,
        )
        return InvoiceBuildResult(invoice=invoice, warnings=warnings)

    @staticmethod
    def _duplicate_message(contract_id: int, period_month: int, period_year: int) -> str:
        return (
            f"Invoice already exists for contract {contract_id} "
            f"in period {period_month:02d}/{period_year}"
        )

    @staticmethod
    def _validate_request(
        invoice_date: date | None,
        due_date: date | None,
        period_month: int,
        period_year: int,
        actual_days: int | None,
    ) -> None:
        if invoice_date is None or due_date is None:
            raise ValidationError("invoice_date and due_date are required")
        validate_period(period_month, period_year)
        if due_date < invoice_date:
            raise ValidationError("due_date must not be before invoice_date")
        if actual_days is not None:
            period_days = days_in_period(period_month, period_year)
            if not 1 <= actual_days <= period_days:
                raise ValidationError(f"actual_days must be between 1 and {period_days}")

    async def _build_line_items(
        self,
        contract: Contract,
        period_month: int,
        period_year: int,
        actual_days: int | None,
        period_days: int,
    ) -> tuple[list[InvoiceLineItem], list[MeterReadingMissing]]:
        """Price every attached service; meter services without a reading are skipped."""
        line_items: list[InvoiceLineItem] = []
        warnings: list[MeterReadingMissing] = []

        for attached in contract.services:
            service = attached.service

            if service.unit == ServiceUnit.METER:
                reading = await self.readings.find(
                    contract.room_id, service.id, period_month, period_year
                )
                if reading is None:
                    warning = MeterReadingMissing(
                        contract_id=contract.id,
                        room_id=contract.room_id,
                        service_id=service.id,
                        service_name=service.name,
                        period_month=period_month,
                        period_year=period_year,
                    )
                    logger.warning(warning.message)
                    warnings.append(warning)
                    continue

                usage = reading.meter_end - reading.meter_start
                line_items.append(
                    InvoiceLineItem(
                        service_id=service.id,
                        service_name=service.name,
                        unit=ServiceUnit.METER.value,
                        price=attached.price,
                        quantity=None,
                        meter_start=reading.meter_start,
                        meter_end=reading.meter_end,
                        usage=usage,
                        amount=money(usage * attached.price),
                    )
                )
            else:
                quantity = attached.quantity if attached.quantity is not None else Decimal("1")
                line_items.append(
                    InvoiceLineItem(
                        service_id=service.id,
                        service_name=service.name,
                        unit=ServiceUnit.QUANTITY.value,
                        price=attached.price,
                        quantity=quantity,
                        amount=prorate(attached.price * quantity, actual_days, period_days),
                    )
                )

        return line_items, warnings

    # === Reads ===

    async def get_invoice_for_period(
        self, contract_id: int, period_month: int, period_year: int
    ) -> Invoice | None:
        stmt = select(Invoice).where(
            Invoice.contract_id == contract_id,
            Invoice.period_month == period_month,
            Invoice.period_year == period_year,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice(self, invoice_id: int, today: date | None = None) -> Invoice:
        """Get invoice with line items and linked transactions.

        The status is re-derived against today and persisted if the calendar
        has moved it (e.g. pending -> overdue).

        Raises:
            NotFound: Invoice does not exist
        """
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.line_items), selectinload(Invoice.transactions))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")

        await self._sync_statuses([invoice], today or date.today())
        return invoice

    async def list_invoices(
        self,
        contract_id: int | None = None,
        status: InvoiceStatus | str | None = None,
        period_month: int | None = None,
        period_year: int | None = None,
        today: date | None = None,
    ) -> list[Invoice]:
        """List invoices, newest period first.

        Statuses are brought up to date before filtering so an invoice that
        became overdue since its last write is listed as overdue.
        """
        today = today or date.today()
        if status is not None:
            await self.refresh_statuses(today=today)

        stmt = select(Invoice)
        if contract_id is not None:
            stmt = stmt.where(Invoice.contract_id == contract_id)
        if status is not None:
            stmt = stmt.where(Invoice.status == InvoiceStatus(status).value)
        if period_month is not None:
            stmt = stmt.where(Invoice.period_month == period_month)
        if period_year is not None:
            stmt = stmt.where(Invoice.period_year == period_year)
        stmt = stmt.order_by(
            Invoice.period_year.desc(), Invoice.period_month.desc(), Invoice.id.desc()
        )

        result = await self.session.execute(stmt)
        invoices = list(result.scalars().all())
        await self._sync_statuses(invoices, today)
        return invoices

    async def _sync_statuses(self, invoices: list[Invoice], today: date) -> int:
        changed = 0
        for invoice in invoices:
            expected = status_for(invoice, today)
            if invoice.status != expected:
                logger.info(
                    "Invoice %s status %s -> %s", invoice.invoice_number, invoice.status, expected.value
                )
                invoice.status = expected
                changed += 1
        if changed:
            await self.session.commit()
        return changed

    async def refresh_statuses(self, today: date | None = None) -> int:
        """Re-derive the status of every invoice with an outstanding remainder.

        Returns:
            Number of invoices whose status changed
        """
        result = await self.session.execute(select(Invoice).where(Invoice.remaining_amount > 0))
        changed = await self._sync_statuses(list(result.scalars().all()), today or date.today())
        if changed:
            logger.info("Refreshed %d invoice statuses", changed)
        return changed

    # === Edits ===

    async def _lock_invoice(self, invoice_id: int) -> Invoice:
        """Load the invoice for a read-modify-write under a row lock, fresh from the DB."""
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.line_items), selectinload(Invoice.transactions))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        return invoice

    async def update_notes(self, invoice_id: int, notes: str | None) -> Invoice:
        invoice = await self._lock_invoice(invoice_id)
        invoice.notes = notes
        await self.session.commit()
        return invoice

    async def update_line_item(
        self,
        line_item_id: int,
        price: Decimal | None = None,
        quantity: Decimal | None = None,
        meter_start: Decimal | None = None,
        meter_end: Decimal | None = None,
        actor_id: int | None = None,
        today: date | None = None,
    ) -> Invoice:
        """Correct one line item and re-derive the invoice amounts.

        Allowed while the invoice is not fully paid. Payments already recorded
        stay linked; paid/remaining/status are re-derived from them against the
        new total. Meter corrections are written back to the reading store.

        Raises:
            ValidationError: Nothing to change, or values inconsistent with the item unit
            NotFound: Line item does not exist
            InvalidOperation: Invoice is already fully paid
        """
        if price is None and quantity is None and meter_start is None and meter_end is None:
            raise ValidationError("No fields to update")
        if price is not None and price < 0:
            raise ValidationError("price cannot be negative")

        item = await self.session.get(InvoiceLineItem, line_item_id)
        if item is None:
            raise NotFound(f"Invoice line item {line_item_id} not found")

        invoice = await self._lock_invoice(item.invoice_id)
        if invoice.remaining_amount <= 0:
            raise InvalidOperation(
                f"Invoice {invoice.invoice_number} is fully paid; line items can no longer change"
            )
        item = next(li for li in invoice.line_items if li.id == line_item_id)
        new_price = price if price is not None else item.price
        old_amount = item.amount

        if item.unit == ServiceUnit.METER:
            if quantity is not None:
                raise ValidationError("quantity does not apply to a meter-based line item")
            new_start = meter_start if meter_start is not None else item.meter_start
            new_end = meter_end if meter_end is not None else item.meter_end
            if new_start is None or new_end is None:
                raise ValidationError("meter_start and meter_end are both required")
            validate_meter_values(new_start, new_end)

            item.meter_start = new_start
            item.meter_end = new_end
            item.usage = new_end - new_start
            item.price = new_price
            item.amount = money(item.usage * new_price)

            if meter_start is not None or meter_end is not None:
                contract = await self.session.get(Contract, invoice.contract_id)
                await self.readings.upsert_reading(
                    room_id=contract.room_id,
                    service_id=item.service_id,
                    period_month=invoice.period_month,
                    period_year=invoice.period_year,
                    reading_date=invoice.invoice_date,
                    meter_start=new_start,
                    meter_end=new_end,
                    recorded_by=actor_id,
                )
        else:
            if meter_start is not None or meter_end is not None:
                raise ValidationError("meter readings do not apply to a quantity line item")
            if quantity is not None and quantity <= 0:
                raise ValidationError("quantity must be positive")
            new_quantity = quantity if quantity is not None else (item.quantity or Decimal("1"))
            item.quantity = new_quantity
            item.price = new_price
            item.amount = prorate(
                new_price * new_quantity,
                invoice.actual_days,
                days_in_period(invoice.period_month, invoice.period_year),
            )

        invoice.service_amount = total_of(li.amount for li in invoice.line_items)
        invoice.total_amount = money(
            invoice.rent_amount + invoice.service_amount + invoice.previous_debt
        )
        await recalculate_invoice_amounts(self.session, invoice, today or date.today())

        AuditService.log(
            session=self.session,
            entity_type="invoice",
            entity_id=invoice.id,
            action="line_item_updated",
            actor_id=actor_id,
            changes={
                "line_item_id": line_item_id,
                "amount": f"{old_amount} -> {item.amount}",
                "total_amount": str(invoice.total_amount),
            },
        )
        await self.session.commit()

        logger.info(
            "Updated line item %d of invoice %s: amount %s -> %s, total %s",
            line_item_id,
            invoice.invoice_number,
            old_amount,
            item.amount,
            invoice.total_amount,
        )
        return invoice

    async def delete_invoice(self, invoice_id: int, actor_id: int | None = None) -> None:
        """Delete an invoice explicitly.

        Every linked payment has its account effect reversed and is removed in
        the same transaction, so no balance keeps money for a vanished invoice.

        Raises:
            NotFound: Invoice does not exist
        """
        invoice = await self._lock_invoice(invoice_id)
        accounts = AccountService(self.session)

        reversed_payments = []
        for transaction in list(invoice.transactions):
            await accounts.reverse(transaction)
            reversed_payments.append(transaction.transaction_number)
            await self.session.delete(transaction)
        await self.session.flush()
        self.session.expire(invoice, ["transactions"])

        AuditService.log(
            session=self.session,
            entity_type="invoice",
            entity_id=invoice.id,
            action="delete",
            actor_id=actor_id,
            changes={
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount),
                "reversed_payments": reversed_payments,
            },
        )
        await self.session.delete(invoice)
        await self.session.commit()

        logger.info(
            "Deleted invoice %s (%d payments reversed)",
            invoice.invoice_number,
            len(reversed_payments),
        )


__all__ = [
    "InvoiceBuildResult",
    "InvoiceService",
    "days_in_period",
    "invoice_number_for",
    "prorate",
    "recalculate_invoice_amounts",
]
