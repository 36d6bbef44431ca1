"""Service for managing meter readings with audit logging."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rentbill.models.meter_reading import MeterReading
from rentbill.models.service import ServiceDefinition, ServiceUnit
from rentbill.services.audit_service import AuditService
from rentbill.services.errors import DuplicatePeriod, NotFound, ValidationError

logger = logging.getLogger(__name__)


def validate_period(period_month: int, period_year: int) -> None:
    """Raise ValidationError for a month outside 1-12 or an implausible year."""
    if not 1 <= period_month <= 12:
        raise ValidationError(f"period_month must be between 1 and 12, got {period_month}")
    if not 2000 <= period_year <= 2100:
        raise ValidationError(f"period_year must be between 2000 and 2100, got {period_year}")


def validate_meter_values(meter_start: Decimal, meter_end: Decimal) -> None:
    """Raise ValidationError unless 0 <= meter_start <= meter_end."""
    if meter_start < 0 or meter_end < 0:
        raise ValidationError("Meter readings cannot be negative")
    if meter_end < meter_start:
        raise ValidationError(
            f"meter_end ({meter_end}) must be greater than or equal to meter_start ({meter_start})"
        )


class MeterReadingService:
    """Service for managing per-period meter readings."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def get_reading_by_id(self, reading_id: int) -> MeterReading | None:
        """Get meter reading by ID."""
        stmt = select(MeterReading).where(MeterReading.id == reading_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find(
        self,
        room_id: int,
        service_id: int,
        period_month: int,
        period_year: int,
    ) -> MeterReading | None:
        """Find the reading of a room's metered service for one period.

        Returns:
            MeterReading or None if the period has not been read yet
        """
        stmt = select(MeterReading).where(
            MeterReading.room_id == room_id,
            MeterReading.service_id == service_id,
            MeterReading.period_month == period_month,
            MeterReading.period_year == period_year,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def latest(self, room_id: int, service_id: int) -> MeterReading | None:
        """Most recent reading of a room's metered service, by period then reading date.

        Its meter_end is the natural meter_start of the next period.
        """
        stmt = (
            select(MeterReading)
            .where(MeterReading.room_id == room_id, MeterReading.service_id == service_id)
            .order_by(
                MeterReading.period_year.desc(),
                MeterReading.period_month.desc(),
                MeterReading.reading_date.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _require_metered_service(self, service_id: int) -> ServiceDefinition:
        service = await self.session.get(ServiceDefinition, service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        if service.unit != ServiceUnit.METER:
            raise ValidationError(f"Service '{service.name}' is not meter-based")
        return service

    async def create_reading(
        self,
        room_id: int,
        service_id: int,
        period_month: int,
        period_year: int,
        reading_date: date,
        meter_start: Decimal,
        meter_end: Decimal,
        recorded_by: int | None = None,
        notes: str | None = None,
    ) -> MeterReading:
        """Record a new meter reading and commit.

        Raises:
            ValidationError: Invalid period or meter values, or service not meter-based
            NotFound: Unknown service
            DuplicatePeriod: A reading already exists for this room/service/period
        """
        reading = await self._add_reading(
            room_id=room_id,
            service_id=service_id,
            period_month=period_month,
            period_year=period_year,
            reading_date=reading_date,
            meter_start=meter_start,
            meter_end=meter_end,
            recorded_by=recorded_by,
            notes=notes,
        )
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicatePeriod(
                f"Meter reading already exists for room {room_id}, service {service_id}, "
                f"{period_month:02d}/{period_year}"
            ) from e

        logger.info(
            "Recorded meter reading %d: room %d service %d %02d/%d (%s -> %s)",
            reading.id,
            room_id,
            service_id,
            period_month,
            period_year,
            meter_start,
            meter_end,
        )
        return reading

    async def _add_reading(
        self,
        *,
        room_id: int,
        service_id: int,
        period_month: int,
        period_year: int,
        reading_date: date,
        meter_start: Decimal,
        meter_end: Decimal,
        recorded_by: int | None,
        notes: str | None,
    ) -> MeterReading:
        validate_period(period_month, period_year)
        validate_meter_values(meter_start, meter_end)
        await self._require_metered_service(service_id)

        existing = await self.find(room_id, service_id, period_month, period_year)
        if existing:
            raise DuplicatePeriod(
                f"Meter reading already exists for room {room_id}, service {service_id}, "
                f"{period_month:02d}/{period_year}"
            )

        reading = MeterReading(
            room_id=room_id,
            service_id=service_id,
            period_month=period_month,
            period_year=period_year,
            reading_date=reading_date,
            meter_start=meter_start,
            meter_end=meter_end,
            recorded_by=recorded_by,
            notes=notes,
        )
        self.session.add(reading)
        try:
            await self.session.flush()  # Ensure ID is assigned
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicatePeriod(
                f"Meter reading already exists for room {room_id}, service {service_id}, "
                f"{period_month:02d}/{period_year}"
            ) from e

        AuditService.log(
            session=self.session,
            entity_type="meter_reading",
            entity_id=reading.id,
            action="create",
            actor_id=recorded_by,
            changes={
                "room_id": room_id,
                "service_id": service_id,
                "period": f"{period_month:02d}/{period_year}",
                "meter_start": str(meter_start),
                "meter_end": str(meter_end),
            },
        )
        return reading

    async def update_reading(
        self,
        reading_id: int,
        meter_start: Decimal | None = None,
        meter_end: Decimal | None = None,
        reading_date: date | None = None,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> MeterReading:
        """Update an existing meter reading and commit.

        Invoices already built from the reading keep their line items; edit the
        invoice line item to re-bill a corrected reading.

        Raises:
            NotFound: Reading does not exist
            ValidationError: Resulting meter values are invalid
        """
        if meter_start is None and meter_end is None and reading_date is None and notes is None:
            raise ValidationError("No fields to update")

        reading = await self.get_reading_by_id(reading_id)
        if reading is None:
            raise NotFound(f"Meter reading {reading_id} not found")

        new_start = meter_start if meter_start is not None else reading.meter_start
        new_end = meter_end if meter_end is not None else reading.meter_end
        validate_meter_values(new_start, new_end)

        changes: dict[str, str] = {}
        if meter_start is not None:
            changes["meter_start"] = f"{reading.meter_start} -> {meter_start}"
            reading.meter_start = meter_start
        if meter_end is not None:
            changes["meter_end"] = f"{reading.meter_end} -> {meter_end}"
            reading.meter_end = meter_end
        if reading_date is not None:
            changes["reading_date"] = reading_date.isoformat()
            reading.reading_date = reading_date
        if notes is not None:
            reading.notes = notes

        AuditService.log(
            session=self.session,
            entity_type="meter_reading",
            entity_id=reading.id,
            action="update",
            actor_id=actor_id,
            changes=changes or None,
        )
        await self.session.commit()
        return reading

    async def upsert_reading(
        self,
        room_id: int,
        service_id: int,
        period_month: int,
        period_year: int,
        reading_date: date,
        meter_start: Decimal,
        meter_end: Decimal,
        recorded_by: int | None = None,
    ) -> MeterReading:
        """Create or overwrite the reading for a room/service/period without committing.

        Used when an invoice meter line is corrected so the reading store stays in
        step with what was billed. The caller owns the transaction.
        """
        validate_meter_values(meter_start, meter_end)
        reading = await self.find(room_id, service_id, period_month, period_year)
        if reading is None:
            return await self._add_reading(
                room_id=room_id,
                service_id=service_id,
                period_month=period_month,
                period_year=period_year,
                reading_date=reading_date,
                meter_start=meter_start,
                meter_end=meter_end,
                recorded_by=recorded_by,
                notes=None,
            )

        reading.meter_start = meter_start
        reading.meter_end = meter_end
        reading.reading_date = reading_date
        AuditService.log(
            session=self.session,
            entity_type="meter_reading",
            entity_id=reading.id,
            action="update",
            actor_id=recorded_by,
            changes={"meter_start": str(meter_start), "meter_end": str(meter_end)},
        )
        return reading


__all__ = ["MeterReadingService", "validate_meter_values", "validate_period"]
