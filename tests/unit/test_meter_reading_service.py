"""Unit tests for meter_reading_service.py."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from rentbill.models.audit_log import AuditLog
from rentbill.services.errors import DuplicatePeriod, NotFound, ValidationError
from rentbill.services.meter_reading_service import (
    MeterReadingService,
    validate_meter_values,
    validate_period,
)


@pytest.fixture
def reading_service(session):
    return MeterReadingService(session)


async def test_create_reading(session, reading_service, services):
    reading = await reading_service.create_reading(
        room_id=101,
        service_id=services["electricity"].id,
        period_month=2,
        period_year=2025,
        reading_date=date(2025, 2, 25),
        meter_start=Decimal("1234"),
        meter_end=Decimal("1250"),
    )

    assert reading.id is not None
    assert reading.usage == Decimal("16")

    found = await reading_service.find(101, services["electricity"].id, 2, 2025)
    assert found.id == reading.id

    audit = (await session.execute(select(AuditLog))).scalars().all()
    assert [(a.entity_type, a.action) for a in audit] == [("meter_reading", "create")]


async def test_second_reading_for_same_period_is_rejected(record_reading, services):
    await record_reading(101, services["electricity"], 2, 2025, 1234, 1250)

    with pytest.raises(DuplicatePeriod):
        await record_reading(101, services["electricity"], 2, 2025, 1250, 1300)


async def test_same_period_other_room_is_allowed(record_reading, services):
    await record_reading(101, services["electricity"], 2, 2025, 1234, 1250)
    other = await record_reading(102, services["electricity"], 2, 2025, 10, 20)

    assert other.room_id == 102


async def test_end_below_start_is_rejected(record_reading, services):
    with pytest.raises(ValidationError):
        await record_reading(101, services["electricity"], 2, 2025, 1250, 1234)


async def test_quantity_service_cannot_be_read(record_reading, services):
    with pytest.raises(ValidationError, match="not meter-based"):
        await record_reading(101, services["internet"], 2, 2025, 0, 1)


async def test_unknown_service(reading_service):
    with pytest.raises(NotFound):
        await reading_service.create_reading(
            room_id=101,
            service_id=9999,
            period_month=2,
            period_year=2025,
            reading_date=date(2025, 2, 25),
            meter_start=Decimal("0"),
            meter_end=Decimal("1"),
        )


async def test_update_reading(reading_service, record_reading, services):
    reading = await record_reading(101, services["water"], 2, 2025, 10, 15)

    updated = await reading_service.update_reading(reading.id, meter_end=Decimal("18"))

    assert updated.meter_end == Decimal("18")
    assert updated.usage == Decimal("8")


async def test_update_reading_validates_resulting_values(reading_service, record_reading, services):
    reading = await record_reading(101, services["water"], 2, 2025, 10, 15)

    with pytest.raises(ValidationError):
        await reading_service.update_reading(reading.id, meter_start=Decimal("20"))


async def test_update_requires_fields(reading_service):
    with pytest.raises(ValidationError, match="No fields"):
        await reading_service.update_reading(1)


async def test_update_unknown_reading(reading_service):
    with pytest.raises(NotFound):
        await reading_service.update_reading(9999, meter_end=Decimal("1"))


def test_validate_period_bounds():
    validate_period(1, 2025)
    validate_period(12, 2025)
    for month, year in [(0, 2025), (13, 2025), (6, 1999), (6, 2101)]:
        with pytest.raises(ValidationError):
            validate_period(month, year)


def test_validate_meter_values_rejects_negatives():
    validate_meter_values(Decimal("5"), Decimal("5"))
    with pytest.raises(ValidationError):
        validate_meter_values(Decimal("-1"), Decimal("5"))


async def test_latest_reading_follows_period_order(reading_service, record_reading, services):
    electricity = services["electricity"]
    await record_reading(101, electricity, 12, 2024, 1100, 1234)
    await record_reading(101, electricity, 2, 2025, 1300, 1350)
    await record_reading(101, electricity, 1, 2025, 1234, 1300)
    await record_reading(102, electricity, 3, 2025, 10, 20)

    latest = await reading_service.latest(101, electricity.id)

    assert (latest.period_month, latest.period_year) == (2, 2025)
    assert latest.meter_end == Decimal("1350.00")
    assert await reading_service.latest(101, services["water"].id) is None
