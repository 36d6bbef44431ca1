"""Meter reading ORM model: per room/service/period start and end readings."""

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbill.models import Base, BaseModel


class MeterReading(Base, BaseModel):
    """Start and end meter values of a metered service in one room for one period.

    Readings are recorded before the period is invoiced. At most one reading
    exists per (room, service, period).
    """

    __tablename__ = "meter_readings"

    room_id: Mapped[int] = mapped_column(nullable=False, index=True)

    service_id: Mapped[int] = mapped_column(
        ForeignKey("services.id"),
        nullable=False,
        index=True,
    )

    period_month: Mapped[int] = mapped_column(nullable=False)
    period_year: Mapped[int] = mapped_column(nullable=False)

    reading_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Date the end value was read",
    )

    meter_start: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Meter value at period start",
    )

    meter_end: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Meter value at period end",
    )

    recorded_by: Mapped[int | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    service: Mapped["ServiceDefinition"] = relationship("ServiceDefinition")  # noqa: F821

    __table_args__ = (
        UniqueConstraint(
            "room_id",
            "service_id",
            "period_month",
            "period_year",
            name="uq_meter_reading_room_service_period",
        ),
        CheckConstraint("meter_end >= meter_start", name="ck_meter_reading_end_after_start"),
    )

    @property
    def usage(self) -> Decimal:
        return self.meter_end - self.meter_start

    def __repr__(self) -> str:
        return (
            f"<MeterReading(id={self.id}, room_id={self.room_id}, service_id={self.service_id}, "
            f"period={self.period_month}/{self.period_year}, "
            f"start={self.meter_start}, end={self.meter_end})>"
        )


__all__ = ["MeterReading"]
