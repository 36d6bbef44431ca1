"""Service definition ORM model for billable services (electricity, water, internet...)."""

from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from rentbill.models import Base, BaseModel


class ServiceUnit(str, Enum):
    """How a service is priced."""

    QUANTITY = "quantity"
    """Fixed quantity per period (e.g. internet per month, 2 bikes parked)"""

    METER = "meter"
    """Consumption delta between two meter readings (e.g. kWh, m3)"""


class ServiceDefinition(Base, BaseModel):
    """Billable service reference data.

    Services are attached to contracts with a contract-specific price; the unit
    decides whether an invoice line is priced by quantity or by meter usage.
    """

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Service name (e.g., 'Điện', 'Nước', 'Internet')",
    )

    unit: Mapped[ServiceUnit] = mapped_column(
        String(20),
        nullable=False,
        comment="Pricing unit: 'quantity' or 'meter'",
    )

    unit_name: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Display unit (e.g., 'kWh', 'm3', 'month')",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    @property
    def is_metered(self) -> bool:
        return self.unit == ServiceUnit.METER

    def __repr__(self) -> str:
        return f"<ServiceDefinition(id={self.id}, name={self.name!r}, unit={self.unit})>"


__all__ = ["ServiceDefinition", "ServiceUnit"]
