"""Contract ORM models: rental agreements and the services attached to them."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbill.models import Base, BaseModel


class ContractStatus(str, Enum):
    """Contract lifecycle status."""

    ACTIVE = "active"
    ENDED = "ended"


class Contract(Base, BaseModel):
    """Rental agreement binding a tenant to a room with a fixed monthly rent.

    Rooms and tenants live in the surrounding CRUD application, so only their
    ids are stored here. The billing engine reads contracts but never writes them.
    """

    __tablename__ = "contracts"

    room_id: Mapped[int] = mapped_column(
        nullable=False,
        index=True,
        comment="Room the contract rents (owned by the room directory)",
    )

    tenant_id: Mapped[int] = mapped_column(
        nullable=False,
        index=True,
        comment="Tenant bound by the contract (owned by the tenant directory)",
    )

    monthly_rent: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Monthly rent",
    )

    status: Mapped[ContractStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.ACTIVE,
        comment="Contract status: 'active' or 'ended'",
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    services: Mapped[list["AttachedService"]] = relationship(
        "AttachedService",
        back_populates="contract",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_contract_status", "status"),
        Index("idx_contract_room_status", "room_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<Contract(id={self.id}, room_id={self.room_id}, tenant_id={self.tenant_id}, "
            f"monthly_rent={self.monthly_rent}, status={self.status})>"
        )


class AttachedService(Base, BaseModel):
    """A service attached to a contract with its contract-specific price."""

    __tablename__ = "contract_services"

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    service_id: Mapped[int] = mapped_column(
        ForeignKey("services.id"),
        nullable=False,
        index=True,
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Unit price (per quantity, or per metered unit)",
    )

    quantity: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Quantity for quantity-priced services (NULL means 1)",
    )

    # Relationships
    contract: Mapped["Contract"] = relationship("Contract", back_populates="services")
    service: Mapped["ServiceDefinition"] = relationship("ServiceDefinition")  # noqa: F821

    __table_args__ = (UniqueConstraint("contract_id", "service_id", name="uq_contract_service"),)

    def __repr__(self) -> str:
        return (
            f"<AttachedService(contract_id={self.contract_id}, service_id={self.service_id}, "
            f"price={self.price}, quantity={self.quantity})>"
        )


__all__ = ["AttachedService", "Contract", "ContractStatus"]
