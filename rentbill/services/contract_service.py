"""Read access to contracts and their attached services."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentbill.models.contract import AttachedService, Contract, ContractStatus


class ContractService:
    """Contract directory as seen by the billing engine (read-only)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def get(self, contract_id: int) -> Contract | None:
        """Get contract with attached services and their definitions loaded.

        Args:
            contract_id: Contract ID

        Returns:
            Contract or None if not found
        """
        stmt = (
            select(Contract)
            .where(Contract.id == contract_id)
            .options(selectinload(Contract.services).selectinload(AttachedService.service))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def active_contract_ids(self, room_ids: list[int] | None = None) -> list[int]:
        """Get ids of active contracts, optionally restricted to some rooms.

        Args:
            room_ids: Only contracts for these rooms (None means all rooms)

        Returns:
            Contract ids in ascending order
        """
        stmt = select(Contract.id).where(Contract.status == ContractStatus.ACTIVE)
        if room_ids:
            stmt = stmt.where(Contract.room_id.in_(room_ids))
        result = await self.session.execute(stmt.order_by(Contract.id.asc()))
        return list(result.scalars().all())


__all__ = ["ContractService"]
