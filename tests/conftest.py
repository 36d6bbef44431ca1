"""Shared fixtures: a throwaway SQLite database seeded with services, contracts and an account."""

import os

# Point the application engine at a harmless database before rentbill is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from rentbill.models import (  # noqa: E402
    Account,
    AccountType,
    AttachedService,
    Base,
    Contract,
    ContractStatus,
    ServiceDefinition,
    ServiceUnit,
)
from rentbill.services.meter_reading_service import MeterReadingService  # noqa: E402

# Contract price of each attached service
SERVICE_PRICES = {
    "electricity": Decimal("3500"),
    "water": Decimal("20000"),
    "internet": Decimal("100000"),
}


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so per-contract sessions get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rentbill_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Create async test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def services(session):
    """Electricity and water are metered; internet is a flat monthly quantity."""
    definitions = {
        "electricity": ServiceDefinition(name="Điện", unit=ServiceUnit.METER, unit_name="kWh"),
        "water": ServiceDefinition(name="Nước", unit=ServiceUnit.METER, unit_name="m3"),
        "internet": ServiceDefinition(name="Internet", unit=ServiceUnit.QUANTITY, unit_name="month"),
    }
    session.add_all(definitions.values())
    await session.commit()
    return definitions


@pytest.fixture
def make_contract(session, services):
    """Factory for contracts with some of the seeded services attached."""

    async def _make(
        room_id: int,
        monthly_rent: str = "3000000",
        status: ContractStatus = ContractStatus.ACTIVE,
        attach: tuple[str, ...] = ("electricity", "water", "internet"),
    ) -> Contract:
        contract = Contract(
            room_id=room_id,
            tenant_id=room_id + 1000,
            monthly_rent=Decimal(monthly_rent),
            status=status,
            start_date=date(2024, 1, 1),
        )
        for key in attach:
            contract.services.append(
                AttachedService(service=services[key], price=SERVICE_PRICES[key], quantity=None)
            )
        session.add(contract)
        await session.commit()
        return contract

    return _make


@pytest.fixture
async def contract(make_contract):
    return await make_contract(room_id=101)


@pytest.fixture
def record_reading(session):
    """Factory recording a committed meter reading."""

    async def _record(room_id: int, service: ServiceDefinition, month: int, year: int, start, end):
        return await MeterReadingService(session).create_reading(
            room_id=room_id,
            service_id=service.id,
            period_month=month,
            period_year=year,
            reading_date=date(year, month, 25),
            meter_start=Decimal(str(start)),
            meter_end=Decimal(str(end)),
        )

    return _record


@pytest.fixture
async def account(session):
    account = Account(
        name="Tiền mặt",
        account_type=AccountType.CASH,
        opening_balance=Decimal("1000000"),
        current_balance=Decimal("1000000"),
    )
    session.add(account)
    await session.commit()
    return account
