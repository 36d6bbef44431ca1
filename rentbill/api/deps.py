"""FastAPI dependency providers for the billing services."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rentbill.services import AsyncSessionLocal, get_async_session
from rentbill.services.bulk_invoice_service import BulkInvoiceService
from rentbill.services.invoice_service import InvoiceService
from rentbill.services.meter_reading_service import MeterReadingService
from rentbill.services.payment_service import PaymentService


def get_invoice_service(session: AsyncSession = Depends(get_async_session)) -> InvoiceService:
    return InvoiceService(session)


def get_payment_service(session: AsyncSession = Depends(get_async_session)) -> PaymentService:
    return PaymentService(session)


def get_meter_reading_service(
    session: AsyncSession = Depends(get_async_session),
) -> MeterReadingService:
    return MeterReadingService(session)


def get_bulk_service() -> BulkInvoiceService:
    """Bulk runs open one session per contract, so they get the factory, not a session."""
    return BulkInvoiceService(AsyncSessionLocal)
