"""RentBill FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from rentbill.api import invoices, meter_readings
from rentbill.api.errors import billing_error_handler, unexpected_error_handler
from rentbill.config import settings
from rentbill.models import Base
from rentbill.services import async_engine
from rentbill.services.errors import BillingError
from rentbill.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Development convenience; alembic owns the schema in deployed databases
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")
    yield
    await async_engine.dispose()
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.api_title,
    description="Rental billing and payment reconciliation",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_exception_handler(BillingError, billing_error_handler)
app.add_exception_handler(Exception, unexpected_error_handler)

app.include_router(invoices.router)
app.include_router(meter_readings.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


def main() -> None:
    load_dotenv()
    setup_server_logging()
    logger.info("Starting RentBill API on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
