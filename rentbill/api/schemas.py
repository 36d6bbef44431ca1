"""Pydantic schemas for the billing API."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from rentbill.models.invoice import InvoiceStatus
from rentbill.models.transaction import TransactionType


# === Requests ===


class InvoiceCreatePayload(BaseModel):
    """Payload for POST /api/invoices."""

    contract_id: int = Field(..., description="Contract to bill")
    invoice_date: date = Field(..., description="Issue date")
    due_date: date = Field(..., description="Payment due date")
    period_month: int = Field(..., description="Billed month (1-12)")
    period_year: int = Field(..., description="Billed year")
    actual_days: int | None = Field(None, description="Days occupied, pro-rates rent and quantity services")
    notes: str | None = None


class BulkInvoicePayload(BaseModel):
    """Payload for POST /api/invoices/bulk.

    Either contract_ids or room_ids; with neither, every active contract is billed.
    """

    contract_ids: list[int] | None = None
    room_ids: list[int] | None = None
    invoice_date: date
    due_date: date
    period_month: int
    period_year: int
    actual_days: int | None = None
    notes: str | None = None


class InvoiceNotesPayload(BaseModel):
    notes: str | None = None


class LineItemUpdatePayload(BaseModel):
    """Payload for PATCH /api/invoice-items/{id}."""

    price: Decimal | None = None
    quantity: Decimal | None = None
    meter_start: Decimal | None = None
    meter_end: Decimal | None = None


class PaymentPayload(BaseModel):
    """Payload for POST /api/invoices/{id}/payments."""

    amount: Decimal = Field(..., description="Amount received; negative for a correction")
    account_id: int = Field(..., description="Cash/bank account receiving the money")
    method: str = Field("cash", description="Payment method")
    payment_date: date
    description: str | None = None


class PaymentUpdatePayload(BaseModel):
    """Payload for PATCH /api/transactions/{id}; omitted fields are kept."""

    amount: Decimal | None = None
    account_id: int | None = None
    method: str | None = None
    payment_date: date | None = None
    description: str | None = None


class MeterReadingCreatePayload(BaseModel):
    room_id: int
    service_id: int
    period_month: int
    period_year: int
    reading_date: date
    meter_start: Decimal
    meter_end: Decimal
    notes: str | None = None


class MeterReadingUpdatePayload(BaseModel):
    meter_start: Decimal | None = None
    meter_end: Decimal | None = None
    reading_date: date | None = None
    notes: str | None = None


# === Responses ===


class LineItemResponse(BaseModel):
    id: int
    service_id: int
    service_name: str
    unit: str
    price: Decimal
    quantity: Decimal | None = None
    meter_start: Decimal | None = None
    meter_end: Decimal | None = None
    usage: Decimal | None = None
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: int
    transaction_number: str
    type: TransactionType
    account_id: int
    invoice_id: int | None = None
    amount: Decimal
    transaction_date: date
    payment_method: str | None = None
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceSummaryResponse(BaseModel):
    """Invoice header; status is always server-derived."""

    id: int
    invoice_number: str
    contract_id: int
    period_month: int
    period_year: int
    invoice_date: date
    due_date: date
    actual_days: int | None = None
    rent_amount: Decimal
    service_amount: Decimal
    previous_debt: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    status: InvoiceStatus
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceDetailResponse(InvoiceSummaryResponse):
    line_items: list[LineItemResponse] = []
    transactions: list[TransactionResponse] = []


class WarningResponse(BaseModel):
    """Non-fatal warning (missing meter reading)."""

    code: str
    message: str
    contract_id: int
    room_id: int
    service_id: int
    service_name: str

    model_config = ConfigDict(from_attributes=True)


class InvoiceCreateResponse(BaseModel):
    invoice: InvoiceDetailResponse
    warnings: list[WarningResponse] = []


class BulkErrorResponse(BaseModel):
    contract_id: int
    code: str
    message: str

    model_config = ConfigDict(from_attributes=True)


class BulkInvoiceResponse(BaseModel):
    created: list[InvoiceSummaryResponse]
    errors: list[BulkErrorResponse]
    warnings: list[WarningResponse]

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    transaction: TransactionResponse
    invoice: InvoiceSummaryResponse


class RefreshStatusesResponse(BaseModel):
    updated: int


class MeterReadingResponse(BaseModel):
    id: int
    room_id: int
    service_id: int
    period_month: int
    period_year: int
    reading_date: date
    meter_start: Decimal
    meter_end: Decimal
    notes: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
