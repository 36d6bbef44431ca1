"""Invoice, line-item and payment API routes."""

from fastapi import APIRouter, Depends, Query, status

from rentbill.api.deps import get_bulk_service, get_invoice_service, get_payment_service
from rentbill.api.schemas import (
    BulkInvoicePayload,
    BulkInvoiceResponse,
    InvoiceCreatePayload,
    InvoiceCreateResponse,
    InvoiceDetailResponse,
    InvoiceNotesPayload,
    InvoiceSummaryResponse,
    LineItemUpdatePayload,
    PaymentPayload,
    PaymentResponse,
    PaymentUpdatePayload,
    RefreshStatusesResponse,
    TransactionResponse,
    WarningResponse,
)
from rentbill.models.invoice import InvoiceStatus
from rentbill.services.bulk_invoice_service import BulkInvoiceService
from rentbill.services.invoice_service import InvoiceService
from rentbill.services.payment_service import PaymentService

router = APIRouter(prefix="/api", tags=["invoices"])


@router.post(
    "/invoices", response_model=InvoiceCreateResponse, status_code=status.HTTP_201_CREATED
)
async def create_invoice(
    payload: InvoiceCreatePayload,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceCreateResponse:
    """
    Create the invoice of one contract for one period.

    Returns:
        201: Created invoice plus missing-reading warnings
        404: Unknown contract
        409: Invoice already exists for the period
        422: Invalid period, dates or actual_days
    """
    result = await service.create_invoice(
        contract_id=payload.contract_id,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        period_month=payload.period_month,
        period_year=payload.period_year,
        actual_days=payload.actual_days,
        notes=payload.notes,
    )
    return InvoiceCreateResponse(
        invoice=InvoiceDetailResponse.model_validate(result.invoice),
        warnings=[WarningResponse.model_validate(w) for w in result.warnings],
    )


@router.post("/invoices/bulk", response_model=BulkInvoiceResponse)
async def create_invoices_bulk(
    payload: BulkInvoicePayload,
    service: BulkInvoiceService = Depends(get_bulk_service),
) -> BulkInvoiceResponse:
    """
    Bill many contracts for one period. Per-contract failures are reported in
    `errors` and never fail the request.
    """
    params = dict(
        invoice_date=payload.invoice_date,
        due_date=payload.due_date,
        period_month=payload.period_month,
        period_year=payload.period_year,
        actual_days=payload.actual_days,
        notes=payload.notes,
    )
    if payload.contract_ids is not None:
        result = await service.create_invoices_bulk(payload.contract_ids, **params)
    else:
        result = await service.create_invoices_for_rooms(payload.room_ids, **params)
    return BulkInvoiceResponse.model_validate(result)


@router.post("/invoices/refresh-statuses", response_model=RefreshStatusesResponse)
async def refresh_statuses(
    service: InvoiceService = Depends(get_invoice_service),
) -> RefreshStatusesResponse:
    """Re-derive statuses of all open invoices against today (e.g. pending -> overdue)."""
    updated = await service.refresh_statuses()
    return RefreshStatusesResponse(updated=updated)


@router.get("/invoices", response_model=list[InvoiceSummaryResponse])
async def list_invoices(
    contract_id: int | None = Query(None),
    invoice_status: InvoiceStatus | None = Query(None, alias="status"),
    period_month: int | None = Query(None, ge=1, le=12),
    period_year: int | None = Query(None),
    service: InvoiceService = Depends(get_invoice_service),
) -> list[InvoiceSummaryResponse]:
    invoices = await service.list_invoices(
        contract_id=contract_id,
        status=invoice_status,
        period_month=period_month,
        period_year=period_year,
    )
    return [InvoiceSummaryResponse.model_validate(invoice) for invoice in invoices]


@router.get("/invoices/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(
    invoice_id: int,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceDetailResponse:
    invoice = await service.get_invoice(invoice_id)
    return InvoiceDetailResponse.model_validate(invoice)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceSummaryResponse)
async def update_invoice_notes(
    invoice_id: int,
    payload: InvoiceNotesPayload,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceSummaryResponse:
    invoice = await service.update_notes(invoice_id, payload.notes)
    return InvoiceSummaryResponse.model_validate(invoice)


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    service: InvoiceService = Depends(get_invoice_service),
) -> None:
    """Delete an invoice; linked payments are reversed out of their accounts."""
    await service.delete_invoice(invoice_id)


@router.patch("/invoice-items/{line_item_id}", response_model=InvoiceDetailResponse)
async def update_line_item(
    line_item_id: int,
    payload: LineItemUpdatePayload,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceDetailResponse:
    """
    Correct a line item's price, quantity or meter values.

    Returns:
        200: The invoice with re-derived totals
        400: Invoice already fully paid
        404: Unknown line item
    """
    invoice = await service.update_line_item(
        line_item_id,
        price=payload.price,
        quantity=payload.quantity,
        meter_start=payload.meter_start,
        meter_end=payload.meter_end,
    )
    return InvoiceDetailResponse.model_validate(invoice)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(
    invoice_id: int,
    payload: PaymentPayload,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """
    Record a payment against an invoice.

    Returns:
        201: The transaction and the invoice's re-derived amounts
        404: Unknown invoice or account
        409: Invoice modified concurrently
        422: Zero amount, or a correction below zero paid
    """
    transaction = await service.add_payment(
        invoice_id=invoice_id,
        amount=payload.amount,
        account_id=payload.account_id,
        method=payload.method,
        payment_date=payload.payment_date,
        description=payload.description,
    )
    return PaymentResponse(
        transaction=TransactionResponse.model_validate(transaction),
        invoice=InvoiceSummaryResponse.model_validate(transaction.invoice),
    )


@router.patch("/transactions/{transaction_id}", response_model=PaymentResponse)
async def update_payment(
    transaction_id: int,
    payload: PaymentUpdatePayload,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """
    Correct the amount, account or details of a recorded payment.

    Returns:
        200: The corrected transaction and the invoice's re-derived amounts
        400: Transaction not linked to an invoice
        404: Unknown transaction or account
        409: Invoice modified concurrently
        422: Nothing to update, zero amount, or a paid sum below zero
    """
    transaction = await service.update_payment(
        transaction_id,
        amount=payload.amount,
        account_id=payload.account_id,
        method=payload.method,
        payment_date=payload.payment_date,
        description=payload.description,
    )
    return PaymentResponse(
        transaction=TransactionResponse.model_validate(transaction),
        invoice=InvoiceSummaryResponse.model_validate(transaction.invoice),
    )


@router.delete("/transactions/{transaction_id}", response_model=InvoiceSummaryResponse)
async def remove_payment(
    transaction_id: int,
    invoice_id: int | None = Query(None, description="Reject unless the payment belongs to this invoice"),
    service: PaymentService = Depends(get_payment_service),
) -> InvoiceSummaryResponse:
    invoice = await service.remove_payment(transaction_id, invoice_id=invoice_id)
    return InvoiceSummaryResponse.model_validate(invoice)
