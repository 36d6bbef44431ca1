"""Meter reading API routes."""

from fastapi import APIRouter, Depends, status

from rentbill.api.deps import get_meter_reading_service
from rentbill.api.schemas import (
    MeterReadingCreatePayload,
    MeterReadingResponse,
    MeterReadingUpdatePayload,
)
from rentbill.services.meter_reading_service import MeterReadingService

router = APIRouter(prefix="/api/meter-readings", tags=["meter-readings"])


@router.post("", response_model=MeterReadingResponse, status_code=status.HTTP_201_CREATED)
async def create_meter_reading(
    payload: MeterReadingCreatePayload,
    service: MeterReadingService = Depends(get_meter_reading_service),
) -> MeterReadingResponse:
    """
    Record the meter reading of a room's service for one period.

    Returns:
        201: Created reading
        404: Unknown service
        409: Reading already recorded for the period
        422: meter_end below meter_start, or service not meter-based
    """
    reading = await service.create_reading(
        room_id=payload.room_id,
        service_id=payload.service_id,
        period_month=payload.period_month,
        period_year=payload.period_year,
        reading_date=payload.reading_date,
        meter_start=payload.meter_start,
        meter_end=payload.meter_end,
        notes=payload.notes,
    )
    return MeterReadingResponse.model_validate(reading)


@router.put("/{reading_id}", response_model=MeterReadingResponse)
async def update_meter_reading(
    reading_id: int,
    payload: MeterReadingUpdatePayload,
    service: MeterReadingService = Depends(get_meter_reading_service),
) -> MeterReadingResponse:
    reading = await service.update_reading(
        reading_id,
        meter_start=payload.meter_start,
        meter_end=payload.meter_end,
        reading_date=payload.reading_date,
        notes=payload.notes,
    )
    return MeterReadingResponse.model_validate(reading)


@router.get("/latest/{room_id}/{service_id}", response_model=MeterReadingResponse | None)
async def get_latest_meter_reading(
    room_id: int,
    service_id: int,
    service: MeterReadingService = Depends(get_meter_reading_service),
) -> MeterReadingResponse | None:
    """Latest reading for prefilling the next period's meter_start; null when none exists."""
    reading = await service.latest(room_id, service_id)
    if reading is None:
        return None
    return MeterReadingResponse.model_validate(reading)
