"""Billing error taxonomy.

Single-invoice operations raise these directly; the bulk orchestrator turns them
into per-contract error entries. Each error carries a stable machine-readable
code used by the HTTP layer and bulk reports.
"""

from dataclasses import dataclass


class BillingError(Exception):
    """Base exception for billing errors."""

    code = "billing_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BillingError):
    """Malformed or missing required input."""

    code = "validation_error"


class NotFound(BillingError):
    """Contract, invoice, transaction, account or reading does not exist."""

    code = "not_found"


class InvalidContract(BillingError):
    """Contract exists but cannot be billed (not active)."""

    code = "invalid_contract"


class DuplicatePeriod(BillingError):
    """An invoice (or meter reading) already exists for this period."""

    code = "duplicate_period"


class ConcurrencyConflict(BillingError):
    """Invoice aggregate changed underneath a read-modify-write."""

    code = "concurrency_conflict"


class InvalidOperation(BillingError):
    """Operation not allowed in the current state."""

    code = "invalid_operation"


@dataclass(frozen=True)
class MeterReadingMissing:
    """Non-fatal warning: a meter service line was omitted for lack of a reading."""

    contract_id: int
    room_id: int
    service_id: int
    service_name: str
    period_month: int
    period_year: int

    code = "meter_reading_missing"

    @property
    def message(self) -> str:
        return (
            f"No meter reading for service '{self.service_name}' in room {self.room_id} "
            f"for {self.period_month:02d}/{self.period_year}; line item omitted"
        )


__all__ = [
    "BillingError",
    "ConcurrencyConflict",
    "DuplicatePeriod",
    "InvalidContract",
    "InvalidOperation",
    "MeterReadingMissing",
    "NotFound",
    "ValidationError",
]
