"""CLI entry point for periodic billing runs.

Usage:
    python -m rentbill.cli.billing generate --month 2 --year 2025 \
        --invoice-date 2025-02-01 --due-date 2025-02-10 [--contract 3 --contract 7]
    python -m rentbill.cli.billing refresh-statuses

Without --contract (or --room), every active contract is billed.

Exit Codes:
    0 - Success: every selected contract billed (warnings allowed)
    1 - Failure: at least one contract failed, or the run could not start
"""

import argparse
import asyncio
import logging
import sys
from datetime import date

from rentbill.services import AsyncSessionLocal
from rentbill.services.bulk_invoice_service import BulkInvoiceService
from rentbill.services.errors import BillingError
from rentbill.services.invoice_service import InvoiceService
from rentbill.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rentbill-billing", description="Rental billing runs")
    subcommands = parser.add_subparsers(dest="command", required=True)

    generate = subcommands.add_parser("generate", help="Generate invoices for one period")
    generate.add_argument("--month", type=int, required=True, help="Billed month (1-12)")
    generate.add_argument("--year", type=int, required=True, help="Billed year")
    generate.add_argument("--invoice-date", type=date.fromisoformat, default=None, help="Issue date (default: today)")
    generate.add_argument("--due-date", type=date.fromisoformat, required=True)
    generate.add_argument("--actual-days", type=int, default=None)
    generate.add_argument(
        "--contract", dest="contract_ids", type=int, action="append", help="Contract id (repeatable)"
    )
    generate.add_argument("--room", dest="room_ids", type=int, action="append", help="Room id (repeatable)")

    subcommands.add_parser("refresh-statuses", help="Re-derive statuses of open invoices (overdue sweep)")
    return parser


async def generate(args: argparse.Namespace) -> int:
    service = BulkInvoiceService(AsyncSessionLocal)
    params = dict(
        invoice_date=args.invoice_date or date.today(),
        due_date=args.due_date,
        period_month=args.month,
        period_year=args.year,
        actual_days=args.actual_days,
    )
    if args.contract_ids:
        result = await service.create_invoices_bulk(args.contract_ids, **params)
    else:
        result = await service.create_invoices_for_rooms(args.room_ids, **params)

    for invoice in result.created:
        print(f"created  {invoice.invoice_number}  total={invoice.total_amount}")
    for warning in result.warnings:
        print(f"warning  contract {warning.contract_id}: {warning.message}")
    for error in result.errors:
        print(f"failed   contract {error.contract_id}: [{error.code}] {error.message}")

    return 1 if result.errors else 0


async def refresh_statuses() -> int:
    async with AsyncSessionLocal() as session:
        updated = await InvoiceService(session).refresh_statuses()
    print(f"{updated} invoice statuses updated")
    return 0


async def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the billing CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)
    setup_server_logging()

    try:
        if args.command == "generate":
            return await generate(args)
        return await refresh_statuses()
    except BillingError as e:
        logger.error("Billing run rejected: [%s] %s", e.code, e.message)
        return 1
    except KeyboardInterrupt:
        logger.warning("Billing run interrupted by user")
        return 1
    except Exception as e:
        logger.error("Billing run failed: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
