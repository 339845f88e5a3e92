"""
Display statuses for orders, invoices, transfers and stock units.

Nothing here is persisted: the status shown to users is recomputed from the raw
fields and the current time on every read, so "overdue" never depends on a sweep
job having run. Time comparisons are in UTC with a strict `now > due_date`.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import get_args

from .records import DueDate, Invoice, Order, StockUnit
from .validation import (
    InvoiceDisplayStatus,
    OrderDisplayStatus,
    StockUnitStatus,
    TransferStatus,
)


def _utc(ts: datetime) -> datetime:
    # Naive timestamps are taken as UTC.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def is_past_due(due_date: DueDate, now: datetime) -> bool:
    if due_date is None:
        return False
    now_utc = _utc(now)
    if isinstance(due_date, datetime):
        return now_utc > _utc(due_date)
    if isinstance(due_date, date):
        # Calendar due dates: overdue from the next UTC day onwards.
        return now_utc.date() > due_date
    raise TypeError(f"unsupported due_date type: {type(due_date).__name__}")


def derive_order_status(order: Order, now: datetime) -> str:
    st = order.status
    if st == "cancelled":
        return "cancelled"
    if st == "completed":
        return "completed"
    if st == "approval_pending":
        return "approval_pending"
    if st == "in_progress":
        return "overdue" if is_past_due(order.due_date, now) else "in_progress"
    raise ValueError(f"unknown order status: {st}")


def derive_invoice_status(invoice: Invoice, amount_paid: Decimal, now: datetime) -> str:
    # Order matters: overdue is checked before partially_paid.
    if invoice.status == "cancelled":
        return "cancelled"
    if amount_paid >= invoice.total_amount:
        return "settled"
    if is_past_due(invoice.due_date, now):
        return "overdue"
    if amount_paid > 0:
        return "partially_paid"
    return "open"


def derive_stock_unit_status(unit: StockUnit, quantity: Decimal) -> str:
    if unit.removed:
        return "removed"
    if quantity <= 0:
        return "empty"
    if quantity >= unit.base_quantity:
        return "full"
    return "partial"


def _exhaustive(labels: dict[str, str], literal) -> dict[str, str]:
    expected = set(get_args(literal))
    missing = expected - set(labels)
    extra = set(labels) - expected
    if missing or extra:
        raise RuntimeError(f"status labels out of sync (missing={sorted(missing)}, extra={sorted(extra)})")
    return labels


ORDER_STATUS_LABELS = _exhaustive(
    {
        "approval_pending": "Approval Pending",
        "in_progress": "In Progress",
        "overdue": "Overdue",
        "completed": "Completed",
        "cancelled": "Cancelled",
    },
    OrderDisplayStatus,
)

INVOICE_STATUS_LABELS = _exhaustive(
    {
        "open": "Open",
        "partially_paid": "Partially Paid",
        "overdue": "Overdue",
        "settled": "Settled",
        "cancelled": "Cancelled",
    },
    InvoiceDisplayStatus,
)

TRANSFER_STATUS_LABELS = _exhaustive(
    {
        "in_transit": "In Transit",
        "completed": "Completed",
        "cancelled": "Cancelled",
    },
    TransferStatus,
)

STOCK_UNIT_STATUS_LABELS = _exhaustive(
    {
        "full": "Full",
        "partial": "Partial",
        "empty": "Empty",
        "removed": "Removed",
    },
    StockUnitStatus,
)

_LABELS_BY_KIND = {
    "order": ORDER_STATUS_LABELS,
    "invoice": INVOICE_STATUS_LABELS,
    "transfer": TRANSFER_STATUS_LABELS,
    "stock_unit": STOCK_UNIT_STATUS_LABELS,
}


def status_label(kind: str, status: str) -> str:
    labels = _LABELS_BY_KIND.get(kind)
    if labels is None:
        raise ValueError(f"unknown status kind: {kind}")
    try:
        return labels[status]
    except KeyError:
        raise ValueError(f"unknown {kind} status: {status}") from None
