from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BeforeValidator


def _to_lower_str(v):
    if v is None:
        return v
    return str(v).strip().lower()


OrderType = Literal["sales", "purchase"]
OrderStatus = Literal["approval_pending", "in_progress", "completed", "cancelled"]
OrderDisplayStatus = Literal["approval_pending", "in_progress", "overdue", "completed", "cancelled"]
DiscountType = Literal["none", "percentage", "flat_amount"]
InvoiceStatus = Literal["open", "cancelled"]
InvoiceDisplayStatus = Literal["open", "partially_paid", "overdue", "settled", "cancelled"]
PaymentMode = Literal["cash", "cheque", "neft", "rtgs", "imps", "upi", "card"]
AllocationType = Literal["against_ref", "unallocated"]
StockType = Literal["roll", "batch", "piece"]
StockUnitStatus = Literal["full", "partial", "empty", "removed"]
TransferStatus = Literal["in_transit", "completed", "cancelled"]

# Canonical codes mirror Postgres enums in `fabric_erp/db/migrations/001_init.sql`.
DiscountTypeIn = Annotated[DiscountType, BeforeValidator(_to_lower_str)]
PaymentModeIn = Annotated[PaymentMode, BeforeValidator(_to_lower_str)]
AllocationTypeIn = Annotated[AllocationType, BeforeValidator(_to_lower_str)]
