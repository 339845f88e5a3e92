"""
Immutable records handed to the business helpers.

Routers build these from `dict_row` rows (`from_row`) so the helpers never see a
cursor. Amounts and quantities are always `Decimal`.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union


DueDate = Optional[Union[date, datetime]]


def _dec(v) -> Decimal:
    return Decimal(str(v if v is not None else 0))


def _opt_str(v) -> Optional[str]:
    return str(v) if v is not None else None


def new_id() -> str:
    return str(uuid.uuid4())


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, and for which warehouse. Passed explicitly into every write path."""

    company_id: str
    warehouse_id: Optional[str]
    user_id: str


@dataclass(frozen=True)
class Order:
    id: str
    status: str
    item_total: Decimal
    order_type: str = "sales"
    due_date: DueDate = None
    discount_type: str = "none"
    discount_value: Decimal = Decimal("0")
    gst_rate: Optional[Decimal] = None
    cancelled_reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Order":
        return cls(
            id=str(row["id"]),
            order_type=str(row.get("order_type") or "sales"),
            status=str(row["status"]),
            due_date=row.get("due_date"),
            item_total=_dec(row.get("item_total")),
            discount_type=str(row.get("discount_type") or "none"),
            discount_value=_dec(row.get("discount_value")),
            gst_rate=_dec(row["gst_rate"]) if row.get("gst_rate") is not None else None,
            cancelled_reason=row.get("cancelled_reason"),
        )


@dataclass(frozen=True)
class Invoice:
    id: str
    total_amount: Decimal
    status: str = "open"
    order_id: Optional[str] = None
    due_date: DueDate = None
    cancelled_reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Invoice":
        return cls(
            id=str(row["id"]),
            order_id=_opt_str(row.get("order_id")),
            total_amount=_dec(row.get("total_amount")),
            due_date=row.get("due_date"),
            status=str(row.get("status") or "open"),
            cancelled_reason=row.get("cancelled_reason"),
        )


@dataclass(frozen=True)
class Payment:
    id: str
    mode: str
    amount: Decimal
    payment_date: Optional[date] = None


@dataclass(frozen=True)
class AllocationRequest:
    allocation_type: str
    amount_applied: Decimal
    invoice_id: Optional[str] = None


@dataclass(frozen=True)
class PaymentAllocation:
    id: str
    payment_id: str
    allocation_type: str
    amount_applied: Decimal
    invoice_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "PaymentAllocation":
        return cls(
            id=str(row["id"]),
            payment_id=str(row["payment_id"]),
            allocation_type=str(row["allocation_type"]),
            invoice_id=_opt_str(row.get("invoice_id")),
            amount_applied=_dec(row.get("amount_applied")),
        )


@dataclass(frozen=True)
class StockUnit:
    id: str
    stock_type: str
    base_quantity: Decimal
    sequence_number: Optional[int] = None
    warehouse_id: Optional[str] = None
    removed: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "StockUnit":
        return cls(
            id=str(row["id"]),
            stock_type=str(row["stock_type"]),
            sequence_number=row.get("sequence_number"),
            warehouse_id=_opt_str(row.get("warehouse_id")),
            base_quantity=_dec(row.get("base_quantity")),
            removed=bool(row.get("removed_at")),
        )


@dataclass(frozen=True)
class StockAdjustment:
    id: str
    stock_unit_id: str
    quantity_adjusted: Decimal
    reason: str
    adjustment_date: date
    created_by: Optional[str] = None
    transfer_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "StockAdjustment":
        return cls(
            id=str(row["id"]),
            stock_unit_id=str(row["stock_unit_id"]),
            quantity_adjusted=_dec(row.get("quantity_adjusted")),
            reason=str(row.get("reason") or ""),
            adjustment_date=row["adjustment_date"],
            created_by=_opt_str(row.get("created_by")),
            transfer_id=_opt_str(row.get("transfer_id")),
        )


@dataclass(frozen=True)
class TransferLine:
    line_id: str
    source_stock_unit_id: str
    shipped_quantity: Decimal

    @classmethod
    def from_row(cls, row: dict) -> "TransferLine":
        return cls(
            line_id=str(row["id"]),
            source_stock_unit_id=str(row["source_stock_unit_id"]),
            shipped_quantity=_dec(row.get("shipped_quantity")),
        )


@dataclass(frozen=True)
class Transfer:
    id: str
    from_warehouse_id: str
    to_warehouse_id: str
    status: str = "in_transit"
    cancelled_reason: Optional[str] = None
    lines: tuple[TransferLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(cls, row: dict, lines: list[dict]) -> "Transfer":
        return cls(
            id=str(row["id"]),
            from_warehouse_id=str(row["from_warehouse_id"]),
            to_warehouse_id=str(row["to_warehouse_id"]),
            status=str(row["status"]),
            cancelled_reason=row.get("cancelled_reason"),
            lines=tuple(TransferLine.from_row(r) for r in lines),
        )


@dataclass(frozen=True)
class ReceivedItem:
    line_id: str
    destination_stock_unit_id: str
    received_quantity: Decimal
