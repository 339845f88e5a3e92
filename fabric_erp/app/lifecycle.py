from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from .errors import ConflictError, ValidationError
from .logs import json_log
from .records import Invoice, Order, RequestContext


TERMINAL_STATES: dict[str, frozenset[str]] = {
    "order": frozenset({"completed", "cancelled"}),
    "invoice": frozenset({"cancelled"}),
    "transfer": frozenset({"completed", "cancelled"}),
}

CANCEL_REASON_MAX = 500


def assert_mutable(kind: str, status: str) -> None:
    if status in TERMINAL_STATES[kind]:
        raise ConflictError(f"{kind} is {status}; no further changes are allowed")


def require_cancel_reason(reason: Optional[str], max_length: int = CANCEL_REASON_MAX) -> str:
    r = (reason or "").strip()
    if not r:
        raise ValidationError("cancellation reason is required")
    if len(r) > max_length:
        raise ValidationError(f"cancellation reason must not exceed {max_length} characters")
    return r


def _transition(order: Order, to_status: str, ctx: RequestContext, **changes) -> Order:
    json_log(
        "info",
        "order.transition",
        order_id=order.id,
        from_status=order.status,
        to_status=to_status,
        warehouse_id=ctx.warehouse_id,
        user_id=ctx.user_id,
    )
    return replace(order, status=to_status, **changes)


def approve_order(order: Order, ctx: RequestContext) -> Order:
    assert_mutable("order", order.status)
    if order.status != "approval_pending":
        raise ConflictError("only orders pending approval can be approved")
    return _transition(order, "in_progress", ctx)


def complete_order(order: Order, ctx: RequestContext) -> Order:
    assert_mutable("order", order.status)
    if order.status != "in_progress":
        raise ConflictError("only in-progress orders can be completed")
    return _transition(order, "completed", ctx)


def cancel_order(order: Order, reason: Optional[str], ctx: RequestContext) -> Order:
    assert_mutable("order", order.status)
    r = require_cancel_reason(reason)
    return _transition(order, "cancelled", ctx, cancelled_reason=r)


def cancel_invoice(invoice: Invoice, reason: Optional[str], amount_paid: Decimal, ctx: RequestContext) -> Invoice:
    assert_mutable("invoice", invoice.status)
    r = require_cancel_reason(reason)
    # Allocations are append-only, so a paid invoice can never be voided underneath them.
    if amount_paid > 0:
        raise ConflictError("cannot cancel an invoice with payments allocated against it")
    json_log(
        "info",
        "invoice.cancelled",
        invoice_id=invoice.id,
        warehouse_id=ctx.warehouse_id,
        user_id=ctx.user_id,
    )
    return replace(invoice, status="cancelled", cancelled_reason=r)
