from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from ..db import get_conn, set_warehouse_context
from ..deps import get_request_context
from ..display_status import derive_order_status, status_label
from ..financials import completion_percentage, compute_order_financials, discount_flags, format_currency
from ..lifecycle import approve_order, cancel_order, complete_order
from ..records import Order, RequestContext
from ..validation import DiscountTypeIn

router = APIRouter(prefix="/orders", tags=["orders"])


class FinancialsPreviewIn(BaseModel):
    item_total: Decimal
    discount_type: DiscountTypeIn = "none"
    discount_value: Decimal = Decimal("0")
    gst_rate: Optional[Decimal] = None


class OrderCancelIn(BaseModel):
    reason: Optional[str] = None


def _load_order(cur, ctx: RequestContext, order_id: str, *, lock: bool = False) -> dict:
    sql = """
        SELECT id, order_type, sequence_number, status, due_date, item_total,
               discount_type, discount_value, gst_rate, cancelled_reason
        FROM orders
        WHERE company_id = %s AND warehouse_id = %s AND id = %s
    """
    if lock:
        sql += " FOR UPDATE"
    cur.execute(sql, (ctx.company_id, ctx.warehouse_id, order_id))
    row = cur.fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="order not found")
    return row


def _financials_out(item_total, discount_type, discount_value, gst_rate) -> dict:
    fin = compute_order_financials(item_total, discount_type, discount_value, gst_rate).rounded()
    out = fin.as_dict()
    out["total_display"] = format_currency(fin.total_amount)
    out["flags"] = discount_flags(item_total, discount_type, discount_value)
    return out


def _order_out(order: Order, row: dict, items: list, now: datetime) -> dict:
    st = derive_order_status(order, now)
    fulfilled_field = "received_quantity" if order.order_type == "purchase" else "dispatched_quantity"
    return {
        "id": order.id,
        "order_type": order.order_type,
        "sequence_number": row.get("sequence_number"),
        "status": order.status,
        "due_date": order.due_date,
        "cancelled_reason": order.cancelled_reason,
        "display_status": st,
        "status_label": status_label("order", st),
        "financials": _financials_out(order.item_total, order.discount_type, order.discount_value, order.gst_rate),
        "completion_percentage": completion_percentage(items, fulfilled_field),
    }


def _load_items(cur, order_id: str) -> list:
    cur.execute(
        """
        SELECT required_quantity, dispatched_quantity, received_quantity
        FROM order_items
        WHERE order_id = %s
        """,
        (order_id,),
    )
    return cur.fetchall() or []


@router.post("/financials/preview", dependencies=[Depends(get_request_context)])
def preview_financials(data: FinancialsPreviewIn):
    return {"financials": _financials_out(data.item_total, data.discount_type, data.discount_value, data.gst_rate)}


@router.get("/{order_id}")
def get_order(order_id: str, ctx: RequestContext = Depends(get_request_context)):
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.cursor() as cur:
            row = _load_order(cur, ctx, order_id)
            items = _load_items(cur, order_id)
    return {"order": _order_out(Order.from_row(row), row, items, datetime.now(timezone.utc))}


def _apply_transition(order_id: str, ctx: RequestContext, transition) -> dict:
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                row = _load_order(cur, ctx, order_id, lock=True)
                updated = transition(Order.from_row(row))
                fin = compute_order_financials(
                    updated.item_total, updated.discount_type, updated.discount_value, updated.gst_rate
                ).rounded()
                cur.execute(
                    """
                    UPDATE orders
                    SET status = %s, cancelled_reason = %s,
                        discount_amount = %s, gst_amount = %s, total_amount = %s,
                        updated_at = now()
                    WHERE company_id = %s AND id = %s
                    """,
                    (
                        updated.status,
                        updated.cancelled_reason,
                        fin.discount_amount,
                        fin.gst_amount,
                        fin.total_amount,
                        ctx.company_id,
                        updated.id,
                    ),
                )
                items = _load_items(cur, order_id)
    return {"order": _order_out(updated, row, items, datetime.now(timezone.utc))}


@router.post("/{order_id}/approve")
def approve(order_id: str, ctx: RequestContext = Depends(get_request_context)):
    return _apply_transition(order_id, ctx, lambda o: approve_order(o, ctx))


@router.post("/{order_id}/complete")
def complete(order_id: str, ctx: RequestContext = Depends(get_request_context)):
    return _apply_transition(order_id, ctx, lambda o: complete_order(o, ctx))


@router.post("/{order_id}/cancel")
def cancel(order_id: str, data: OrderCancelIn, ctx: RequestContext = Depends(get_request_context)):
    return _apply_transition(order_id, ctx, lambda o: cancel_order(o, data.reason, ctx))
