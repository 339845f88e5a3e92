from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional

from ..db import get_conn, set_warehouse_context
from ..deps import get_request_context
from ..display_status import derive_invoice_status, status_label
from ..financials import format_currency
from ..ledger_queries import load_allocation_ledger, load_invoices
from ..lifecycle import cancel_invoice as cancel_invoice_record
from ..records import RequestContext

router = APIRouter(prefix="/invoices", tags=["accounting"])


class InvoiceCancelIn(BaseModel):
    reason: Optional[str] = None


def _invoice_out(inv, ledger, now: datetime) -> dict:
    paid = ledger.amount_paid(inv.id)
    outstanding = ledger.outstanding(inv)
    st = derive_invoice_status(inv, paid, now)
    return {
        "id": inv.id,
        "order_id": inv.order_id,
        "total_amount": inv.total_amount,
        "due_date": inv.due_date,
        "status": inv.status,
        "cancelled_reason": inv.cancelled_reason,
        "amount_paid": paid,
        "outstanding_amount": outstanding,
        "outstanding_display": format_currency(outstanding),
        "display_status": st,
        "status_label": status_label("invoice", st),
        "allocations": [
            {"id": a.id, "payment_id": a.payment_id, "amount_applied": a.amount_applied}
            for a in ledger.for_invoice(inv.id)
        ],
    }


@router.get("/{invoice_id}")
def get_invoice(invoice_id: str, ctx: RequestContext = Depends(get_request_context)):
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.cursor() as cur:
            invoices = load_invoices(cur, ctx.company_id, [invoice_id], lock=False)
            inv = next(iter(invoices.values()), None)
            if not inv:
                raise HTTPException(status_code=404, detail="invoice not found")
            ledger = load_allocation_ledger(cur, [inv.id])
    return {"invoice": _invoice_out(inv, ledger, datetime.now(timezone.utc))}


@router.post("/{invoice_id}/cancel")
def cancel_invoice(invoice_id: str, data: InvoiceCancelIn, ctx: RequestContext = Depends(get_request_context)):
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                invoices = load_invoices(cur, ctx.company_id, [invoice_id])
                inv = next(iter(invoices.values()), None)
                if not inv:
                    raise HTTPException(status_code=404, detail="invoice not found")
                ledger = load_allocation_ledger(cur, [inv.id])
                cancelled = cancel_invoice_record(inv, data.reason, ledger.amount_paid(inv.id), ctx)
                cur.execute(
                    """
                    UPDATE invoices
                    SET status = 'cancelled', cancelled_reason = %s
                    WHERE company_id = %s AND id = %s
                    """,
                    (cancelled.cancelled_reason, ctx.company_id, inv.id),
                )
    return {"invoice": _invoice_out(cancelled, ledger, datetime.now(timezone.utc))}
