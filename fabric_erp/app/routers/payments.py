from fastapi import APIRouter, Depends
from pydantic import BaseModel
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from ..db import get_conn, set_warehouse_context
from ..deps import get_request_context
from ..display_status import derive_invoice_status, status_label
from ..financials import round_currency
from ..ledger_queries import load_allocation_ledger, load_invoices
from ..payment_allocation import allocate
from ..records import AllocationRequest, Payment, RequestContext, new_id, utc_today
from ..validation import AllocationTypeIn, PaymentModeIn

router = APIRouter(prefix="/payments", tags=["accounting"])


class AllocationIn(BaseModel):
    allocation_type: AllocationTypeIn
    invoice_id: Optional[str] = None
    amount_applied: Decimal


class PaymentIn(BaseModel):
    mode: PaymentModeIn
    amount: Decimal
    payment_date: Optional[date] = None
    allocations: List[AllocationIn] = []


@router.post("")
def create_payment(data: PaymentIn, ctx: RequestContext = Depends(get_request_context)):
    payment = Payment(
        id=new_id(),
        mode=data.mode,
        amount=data.amount,
        payment_date=data.payment_date or utc_today(),
    )
    requested = [
        AllocationRequest(
            allocation_type=a.allocation_type,
            invoice_id=(a.invoice_id or "").strip().lower() or None,
            amount_applied=a.amount_applied,
        )
        for a in data.allocations
    ]
    invoice_ids = [r.invoice_id for r in requested if r.invoice_id]

    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                # Lock first, then read the ledger: outstanding is recomputed under the lock.
                invoices = load_invoices(cur, ctx.company_id, invoice_ids)
                ledger = load_allocation_ledger(cur, invoices.keys())
                created = allocate(payment, requested, invoices, ledger, ctx)

                cur.execute(
                    """
                    INSERT INTO payments (id, company_id, warehouse_id, mode, amount, payment_date, created_by)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        payment.id,
                        ctx.company_id,
                        ctx.warehouse_id,
                        payment.mode,
                        round_currency(payment.amount),
                        payment.payment_date,
                        ctx.user_id,
                    ),
                )
                for a in created:
                    cur.execute(
                        """
                        INSERT INTO payment_allocations (id, payment_id, allocation_type, invoice_id, amount_applied)
                        VALUES (%s, %s, %s, %s, %s)
                        """,
                        (a.id, a.payment_id, a.allocation_type, a.invoice_id, a.amount_applied),
                    )

    now = datetime.now(timezone.utc)
    invoice_status = {}
    for inv_id, inv in invoices.items():
        st = derive_invoice_status(inv, ledger.amount_paid(inv_id), now)
        invoice_status[inv_id] = {
            "amount_paid": ledger.amount_paid(inv_id),
            "outstanding": ledger.outstanding(inv),
            "status": st,
            "status_label": status_label("invoice", st),
        }
    return {
        "id": payment.id,
        "allocations": [
            {
                "id": a.id,
                "allocation_type": a.allocation_type,
                "invoice_id": a.invoice_id,
                "amount_applied": a.amount_applied,
            }
            for a in created
        ],
        "invoices": invoice_status,
    }
