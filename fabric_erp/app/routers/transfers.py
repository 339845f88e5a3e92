from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..db import get_conn, set_warehouse_context
from ..deps import get_request_context
from ..display_status import status_label
from ..ledger_queries import insert_adjustments, load_stock_ledger
from ..records import ReceivedItem, RequestContext, Transfer, utc_today
from ..transfers import cancel_transfer, complete_transfer

router = APIRouter(prefix="/transfers", tags=["inventory"])


class ReceivedItemIn(BaseModel):
    line_id: str
    destination_stock_unit_id: str
    received_quantity: Decimal


class TransferCompleteIn(BaseModel):
    received_items: List[ReceivedItemIn] = []
    completed_on: Optional[date] = None


class TransferCancelIn(BaseModel):
    reason: Optional[str] = None
    cancelled_on: Optional[date] = None


def _norm_id(v: str) -> str:
    return (v or "").strip().lower()


def _load_transfer(cur, ctx: RequestContext, transfer_id: str) -> Transfer:
    cur.execute(
        """
        SELECT id, from_warehouse_id, to_warehouse_id, status, cancelled_reason
        FROM goods_transfers
        WHERE company_id = %s AND id = %s
        FOR UPDATE
        """,
        (ctx.company_id, transfer_id),
    )
    row = cur.fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="transfer not found")
    if ctx.warehouse_id and ctx.warehouse_id not in {str(row["from_warehouse_id"]), str(row["to_warehouse_id"])}:
        raise HTTPException(status_code=404, detail="transfer not found")
    cur.execute(
        """
        SELECT id, source_stock_unit_id, shipped_quantity
        FROM goods_transfer_lines
        WHERE transfer_id = %s
        ORDER BY id
        """,
        (transfer_id,),
    )
    return Transfer.from_row(row, cur.fetchall() or [])


def _save_status(cur, ctx: RequestContext, transfer: Transfer) -> None:
    cur.execute(
        """
        UPDATE goods_transfers
        SET status = %s, cancelled_reason = %s, updated_at = now()
        WHERE company_id = %s AND id = %s
        """,
        (transfer.status, transfer.cancelled_reason, ctx.company_id, transfer.id),
    )


def _outcome_out(outcome) -> dict:
    t = outcome.transfer
    return {
        "transfer": {
            "id": t.id,
            "from_warehouse_id": t.from_warehouse_id,
            "to_warehouse_id": t.to_warehouse_id,
            "status": t.status,
            "status_label": status_label("transfer", t.status),
            "cancelled_reason": t.cancelled_reason,
        },
        "adjustments": [
            {
                "id": a.id,
                "stock_unit_id": a.stock_unit_id,
                "quantity_adjusted": a.quantity_adjusted,
                "reason": a.reason,
                "adjustment_date": a.adjustment_date,
            }
            for a in outcome.adjustments
        ],
    }


@router.post("/{transfer_id}/complete")
def complete(transfer_id: str, data: TransferCompleteIn, ctx: RequestContext = Depends(get_request_context)):
    transfer_id = _norm_id(transfer_id)
    items = [
        ReceivedItem(
            line_id=_norm_id(i.line_id),
            destination_stock_unit_id=_norm_id(i.destination_stock_unit_id),
            received_quantity=i.received_quantity,
        )
        for i in data.received_items
    ]
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                transfer = _load_transfer(cur, ctx, transfer_id)
                ledger = load_stock_ledger(cur, ctx.company_id, [i.destination_stock_unit_id for i in items])
                outcome = complete_transfer(transfer, items, ledger, ctx, data.completed_on or utc_today())
                insert_adjustments(cur, outcome.adjustments)
                _save_status(cur, ctx, outcome.transfer)
    return _outcome_out(outcome)


@router.post("/{transfer_id}/cancel")
def cancel(transfer_id: str, data: TransferCancelIn, ctx: RequestContext = Depends(get_request_context)):
    transfer_id = _norm_id(transfer_id)
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                transfer = _load_transfer(cur, ctx, transfer_id)
                ledger = load_stock_ledger(cur, ctx.company_id, [ln.source_stock_unit_id for ln in transfer.lines])
                outcome = cancel_transfer(transfer, data.reason, ledger, ctx, data.cancelled_on or utc_today())
                insert_adjustments(cur, outcome.adjustments)
                _save_status(cur, ctx, outcome.transfer)
    return _outcome_out(outcome)
