from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import Optional

from ..db import get_conn, set_warehouse_context
from ..deps import get_request_context
from ..display_status import derive_stock_unit_status, status_label
from ..ledger_queries import insert_adjustments, load_stock_ledger
from ..records import RequestContext, utc_today

router = APIRouter(prefix="/stock-units", tags=["inventory"])


class AdjustmentIn(BaseModel):
    quantity_adjusted: Decimal
    reason: Optional[str] = None
    adjustment_date: Optional[date] = None


def _adjustment_out(a) -> dict:
    return {
        "id": a.id,
        "quantity_adjusted": a.quantity_adjusted,
        "reason": a.reason,
        "adjustment_date": a.adjustment_date,
        "created_by": a.created_by,
        "transfer_id": a.transfer_id,
    }


def _unit_summary(ledger, stock_unit_id: str) -> dict:
    unit = ledger.unit(stock_unit_id)
    qty = ledger.quantity(unit.id)
    st = derive_stock_unit_status(unit, qty)
    return {
        "id": unit.id,
        "stock_type": unit.stock_type,
        "sequence_number": unit.sequence_number,
        "base_quantity": unit.base_quantity,
        "quantity": qty,
        "status": st,
        "status_label": status_label("stock_unit", st),
    }


@router.get("/{stock_unit_id}/adjustments")
def list_adjustments(stock_unit_id: str, ctx: RequestContext = Depends(get_request_context)):
    stock_unit_id = stock_unit_id.strip().lower()
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.cursor() as cur:
            ledger = load_stock_ledger(cur, ctx.company_id, [stock_unit_id], lock=False)
    if not ledger.has_unit(stock_unit_id):
        raise HTTPException(status_code=404, detail="stock unit not found")
    return {
        "stock_unit": _unit_summary(ledger, stock_unit_id),
        "adjustments": [_adjustment_out(a) for a in ledger.history(stock_unit_id)],
    }


@router.post("/{stock_unit_id}/adjustments")
def create_adjustment(stock_unit_id: str, data: AdjustmentIn, ctx: RequestContext = Depends(get_request_context)):
    stock_unit_id = stock_unit_id.strip().lower()
    with get_conn() as conn:
        set_warehouse_context(conn, ctx.company_id, ctx.warehouse_id)
        with conn.transaction():
            with conn.cursor() as cur:
                ledger = load_stock_ledger(cur, ctx.company_id, [stock_unit_id])
                if not ledger.has_unit(stock_unit_id):
                    raise HTTPException(status_code=404, detail="stock unit not found")
                unit = ledger.unit(stock_unit_id)
                if unit.warehouse_id and ctx.warehouse_id and unit.warehouse_id != ctx.warehouse_id:
                    raise HTTPException(status_code=404, detail="stock unit not found")
                adj = ledger.record_adjustment(
                    unit,
                    data.quantity_adjusted,
                    data.reason,
                    data.adjustment_date or utc_today(),
                    ctx,
                )
                insert_adjustments(cur, [adj])
                return {"adjustment": _adjustment_out(adj), "stock_unit": _unit_summary(ledger, unit.id)}
