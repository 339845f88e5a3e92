"""
Load the append-only ledgers for the rows a request is about to mutate.

Write paths call these inside `conn.transaction()`: the owning rows are locked
`FOR UPDATE` (in id order) so the aggregate the helpers recompute cannot move
until the transaction commits.
"""
from __future__ import annotations

from typing import Iterable

from .payment_allocation import AllocationLedger
from .records import Invoice, PaymentAllocation, StockAdjustment, StockUnit
from .stock_ledger import StockLedger


def _ids(values: Iterable) -> list[str]:
    return sorted({str(x) for x in (values or []) if str(x or "").strip()})


def load_stock_ledger(cur, company_id: str, stock_unit_ids: Iterable, *, lock: bool = True) -> StockLedger:
    ids = _ids(stock_unit_ids)
    if not ids:
        return StockLedger()
    sql = """
        SELECT id, stock_type, sequence_number, warehouse_id, base_quantity, removed_at
        FROM stock_units
        WHERE company_id = %s AND id = ANY(%s::uuid[])
        ORDER BY id
    """
    if lock:
        sql += " FOR UPDATE"
    cur.execute(sql, (company_id, ids))
    units = [StockUnit.from_row(r) for r in (cur.fetchall() or [])]

    cur.execute(
        """
        SELECT id, stock_unit_id, quantity_adjusted, reason, adjustment_date, created_by, transfer_id
        FROM stock_unit_adjustments
        WHERE stock_unit_id = ANY(%s::uuid[])
        ORDER BY created_at ASC, id ASC
        """,
        ([u.id for u in units],),
    )
    adjustments = [StockAdjustment.from_row(r) for r in (cur.fetchall() or [])]
    return StockLedger(units, adjustments)


def insert_adjustments(cur, adjustments: Iterable[StockAdjustment]) -> None:
    for a in adjustments:
        cur.execute(
            """
            INSERT INTO stock_unit_adjustments
              (id, stock_unit_id, quantity_adjusted, reason, adjustment_date, created_by, transfer_id)
            VALUES
              (%s, %s, %s, %s, %s, %s, %s)
            """,
            (a.id, a.stock_unit_id, a.quantity_adjusted, a.reason, a.adjustment_date, a.created_by, a.transfer_id),
        )


def load_invoices(cur, company_id: str, invoice_ids: Iterable, *, lock: bool = True) -> dict[str, Invoice]:
    ids = _ids(invoice_ids)
    if not ids:
        return {}
    sql = """
        SELECT id, order_id, total_amount, due_date, status, cancelled_reason
        FROM invoices
        WHERE company_id = %s AND id = ANY(%s::uuid[])
        ORDER BY id
    """
    if lock:
        sql += " FOR UPDATE"
    cur.execute(sql, (company_id, ids))
    return {str(r["id"]): Invoice.from_row(r) for r in (cur.fetchall() or [])}


def load_allocation_ledger(cur, invoice_ids: Iterable) -> AllocationLedger:
    ids = _ids(invoice_ids)
    if not ids:
        return AllocationLedger()
    cur.execute(
        """
        SELECT id, payment_id, allocation_type, invoice_id, amount_applied
        FROM payment_allocations
        WHERE allocation_type = 'against_ref' AND invoice_id = ANY(%s::uuid[])
        ORDER BY created_at ASC, id ASC
        """,
        (ids,),
    )
    return AllocationLedger(PaymentAllocation.from_row(r) for r in (cur.fetchall() or []))
