from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from fabric_erp.app.records import RequestContext
from fabric_erp.app.routers import transfers as transfers_router


CTX = RequestContext(company_id="c1", warehouse_id="w1", user_id="u1")

TRANSFER_ROW = {
    "id": "t1",
    "from_warehouse_id": "w1",
    "to_warehouse_id": "w2",
    "status": "in_transit",
    "cancelled_reason": None,
}
LINE_ROWS = [{"id": "l1", "source_stock_unit_id": "src-1", "shipped_quantity": Decimal("5")}]


def _responses(transfer_row=None, units=None, adjustments=None):
    return [
        ("FROM goods_transfers", [transfer_row or TRANSFER_ROW]),
        ("FROM goods_transfer_lines", LINE_ROWS),
        ("FROM stock_units", units or []),
        ("FROM stock_unit_adjustments", adjustments or []),
    ]


def _src_unit():
    return {
        "id": "src-1",
        "stock_type": "roll",
        "sequence_number": 1,
        "warehouse_id": "w1",
        "base_quantity": Decimal("20"),
        "removed_at": None,
    }


def _shipment():
    return {
        "id": "adj-ship",
        "stock_unit_id": "src-1",
        "quantity_adjusted": Decimal("-5"),
        "reason": "Shipped via transfer t1",
        "adjustment_date": date(2026, 3, 1),
        "created_by": "u1",
        "transfer_id": "t1",
    }


def test_cancel_transfer_returns_stock_to_source(fake_db):
    cur = fake_db(transfers_router, _responses(units=[_src_unit()], adjustments=[_shipment()]))

    out = transfers_router.cancel(
        transfer_id="T1",
        data=transfers_router.TransferCancelIn(reason="Damaged in transit", cancelled_on=date(2026, 3, 4)),
        ctx=CTX,
    )

    assert out["transfer"]["status"] == "cancelled"
    assert out["transfer"]["status_label"] == "Cancelled"
    assert [a["quantity_adjusted"] for a in out["adjustments"]] == [Decimal("5")]

    inserts = cur.statements("INSERT INTO stock_unit_adjustments")
    assert len(inserts) == 1
    assert inserts[0][1] == "src-1"
    assert inserts[0][6] == "t1"
    assert cur.statements("UPDATE goods_transfers") == [("cancelled", "Damaged in transit", "c1", "t1")]


def test_cancel_transfer_without_reason_writes_nothing(fake_db):
    cur = fake_db(transfers_router, _responses(units=[_src_unit()], adjustments=[_shipment()]))
    with pytest.raises(HTTPException) as exc_info:
        transfers_router.cancel(transfer_id="t1", data=transfers_router.TransferCancelIn(reason=""), ctx=CTX)
    assert exc_info.value.status_code == 400
    assert cur.statements("INSERT INTO stock_unit_adjustments") == []
    assert cur.statements("UPDATE goods_transfers") == []


def test_complete_transfer_posts_receipt(fake_db):
    dest = {
        "id": "dst-1",
        "stock_type": "roll",
        "sequence_number": 2,
        "warehouse_id": "w2",
        "base_quantity": Decimal("0"),
        "removed_at": None,
    }
    cur = fake_db(transfers_router, _responses(units=[dest]))
    ctx = RequestContext(company_id="c1", warehouse_id="w2", user_id="u2")

    out = transfers_router.complete(
        transfer_id="t1",
        data=transfers_router.TransferCompleteIn(
            received_items=[
                transfers_router.ReceivedItemIn(
                    line_id="L1", destination_stock_unit_id="DST-1", received_quantity=Decimal("5")
                )
            ],
            completed_on=date(2026, 3, 6),
        ),
        ctx=ctx,
    )

    assert out["transfer"]["status"] == "completed"
    assert out["adjustments"][0]["stock_unit_id"] == "dst-1"
    assert out["adjustments"][0]["reason"] == "Received via transfer t1"
    assert cur.statements("UPDATE goods_transfers") == [("completed", None, "c1", "t1")]


def test_transfer_outside_callers_warehouses_is_hidden(fake_db):
    fake_db(transfers_router, _responses())
    ctx = RequestContext(company_id="c1", warehouse_id="w9", user_id="u1")
    with pytest.raises(HTTPException) as exc_info:
        transfers_router.cancel(transfer_id="t1", data=transfers_router.TransferCancelIn(reason="Nope"), ctx=ctx)
    assert exc_info.value.status_code == 404


def test_completed_transfer_conflicts(fake_db):
    row = dict(TRANSFER_ROW, status="completed")
    fake_db(transfers_router, _responses(transfer_row=row))
    with pytest.raises(HTTPException) as exc_info:
        transfers_router.cancel(transfer_id="t1", data=transfers_router.TransferCancelIn(reason="Too late"), ctx=CTX)
    assert exc_info.value.status_code == 409
