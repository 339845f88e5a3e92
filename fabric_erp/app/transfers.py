"""
Goods transfer lifecycle: in_transit -> completed | cancelled.

The shipment's negative adjustment at the source is posted when the transfer is
created; completing posts receipts at the destination, cancelling puts the
shipped quantity back on the source unit.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .errors import ConflictError, ValidationError
from .lifecycle import assert_mutable, require_cancel_reason
from .logs import json_log
from .records import ReceivedItem, RequestContext, StockAdjustment, Transfer
from .stock_ledger import REASON_MAX, AdjustmentEntry, StockLedger, parse_quantity


# The transfer id is carried on the adjustment itself.
CANCELLED_PREFIX = "Transfer cancelled: "


@dataclass(frozen=True)
class TransferOutcome:
    transfer: Transfer
    adjustments: list[StockAdjustment]


def _assert_in_transit(transfer: Transfer) -> None:
    assert_mutable("transfer", transfer.status)
    if transfer.status != "in_transit":
        raise ConflictError(f"transfer is {transfer.status}; expected in_transit")


def complete_transfer(
    transfer: Transfer,
    received_items: Iterable[ReceivedItem],
    ledger: StockLedger,
    ctx: RequestContext,
    on_date: date,
) -> TransferOutcome:
    _assert_in_transit(transfer)
    lines = {ln.line_id: ln for ln in transfer.lines}

    received_by_line: dict[str, Decimal] = {}
    entries: list[AdjustmentEntry] = []
    for item in received_items:
        ln = lines.get(str(item.line_id))
        if ln is None:
            raise ValidationError(f"line {item.line_id} is not part of transfer {transfer.id}")
        qty = parse_quantity(item.received_quantity, "received_quantity")
        if qty < 0:
            raise ValidationError("received quantity must be >= 0")
        total = received_by_line.get(ln.line_id, Decimal("0")) + qty
        if total > ln.shipped_quantity:
            raise ValidationError(
                f"received quantity {total} exceeds shipped quantity {ln.shipped_quantity} for line {ln.line_id}"
            )
        received_by_line[ln.line_id] = total
        if qty == 0:
            continue
        dest = ledger.unit(item.destination_stock_unit_id)
        if transfer.to_warehouse_id and dest.warehouse_id and dest.warehouse_id != transfer.to_warehouse_id:
            raise ValidationError(f"stock unit {dest.id} is not in the destination warehouse")
        entries.append(
            AdjustmentEntry(
                stock_unit_id=dest.id,
                quantity_adjusted=qty,
                reason=f"Received via transfer {transfer.id}",
                adjustment_date=on_date,
                transfer_id=transfer.id,
            )
        )

    posted = ledger.record_many(entries, ctx)
    done = replace(transfer, status="completed")
    json_log(
        "info",
        "transfer.completed",
        transfer_id=transfer.id,
        lines_received=len(received_by_line),
        adjustments=len(posted),
        warehouse_id=ctx.warehouse_id,
        user_id=ctx.user_id,
    )
    return TransferOutcome(transfer=done, adjustments=posted)


def cancel_transfer(
    transfer: Transfer,
    reason: Optional[str],
    ledger: StockLedger,
    ctx: RequestContext,
    on_date: date,
) -> TransferOutcome:
    _assert_in_transit(transfer)
    r = require_cancel_reason(reason, max_length=REASON_MAX - len(CANCELLED_PREFIX))

    entries = [
        AdjustmentEntry(
            stock_unit_id=ln.source_stock_unit_id,
            quantity_adjusted=ln.shipped_quantity,
            reason=f"{CANCELLED_PREFIX}{r}",
            adjustment_date=on_date,
            transfer_id=transfer.id,
        )
        for ln in transfer.lines
        if ln.shipped_quantity > 0
    ]
    posted = ledger.record_many(entries, ctx)
    cancelled = replace(transfer, status="cancelled", cancelled_reason=r)
    json_log(
        "info",
        "transfer.cancelled",
        transfer_id=transfer.id,
        adjustments=len(posted),
        warehouse_id=ctx.warehouse_id,
        user_id=ctx.user_id,
    )
    return TransferOutcome(transfer=cancelled, adjustments=posted)
