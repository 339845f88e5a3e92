"""
Append-only stock adjustment ledger.

A stock unit's quantity is never stored as a counter: it is the base quantity
recorded at goods inward plus every adjustment ever posted against it (wastage,
found stock, transfer receipts and reversals). Adjustments are immutable.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from .errors import ValidationError
from .logs import json_log
from .records import RequestContext, StockAdjustment, StockUnit, new_id


REASON_MIN = 3
REASON_MAX = 500
# Matches numeric(18,3) on stock_unit_adjustments.quantity_adjusted.
QTY_Q = Decimal("0.001")
WHOLE_UNIT_STOCK_TYPES = {"batch", "piece"}


@dataclass(frozen=True)
class AdjustmentEntry:
    stock_unit_id: str
    quantity_adjusted: Decimal
    reason: str
    adjustment_date: date
    transfer_id: Optional[str] = None


def normalize_reason(reason: Optional[str]) -> str:
    r = (reason or "").strip()
    if not r:
        raise ValidationError("reason is required")
    if len(r) < REASON_MIN:
        raise ValidationError(f"reason must be at least {REASON_MIN} characters")
    if len(r) > REASON_MAX:
        raise ValidationError(f"reason must not exceed {REASON_MAX} characters")
    return r


def parse_quantity(qty, field: str = "quantity_adjusted") -> Decimal:
    try:
        q = Decimal(str(qty))
        rounded = q.quantize(QTY_Q) if q.is_finite() else None
    except InvalidOperation:
        raise ValidationError(f"{field} is invalid")
    if rounded is None:
        raise ValidationError(f"{field} is invalid")
    if q != rounded:
        raise ValidationError(f"{field} must have at most 3 decimal places")
    return rounded


def _check_quantity(unit: StockUnit, qty: Decimal) -> Decimal:
    q = parse_quantity(qty)
    if q == 0:
        raise ValidationError("quantity_adjusted must not be zero")
    if unit.stock_type in WHOLE_UNIT_STOCK_TYPES and q != q.to_integral_value():
        raise ValidationError(f"quantity must be a whole number for {unit.stock_type} stock units")
    return q


class StockLedger:
    def __init__(self, units: Iterable[StockUnit] = (), adjustments: Iterable[StockAdjustment] = ()):
        self._units: dict[str, StockUnit] = {}
        self._by_unit: dict[str, list[StockAdjustment]] = {}
        for u in units:
            self.register(u)
        for a in adjustments:
            if a.stock_unit_id not in self._units:
                raise ValueError(f"adjustment {a.id} references unknown stock unit {a.stock_unit_id}")
            self._by_unit[a.stock_unit_id].append(a)

    def register(self, unit: StockUnit) -> StockUnit:
        existing = self._units.get(unit.id)
        if existing is not None:
            return existing
        self._units[unit.id] = unit
        self._by_unit[unit.id] = []
        return unit

    def has_unit(self, stock_unit_id: str) -> bool:
        return str(stock_unit_id) in self._units

    def unit(self, stock_unit_id: str) -> StockUnit:
        u = self._units.get(str(stock_unit_id))
        if u is None:
            raise ValidationError(f"stock unit {stock_unit_id} not found")
        return u

    def quantity(self, stock_unit_id: str) -> Decimal:
        unit = self.unit(stock_unit_id)
        return unit.base_quantity + sum(
            (a.quantity_adjusted for a in self._by_unit[unit.id]),
            Decimal("0"),
        )

    def history(self, stock_unit_id: str) -> list[StockAdjustment]:
        unit = self.unit(stock_unit_id)
        rows = list(enumerate(self._by_unit[unit.id]))
        # Newest first; ties keep reverse insertion order.
        rows.sort(key=lambda x: (x[1].adjustment_date, x[0]), reverse=True)
        return [a for _, a in rows]

    def record_adjustment(
        self,
        stock_unit: StockUnit,
        quantity_adjusted: Decimal,
        reason: Optional[str],
        adjustment_date: date,
        ctx: RequestContext,
        transfer_id: Optional[str] = None,
    ) -> StockAdjustment:
        self.register(stock_unit)
        entry = AdjustmentEntry(
            stock_unit_id=stock_unit.id,
            quantity_adjusted=quantity_adjusted,
            reason=reason or "",
            adjustment_date=adjustment_date,
            transfer_id=transfer_id,
        )
        return self.record_many([entry], ctx)[0]

    def record_many(self, entries: Iterable[AdjustmentEntry], ctx: RequestContext) -> list[StockAdjustment]:
        """
        Validate every entry against running totals, then append all of them.
        Nothing is appended if any entry fails.
        """
        staged: list[StockAdjustment] = []
        running: dict[str, Decimal] = {}
        try:
            for e in entries:
                unit = self.unit(e.stock_unit_id)
                qty = _check_quantity(unit, e.quantity_adjusted)
                reason = normalize_reason(e.reason)
                current = running.get(unit.id)
                if current is None:
                    current = self.quantity(unit.id)
                new_qty = current + qty
                if new_qty < 0:
                    raise ValidationError(
                        f"adjustment would make stock unit quantity negative (current {current}, adjusted {qty})"
                    )
                running[unit.id] = new_qty
                staged.append(
                    StockAdjustment(
                        id=new_id(),
                        stock_unit_id=unit.id,
                        quantity_adjusted=qty,
                        reason=reason,
                        adjustment_date=e.adjustment_date,
                        created_by=ctx.user_id,
                        transfer_id=e.transfer_id,
                    )
                )
        except ValidationError as exc:
            json_log(
                "warn",
                "stock.adjustment.rejected",
                warehouse_id=ctx.warehouse_id,
                user_id=ctx.user_id,
                error=str(exc.detail),
            )
            raise

        for a in staged:
            self._by_unit[a.stock_unit_id].append(a)
            json_log(
                "info",
                "stock.adjusted",
                stock_unit_id=a.stock_unit_id,
                adjustment_id=a.id,
                quantity_adjusted=a.quantity_adjusted,
                quantity=self.quantity(a.stock_unit_id),
                transfer_id=a.transfer_id,
                warehouse_id=ctx.warehouse_id,
                user_id=ctx.user_id,
            )
        return staged
