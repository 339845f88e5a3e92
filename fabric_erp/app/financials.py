from __future__ import annotations

from dataclasses import dataclass, fields, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from .config import settings
from .errors import ValidationError


MONEY_Q = Decimal("0.01")
HUNDRED = Decimal("100")


def _d(v) -> Decimal:
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v if v is not None else 0))


def round_currency(amount) -> Decimal:
    # Money is persisted/displayed at 2dp; everything upstream keeps full precision.
    return _d(amount).quantize(MONEY_Q, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderFinancials:
    item_total: Decimal
    discount_amount: Decimal
    discounted_total: Decimal
    gst_amount: Decimal
    total_amount: Decimal

    def rounded(self) -> "OrderFinancials":
        return replace(self, **{f.name: round_currency(getattr(self, f.name)) for f in fields(self)})

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def compute_order_financials(
    item_total,
    discount_type: str,
    discount_value,
    gst_rate: Optional[Decimal] = None,
) -> OrderFinancials:
    """
    (item_total - discount) + GST, with GST charged on the discounted amount.

    Out-of-range discounts are propagated as-is; use `discount_flags` to surface them.
    """
    item_total = _d(item_total)
    discount_value = _d(discount_value)
    gst_rate = _d(settings.default_gst_rate if gst_rate is None else gst_rate)

    if discount_type == "none":
        discount_amount = Decimal("0")
    elif discount_type == "percentage":
        discount_amount = item_total * discount_value / HUNDRED
    elif discount_type == "flat_amount":
        discount_amount = discount_value
    else:
        raise ValidationError(f"invalid discount_type: {discount_type}")

    discounted_total = item_total - discount_amount
    gst_amount = discounted_total * gst_rate / HUNDRED
    return OrderFinancials(
        item_total=item_total,
        discount_amount=discount_amount,
        discounted_total=discounted_total,
        gst_amount=gst_amount,
        total_amount=discounted_total + gst_amount,
    )


def discount_flags(item_total, discount_type: str, discount_value) -> list[str]:
    item_total = _d(item_total)
    discount_value = _d(discount_value)
    flags: list[str] = []
    if discount_type == "percentage" and not (Decimal("0") <= discount_value <= HUNDRED):
        flags.append("percentage_out_of_range")
    if discount_type == "flat_amount" and discount_value > item_total:
        flags.append("discount_exceeds_item_total")
    return flags


def _group_indian(whole: str) -> str:
    # 1234567 -> 12,34,567 (last three digits, then pairs).
    if len(whole) <= 3:
        return whole
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount) -> str:
    amt = round_currency(amount)
    sign = "-" if amt < 0 else ""
    whole, _, frac = f"{abs(amt):.2f}".partition(".")
    frac = frac.rstrip("0")
    out = _group_indian(whole)
    return f"{sign}{out}.{frac}" if frac else f"{sign}{out}"


def completion_percentage(lines: Iterable[dict], fulfilled_field: str = "dispatched_quantity") -> int:
    """
    Fulfilled vs required quantity across order lines, as a whole percentage.
    Sales orders track `dispatched_quantity`, purchase orders `received_quantity`.
    """
    required = Decimal("0")
    fulfilled = Decimal("0")
    for ln in lines:
        required += _d(ln.get("required_quantity"))
        fulfilled += _d(ln.get(fulfilled_field))
    if required <= 0:
        return 0
    return int((fulfilled / required * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
