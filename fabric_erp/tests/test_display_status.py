from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import get_args

import pytest

from fabric_erp.app.display_status import (
    derive_invoice_status,
    derive_order_status,
    derive_stock_unit_status,
    is_past_due,
    status_label,
)
from fabric_erp.app.records import Invoice, Order, StockUnit
from fabric_erp.app.validation import (
    InvoiceDisplayStatus,
    OrderDisplayStatus,
    StockUnitStatus,
    TransferStatus,
)


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _invoice(**kw):
    base = {"id": "inv-1", "total_amount": Decimal("1000.00")}
    base.update(kw)
    return Invoice(**base)


def test_overdue_takes_precedence_over_partially_paid():
    inv = _invoice(due_date=NOW - timedelta(days=1))
    assert derive_invoice_status(inv, Decimal("400.00"), NOW) == "overdue"


def test_invoice_status_precedence():
    past = NOW - timedelta(days=1)
    future = NOW + timedelta(days=1)
    assert derive_invoice_status(_invoice(status="cancelled", due_date=past), Decimal("0"), NOW) == "cancelled"
    assert derive_invoice_status(_invoice(due_date=past), Decimal("1000.00"), NOW) == "settled"
    assert derive_invoice_status(_invoice(due_date=future), Decimal("400.00"), NOW) == "partially_paid"
    assert derive_invoice_status(_invoice(due_date=future), Decimal("0"), NOW) == "open"
    assert derive_invoice_status(_invoice(due_date=None), Decimal("0"), NOW) == "open"


def test_due_datetime_boundary_is_strict():
    assert is_past_due(NOW, NOW) is False
    assert is_past_due(NOW, NOW + timedelta(microseconds=1)) is True


def test_calendar_due_date_compares_utc_days():
    due = date(2026, 3, 1)
    assert is_past_due(due, datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)) is False
    assert is_past_due(due, datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)) is True
    # 01:00 in UTC+05:30 is still the 1st in UTC.
    ist = timezone(timedelta(hours=5, minutes=30))
    assert is_past_due(due, datetime(2026, 3, 2, 1, 0, tzinfo=ist)) is False


def test_naive_timestamps_are_utc():
    assert is_past_due(datetime(2026, 3, 10, 11, 0), NOW) is True
    assert is_past_due(datetime(2026, 3, 10, 13, 0), NOW) is False


def test_is_past_due_rejects_strings():
    with pytest.raises(TypeError):
        is_past_due("2026-03-01", NOW)


def test_order_status():
    past = NOW - timedelta(days=2)
    assert derive_order_status(Order(id="o1", status="in_progress", item_total=Decimal("1"), due_date=past), NOW) == "overdue"
    assert derive_order_status(Order(id="o1", status="in_progress", item_total=Decimal("1")), NOW) == "in_progress"
    assert (
        derive_order_status(Order(id="o1", status="approval_pending", item_total=Decimal("1"), due_date=past), NOW)
        == "approval_pending"
    )
    assert derive_order_status(Order(id="o1", status="completed", item_total=Decimal("1"), due_date=past), NOW) == "completed"
    assert derive_order_status(Order(id="o1", status="cancelled", item_total=Decimal("1"), due_date=past), NOW) == "cancelled"
    with pytest.raises(ValueError):
        derive_order_status(Order(id="o1", status="draft", item_total=Decimal("1")), NOW)


def test_stock_unit_status():
    unit = StockUnit(id="su-1", stock_type="roll", base_quantity=Decimal("50"))
    assert derive_stock_unit_status(unit, Decimal("50")) == "full"
    assert derive_stock_unit_status(unit, Decimal("12.5")) == "partial"
    assert derive_stock_unit_status(unit, Decimal("0")) == "empty"
    removed = StockUnit(id="su-2", stock_type="roll", base_quantity=Decimal("50"), removed=True)
    assert derive_stock_unit_status(removed, Decimal("50")) == "removed"


def test_every_status_has_a_label():
    for kind, literal in (
        ("order", OrderDisplayStatus),
        ("invoice", InvoiceDisplayStatus),
        ("transfer", TransferStatus),
        ("stock_unit", StockUnitStatus),
    ):
        for st in get_args(literal):
            assert status_label(kind, st)
    assert status_label("invoice", "partially_paid") == "Partially Paid"


def test_status_label_rejects_unknown_values():
    with pytest.raises(ValueError):
        status_label("invoice", "draft")
    with pytest.raises(ValueError):
        status_label("shipment", "open")
