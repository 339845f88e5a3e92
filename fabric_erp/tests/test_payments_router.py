from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from fabric_erp.app.records import RequestContext
from fabric_erp.app.routers import payments as payments_router


CTX = RequestContext(company_id="c1", warehouse_id="w1", user_id="u1")


def _responses(prior_paid="400.00"):
    return [
        (
            "FROM invoices",
            [
                {
                    "id": "inv-1",
                    "order_id": None,
                    "total_amount": Decimal("1000.00"),
                    "due_date": date.today() + timedelta(days=30),
                    "status": "open",
                    "cancelled_reason": None,
                }
            ],
        ),
        (
            "FROM payment_allocations",
            [
                {
                    "id": "alloc-0",
                    "payment_id": "pay-0",
                    "allocation_type": "against_ref",
                    "invoice_id": "inv-1",
                    "amount_applied": Decimal(prior_paid),
                }
            ],
        ),
    ]


def _payment_in(amount, applied):
    return payments_router.PaymentIn(
        mode="UPI",
        amount=Decimal(amount),
        allocations=[
            payments_router.AllocationIn(
                allocation_type="against_ref",
                invoice_id="INV-1",
                amount_applied=Decimal(applied),
            )
        ],
    )


def test_create_payment_settles_invoice_and_books_remainder(fake_db):
    cur = fake_db(payments_router, _responses())

    out = payments_router.create_payment(data=_payment_in("1000", "600"), ctx=CTX)

    assert [(a["allocation_type"], a["amount_applied"]) for a in out["allocations"]] == [
        ("against_ref", Decimal("600.00")),
        ("unallocated", Decimal("400.00")),
    ]
    assert out["invoices"]["inv-1"]["outstanding"] == Decimal("0.00")
    assert out["invoices"]["inv-1"]["status"] == "settled"

    payments = cur.statements("INSERT INTO payments")
    assert len(payments) == 1
    assert payments[0][3] == "upi"
    assert payments[0][4] == Decimal("1000.00")
    assert len(cur.statements("INSERT INTO payment_allocations")) == 2

    locks = [sql for sql, _ in cur.executed if "FROM invoices" in sql]
    assert "FOR UPDATE" in locks[0]


def test_partially_paid_invoice_status(fake_db):
    fake_db(payments_router, _responses(prior_paid="100.00"))
    out = payments_router.create_payment(data=_payment_in("300", "300"), ctx=CTX)
    assert out["invoices"]["inv-1"]["amount_paid"] == Decimal("400.00")
    assert out["invoices"]["inv-1"]["status"] == "partially_paid"
    assert out["invoices"]["inv-1"]["status_label"] == "Partially Paid"


def test_over_allocation_writes_nothing(fake_db):
    cur = fake_db(payments_router, _responses())
    with pytest.raises(HTTPException) as exc_info:
        payments_router.create_payment(data=_payment_in("1000", "700"), ctx=CTX)
    assert exc_info.value.status_code == 409
    assert cur.statements("INSERT INTO payments") == []
    assert cur.statements("INSERT INTO payment_allocations") == []
