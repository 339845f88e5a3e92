from decimal import Decimal

import pytest
from fastapi import HTTPException

from fabric_erp.app.payment_guards import assert_not_overallocated, assert_within_payment


def test_assert_not_overallocated_allows_exact_balance():
    assert_not_overallocated(outstanding=Decimal("250.00"), amount_applied=Decimal("250.00"))


def test_assert_not_overallocated_rejects_one_paisa_over():
    with pytest.raises(HTTPException) as exc_info:
        assert_not_overallocated(
            outstanding=Decimal("250.00"),
            amount_applied=Decimal("250.01"),
            detail="allocation exceeds outstanding",
        )
    exc = exc_info.value
    assert exc.status_code == 409
    assert "allocation exceeds outstanding" in str(exc.detail)


def test_assert_within_payment():
    assert_within_payment(payment_amount=Decimal("100.00"), requested_total=Decimal("100.00"))
    with pytest.raises(HTTPException) as exc_info:
        assert_within_payment(payment_amount=Decimal("100.00"), requested_total=Decimal("100.01"))
    assert exc_info.value.status_code == 400
