from decimal import Decimal

from .errors import ConflictError, ValidationError


def assert_within_payment(payment_amount: Decimal, requested_total: Decimal, detail: str = "allocations exceed payment amount"):
    if requested_total > payment_amount:
        raise ValidationError(detail)


def assert_not_overallocated(
    outstanding: Decimal,
    amount_applied: Decimal,
    detail: str = "allocation exceeds invoice outstanding balance",
):
    # Both sides are already at 2dp, so the comparison is exact (no epsilon).
    if amount_applied > outstanding:
        raise ConflictError(detail)
