"""
Allocate a payment across invoices without over-allocating any of them.

Committed allocations are an append-only arena indexed by invoice; an invoice's
amount paid and outstanding balance are always recomputed from it, never cached.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping

from .errors import ConflictError, ValidationError
from .financials import round_currency
from .logs import json_log
from .payment_guards import assert_not_overallocated, assert_within_payment
from .records import AllocationRequest, Invoice, Payment, PaymentAllocation, RequestContext, new_id


class AllocationLedger:
    def __init__(self, allocations: Iterable[PaymentAllocation] = ()):
        self._by_invoice: dict[str, list[PaymentAllocation]] = {}
        self._unallocated: list[PaymentAllocation] = []
        for a in allocations:
            self.append(a)

    def append(self, a: PaymentAllocation) -> None:
        if a.allocation_type == "against_ref" and a.invoice_id:
            self._by_invoice.setdefault(a.invoice_id, []).append(a)
        else:
            self._unallocated.append(a)

    def for_invoice(self, invoice_id: str) -> list[PaymentAllocation]:
        return list(self._by_invoice.get(str(invoice_id), []))

    def unallocated(self) -> list[PaymentAllocation]:
        return list(self._unallocated)

    def amount_paid(self, invoice_id: str) -> Decimal:
        return sum((a.amount_applied for a in self._by_invoice.get(str(invoice_id), [])), Decimal("0"))

    def outstanding(self, invoice: Invoice) -> Decimal:
        return round_currency(invoice.total_amount) - self.amount_paid(invoice.id)


def _normalize_request(req: AllocationRequest) -> AllocationRequest:
    if req.allocation_type not in {"against_ref", "unallocated"}:
        raise ValidationError(f"invalid allocation_type: {req.allocation_type}")
    amount = round_currency(req.amount_applied)
    if amount <= 0:
        raise ValidationError("amount_applied must be > 0")
    if req.allocation_type == "against_ref" and not req.invoice_id:
        raise ValidationError("invoice is required for against_ref allocation")
    if req.allocation_type == "unallocated" and req.invoice_id:
        raise ValidationError("unallocated allocation must not reference an invoice")
    return AllocationRequest(
        allocation_type=req.allocation_type,
        amount_applied=amount,
        invoice_id=str(req.invoice_id) if req.invoice_id else None,
    )


def allocate(
    payment: Payment,
    requested: Iterable[AllocationRequest],
    invoices: Mapping[str, Invoice],
    ledger: AllocationLedger,
    ctx: RequestContext,
) -> list[PaymentAllocation]:
    """
    All-or-nothing: every against_ref entry is checked against the invoice's
    outstanding balance as recomputed from `ledger` (plus earlier entries of this
    batch) before anything is appended. Whatever part of the payment is not
    requested is recorded as a single `unallocated` on-account credit.
    """
    payment_amount = round_currency(payment.amount)
    if payment_amount <= 0:
        raise ValidationError("payment amount must be > 0")

    reqs = [_normalize_request(r) for r in requested]
    requested_total = sum((r.amount_applied for r in reqs), Decimal("0"))
    assert_within_payment(payment_amount, requested_total)

    staged: list[PaymentAllocation] = []
    batch_applied: dict[str, Decimal] = {}
    try:
        for r in reqs:
            if r.allocation_type == "against_ref":
                inv = invoices.get(r.invoice_id)
                if inv is None:
                    raise ValidationError(f"invoice {r.invoice_id} not found")
                if inv.status == "cancelled":
                    raise ConflictError(f"invoice {inv.id} is cancelled")
                outstanding = ledger.outstanding(inv) - batch_applied.get(inv.id, Decimal("0"))
                assert_not_overallocated(
                    outstanding,
                    r.amount_applied,
                    detail=f"allocation of {r.amount_applied} exceeds outstanding balance {outstanding} of invoice {inv.id}",
                )
                batch_applied[inv.id] = batch_applied.get(inv.id, Decimal("0")) + r.amount_applied
            staged.append(
                PaymentAllocation(
                    id=new_id(),
                    payment_id=payment.id,
                    allocation_type=r.allocation_type,
                    invoice_id=r.invoice_id,
                    amount_applied=r.amount_applied,
                )
            )
    except ConflictError as exc:
        json_log(
            "warn",
            "payment.allocation.conflict",
            payment_id=payment.id,
            warehouse_id=ctx.warehouse_id,
            user_id=ctx.user_id,
            error=str(exc.detail),
        )
        raise

    remainder = payment_amount - requested_total
    if remainder > 0:
        staged.append(
            PaymentAllocation(
                id=new_id(),
                payment_id=payment.id,
                allocation_type="unallocated",
                invoice_id=None,
                amount_applied=remainder,
            )
        )

    for a in staged:
        ledger.append(a)
    json_log(
        "info",
        "payment.allocated",
        payment_id=payment.id,
        amount=payment_amount,
        against_ref=sum((a.amount_applied for a in staged if a.allocation_type == "against_ref"), Decimal("0")),
        unallocated=remainder,
        invoices=sorted(batch_applied),
        warehouse_id=ctx.warehouse_id,
        user_id=ctx.user_id,
    )
    return staged
