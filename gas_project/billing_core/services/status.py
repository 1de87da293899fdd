"""
Bill payment status.

Status is always derived from the bill's figures and its payments on read;
nothing here touches the database, so the result depends only on the
arguments.
"""
from dataclasses import dataclass
from typing import Iterable

NOT_PAID = "NOT_PAID"
PARTIALLY_PAID = "PARTIALLY_PAID"
PAID = "PAID"

STATUS_CHOICES = [
    (NOT_PAID, "Not paid"),
    (PARTIALLY_PAID, "Partially paid"),
    (PAID, "Paid"),
]


@dataclass(frozen=True)
class BillTotals:
    total: int
    paid: int
    remaining: int
    status: str


def derive_status(last_month_remaining: int, current_month_bill: int,
                  payment_amounts: Iterable[int]) -> BillTotals:
    total = (last_month_remaining or 0) + (current_month_bill or 0)
    paid = sum(payment_amounts)
    # overpayment can never push the balance below zero
    remaining = max(total - paid, 0)

    if remaining <= 0:
        status = PAID
    elif paid > 0:
        status = PARTIALLY_PAID
    else:
        status = NOT_PAID
    return BillTotals(total=total, paid=paid, remaining=remaining, status=status)
