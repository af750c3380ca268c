"""Computed payment columns: status, progress, paid totals and remaining balance."""

import re
from typing import Any, Optional, Union

from .booking_calculations import format_date_display, round_currency, to_date, to_number

_PLAN_TERMS = re.compile(r"P(\d)")


def is_paid(value: Any) -> bool:
    """A "Date Paid" cell counts as paid when it holds any date-like value"""
    if not value:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, dict):
        return isinstance(value.get("seconds"), (int, float))
    return to_date(value) is not None


def booking_status(
    reason: Optional[str],
    payment_plan: Optional[str],
    remaining_balance: Any,
    full_payment_date_paid: Any = None,
    p1_date_paid: Any = None,
    p2_date_paid: Any = None,
    p3_date_paid: Any = None,
    p4_date_paid: Any = None,
) -> str:
    """
    Booking status shown on the sheet.

    Examples: "Cancelled", "Waiting for Full Payment",
    "Installment 2/3 — last paid Jan 2, 2026", "Booking Confirmed — Feb 2, 2026".
    """
    if reason and reason.strip():
        return "Cancelled"

    plan = (payment_plan or "").strip()
    paid_dates = [p1_date_paid, p2_date_paid, p3_date_paid, p4_date_paid]
    has_any_date = bool(full_payment_date_paid) or any(paid_dates)

    if not plan and not has_any_date and remaining_balance in (None, ""):
        return ""

    if isinstance(remaining_balance, str):
        remaining = to_number(re.sub(r"[^\d.-]", "", remaining_balance))
    else:
        remaining = to_number(remaining_balance)

    p_dates = [to_date(value) for value in paid_dates]
    full = to_date(full_payment_date_paid)

    if plan == "Full Payment":
        total_terms = 1
    else:
        match = _PLAN_TERMS.search(plan)
        total_terms = int(match.group(1)) if match else 0

    paid_count = 0 if plan == "Full Payment" else len([d for d in p_dates if d])

    if plan == "Full Payment":
        last_paid = full
    elif plan in ("P1", "P2", "P3", "P4"):
        candidates = [d for d in p_dates[: int(plan[1])] if d]
        last_paid = max(candidates) if candidates else None
    else:
        last_paid = None

    if remaining == 0 and (paid_count > 0 or full):
        base_status = "Booking Confirmed"
    elif plan == "":
        base_status = ""
    elif plan == "Full Payment":
        base_status = "Waiting for Full Payment"
    else:
        base_status = f"Installment {paid_count}/{total_terms}"

    if base_status == "Booking Confirmed":
        return f"{base_status} — {format_date_display(last_paid)}" if last_paid else base_status
    if paid_count > 0 and last_paid:
        return f"{base_status} — last paid {format_date_display(last_paid)}"
    return base_status


def payment_progress(
    status: Optional[str],
    payment_plan: Optional[str],
    full_payment_date_paid: Any = None,
    p1_date_paid: Any = None,
    p2_date_paid: Any = None,
    p3_date_paid: Any = None,
    p4_date_paid: Any = None,
) -> str:
    """Share of the plan's terms that have been paid, as "NN%" """
    if not status or not status.strip():
        return ""
    if status.strip().lower() == "cancelled":
        return ""

    plan = (payment_plan or "").strip().upper()
    paid = [to_date(value) is not None for value in (p1_date_paid, p2_date_paid, p3_date_paid, p4_date_paid)]

    if "FULL PAYMENT" in plan:
        return "100%" if to_date(full_payment_date_paid) else "0%"
    if "P1" in plan:
        return "100%" if paid[0] else "0%"

    for terms in (2, 3, 4):
        if f"P{terms}" in plan:
            percentage = sum(paid[:terms]) / terms * 100
            return f"{int(percentage + 0.5)}%"

    return "0%"


def remaining_balance(
    tour_package_name: Optional[str],
    discounted_tour_cost: Any = None,
    original_tour_cost: Any = None,
    reservation_fee: Any = None,
    credit_from: Optional[str] = None,
    credit_amount: Any = None,
    payment_plan: Optional[str] = None,
    full_payment_date_paid: Any = None,
    full_payment_amount: Any = None,
    p1_date_paid: Any = None,
    p1_amount: Any = None,
    p2_date_paid: Any = None,
    p2_amount: Any = None,
    p3_date_paid: Any = None,
    p3_amount: Any = None,
    p4_date_paid: Any = None,
    p4_amount: Any = None,
) -> Union[float, str]:
    """Amount still owed after the reservation fee, credits and paid terms"""
    if not tour_package_name:
        return ""

    discounted = to_number(discounted_tour_cost)
    base = discounted if discounted > 0 else to_number(original_tour_cost)
    credit = to_number(credit_amount) if credit_from == "Reservation" else 0
    total = base - to_number(reservation_fee) - credit

    paid = sum(
        to_number(amount) if date_paid else 0
        for date_paid, amount in (
            (full_payment_date_paid, full_payment_amount),
            (p1_date_paid, p1_amount),
            (p2_date_paid, p2_amount),
            (p3_date_paid, p3_amount),
            (p4_date_paid, p4_amount),
        )
    )

    if payment_plan == "P1" and p1_date_paid:
        return 0

    return max(round_currency(total - paid), 0)


def _term_paid(date_paid: Any, amount: Any, term: str, credit_from: str, credit_amount: float) -> float:
    if credit_from == term:
        return credit_amount
    return to_number(amount) if is_paid(date_paid) else 0


def total_paid(
    tour_package_name: Optional[str],
    reservation_fee: Any = None,
    credit_from: Optional[str] = None,
    credit_amount: Any = None,
    full_payment_date_paid: Any = None,
    full_payment_amount: Any = None,
    p1_date_paid: Any = None,
    p1_amount: Any = None,
    p2_date_paid: Any = None,
    p2_amount: Any = None,
    p3_date_paid: Any = None,
    p3_amount: Any = None,
    p4_date_paid: Any = None,
    p4_amount: Any = None,
) -> Union[float, str]:
    """Everything received so far including the reservation fee"""
    if not tour_package_name:
        return ""

    source = (credit_from or "").strip()
    credit = to_number(credit_amount)

    reservation_paid = to_number(reservation_fee) + (credit if source == "Reservation" else 0)
    terms = [
        _term_paid(full_payment_date_paid, full_payment_amount, "Full Payment", source, credit),
        _term_paid(p1_date_paid, p1_amount, "P1", source, credit),
        _term_paid(p2_date_paid, p2_amount, "P2", source, credit),
        _term_paid(p3_date_paid, p3_amount, "P3", source, credit),
        _term_paid(p4_date_paid, p4_amount, "P4", source, credit),
    ]
    return round(reservation_paid + sum(terms), 2)


def paid_terms(
    tour_package_name: Optional[str],
    credit_from: Optional[str] = None,
    credit_amount: Any = None,
    full_payment_date_paid: Any = None,
    full_payment_amount: Any = None,
    p1_date_paid: Any = None,
    p1_amount: Any = None,
    p2_date_paid: Any = None,
    p2_amount: Any = None,
    p3_date_paid: Any = None,
    p3_amount: Any = None,
    p4_date_paid: Any = None,
    p4_amount: Any = None,
) -> Union[float, str]:
    """Sum of paid installments, excluding the reservation fee"""
    if not tour_package_name:
        return ""

    credit = to_number(credit_amount)
    total = to_number(full_payment_amount) if full_payment_date_paid else 0
    for term, date_paid, amount in (
        ("P1", p1_date_paid, p1_amount),
        ("P2", p2_date_paid, p2_amount),
        ("P3", p3_date_paid, p3_amount),
        ("P4", p4_date_paid, p4_amount),
    ):
        if date_paid:
            total += credit if credit_from == term else to_number(amount)
    return total
