"""
Cancellation scenarios and refund amounts.

Reservation fees are only refundable when IHT cancels. Guest cancellations are
bucketed by how far ahead of the tour they were requested: 100+ days is early,
60-99 days is mid-range, anything later is late.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from .booking_calculations import to_date, to_number

VALID_PLANS = ["Full Payment", "P1", "P2", "P3", "P4"]
INSTALLMENT_PLANS = ["P1", "P2", "P3", "P4"]

NO_REFUND_POLICIES = ["Refund Ineligible", "0 Paid Terms, no refund"]


@dataclass
class CancellationScenario:
    scenario_id: str
    description: str
    refund_policy: str
    timing: str  # early, mid-range, late, n/a
    days_before_tour: int

    def to_dict(self) -> dict:
        return {
            "scenarioId": self.scenario_id,
            "description": self.description,
            "refundPolicy": self.refund_policy,
            "timing": self.timing,
            "daysBeforeTour": self.days_before_tour,
        }


def extract_initiator(reason: Optional[str]) -> Optional[str]:
    """Who cancelled, read from a "Guest - ..." / "IHT - ..." reason"""
    if not reason:
        return None
    reason = reason.strip()
    if reason.startswith(("Guest -", "Guest-")):
        return "Guest"
    if reason.startswith(("IHT -", "IHT-")):
        return "IHT"

    lowered = reason.lower()
    if "iht" in lowered:
        return "IHT"
    if "guest" in lowered:
        return "Guest"
    return None


def calculate_days_before_tour(cancellation_date: Any, tour_date: Any) -> int:
    cancelled = to_date(cancellation_date)
    tour = to_date(tour_date)
    if not cancelled or not tour:
        return 0
    return math.ceil((tour - cancelled).total_seconds() / 86400)


def _timing(days_before_tour: int) -> str:
    if days_before_tour >= 100:
        return "early"
    if days_before_tour >= 60:
        return "mid-range"
    return "late"


def detect_cancellation_scenario(
    reason: Optional[str],
    cancellation_date: Any,
    tour_date: Any,
    payment_plan: Optional[str],
    paid_terms: Any = 0,
    full_payment_date_paid: Any = None,
    supplier_costs: Any = 0,
    is_no_show: bool = False,
    initiated_by: Optional[str] = None,
) -> Optional[CancellationScenario]:
    """
    Classify a cancellation.

    Scenarios are checked in priority order: no-show, supplier costs, IHT
    cancellation, force majeure, installment default, guest cancellation on a
    full payment, guest cancellation on installments, no payment, generic.
    """
    cancelled = to_date(cancellation_date)
    if not reason or not cancelled:
        return None

    tour = to_date(tour_date)
    days = calculate_days_before_tour(cancelled, tour) if tour else 0
    timing = _timing(days)
    lowered = reason.lower()

    is_full_payment = payment_plan == "Full Payment" or bool(full_payment_date_paid)
    is_installment = (payment_plan or "") in INSTALLMENT_PLANS

    if is_no_show and tour and cancelled >= tour:
        return CancellationScenario(
            "guest-no-show", "Guest No-Show", "No refund - Guest did not attend tour", "n/a", 0
        )

    if to_number(supplier_costs) > 0 and initiated_by != "IHT":
        return CancellationScenario(
            "supplier-costs",
            "Supplier Costs Committed",
            "Refund minus supplier costs and admin fee",
            timing,
            days,
        )

    if initiated_by == "IHT":
        if tour and cancelled < tour:
            return CancellationScenario(
                "iht-cancel-before",
                "Tour Cancelled by IHT (Before Start)",
                "100% refund including reservation fee OR travel credit",
                "n/a",
                days,
            )
        return CancellationScenario(
            "iht-cancel-after",
            "Tour Cancelled by IHT (After Start)",
            "Partial refund for unused portion OR travel credit",
            "n/a",
            days,
        )

    if "force majeure" in lowered:
        return CancellationScenario(
            "force-majeure", "Force Majeure", "Case-by-case (refund OR travel credit)", "n/a", days
        )

    if is_installment and ("default" in lowered or "missed payment" in lowered):
        policies = {
            "early": ("installment-default-early", "Installment Default (Early)", "Refund after admin fee deduction"),
            "mid-range": (
                "installment-default-mid",
                "Installment Default (Mid-Range)",
                "50% refund after admin fee deduction",
            ),
            "late": ("installment-default-late", "Installment Default (Late)", "No refund"),
        }
        scenario_id, description, policy = policies[timing]
        return CancellationScenario(scenario_id, description, policy, timing, days)

    if initiated_by == "Guest" and is_full_payment:
        policies = {
            "early": (
                "guest-cancel-full-early",
                "Guest Cancel Early (Full Payment)",
                "100% of non-reservation amount minus admin fee",
            ),
            "mid-range": (
                "guest-cancel-full-mid",
                "Guest Cancel Mid-Range (Full Payment)",
                "50% of non-reservation amount minus admin fee",
            ),
            "late": (
                "guest-cancel-full-late",
                "Guest Cancel Late (Full Payment)",
                "No refund - All amounts forfeited",
            ),
        }
        scenario_id, description, policy = policies[timing]
        return CancellationScenario(scenario_id, description, policy, timing, days)

    if initiated_by == "Guest" and is_installment:
        policies = {
            "early": (
                "guest-cancel-installment-early",
                "Guest Cancel Early (Installment)",
                "Refund of paid terms minus admin fee",
            ),
            "mid-range": (
                "guest-cancel-installment-mid",
                "Guest Cancel Mid-Range (Installment)",
                "50% of paid terms minus admin fee",
            ),
            "late": (
                "guest-cancel-installment-late",
                "Guest Cancel Late (Installment)",
                "No refund - RF and paid terms forfeited",
            ),
        }
        scenario_id, description, policy = policies[timing]
        return CancellationScenario(scenario_id, description, policy, timing, days)

    if to_number(paid_terms) == 0:
        return CancellationScenario(
            "no-payment", "Cancellation (No Payment Made)", "No refund - No payments made", "n/a", days
        )

    generic_policy = {
        "early": "100% refund minus admin fee",
        "mid-range": "50% refund minus admin fee",
        "late": "No refund",
    }[timing]
    return CancellationScenario("guest-cancel-generic", "Guest Cancellation", generic_policy, timing, days)


def get_cancellation_scenario_label(
    cancellation_date: Any,
    tour_date: Any,
    payment_plan: Optional[str],
    paid_terms: Any,
    full_payment_date_paid: Any = None,
    supplier_costs: Any = 0,
    is_no_show: bool = False,
    reason: Optional[str] = None,
) -> str:
    """Human-readable scenario, e.g. "Guest Cancel Early (Installment) (125 days before tour)" """
    scenario = detect_cancellation_scenario(
        reason,
        cancellation_date,
        tour_date,
        payment_plan,
        paid_terms,
        full_payment_date_paid,
        supplier_costs,
        bool(is_no_show),
        extract_initiator(reason),
    )
    if not scenario:
        return ""
    if scenario.timing == "n/a" or scenario.days_before_tour == 0:
        return scenario.description
    return f"{scenario.description} ({scenario.days_before_tour} days before tour)"


def get_eligible_refund(
    cancellation_date: Any,
    tour_date: Any,
    reason: Optional[str],
    payment_plan: Optional[str],
    paid_terms: Any,
    full_payment_date_paid: Any = None,
    supplier_costs: Any = 0,
    is_no_show: bool = False,
) -> str:
    """Refund policy text for the detected scenario"""
    if not reason or not cancellation_date:
        return ""
    if payment_plan not in VALID_PLANS:
        return ""

    scenario = detect_cancellation_scenario(
        reason,
        cancellation_date,
        tour_date,
        payment_plan,
        paid_terms,
        full_payment_date_paid,
        supplier_costs,
        bool(is_no_show),
        extract_initiator(reason),
    )
    return scenario.refund_policy if scenario else ""


def _is_no_refund(policy: str) -> bool:
    return "no refund" in policy.lower() or policy in NO_REFUND_POLICIES


def get_admin_fee(
    initiated_by: Optional[str],
    eligible_refund: Optional[str],
    paid_terms: Any,
    full_payment_amount: Any,
    reservation_fee: Any,
    supplier_costs: Any = 0,
    reason: Optional[str] = None,
) -> Union[float, str]:
    """10% of the non-reservation amount (full payment) or of the paid terms"""
    if not reason:
        return ""
    policy = eligible_refund or ""

    if initiated_by == "IHT":
        return 0
    if to_number(supplier_costs) > 0:
        return 0
    if _is_no_refund(policy):
        return 0

    full_payment = to_number(full_payment_amount)
    if full_payment > 0:
        base = full_payment - to_number(reservation_fee)
    else:
        base = to_number(paid_terms)

    if base <= 0:
        return 0
    return 0.1 * base


def get_refundable_amount(
    reason: Optional[str],
    admin_fee: Any,
    paid: Any,
    paid_terms: Any,
    reservation_fee: Any,
    full_payment_amount: Any,
    supplier_costs: Any = 0,
    cancellation_date: Any = None,
    eligible_refund: Optional[str] = None,
) -> Union[float, str]:
    """Amount to refund the guest under the booking's refund policy"""
    if not cancellation_date:
        return ""

    policy = (eligible_refund or "").lower()
    admin = to_number(admin_fee)
    total_paid = to_number(paid)
    installments = to_number(paid_terms)
    supplier = to_number(supplier_costs)
    full_payment = to_number(full_payment_amount)

    if extract_initiator(reason) == "IHT":
        return max(0, total_paid - supplier)

    if _is_no_refund(eligible_refund or ""):
        return 0

    # Non-reservation amount for full payments, paid terms for installments
    base = full_payment - to_number(reservation_fee) if full_payment > 0 else installments

    if "supplier costs" in policy:
        return max(0, base - admin - supplier)

    full_share = (
        "100% of non-reservation amount",
        "100% of nra",
        "100% of paid terms",
        "refund of paid terms",
        "100% refund minus admin fee",
    )
    half_share = (
        "50% of non-reservation amount",
        "50% of nra",
        "50% of paid terms",
        "50% refund after admin",
        "50% refund minus admin fee",
    )

    refundable = 0.0
    if any(marker in policy for marker in half_share):
        refundable = base * 0.5 - admin
    elif any(marker in policy for marker in full_share) or "refund after admin" in policy:
        refundable = base - admin

    if supplier > 0:
        refundable = max(0, refundable - supplier)

    return max(0, refundable)


def get_non_refundable_amount(paid: Any, refundable_amount: Any) -> Union[float, str]:
    """Whatever was paid and is not refunded; blank until a refund has been worked out"""
    if refundable_amount in (None, ""):
        return ""
    return max(0, to_number(paid) - to_number(refundable_amount))
