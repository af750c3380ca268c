"""
Booking calculation utilities shared by the booking API, the Stripe webhook
and the column recompute engine.

Dates are always handled in UTC. Functions return an empty value ("" or None)
instead of raising when their input cannot be interpreted.
"""

import math
import random
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

INSTALLMENT_TERMS = ["p1", "p2", "p3", "p4"]

CONDITION_TERMS = {
    "Standard Booking, P1": 1,
    "Standard Booking, P2": 2,
    "Standard Booking, P3": 3,
    "Standard Booking, P4": 4,
}

_DDMMYYYY = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_YYYYMMDD = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_PLAN_TERMS = re.compile(r"P(\d)")


# ============================================================================
# DATE UTILITIES
# ============================================================================


def round_currency(value: float) -> float:
    """Round half up to 2 decimal places (spreadsheet rounding)"""
    return math.floor(value * 100 + 0.5) / 100


def to_number(value: Any) -> float:
    """Coerce a sheet value to a float, treating blanks and junk as 0"""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def to_date(value: Any) -> Optional[datetime]:
    """
    Normalize the date shapes found in booking rows to an aware UTC datetime.

    Accepts datetime/date objects, {"seconds", "nanoseconds"} mappings, epoch
    milliseconds, "dd/mm/yyyy", "yyyy-mm-dd", display strings ("Dec 2, 2025")
    and ISO strings. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if not isinstance(seconds, (int, float)):
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
        millis = seconds * 1000 + math.floor(nanos / 1e6)
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            if _DDMMYYYY.match(raw):
                dd, mm, yyyy = (int(part) for part in raw.split("/"))
                return datetime(yyyy, mm, dd, tzinfo=timezone.utc)
            if _YYYYMMDD.match(raw):
                yyyy, mm, dd = (int(part) for part in raw.split("-"))
                return datetime(yyyy, mm, dd, tzinfo=timezone.utc)
            parsed = date_parser.parse(raw)
        except (ValueError, OverflowError):
            return None
        return parsed.replace(tzinfo=timezone.utc) if parsed.tzinfo is None else parsed.astimezone(timezone.utc)

    return None


def normalize_utc_date(value: datetime) -> datetime:
    """Midnight UTC of the same UTC calendar day"""
    value = value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def format_date_yyyymmdd(value: Any) -> str:
    """Format as "20251202" """
    parsed = to_date(value)
    if not parsed:
        return ""
    return normalize_utc_date(parsed).strftime("%Y%m%d")


def format_date_display(value: Any) -> str:
    """Format as "Dec 2, 2025" """
    parsed = to_date(value)
    if not parsed:
        return ""
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


def format_date_ddmmyyyy(value: Any) -> str:
    parsed = to_date(value)
    if not parsed:
        return ""
    return normalize_utc_date(parsed).strftime("%d/%m/%Y")


def format_month_day_year(value: Any) -> str:
    """Format as "February 03 2026" """
    parsed = to_date(value)
    if not parsed:
        return ""
    utc = normalize_utc_date(parsed)
    return f"{MONTH_NAMES[utc.month - 1]} {utc.day:02d} {utc.year}"


def parse_month_day_year(value: str) -> Optional[datetime]:
    """Parse a "February 03 2026" string back to a UTC datetime"""
    if not value:
        return None
    parts = value.strip().split()
    if len(parts) != 3:
        return None
    month_name, day_str, year_str = parts
    if month_name not in MONTH_NAMES:
        return None
    try:
        return datetime(int(year_str), MONTH_NAMES.index(month_name) + 1, int(day_str), tzinfo=timezone.utc)
    except ValueError:
        return None


def normalize_tour_date(value: Any) -> Optional[datetime]:
    """Pin a tour date to 09:00 in UTC+8 (01:00 UTC) on its UTC+8 calendar day"""
    parsed = to_date(value)
    if not parsed:
        return None
    shifted = parsed + timedelta(hours=8)
    return datetime(shifted.year, shifted.month, shifted.day, 1, 0, 0, tzinfo=timezone.utc)


def compute_return_date(tour_date: Any, duration: Any) -> str:
    """Tour date plus the day count in a duration like "13 Days" or "8D", as yyyy-mm-dd"""
    start = to_date(tour_date)
    if not start:
        return ""
    match = re.search(r"\d+", str(duration or ""))
    days = int(match.group(0)) if match else 0
    if not days:
        return ""
    return (normalize_utc_date(start) + timedelta(days=days)).strftime("%Y-%m-%d")


def _second_of_month(base: datetime, months_ahead: int) -> datetime:
    return datetime(base.year, base.month, 2, tzinfo=timezone.utc) + relativedelta(months=months_ahead)


# ============================================================================
# BOOKING IDENTIFIER FUNCTIONS
# ============================================================================


def get_booking_code(booking_type: Optional[str]) -> str:
    """Single Booking -> SB, Duo Booking -> DB, Group Booking -> GB"""
    return {"Single Booking": "SB", "Duo Booking": "DB", "Group Booking": "GB"}.get(booking_type or "", "")


def get_traveller_initials(first_name: Optional[str], last_name: Optional[str]) -> str:
    first = first_name[0] if first_name else ""
    last = last_name[0] if last_name else ""
    return (first + last).upper()


def get_full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def get_unique_counter(tour_package_name: Optional[str], existing_count: int) -> str:
    """Zero-padded per-package booking counter ("001", "002", ...)"""
    if not tour_package_name:
        return ""
    return str(existing_count + 1).zfill(3)


def generate_booking_id(
    booking_code: str,
    tour_code: str,
    formatted_date: str,
    traveller_initials: str,
    unique_counter: str,
) -> str:
    """Build "SB-PKG-20250915-JD001"; empty when any part is missing"""
    if not all([booking_code, tour_code, formatted_date, traveller_initials, unique_counter]):
        return ""
    return f"{booking_code}-{tour_code}-{formatted_date}-{traveller_initials}{unique_counter}"


def generate_group_id() -> str:
    """4-digit group identifier"""
    return str(random.randint(1000, 9999))


def generate_group_member_id(
    booking_type: Optional[str],
    tour_name: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    email: Optional[str],
    is_active: bool = True,
) -> str:
    """
    Stable member id for duo/group travellers, e.g. "DB-JD-4821-318".

    The hash is derived from the traveller identity so the same guest on the
    same tour always gets the same id.
    """
    if booking_type not in ("Duo Booking", "Group Booking"):
        return ""
    if is_active is not True:
        return ""

    initials = get_traveller_initials(first_name, last_name)
    prefix = "DB" if booking_type == "Duo Booking" else "GB"

    identity = f"{booking_type}|{tour_name or ''}|{first_name or ''}|{last_name or ''}|{email or ''}"
    hash_num = sum(ord(char) * (index + 1) for index, char in enumerate(identity))

    return f"{prefix}-{initials}-{hash_num % 10000:04d}-{hash_num % 999 + 1:03d}"


# ============================================================================
# PAYMENT CONDITION FUNCTIONS
# ============================================================================


def get_days_between(reservation_date: Any, tour_date: Any) -> Union[int, str]:
    """Whole UTC days from reservation to tour, or "" """
    reservation = to_date(reservation_date)
    tour = to_date(tour_date)
    if not reservation or not tour:
        return ""
    return (normalize_utc_date(tour) - normalize_utc_date(reservation)).days


def get_eligible_2nd_of_months(reservation_date: Any, tour_date: Any) -> Union[int, str]:
    """Count the 2nd-of-month dates usable as installment due dates"""
    reservation = to_date(reservation_date)
    tour = to_date(tour_date)
    if not reservation or not tour:
        return ""

    res_utc = normalize_utc_date(reservation)
    full_payment_due = normalize_utc_date(tour) - timedelta(days=30)

    month_count = max(
        0,
        (full_payment_due.year - res_utc.year) * 12 + (full_payment_due.month - res_utc.month) + 1,
    )
    if full_payment_due.day < res_utc.day:
        month_count = max(0, month_count - 1)

    min_date = res_utc + timedelta(days=3)
    eligible = 0
    for i in range(1, month_count + 1):
        second = _second_of_month(res_utc, i)
        if min_date < second <= full_payment_due:
            eligible += 1
    return eligible


def get_payment_condition(tour_date: Any, eligible_2nd_of_months: Any, days_between: Any) -> str:
    if to_date(tour_date) is None:
        return ""
    if eligible_2nd_of_months in ("", None) or days_between in ("", None):
        return ""

    eligible = int(eligible_2nd_of_months)
    days = float(days_between)

    if eligible == 0 and days < 2:
        return "Invalid Booking"
    if eligible == 0:
        return "Last Minute Booking"
    if eligible >= 4:
        return "Standard Booking, P4"
    if eligible > 0:
        return f"Standard Booking, P{eligible}"
    return ""


def get_available_payment_terms(payment_condition: Optional[str], is_cancelled: bool = False) -> str:
    if is_cancelled:
        return "Cancelled"
    if not payment_condition:
        return ""
    terms = {
        "Invalid Booking": "Invalid",
        "Last Minute Booking": "Full payment required within 48hrs",
        "Standard Booking, P1": "P1",
        "Standard Booking, P2": "P2",
        "Standard Booking, P3": "P3",
        "Standard Booking, P4": "P4",
    }
    return terms.get(payment_condition, "")


def extract_payment_plan_type(payment_term_name: Optional[str]) -> str:
    """"P2 - Two Instalments" -> "P2"; "full_payment" -> "Full Payment" """
    plan = (payment_term_name or "").split(" - ")[0].strip()
    if plan == "full_payment":
        return "Full Payment"
    return plan


def get_plan_terms(payment_plan: Optional[str]) -> int:
    """Number of installments in a plan ("P3" -> 3, "Full Payment" -> 1)"""
    if payment_plan == "Full Payment":
        return 1
    match = _PLAN_TERMS.search(payment_plan or "")
    return int(match.group(1)) if match else 0


# ============================================================================
# FULL PAYMENT AND INSTALLMENT CALCULATIONS
# ============================================================================


def _base_cost(original_cost: Any, discounted_cost: Any, is_main_booker: bool) -> float:
    discounted = to_number(discounted_cost)
    if is_main_booker and discounted:
        return discounted
    return to_number(original_cost)


def get_full_payment_due_date(reservation_date: Any, payment_plan: Optional[str]) -> str:
    """Reservation date + 2 days, only for the Full Payment plan"""
    if payment_plan != "Full Payment":
        return ""
    reservation = to_date(reservation_date)
    if not reservation:
        return ""
    return format_date_display(normalize_utc_date(reservation) + timedelta(days=2))


def get_full_payment_amount(
    payment_plan: Optional[str],
    original_cost: Any,
    discounted_cost: Any,
    reservation_fee: Any,
    is_main_booker: bool,
    credit_amount: Any = 0,
) -> Union[float, str]:
    if payment_plan != "Full Payment":
        return ""
    base = _base_cost(original_cost, discounted_cost, is_main_booker)
    if not base:
        return ""
    return round_currency(base - to_number(reservation_fee) - to_number(credit_amount))


def generate_installment_due_dates(
    reservation_date: Any,
    tour_date: Any,
    payment_plan: Optional[str],
    payment_condition: Optional[str],
) -> dict:
    """
    Compute P1-P4 due dates.

    With a selected plan each Pn holds its own due date. Without a plan each
    Pn previews the first n dates comma-joined so the guest can compare plans.
    """
    result = {"p1DueDate": "", "p2DueDate": "", "p3DueDate": "", "p4DueDate": ""}
    payment_plan = payment_plan or ""

    if payment_plan == "Full Payment":
        return result

    reservation = to_date(reservation_date)
    tour = to_date(tour_date)
    if not reservation or not tour:
        return result

    max_terms = CONDITION_TERMS.get(payment_condition or "", 0)
    if max_terms == 0:
        return result

    res_utc = normalize_utc_date(reservation)
    tour_utc = normalize_utc_date(tour)
    month_count = (tour_utc.year - res_utc.year) * 12 + (tour_utc.month - res_utc.month) + 1

    earliest = res_utc + timedelta(days=2)
    latest = tour_utc - timedelta(days=3)
    valid_dates = [
        second
        for second in (_second_of_month(res_utc, i + 1) for i in range(max(month_count, 0)))
        if earliest < second <= latest
    ]
    formatted = [format_date_display(d) for d in valid_dates]

    # A selected plan excludes the terms beyond its own length
    selected_terms = get_plan_terms(payment_plan)

    for n in range(1, 5):
        if n > max_terms or len(formatted) < n:
            continue
        if selected_terms and n > selected_terms:
            continue
        key = f"p{n}DueDate"
        if n == 1 or selected_terms:
            result[key] = formatted[n - 1]
        else:
            result[key] = ", ".join(formatted[:n])

    return result


def calculate_installment_amounts(
    payment_plan: Optional[str],
    original_cost: Any,
    discounted_cost: Any,
    reservation_fee: Any,
    is_main_booker: bool,
    credit_amount: Any = 0,
    credit_from: Optional[str] = "",
    p1_due_date: Optional[str] = None,
    p2_due_date: Optional[str] = None,
    p3_due_date: Optional[str] = None,
    p4_due_date: Optional[str] = None,
) -> dict:
    """
    Compute P1-P4 amounts for a plan.

    Without a plan every Pn previews total / n where its due date exists. With
    a plan the credit is either spread across the terms (credit from the
    reservation) or shown on the credited term, and P4 absorbs the rounding
    remainder.
    """
    result = {"p1Amount": "", "p2Amount": "", "p3Amount": "", "p4Amount": ""}
    payment_plan = payment_plan or ""

    if payment_plan == "Full Payment":
        return result

    base = _base_cost(original_cost, discounted_cost, is_main_booker)
    if not base:
        return result

    total = base - to_number(reservation_fee)
    due_dates = [p1_due_date, p2_due_date, p3_due_date, p4_due_date]

    if not payment_plan:
        for n, due_date in enumerate(due_dates, start=1):
            if due_date:
                result[f"p{n}Amount"] = round_currency(total / n)
        return result

    terms = {"P1": 1, "P2": 2, "P3": 3, "P4": 4}.get(payment_plan, 1)
    credit = to_number(credit_amount)
    credit_index = {"Reservation": 0, "P1": 1, "P2": 2, "P3": 3, "P4": 4}.get(credit_from or "", 0) if credit > 0 else 0

    if credit > 0 and credit_index == 0:
        amount = (total - credit) / terms
    else:
        amount = total / terms
    rounded = round_currency(amount)

    for n in range(1, terms + 1):
        if n > 1 and not due_dates[n - 1]:
            continue
        key = f"p{n}Amount"
        if credit > 0 and credit_index == n:
            result[key] = credit
        elif n == 4:
            result[key] = round_currency(total - credit - rounded * 3)
        else:
            result[key] = rounded

    return result


def calculate_scheduled_reminder_dates(
    due_dates: dict,
    days_before: int = 7,
    today: Optional[datetime] = None,
) -> dict:
    """Reminder date ("yyyy-mm-dd") for each term, blank once it has passed"""
    today_utc = normalize_utc_date(today or datetime.now(timezone.utc))

    def reminder_for(due_date: Optional[str]) -> str:
        if not due_date:
            return ""
        # Preview due dates are comma-joined; remind against the first one
        parsed = to_date(first_due_date(due_date))
        if not parsed:
            return ""
        reminder = normalize_utc_date(parsed) - timedelta(days=days_before)
        if reminder < today_utc:
            return ""
        return reminder.strftime("%Y-%m-%d")

    return {f"{term}ScheduledReminderDate": reminder_for(due_dates.get(f"{term}DueDate")) for term in INSTALLMENT_TERMS}


def first_due_date(due_date: Optional[str]) -> str:
    """First display date of a possibly comma-joined due date string"""
    if not due_date:
        return ""
    match = re.match(r"^([A-Z][a-z]{2} \d{1,2}, \d{4})", due_date.strip())
    return match.group(1) if match else due_date.split(", ")[0]


# ============================================================================
# BOOKING CREATION AND PLAN SELECTION
# ============================================================================


def create_booking_data(data: dict, now: Optional[datetime] = None) -> dict:
    """
    Build the full set of sheet values for a new booking.

    Args:
        data: email, firstName, lastName, bookingType, tourPackageName, tourCode,
            tourDate, returnDate, tourDuration, reservationFee, paidAmount,
            originalTourCost, discountedTourCost, paymentMethod, groupId,
            isMainBooking, existingBookingsCount, totalBookingsCount
        now: reservation timestamp (defaults to the current UTC time)

    Returns:
        Dict keyed by booking column id
    """
    now = now or datetime.now(timezone.utc)
    tour_date = normalize_tour_date(data.get("tourDate")) or to_date(data.get("tourDate"))

    booking_code = get_booking_code(data.get("bookingType"))
    initials = get_traveller_initials(data.get("firstName"), data.get("lastName"))
    formatted_date = format_date_yyyymmdd(tour_date)
    counter = get_unique_counter(data.get("tourPackageName"), int(data.get("existingBookingsCount") or 0))
    booking_id = generate_booking_id(booking_code, data.get("tourCode") or "", formatted_date, initials, counter)

    days_between = get_days_between(now, tour_date)
    eligible = get_eligible_2nd_of_months(now, tour_date)
    condition = get_payment_condition(tour_date, eligible, days_between)
    available_terms = get_available_payment_terms(condition)

    is_main_booking = data.get("isMainBooking")
    is_main_booking = True if is_main_booking is None else bool(is_main_booking)

    if condition == "Last Minute Booking":
        due_dates = {"p1DueDate": "", "p2DueDate": "", "p3DueDate": "", "p4DueDate": ""}
        amounts = {"p1Amount": "", "p2Amount": "", "p3Amount": "", "p4Amount": ""}
    else:
        due_dates = generate_installment_due_dates(now, tour_date, "", condition)
        amounts = calculate_installment_amounts(
            "",
            data.get("originalTourCost"),
            data.get("discountedTourCost") or None,
            data.get("reservationFee"),
            is_main_booking,
            0,
            "",
            due_dates["p1DueDate"],
            due_dates["p2DueDate"],
            due_dates["p3DueDate"],
            due_dates["p4DueDate"],
        )

    original_cost = to_number(data.get("originalTourCost"))
    discounted_cost = to_number(data.get("discountedTourCost")) or None
    paid_amount = to_number(data.get("paidAmount"))

    booking = {
        "bookingId": booking_id,
        "bookingCode": booking_code,
        "tourCode": data.get("tourCode") or "",
        "travellerInitials": initials,
        "tourPackageNameUniqueCounter": counter,
        "formattedDate": formatted_date,
        "emailAddress": data.get("email") or "",
        "firstName": data.get("firstName") or "",
        "lastName": data.get("lastName") or "",
        "fullName": get_full_name(data.get("firstName"), data.get("lastName")),
        "reservationDate": now.isoformat(),
        "bookingType": data.get("bookingType") or "",
        "tourPackageName": data.get("tourPackageName") or "",
        "tourDate": tour_date.isoformat() if tour_date else "",
        "returnDate": data.get("returnDate") or "",
        "tourDuration": data.get("tourDuration") or "",
        "daysBetweenBookingAndTourDate": days_between,
        "eligible2ndofmonths": eligible,
        "paymentCondition": condition,
        "availablePaymentTerms": available_terms,
        "originalTourCost": original_cost,
        "discountedTourCost": discounted_cost,
        "reservationFee": to_number(data.get("reservationFee")),
        "paid": paid_amount,
        "remainingBalance": (discounted_cost or original_cost) - paid_amount,
        "fullPaymentDueDate": "",
        "fullPaymentAmount": "",
        "paymentMethod": data.get("paymentMethod") or "",
        "isMainBooking": is_main_booking,
        "isMainBooker": False,
        "groupIdGroupIdGenerator": "",
        "groupId": data.get("groupId") or "",
        "row": int(data.get("totalBookingsCount") or 0) + 1,
        "tags": ["auto"],
        "createdAt": now.isoformat(),
        "updatedAt": now.isoformat(),
    }
    booking.update(due_dates)
    booking.update(amounts)
    return booking


def calculate_payment_plan_update(data: dict, today: Optional[datetime] = None) -> dict:
    """
    Recompute the payment fields after a guest picks a payment plan.

    Args:
        data: paymentPlan, reservationDate, tourDate, paymentCondition,
            originalTourCost, discountedTourCost, reservationFee, isMainBooker,
            creditAmount, creditFrom, reminderDaysBefore
        today: reference day for reminder dates (defaults to now)
    """
    plan = data.get("paymentPlan") or ""
    reminder_days = data.get("reminderDaysBefore")
    reminder_days = 7 if reminder_days is None else int(reminder_days)
    tour_date = normalize_tour_date(data.get("tourDate")) or data.get("tourDate")

    full_payment_due_date = get_full_payment_due_date(data.get("reservationDate"), plan)
    full_payment_amount = get_full_payment_amount(
        plan,
        data.get("originalTourCost"),
        data.get("discountedTourCost"),
        data.get("reservationFee"),
        bool(data.get("isMainBooker")),
        data.get("creditAmount") or 0,
    )

    due_dates = generate_installment_due_dates(data.get("reservationDate"), tour_date, plan, data.get("paymentCondition"))
    amounts = calculate_installment_amounts(
        plan,
        data.get("originalTourCost"),
        data.get("discountedTourCost"),
        data.get("reservationFee"),
        bool(data.get("isMainBooker")),
        data.get("creditAmount") or 0,
        data.get("creditFrom") or "",
        due_dates["p1DueDate"],
        due_dates["p2DueDate"],
        due_dates["p3DueDate"],
        due_dates["p4DueDate"],
    )
    reminders = calculate_scheduled_reminder_dates(due_dates, reminder_days, today)

    match = _PLAN_TERMS.search(plan)
    selected_terms = int(match.group(1)) if match else 0
    if selected_terms:
        for n in range(selected_terms + 1, 5):
            due_dates[f"p{n}DueDate"] = ""
            amounts[f"p{n}Amount"] = ""
            reminders[f"p{n}ScheduledReminderDate"] = ""

    if plan == "Full Payment":
        booking_status = "Waiting for Full Payment"
    elif selected_terms:
        booking_status = f"Installment 0/{selected_terms}"
    else:
        booking_status = ""

    result = {
        "paymentPlan": plan,
        "bookingStatus": booking_status,
        "paymentProgress": "0%",
        "enablePaymentReminder": False,
        "fullPaymentDueDate": full_payment_due_date,
        "fullPaymentAmount": full_payment_amount,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    }
    result.update(due_dates)
    result.update(amounts)
    result.update(reminders)
    return result
