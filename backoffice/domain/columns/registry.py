"""
Built-in booking sheet columns and the function table behind computed columns.

Each function column lists its arguments in call order. An argument either
references another column by id (``columnReference``) or carries a fixed
``value`` used when no column is referenced or the referenced cell is empty.
"""

from typing import Any, Callable, Optional

from ...calculations import booking_calculations as calc
from ...calculations import cancellation
from ...calculations import payment_status

DATA_TYPES = ["string", "number", "currency", "date", "boolean", "select", "email", "function"]

TAB_IDENTIFIER = "Identifier"
TAB_TRAVELLER = "Traveller Information"
TAB_GROUP = "If Duo or Group Booking"
TAB_TOUR = "Tour Details"
TAB_PAYMENT = "Payment Setting"
TAB_FULL_PAYMENT = "Full Payment"
TAB_CANCELLATION = "Cancellation"
TAB_REMINDERS = "Payment Reminders"


def _column(column_id: str, name: str, data_type: str, tab: str, **extra) -> dict:
    column = {
        "id": column_id,
        "columnName": name,
        "dataType": data_type,
        "parentTab": tab,
        "includeInForms": extra.pop("include_in_forms", data_type != "function"),
        "color": "yellow" if data_type == "function" else "none",
    }
    column.update(extra)
    return column


def _function(column_id: str, name: str, tab: str, function: str, arguments: list) -> dict:
    """Function column; plain strings in ``arguments`` are column references"""
    args = []
    for argument in arguments:
        if isinstance(argument, str):
            args.append({"name": argument, "columnReference": argument})
        else:
            args.append(argument)
    return _column(column_id, name, "function", tab, function=function, arguments=args)


def _value(name: str, value: Any) -> dict:
    return {"name": name, "columnReference": None, "value": value}


def _term_columns(n: int) -> list:
    term = f"p{n}"
    tab = f"Payment Term {n}"
    return [
        _function(
            f"{term}DueDate",
            f"P{n} Due Date",
            tab,
            "getInstallmentDueDate",
            ["reservationDate", "tourDate", "paymentPlan", "paymentCondition", _value("term", term)],
        ),
        _function(
            f"{term}Amount",
            f"P{n} Amount",
            tab,
            "getInstallmentAmount",
            [
                "paymentPlan",
                "originalTourCost",
                "discountedTourCost",
                "reservationFee",
                "isMainBooking",
                "manualCredit",
                "creditFrom",
                "p1DueDate",
                "p2DueDate",
                "p3DueDate",
                "p4DueDate",
                _value("term", term),
            ],
        ),
        _column(f"{term}DatePaid", f"P{n} Date Paid", "date", tab),
        _function(
            f"{term}ScheduledReminderDate",
            f"P{n} Scheduled Reminder Date",
            tab,
            "getScheduledReminderDate",
            [f"{term}DueDate", f"{term}DatePaid"],
        ),
        _column(f"{term}ScheduledEmailLink", f"P{n} Scheduled Email Link", "string", tab, include_in_forms=False),
    ]


def _build_columns() -> list:
    columns = [
        # Identifier
        _function(
            "bookingId",
            "Booking ID",
            TAB_IDENTIFIER,
            "generateBookingId",
            ["bookingCode", "tourCode", "formattedDate", "travellerInitials", "tourPackageNameUniqueCounter"],
        ),
        _function("bookingCode", "Booking Code", TAB_IDENTIFIER, "getBookingCode", ["bookingType"]),
        _column("tourCode", "Tour Code", "string", TAB_IDENTIFIER),
        _function("formattedDate", "Formatted Date", TAB_IDENTIFIER, "formatDateYYYYMMDD", ["tourDate"]),
        _function(
            "travellerInitials", "Traveller Initials", TAB_IDENTIFIER, "getTravellerInitials", ["firstName", "lastName"]
        ),
        _column("tourPackageNameUniqueCounter", "Tour Package Name Unique Counter", "string", TAB_IDENTIFIER),
        # Traveller Information
        _column("reservationDate", "Reservation Date", "date", TAB_TRAVELLER),
        _column("bookingType", "Booking Type", "select", TAB_TRAVELLER),
        _column("tourPackageName", "Tour Package Name", "select", TAB_TRAVELLER),
        _column("emailAddress", "Email Address", "email", TAB_TRAVELLER),
        _column("firstName", "First Name", "string", TAB_TRAVELLER),
        _column("lastName", "Last Name", "string", TAB_TRAVELLER),
        _function("fullName", "Full Name", TAB_TRAVELLER, "getFullName", ["firstName", "lastName"]),
        _column("paymentMethod", "Payment Method", "select", TAB_TRAVELLER),
        # Duo or group booking
        _column("isMainBooking", "Is Main Booking?", "boolean", TAB_GROUP),
        _column("isMainBooker", "Is Main Booker?", "boolean", TAB_GROUP),
        _function(
            "groupIdGroupIdGenerator",
            "Group ID / Group ID Generator",
            TAB_GROUP,
            "generateGroupMemberId",
            ["bookingType", "tourPackageName", "firstName", "lastName", "emailAddress", "isMainBooker"],
        ),
        _column("groupId", "Group ID", "string", TAB_GROUP),
        # Tour Details
        _column("tourDate", "Tour Date", "date", TAB_TOUR),
        _column("tourDuration", "Tour Duration", "string", TAB_TOUR),
        _function("returnDate", "Return Date", TAB_TOUR, "getReturnDate", ["tourDate", "tourDuration"]),
        _function(
            "daysBetweenBookingAndTourDate",
            "Days Between Booking and Tour Date",
            TAB_TOUR,
            "getDaysBetween",
            ["reservationDate", "tourDate"],
        ),
        _function(
            "eligible2ndofmonths",
            "Eligible 2nd-of-Months",
            TAB_TOUR,
            "getEligible2ndOfMonths",
            ["reservationDate", "tourDate"],
        ),
        _function(
            "paymentCondition",
            "Payment Condition",
            TAB_TOUR,
            "getPaymentCondition",
            ["tourDate", "eligible2ndofmonths", "daysBetweenBookingAndTourDate"],
        ),
        _function(
            "availablePaymentTerms",
            "Available Payment Terms",
            TAB_TOUR,
            "getAvailablePaymentTerms",
            ["reasonForCancellation", "paymentCondition"],
        ),
        # Payment Setting
        _column("paymentPlan", "Payment Plan", "select", TAB_PAYMENT),
        _column("originalTourCost", "Original Tour Cost", "currency", TAB_PAYMENT),
        _column("discountedTourCost", "Discounted Tour Cost", "currency", TAB_PAYMENT),
        _column("reservationFee", "Reservation Fee", "currency", TAB_PAYMENT),
        _column("creditFrom", "Credit From", "select", TAB_PAYMENT),
        _column("manualCredit", "Manual Credit", "currency", TAB_PAYMENT),
        _function(
            "paid",
            "Paid",
            TAB_PAYMENT,
            "getTotalPaid",
            [
                "tourPackageName",
                "reservationFee",
                "creditFrom",
                "manualCredit",
                "fullPaymentDatePaid",
                "fullPaymentAmount",
                "p1DatePaid",
                "p1Amount",
                "p2DatePaid",
                "p2Amount",
                "p3DatePaid",
                "p3Amount",
                "p4DatePaid",
                "p4Amount",
            ],
        ),
        _function(
            "paidTerms",
            "Paid Terms",
            TAB_PAYMENT,
            "getPaidTerms",
            [
                "tourPackageName",
                "creditFrom",
                "manualCredit",
                "fullPaymentDatePaid",
                "fullPaymentAmount",
                "p1DatePaid",
                "p1Amount",
                "p2DatePaid",
                "p2Amount",
                "p3DatePaid",
                "p3Amount",
                "p4DatePaid",
                "p4Amount",
            ],
        ),
        _function(
            "remainingBalance",
            "Remaining Balance",
            TAB_PAYMENT,
            "getRemainingBalance",
            [
                "tourPackageName",
                "discountedTourCost",
                "originalTourCost",
                "reservationFee",
                "creditFrom",
                "manualCredit",
                "paymentPlan",
                "fullPaymentDatePaid",
                "fullPaymentAmount",
                "p1DatePaid",
                "p1Amount",
                "p2DatePaid",
                "p2Amount",
                "p3DatePaid",
                "p3Amount",
                "p4DatePaid",
                "p4Amount",
            ],
        ),
        _function(
            "bookingStatus",
            "Booking Status",
            TAB_PAYMENT,
            "getBookingStatus",
            [
                "reasonForCancellation",
                "paymentPlan",
                "remainingBalance",
                "fullPaymentDatePaid",
                "p1DatePaid",
                "p2DatePaid",
                "p3DatePaid",
                "p4DatePaid",
            ],
        ),
        _function(
            "paymentProgress",
            "Payment Progress",
            TAB_PAYMENT,
            "getPaymentProgress",
            ["bookingStatus", "paymentPlan", "fullPaymentDatePaid", "p1DatePaid", "p2DatePaid", "p3DatePaid", "p4DatePaid"],
        ),
        _column("enablePaymentReminder", "Enable Payment Reminder", "boolean", TAB_PAYMENT),
        # Full Payment
        _function(
            "fullPaymentDueDate",
            "Full Payment Due Date",
            TAB_FULL_PAYMENT,
            "getFullPaymentDueDate",
            ["reservationDate", "paymentPlan"],
        ),
        _function(
            "fullPaymentAmount",
            "Full Payment Amount",
            TAB_FULL_PAYMENT,
            "getFullPaymentAmount",
            ["paymentPlan", "originalTourCost", "discountedTourCost", "reservationFee", "isMainBooking", "manualCredit"],
        ),
        _column("fullPaymentDatePaid", "Full Payment Date Paid", "date", TAB_FULL_PAYMENT),
    ]

    for n in range(1, 5):
        columns.extend(_term_columns(n))

    columns.extend(
        [
            # Reminders
            _column("sentInitialReminderLink", "Sent Initial Reminder Link", "string", TAB_REMINDERS, include_in_forms=False),
            # Cancellation
            _column("reasonForCancellation", "Reason for Cancellation", "select", TAB_CANCELLATION),
            _column("cancellationRequestDate", "Cancellation Request Date", "date", TAB_CANCELLATION),
            _column("supplierCostsCommitted", "Supplier Costs Committed", "currency", TAB_CANCELLATION),
            _column("noShow", "No-Show", "boolean", TAB_CANCELLATION),
            _function(
                "cancellationInitiatedBy",
                "Cancellation Initiated By",
                TAB_CANCELLATION,
                "getCancellationInitiator",
                ["reasonForCancellation"],
            ),
            _function(
                "cancellationScenario",
                "Cancellation Scenario",
                TAB_CANCELLATION,
                "getCancellationScenario",
                [
                    "cancellationRequestDate",
                    "tourDate",
                    "paymentPlan",
                    "paidTerms",
                    "fullPaymentDatePaid",
                    "supplierCostsCommitted",
                    "noShow",
                    "reasonForCancellation",
                ],
            ),
            _function(
                "eligibleRefund",
                "Eligible Refund",
                TAB_CANCELLATION,
                "getEligibleRefund",
                [
                    "cancellationRequestDate",
                    "tourDate",
                    "reasonForCancellation",
                    "paymentPlan",
                    "paidTerms",
                    "fullPaymentDatePaid",
                    "supplierCostsCommitted",
                    "noShow",
                ],
            ),
            _function(
                "adminFee",
                "Admin Fee",
                TAB_CANCELLATION,
                "getAdminFee",
                [
                    "cancellationInitiatedBy",
                    "eligibleRefund",
                    "paidTerms",
                    "fullPaymentAmount",
                    "reservationFee",
                    "supplierCostsCommitted",
                    "reasonForCancellation",
                ],
            ),
            _function(
                "refundableAmount",
                "Refundable Amount",
                TAB_CANCELLATION,
                "getRefundableAmount",
                [
                    "reasonForCancellation",
                    "adminFee",
                    "paid",
                    "paidTerms",
                    "reservationFee",
                    "fullPaymentAmount",
                    "supplierCostsCommitted",
                    "cancellationRequestDate",
                    "eligibleRefund",
                ],
            ),
            _function(
                "nonRefundableAmount",
                "Non Refundable Amount",
                TAB_CANCELLATION,
                "getNonRefundableAmount",
                ["paid", "refundableAmount"],
            ),
        ]
    )

    for order, column in enumerate(columns, start=1):
        column["order"] = order
    return columns


# ============================================================================
# FUNCTION TABLE
# ============================================================================


def _installment_due_date(reservation_date, tour_date, payment_plan, payment_condition, term):
    return calc.generate_installment_due_dates(reservation_date, tour_date, payment_plan, payment_condition)[
        f"{term}DueDate"
    ]


def _installment_amount(
    payment_plan,
    original_cost,
    discounted_cost,
    reservation_fee,
    is_main_booking,
    credit_amount,
    credit_from,
    p1_due_date,
    p2_due_date,
    p3_due_date,
    p4_due_date,
    term,
):
    amounts = calc.calculate_installment_amounts(
        payment_plan,
        original_cost,
        discounted_cost,
        reservation_fee,
        is_main_booking is not False,
        credit_amount or 0,
        credit_from or "",
        p1_due_date,
        p2_due_date,
        p3_due_date,
        p4_due_date,
    )
    return amounts[f"{term}Amount"]


def _scheduled_reminder_date(due_date, date_paid):
    if not due_date or date_paid:
        return ""
    return calc.calculate_scheduled_reminder_dates({"p1DueDate": due_date})["p1ScheduledReminderDate"]


def _available_payment_terms(cancel_marker, payment_condition):
    cancelled = cancel_marker is not None and str(cancel_marker).strip() != ""
    return calc.get_available_payment_terms(payment_condition, is_cancelled=cancelled)


def _full_payment_amount(payment_plan, original_cost, discounted_cost, reservation_fee, is_main_booking, credit):
    return calc.get_full_payment_amount(
        payment_plan, original_cost, discounted_cost, reservation_fee, is_main_booking is not False, credit or 0
    )


FUNCTION_TABLE: dict[str, Callable] = {
    "generateBookingId": calc.generate_booking_id,
    "getBookingCode": calc.get_booking_code,
    "formatDateYYYYMMDD": calc.format_date_yyyymmdd,
    "getTravellerInitials": calc.get_traveller_initials,
    "getFullName": calc.get_full_name,
    "generateGroupMemberId": calc.generate_group_member_id,
    "getReturnDate": calc.compute_return_date,
    "getDaysBetween": calc.get_days_between,
    "getEligible2ndOfMonths": calc.get_eligible_2nd_of_months,
    "getPaymentCondition": calc.get_payment_condition,
    "getAvailablePaymentTerms": _available_payment_terms,
    "getTotalPaid": payment_status.total_paid,
    "getPaidTerms": payment_status.paid_terms,
    "getRemainingBalance": payment_status.remaining_balance,
    "getBookingStatus": payment_status.booking_status,
    "getPaymentProgress": payment_status.payment_progress,
    "getFullPaymentDueDate": calc.get_full_payment_due_date,
    "getFullPaymentAmount": _full_payment_amount,
    "getInstallmentDueDate": _installment_due_date,
    "getInstallmentAmount": _installment_amount,
    "getScheduledReminderDate": _scheduled_reminder_date,
    "getCancellationInitiator": lambda reason: cancellation.extract_initiator(reason) or "",
    "getCancellationScenario": cancellation.get_cancellation_scenario_label,
    "getEligibleRefund": cancellation.get_eligible_refund,
    "getAdminFee": cancellation.get_admin_fee,
    "getRefundableAmount": cancellation.get_refundable_amount,
    "getNonRefundableAmount": cancellation.get_non_refundable_amount,
}

BOOKING_COLUMNS: list = _build_columns()
COLUMNS_BY_ID: dict = {column["id"]: column for column in BOOKING_COLUMNS}


def get_column(column_id: str) -> Optional[dict]:
    return COLUMNS_BY_ID.get(column_id)


def find_column_by_name(column_name: str) -> Optional[dict]:
    """Case-insensitive lookup by display name (used when importing sheets)"""
    target = (column_name or "").strip().lower()
    for column in BOOKING_COLUMNS:
        if column["columnName"].lower() == target:
            return column
    return None
