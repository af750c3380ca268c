from datetime import datetime, timezone

import pytest

from backoffice.calculations.booking_calculations import (
    calculate_installment_amounts,
    calculate_payment_plan_update,
    calculate_scheduled_reminder_dates,
    compute_return_date,
    create_booking_data,
    extract_payment_plan_type,
    first_due_date,
    format_date_display,
    format_month_day_year,
    generate_booking_id,
    generate_group_member_id,
    generate_installment_due_dates,
    get_available_payment_terms,
    get_days_between,
    get_eligible_2nd_of_months,
    get_full_payment_amount,
    get_payment_condition,
    normalize_tour_date,
    parse_month_day_year,
    round_currency,
    to_date,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestDates:
    def test_to_date_accepts_sheet_formats(self):
        assert to_date("02/12/2025") == utc(2025, 12, 2)
        assert to_date("2025-12-02") == utc(2025, 12, 2)
        assert to_date({"seconds": 0, "nanoseconds": 0}) == utc(1970, 1, 1)
        assert to_date("Dec 2, 2025") == utc(2025, 12, 2)

    def test_to_date_returns_none_for_junk(self):
        assert to_date("") is None
        assert to_date("not a date") is None
        assert to_date(None) is None
        assert to_date(True) is None

    def test_display_formats(self):
        assert format_date_display("2025-12-02") == "Dec 2, 2025"
        assert format_month_day_year("2026-02-03") == "February 03 2026"
        assert parse_month_day_year("February 03 2026") == utc(2026, 2, 3)
        assert parse_month_day_year("Smarch 03 2026") is None

    def test_tour_date_is_pinned_to_nine_am_in_utc_plus_eight(self):
        assert normalize_tour_date("2025-12-02T20:00:00Z") == utc(2025, 12, 3, 1, 0)
        assert normalize_tour_date("2025-12-02") == utc(2025, 12, 2, 1, 0)

    def test_return_date_adds_duration_days(self):
        assert compute_return_date("2025-12-02", "13 Days") == "2025-12-15"
        assert compute_return_date("2025-12-02", "") == ""

    def test_round_currency_rounds_half_up(self):
        assert round_currency(0.125) == 0.13
        assert round_currency(100 / 3) == 33.33


class TestIdentifiers:
    def test_booking_id_requires_every_part(self):
        assert generate_booking_id("SB", "PKG", "20250915", "JD", "001") == "SB-PKG-20250915-JD001"
        assert generate_booking_id("SB", "", "20250915", "JD", "001") == ""

    def test_group_member_id_is_stable(self):
        first = generate_group_member_id("Duo Booking", "Tour", "John", "Doe", "john@example.com")
        second = generate_group_member_id("Duo Booking", "Tour", "John", "Doe", "john@example.com")
        assert first == second
        assert first.startswith("DB-JD-")

    def test_group_member_id_only_for_duo_and_group(self):
        assert generate_group_member_id("Single Booking", "Tour", "John", "Doe", "john@example.com") == ""
        assert generate_group_member_id("Group Booking", "Tour", "John", "Doe", "j@x.com", is_active=False) == ""


class TestPaymentCondition:
    def test_days_between(self):
        assert get_days_between("2025-01-01", "2025-03-01") == 59
        assert get_days_between("", "2025-03-01") == ""

    def test_eligible_second_of_months(self):
        assert get_eligible_2nd_of_months("2025-01-01", "2025-06-01") == 4

    @pytest.mark.parametrize(
        "eligible, days, expected",
        [
            (0, 1, "Invalid Booking"),
            (0, 10, "Last Minute Booking"),
            (2, 70, "Standard Booking, P2"),
            (6, 200, "Standard Booking, P4"),
        ],
    )
    def test_payment_condition(self, eligible, days, expected):
        assert get_payment_condition("2025-06-01", eligible, days) == expected

    def test_payment_condition_needs_tour_date(self):
        assert get_payment_condition("", 2, 70) == ""

    def test_available_terms(self):
        assert get_available_payment_terms("Last Minute Booking") == "Full payment required within 48hrs"
        assert get_available_payment_terms("Standard Booking, P3") == "P3"
        assert get_available_payment_terms("Standard Booking, P3", is_cancelled=True) == "Cancelled"

    def test_extract_payment_plan_type(self):
        assert extract_payment_plan_type("P2 - Two Instalments") == "P2"
        assert extract_payment_plan_type("full_payment") == "Full Payment"


class TestAmounts:
    def test_full_payment_amount(self):
        assert get_full_payment_amount("Full Payment", 2000, "", 250, True) == 1750
        assert get_full_payment_amount("Full Payment", 2000, 1800, 250, True) == 1550
        assert get_full_payment_amount("Full Payment", 2000, 1800, 250, False) == 1750
        assert get_full_payment_amount("P2", 2000, "", 250, True) == ""

    def test_preview_due_dates_without_plan(self):
        dates = generate_installment_due_dates("2025-01-01", "2025-06-01", "", "Standard Booking, P4")
        assert dates["p1DueDate"] == "Feb 2, 2025"
        assert dates["p2DueDate"] == "Feb 2, 2025, Mar 2, 2025"
        assert dates["p4DueDate"] == "Feb 2, 2025, Mar 2, 2025, Apr 2, 2025, May 2, 2025"

    def test_due_dates_for_selected_plan(self):
        dates = generate_installment_due_dates("2025-01-01", "2025-06-01", "P2", "Standard Booking, P4")
        assert dates == {"p1DueDate": "Feb 2, 2025", "p2DueDate": "Mar 2, 2025", "p3DueDate": "", "p4DueDate": ""}

    def test_preview_amounts_divide_total(self):
        amounts = calculate_installment_amounts("", 2000, None, 250, True, 0, "", "a", "b", "c", "d")
        assert amounts == {"p1Amount": 1750, "p2Amount": 875, "p3Amount": 583.33, "p4Amount": 437.5}

    def test_plan_amounts_with_credit_on_a_term(self):
        amounts = calculate_installment_amounts("P3", 2000, None, 250, True, 100, "P2", "a", "b", "c")
        assert amounts["p1Amount"] == 583.33
        assert amounts["p2Amount"] == 100
        assert amounts["p3Amount"] == 583.33
        assert amounts["p4Amount"] == ""

    def test_plan_amounts_with_reservation_credit(self):
        amounts = calculate_installment_amounts("P3", 2000, None, 250, True, 100, "Reservation", "a", "b", "c")
        assert amounts["p1Amount"] == 550
        assert amounts["p3Amount"] == 550

    def test_reminder_dates_are_a_week_before_due(self):
        reminders = calculate_scheduled_reminder_dates({"p1DueDate": "Feb 2, 2025"}, 7, today=utc(2025, 1, 1))
        assert reminders["p1ScheduledReminderDate"] == "2025-01-26"
        assert reminders["p2ScheduledReminderDate"] == ""

    def test_reminder_dates_in_the_past_are_blank(self):
        reminders = calculate_scheduled_reminder_dates({"p1DueDate": "Feb 2, 2025"}, 7, today=utc(2025, 1, 30))
        assert reminders["p1ScheduledReminderDate"] == ""

    def test_first_due_date(self):
        assert first_due_date("Feb 2, 2025, Mar 2, 2025") == "Feb 2, 2025"
        assert first_due_date("") == ""


class TestBookingCreation:
    def test_create_booking_data(self):
        data = create_booking_data(
            {
                "email": "john@example.com",
                "firstName": "John",
                "lastName": "Doe",
                "bookingType": "Single Booking",
                "tourPackageName": "Sunrise",
                "tourCode": "PKG",
                "tourDate": "2025-06-01",
                "reservationFee": 250,
                "paidAmount": 250,
                "originalTourCost": 2000,
                "existingBookingsCount": 0,
                "totalBookingsCount": 4,
            },
            now=utc(2025, 1, 1),
        )
        assert data["bookingId"] == "SB-PKG-20250601-JD001"
        assert data["fullName"] == "John Doe"
        assert data["daysBetweenBookingAndTourDate"] == 151
        assert data["paymentCondition"] == "Standard Booking, P4"
        assert data["availablePaymentTerms"] == "P4"
        assert data["p1DueDate"] == "Feb 2, 2025"
        assert data["remainingBalance"] == 1750
        assert data["row"] == 5
        assert data["tourDate"] == "2025-06-01T01:00:00+00:00"

    def test_payment_plan_update(self):
        update = calculate_payment_plan_update(
            {
                "paymentPlan": "P2",
                "reservationDate": "2025-01-01T00:00:00+00:00",
                "tourDate": "2025-06-01",
                "paymentCondition": "Standard Booking, P4",
                "originalTourCost": 2000,
                "reservationFee": 250,
                "isMainBooker": False,
            },
            today=utc(2025, 1, 1),
        )
        assert update["bookingStatus"] == "Installment 0/2"
        assert update["p1DueDate"] == "Feb 2, 2025"
        assert update["p2DueDate"] == "Mar 2, 2025"
        assert update["p3DueDate"] == ""
        assert update["p1Amount"] == 875
        assert update["p2Amount"] == 875
        assert update["p1ScheduledReminderDate"] == "2025-01-26"
        assert update["p2ScheduledReminderDate"] == "2025-02-23"
        assert update["fullPaymentAmount"] == ""
