from backoffice.calculations.payment_status import (
    booking_status,
    is_paid,
    paid_terms,
    payment_progress,
    remaining_balance,
    total_paid,
)


class TestBookingStatus:
    def test_cancellation_reason_wins(self):
        assert booking_status("Guest - changed plans", "P2", 875, None, "2026-01-02") == "Cancelled"

    def test_blank_row_has_no_status(self):
        assert booking_status(None, "", None) == ""

    def test_installment_progress_shows_last_paid_date(self):
        status = booking_status(None, "P3", 1166.67, None, "2026-01-02")
        assert status == "Installment 1/3 — last paid Jan 2, 2026"

    def test_unpaid_installment_plan(self):
        assert booking_status(None, "P2", 1750) == "Installment 0/2"

    def test_full_payment_waiting(self):
        assert booking_status(None, "Full Payment", 1750) == "Waiting for Full Payment"

    def test_confirmed_once_balance_is_cleared(self):
        assert booking_status(None, "Full Payment", 0, "2026-02-02") == "Booking Confirmed — Feb 2, 2026"

    def test_currency_string_balance_is_parsed(self):
        status = booking_status(None, "P2", "£0.00", None, "2026-01-02", "2026-02-02")
        assert status == "Booking Confirmed — Feb 2, 2026"


class TestPaymentProgress:
    def test_partial_installments(self):
        assert payment_progress("Installment 1/3", "P3", None, "2026-01-02") == "33%"

    def test_all_installments_paid(self):
        assert payment_progress("Booking Confirmed", "P2", None, "2026-01-02", "2026-02-02") == "100%"

    def test_full_payment(self):
        assert payment_progress("Waiting for Full Payment", "Full Payment") == "0%"
        assert payment_progress("Booking Confirmed", "Full Payment", "2026-02-02") == "100%"

    def test_cancelled_and_blank(self):
        assert payment_progress("Cancelled", "P2", None, "2026-01-02") == ""
        assert payment_progress("", "P2") == ""


class TestBalances:
    def test_remaining_balance_after_one_term(self):
        assert remaining_balance("Tour", None, 2000, 250, None, None, "P2", None, None, "2026-01-02", 875) == 875

    def test_remaining_balance_with_reservation_credit(self):
        balance = remaining_balance("Tour", None, 2000, 250, "Reservation", 100, "P2", None, None, "2026-01-02", 875)
        assert balance == 775

    def test_remaining_balance_prefers_discounted_cost(self):
        assert remaining_balance("Tour", 1800, 2000, 250) == 1550

    def test_remaining_balance_needs_a_tour(self):
        assert remaining_balance("", None, 2000, 250) == ""

    def test_total_paid_includes_reservation_fee(self):
        assert total_paid("Tour", 250, None, None, None, None, "2026-01-02", 875) == 1125

    def test_total_paid_counts_credit_on_its_term(self):
        assert total_paid("Tour", 250, "P2", 100, None, None, "2026-01-02", 875) == 1225

    def test_paid_terms_excludes_reservation_fee(self):
        assert paid_terms("Tour", None, None, None, None, "2026-01-02", 875, "2026-02-02", 875) == 1750
        assert paid_terms("", None, None) == ""

    def test_is_paid(self):
        assert is_paid("2026-01-02")
        assert is_paid({"seconds": 1700000000})
        assert not is_paid("")
        assert not is_paid(None)
