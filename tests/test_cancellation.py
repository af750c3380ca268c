import pytest

from backoffice.calculations.cancellation import (
    calculate_days_before_tour,
    detect_cancellation_scenario,
    extract_initiator,
    get_admin_fee,
    get_cancellation_scenario_label,
    get_eligible_refund,
    get_non_refundable_amount,
    get_refundable_amount,
)


@pytest.mark.parametrize(
    "reason, expected",
    [
        ("Guest - changed plans", "Guest"),
        ("IHT-tour cancelled", "IHT"),
        ("cancelled by iht ops", "IHT"),
        ("the guest asked", "Guest"),
        ("weather", None),
        ("", None),
    ],
)
def test_extract_initiator(reason, expected):
    assert extract_initiator(reason) == expected


def test_days_before_tour():
    assert calculate_days_before_tour("2025-01-01", "2025-05-01") == 120
    assert calculate_days_before_tour("", "2025-05-01") == 0


class TestScenarioDetection:
    def test_guest_cancels_full_payment_early(self):
        scenario = detect_cancellation_scenario(
            "Guest - changed plans", "2025-01-01", "2025-05-01", "Full Payment", 0, "2024-12-01", initiated_by="Guest"
        )
        assert scenario.scenario_id == "guest-cancel-full-early"
        assert scenario.days_before_tour == 120

    def test_iht_cancels_before_start(self):
        scenario = detect_cancellation_scenario(
            "IHT - not enough guests", "2025-01-01", "2025-05-01", "P2", 875, initiated_by="IHT"
        )
        assert scenario.scenario_id == "iht-cancel-before"

    def test_installment_default_mid_range(self):
        scenario = detect_cancellation_scenario("Missed payment", "2025-03-01", "2025-05-01", "P3", 583.33)
        assert scenario.scenario_id == "installment-default-mid"
        assert scenario.timing == "mid-range"
        assert scenario.days_before_tour == 61

    def test_no_show_after_tour_start(self):
        scenario = detect_cancellation_scenario(
            "Guest - no show", "2025-05-02", "2025-05-01", "P2", 1750, is_no_show=True, initiated_by="Guest"
        )
        assert scenario.scenario_id == "guest-no-show"

    def test_supplier_costs_take_priority_over_guest_rules(self):
        scenario = detect_cancellation_scenario(
            "Guest - changed plans", "2025-04-20", "2025-05-01", "P2", 875, supplier_costs=300, initiated_by="Guest"
        )
        assert scenario.scenario_id == "supplier-costs"

    def test_nothing_paid(self):
        scenario = detect_cancellation_scenario("weather", "2025-01-01", "2025-05-01", "", 0)
        assert scenario.scenario_id == "no-payment"

    def test_needs_reason_and_date(self):
        assert detect_cancellation_scenario("", "2025-01-01", "2025-05-01", "P2") is None
        assert detect_cancellation_scenario("Guest - x", "", "2025-05-01", "P2") is None

    def test_to_dict_uses_camel_case(self):
        scenario = detect_cancellation_scenario("weather", "2025-01-01", "2025-05-01", "", 0)
        assert scenario.to_dict()["scenarioId"] == "no-payment"


def test_scenario_label_includes_days():
    label = get_cancellation_scenario_label(
        "2025-01-01", "2025-05-01", "Full Payment", 0, "2024-12-01", reason="Guest - changed plans"
    )
    assert label == "Guest Cancel Early (Full Payment) (120 days before tour)"


def test_eligible_refund_requires_a_plan():
    assert get_eligible_refund("2025-01-01", "2025-05-01", "Guest - x", "", 0) == ""
    policy = get_eligible_refund("2025-01-01", "2025-05-01", "Guest - x", "P2", 875, None)
    assert policy == "Refund of paid terms minus admin fee"


class TestRefundAmounts:
    policy_full = "100% of non-reservation amount minus admin fee"
    policy_half = "50% of non-reservation amount minus admin fee"

    def test_admin_fee_is_ten_percent_of_non_reservation_amount(self):
        assert get_admin_fee("Guest", self.policy_full, 0, 2000, 250, reason="Guest - x") == 175

    def test_admin_fee_waived(self):
        assert get_admin_fee("IHT", self.policy_full, 0, 2000, 250, reason="IHT - x") == 0
        assert get_admin_fee("Guest", "No refund - All amounts forfeited", 0, 2000, 250, reason="Guest - x") == 0
        assert get_admin_fee("Guest", self.policy_full, 0, 2000, 250) == ""

    def test_full_share(self):
        amount = get_refundable_amount("Guest - x", 175, 2000, 0, 250, 2000, 0, "2025-01-01", self.policy_full)
        assert amount == 1575

    def test_half_share(self):
        amount = get_refundable_amount("Guest - x", 175, 2000, 0, 250, 2000, 0, "2025-03-01", self.policy_half)
        assert amount == 700

    def test_iht_refunds_everything_paid(self):
        amount = get_refundable_amount("IHT - x", 0, 1125, 875, 250, "", 0, "2025-01-01", "")
        assert amount == 1125

    def test_supplier_costs_policy(self):
        amount = get_refundable_amount(
            "Guest - x",
            0,
            1125,
            875,
            250,
            "",
            300,
            "2025-04-20",
            "Refund minus supplier costs and admin fee",
        )
        assert amount == 575

    def test_no_refund_policy(self):
        amount = get_refundable_amount("Guest - x", 0, 1125, 875, 250, "", 0, "2025-04-20", "No refund")
        assert amount == 0

    def test_non_refundable_amount(self):
        assert get_non_refundable_amount(2000, "") == ""
        assert get_non_refundable_amount(2000, 1575) == 425
