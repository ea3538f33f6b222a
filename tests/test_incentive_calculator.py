from datetime import datetime
from decimal import Decimal

import pytest

from leadcrm.models.penalty import PenaltyType
from leadcrm.schemas.incentive import (
    CommissionRule,
    IncentiveInputs,
    IncentiveRules,
    PenaltyRecord,
    SaleRecord,
)
from leadcrm.services.incentive_calculator import (
    calculate_commission,
    calculate_incentive_breakdown,
    calculate_streak_bonus,
    find_commission_rule,
    penalty_percentage_for,
    total_penalty_percentage,
)

D = Decimal

RULES = [
    CommissionRule(category_id=1, category_name="Geared", commission_percentage=D("0.8")),
    CommissionRule(
        category_id=2,
        category_name="Electric",
        commission_percentage=D("0.7"),
        multiplier=D("1.5"),
        premium_threshold=D("50000"),
    ),
    CommissionRule(category_name="Default", commission_percentage=D("0.5")),
]


def no_target_rules(**overrides):
    return IncentiveRules(default_monthly_target=D("0"), **overrides)


def sale(lead_id, price, reviewed=True, category_id=1, category_name="Geared", **extra):
    return SaleRecord(
        lead_id=lead_id,
        category_id=category_id,
        category_name=category_name,
        sale_price=D(price),
        review_status="reviewed" if reviewed else "yet_to_review",
        created_at=datetime(2024, 5, 3, 10, 0),
        **extra,
    )


def inputs(**kwargs):
    kwargs.setdefault("user_id", 7)
    kwargs.setdefault("month", "2024-05")
    return IncentiveInputs(**kwargs)


class TestCommission:

    def test_rule_lookup_prefers_category_id(self):
        assert find_commission_rule(RULES, 2, "Geared").category_name == "Electric"

    def test_rule_lookup_falls_back_to_name_then_default(self):
        assert find_commission_rule(RULES, 99, "  electric ").category_name == "Electric"
        assert find_commission_rule(RULES, 99, "Kids").category_name == "Default"

    def test_no_rules_uses_fallback_rate(self):
        percentage, amount = calculate_commission(D("10000"), None)
        assert percentage == D("0.8")
        assert amount == D("80.00")

    def test_multiplier_applies_from_premium_threshold(self):
        electric = RULES[1]
        below = calculate_commission(D("49999"), electric)
        at = calculate_commission(D("50000"), electric)
        assert below[0] == D("0.7")
        assert at[0] == D("1.05")
        assert at[1] == D("525.00")

    def test_amount_is_rounded_to_cents(self):
        _, amount = calculate_commission(D("333.33"), RULES[0])
        assert amount == D("2.67")


class TestStreakBonus:

    @pytest.mark.parametrize("days,tier,amount", [
        (0, None, D("0")),
        (6, None, D("0")),
        (7, "7_days", D("50")),
        (13, "7_days", D("50")),
        (14, "14_days", D("150")),
        (45, "30_days", D("700")),
    ])
    def test_highest_reached_tier_pays(self, days, tier, amount):
        line = calculate_streak_bonus(days, IncentiveRules())
        assert line.bonus_tier == tier
        assert line.bonus_amount == amount
        assert line.current_streak == days


class TestPenaltyPercentage:

    def test_flat_penalty_uses_configured_percentage(self):
        assert penalty_percentage_for(PenaltyType.LATE_ARRIVAL, IncentiveRules()) == D("5")
        assert penalty_percentage_for("client_disrespect", IncentiveRules()) == D("100")

    def test_low_compliance_scales_and_caps(self):
        rules = IncentiveRules()
        assert penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, rules, D("94")) == D("20")
        assert penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, rules, D("80")) == D("50")
        assert penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, rules, D("96")) == D("0")

    def test_high_error_rate_scales_above_threshold(self):
        rules = IncentiveRules()
        assert penalty_percentage_for(PenaltyType.HIGH_ERROR_RATE, rules, D("3")) == D("20")
        assert penalty_percentage_for(PenaltyType.HIGH_ERROR_RATE, rules, D("1")) == D("0")

    def test_low_team_eval_is_uncapped(self):
        assert penalty_percentage_for(PenaltyType.LOW_TEAM_EVAL, IncentiveRules(), D("0")) == D("60")

    def test_measured_penalty_without_value_is_zero(self):
        assert penalty_percentage_for(PenaltyType.LOW_COMPLIANCE, IncentiveRules()) == D("0")

    def test_total_is_capped_at_hundred(self):
        assert total_penalty_percentage([D("60"), D("70")]) == D("100")
        assert total_penalty_percentage([]) == D("0")


class TestBreakdown:

    def test_month_without_sales_earns_no_commission(self):
        breakdown = calculate_incentive_breakdown(inputs(), no_target_rules(), RULES)
        assert breakdown.sales == []
        assert breakdown.summary.gross_commission == D("0")
        assert breakdown.summary.final_amount == D("0")

    def test_only_reviewed_sales_earn_commission(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "10000"), sale(2, "20000", reviewed=False)]),
            no_target_rules(),
            RULES,
        )
        summary = breakdown.summary
        assert summary.total_sales == D("30000.00")
        assert summary.sales_count == 2
        assert summary.qualified_sales_count == 1
        assert summary.gross_commission == D("80.00")
        assert summary.review_bonus == D("10.00")
        assert summary.final_amount == D("90.00")

    def test_stored_commission_is_used_as_is(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "10000", commission_rate_applied=D("2"), commission_amount=D("200"))]),
            no_target_rules(),
            RULES,
        )
        assert breakdown.sales[0].commission_amount == D("200.00")
        assert breakdown.summary.gross_commission == D("200.00")

    def test_zero_priced_sales_are_ignored(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "0")]), no_target_rules(), RULES
        )
        assert breakdown.sales == []

    def test_penalties_reduce_bonuses_and_commission(self):
        breakdown = calculate_incentive_breakdown(
            inputs(
                win_leads=[sale(1, "100000")],
                streak_days=7,
                penalties=[PenaltyRecord(penalty_type="late_arrival", penalty_percentage=D("5"))],
            ),
            no_target_rules(),
            RULES,
        )
        summary = breakdown.summary
        # 800 commission + 50 streak + 10 review
        assert summary.gross_total == D("860.00")
        assert summary.penalty_amount == D("43.00")
        assert summary.net_before_cap == D("817.00")

    def test_missed_target_pays_nothing(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "10000")], target_amount=D("50000")),
            no_target_rules(),
            RULES,
        )
        assert breakdown.summary.qualifies_for_incentive is False
        assert breakdown.summary.gross_commission == D("80.00")
        assert breakdown.summary.final_amount == D("0")

    def test_org_default_target_applies_without_a_user_target(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "10000")]),
            IncentiveRules(default_monthly_target=D("5000")),
            RULES,
        )
        assert breakdown.summary.target_amount == D("5000.00")
        assert breakdown.summary.qualifies_for_incentive is True

    def test_salary_cap(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "100000")], monthly_salary=D("500")),
            no_target_rules(),
            RULES,
        )
        assert breakdown.summary.net_before_cap == D("810.00")
        assert breakdown.summary.cap_applied is True
        assert breakdown.summary.final_amount == D("500.00")

    def test_salary_cap_can_be_disabled(self):
        breakdown = calculate_incentive_breakdown(
            inputs(win_leads=[sale(1, "100000")], monthly_salary=D("500")),
            no_target_rules(salary_cap_enabled=False),
            RULES,
        )
        assert breakdown.summary.cap_applied is False
        assert breakdown.summary.final_amount == D("810.00")
