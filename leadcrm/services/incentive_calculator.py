"""
Monthly incentive rules.

Pure functions over already-loaded data: no database access, no clock. The
incentive service gathers the inputs for (user, month) and persists what these
functions return.

Order of application:

1. commission is earned only on sales whose customer review is in
2. streak and review bonuses are added on top of the commission
3. active penalties take a percentage (capped at 100) off that total
4. nothing is paid when the monthly sales target is missed
5. the result is capped at the user's monthly salary when the cap is enabled
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from leadcrm.models.lead import ReviewStatus
from leadcrm.models.penalty import PenaltyType
from leadcrm.schemas.incentive import (
    CommissionRule,
    IncentiveBreakdown,
    IncentiveInputs,
    IncentiveRules,
    IncentiveSummary,
    PenaltyLine,
    ReviewLine,
    SaleLine,
    StreakLine,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

FALLBACK_COMMISSION_PERCENTAGE = Decimal("0.8")
DEFAULT_RATE_NAME = "Default"
MAX_PENALTY_PERCENTAGE = HUNDRED
MEASURED_PENALTY_CAP = Decimal("50")

STREAK_TIERS = (
    (30, "30_days", "streak_bonus_30_days"),
    (14, "14_days", "streak_bonus_14_days"),
    (7, "7_days", "streak_bonus_7_days"),
)


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ---- commission ----

def find_commission_rule(
    rules: Iterable[CommissionRule],
    category_id: Optional[int],
    category_name: Optional[str],
) -> Optional[CommissionRule]:
    """Rate for a category: by id, then by name, then the ``Default`` row."""
    rules = list(rules)
    if category_id is not None:
        for rule in rules:
            if rule.category_id == category_id:
                return rule
    if category_name:
        lowered = category_name.strip().lower()
        for rule in rules:
            if rule.category_name.strip().lower() == lowered:
                return rule
    for rule in rules:
        if rule.category_name == DEFAULT_RATE_NAME:
            return rule
    return None


def calculate_commission(
    sale_price,
    rule: Optional[CommissionRule],
) -> Tuple[Decimal, Decimal]:
    """Returns (applied percentage, commission amount) for one sale."""
    price = to_decimal(sale_price)
    if rule is None:
        percentage = FALLBACK_COMMISSION_PERCENTAGE
    else:
        percentage = to_decimal(rule.commission_percentage)
        if price >= to_decimal(rule.premium_threshold):
            percentage = percentage * to_decimal(rule.multiplier)
    amount = price * percentage / HUNDRED
    return percentage, quantize_money(amount)


# ---- bonuses ----

def calculate_streak_bonus(streak_days: int, rules: IncentiveRules) -> StreakLine:
    """Only the highest tier reached pays."""
    for min_days, tier, field in STREAK_TIERS:
        if streak_days >= min_days:
            return StreakLine(
                current_streak=streak_days,
                bonus_tier=tier,
                bonus_amount=quantize_money(getattr(rules, field)),
            )
    return StreakLine(current_streak=streak_days, bonus_tier=None, bonus_amount=ZERO)


def calculate_review_bonus(reviews_count: int, rules: IncentiveRules) -> ReviewLine:
    per_review = to_decimal(rules.review_bonus_per_review)
    return ReviewLine(
        reviews_count=reviews_count,
        bonus_per_review=quantize_money(per_review),
        total_bonus=quantize_money(per_review * reviews_count),
    )


# ---- penalties ----

FLAT_PENALTIES = {
    PenaltyType.LATE_ARRIVAL: "penalty_late_arrival",
    PenaltyType.UNAUTHORIZED_ABSENCE: "penalty_unauthorized_absence",
    PenaltyType.BACK_TO_BACK_OFFS: "penalty_back_to_back_offs",
    PenaltyType.NON_ESCALATED_LOST_LEAD: "penalty_non_escalated_lost_lead",
    PenaltyType.MISSING_DOCUMENTATION: "penalty_missing_documentation",
    PenaltyType.CLIENT_DISRESPECT: "penalty_client_disrespect",
}


def penalty_percentage_for(
    penalty_type,
    rules: IncentiveRules,
    measured_value=None,
) -> Decimal:
    """Percentage a single penalty takes off the month's gross total.

    Flat penalties use the configured percentage. The measured ones scale
    with how far ``measured_value`` misses its threshold and are 0 when the
    threshold is met or no value is given.
    """
    penalty_type = PenaltyType(penalty_type)

    if penalty_type in FLAT_PENALTIES:
        return to_decimal(getattr(rules, FLAT_PENALTIES[penalty_type]))

    if measured_value is None:
        return ZERO
    value = to_decimal(measured_value)

    if penalty_type == PenaltyType.LOW_COMPLIANCE:
        threshold = to_decimal(rules.compliance_threshold)
        if value < threshold:
            return min((threshold - value) * to_decimal(rules.penalty_low_compliance), MEASURED_PENALTY_CAP)
        return ZERO

    if penalty_type == PenaltyType.HIGH_ERROR_RATE:
        threshold = to_decimal(rules.error_rate_threshold)
        if value > threshold:
            return min((value - threshold) * to_decimal(rules.penalty_high_error_rate), MEASURED_PENALTY_CAP)
        return ZERO

    # low team evaluation scales per point below the threshold, uncapped
    threshold = to_decimal(rules.team_eval_threshold)
    if value < threshold:
        return (threshold - value) * to_decimal(rules.penalty_low_team_eval)
    return ZERO


def total_penalty_percentage(percentages: Iterable) -> Decimal:
    total = sum((to_decimal(p) for p in percentages), ZERO)
    return min(total, MAX_PENALTY_PERCENTAGE)


# ---- month ----

def build_sale_lines(inputs: IncentiveInputs, commission_rules: List[CommissionRule]) -> List[SaleLine]:
    lines = []
    for sale in inputs.win_leads:
        price = to_decimal(sale.sale_price)
        if price <= ZERO:
            continue

        if sale.commission_amount is not None:
            rate = to_decimal(sale.commission_rate_applied)
            amount = quantize_money(sale.commission_amount)
        else:
            rule = find_commission_rule(commission_rules, sale.category_id, sale.category_name)
            rate, amount = calculate_commission(price, rule)

        lines.append(SaleLine(
            lead_id=sale.lead_id,
            invoice_no=sale.invoice_no,
            customer_name=sale.customer_name,
            category_name=sale.category_name,
            sale_price=quantize_money(price),
            commission_rate=rate,
            commission_amount=amount,
            review_qualified=sale.review_status == ReviewStatus.REVIEWED.value,
            created_at=sale.created_at,
        ))
    return lines


def calculate_incentive_breakdown(
    inputs: IncentiveInputs,
    rules: IncentiveRules,
    commission_rules: List[CommissionRule],
) -> IncentiveBreakdown:
    sales = build_sale_lines(inputs, commission_rules)

    gross_commission = quantize_money(sum(
        (line.commission_amount for line in sales if line.review_qualified), ZERO
    ))
    total_sales = quantize_money(sum((line.sale_price for line in sales), ZERO))

    target_amount = to_decimal(inputs.target_amount)
    if target_amount <= ZERO:
        target_amount = to_decimal(rules.default_monthly_target)
    qualifies = total_sales >= target_amount if target_amount > ZERO else True

    streak = calculate_streak_bonus(inputs.streak_days, rules)

    reviews_count = sum(
        1 for sale in inputs.win_leads if sale.review_status == ReviewStatus.REVIEWED.value
    )
    reviews = calculate_review_bonus(reviews_count, rules)

    penalties = [
        PenaltyLine(
            id=p.id,
            penalty_type=p.penalty_type,
            penalty_percentage=p.penalty_percentage,
            description=p.description,
            incident_date=p.incident_date,
        )
        for p in inputs.penalties
    ]
    penalty_pct = total_penalty_percentage(p.penalty_percentage for p in inputs.penalties)

    gross_total = gross_commission + streak.bonus_amount + reviews.total_bonus
    penalty_amount = quantize_money(gross_total * penalty_pct / HUNDRED)
    net_before_cap = gross_total - penalty_amount if qualifies else ZERO

    salary = to_decimal(inputs.monthly_salary) if inputs.monthly_salary is not None else None
    final_amount = net_before_cap
    cap_applied = False
    if rules.salary_cap_enabled and salary and net_before_cap > salary:
        final_amount = salary
        cap_applied = True

    summary = IncentiveSummary(
        total_sales=total_sales,
        sales_count=len(sales),
        qualified_sales_count=sum(1 for line in sales if line.review_qualified),
        target_amount=quantize_money(target_amount),
        qualifies_for_incentive=qualifies,
        gross_commission=gross_commission,
        streak_bonus=streak.bonus_amount,
        review_bonus=reviews.total_bonus,
        gross_total=quantize_money(gross_total),
        total_penalty_percentage=penalty_pct,
        penalty_amount=penalty_amount,
        net_before_cap=quantize_money(net_before_cap),
        salary_cap=quantize_money(salary) if salary is not None else None,
        cap_applied=cap_applied,
        final_amount=quantize_money(final_amount),
    )

    return IncentiveBreakdown(
        user_id=inputs.user_id,
        month=inputs.month,
        sales=sales,
        streak=streak,
        reviews=reviews,
        penalties=penalties,
        summary=summary,
    )
