"""Visit risk scoring - per-visit factors, weighted score and explanation"""

import math
from datetime import date
from typing import Dict, List, Optional, Tuple
from dealership_risk.domain.models import (
    DEFAULT_PARAMETERS,
    Customer,
    Feedback,
    RiskAssessment,
    RiskLevel,
    ScoringParameters,
    Visit,
    VisitFactors,
)
from dealership_risk.domain.exceptions import InvalidVisitError
from dealership_risk.utils.date_utils import as_date

# Weights must sum to 1.0 so a visit with every factor at maximum scores 100
VISIT_WEIGHTS: Dict[str, float] = {
    "delay": 0.20,
    "price": 0.25,
    "feedback": 0.20,
    "repeat": 0.20,
    "resolution": 0.15,
}

# Inclusive upper bounds of each level on the 0-100 scale
SAFE_MAX_SCORE = 30
AT_RISK_MAX_SCORE = 60

# Missing feedback counts as half satisfied, not as neutral
MISSING_FEEDBACK_RAW = 0.5

QUICK_TURNAROUND_DAYS = 1
DELAY_CONCERN_DAYS = 2
HIGH_DELAY_DAYS = 10
PRICE_SHOCK_THRESHOLD = 0.2
HIGH_FEEDBACK_STARS = 4
LOW_FEEDBACK_STARS = 2

_CLOSING_SENTENCES = {
    RiskLevel.SAFE: "Overall, this visit shows satisfactory engagement.",
    RiskLevel.AT_RISK: "Overall, this visit requires attention to improve retention.",
    RiskLevel.CRITICAL: "Overall, this visit is problematic and requires urgent action.",
}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return (_is_int(value) or isinstance(value, float)) and math.isfinite(value)


def validate_visit(visit: Visit, params: ScoringParameters = DEFAULT_PARAMETERS) -> None:
    """
    Check that every field the scorer reads is present and within its domain.

    Raises:
        InvalidVisitError: On a missing field, wrong type or out-of-range value
    """
    visit_id = getattr(visit, "id", None)

    if not isinstance(getattr(visit, "visit_date", None), date):
        raise InvalidVisitError("visit_date must be a date", visit_id)

    for name in ("service_delay_in_days", "repeat_issues"):
        value = getattr(visit, name, None)
        if not _is_int(value):
            raise InvalidVisitError(f"{name} must be an integer, got {value!r}", visit_id)
        if value < 0:
            raise InvalidVisitError(f"{name} must be non-negative, got {value}", visit_id)

    price = getattr(visit, "price", None)
    if not _is_number(price):
        raise InvalidVisitError(f"price must be a finite number, got {price!r}", visit_id)
    if price < 0:
        raise InvalidVisitError(f"price must be non-negative, got {price}", visit_id)

    if not isinstance(getattr(visit, "was_issue_resolved", None), bool):
        raise InvalidVisitError("was_issue_resolved must be a boolean", visit_id)

    feedback = getattr(visit, "feedback", None)
    if not isinstance(feedback, Feedback):
        raise InvalidVisitError("feedback is required", visit_id)
    if not isinstance(feedback.feedback_provided, bool):
        raise InvalidVisitError("feedback.feedback_provided must be a boolean", visit_id)
    if feedback.feedback_provided:
        stars = feedback.stars
        if not _is_int(stars) or not 1 <= stars <= params.max_feedback_stars:
            raise InvalidVisitError(
                f"feedback.stars must be an integer in [1, {params.max_feedback_stars}], got {stars!r}",
                visit_id,
            )


def compute_visit_factors(visit: Visit, params: ScoringParameters = DEFAULT_PARAMETERS) -> VisitFactors:
    """
    Normalize each visit signal to [0, 1] where 1 is maximum risk.

    - delay:      capped at max_delay_days
    - price:      deviation from base_price in either direction, capped at 100%
    - feedback:   1 - stars/max_stars, or 0.5 when no feedback was given
    - repeat:     capped at max_repeat_issues
    - resolution: 1 if the issue was left unresolved
    """
    delay = min(visit.service_delay_in_days, params.max_delay_days) / params.max_delay_days
    price = min(abs(visit.price - params.base_price) / params.base_price, 1.0)

    if visit.feedback.feedback_provided:
        feedback_raw = visit.feedback.stars / params.max_feedback_stars
    else:
        feedback_raw = MISSING_FEEDBACK_RAW
    feedback = 1.0 - feedback_raw

    repeat = min(visit.repeat_issues, params.max_repeat_issues) / params.max_repeat_issues
    resolution = 0.0 if visit.was_issue_resolved else 1.0

    return VisitFactors(
        delay=delay,
        price=price,
        feedback=feedback,
        repeat=repeat,
        resolution=resolution,
    )


def risk_to_score(risk: float) -> int:
    """Clamp a weighted risk sum to [0, 1] and scale to 0-100, rounding half up"""
    clamped = max(0.0, min(1.0, risk))
    return int(math.floor(clamped * 100 + 0.5))


def calculate_visit_risk(factors: VisitFactors) -> int:
    """Weighted sum of the visit factors on the 0-100 scale (higher is riskier)"""
    risk = (
        VISIT_WEIGHTS["delay"] * factors.delay
        + VISIT_WEIGHTS["price"] * factors.price
        + VISIT_WEIGHTS["feedback"] * factors.feedback
        + VISIT_WEIGHTS["repeat"] * factors.repeat
        + VISIT_WEIGHTS["resolution"] * factors.resolution
    )
    return risk_to_score(risk)


def determine_risk_level(score: float) -> RiskLevel:
    """
    Map a 0-100 score to its risk level.

    Bands (upper bounds inclusive):
    - 0 - 30:   SAFE
    - 31 - 60:  AT RISK
    - 61 - 100: CRITICAL
    """
    if score <= SAFE_MAX_SCORE:
        return RiskLevel.SAFE
    elif score <= AT_RISK_MAX_SCORE:
        return RiskLevel.AT_RISK
    else:
        return RiskLevel.CRITICAL


def identify_visit_highlights(
    visit: Visit, factors: VisitFactors
) -> Tuple[List[str], List[str]]:
    """Split the visit's signals into positives and concerns"""
    positives: List[str] = []
    concerns: List[str] = []
    feedback = visit.feedback

    if feedback.feedback_provided:
        if feedback.stars >= HIGH_FEEDBACK_STARS:
            positives.append("High Customer Feedback")
        elif feedback.stars <= LOW_FEEDBACK_STARS:
            concerns.append("Low Customer Feedback")
    else:
        concerns.append("No Feedback Provided")

    if visit.was_issue_resolved:
        positives.append("Issue Resolved")
    else:
        concerns.append("Issue Not Resolved")

    if visit.service_delay_in_days > DELAY_CONCERN_DAYS:
        concerns.append(f"Service Delay: {visit.service_delay_in_days} days")
    elif visit.service_delay_in_days <= QUICK_TURNAROUND_DAYS:
        positives.append("Quick Service Turnaround")

    if factors.price > PRICE_SHOCK_THRESHOLD:
        concerns.append("Price Shock")
    else:
        positives.append("Price Close to Baseline")

    if visit.repeat_issues > 0:
        concerns.append(f"Repeat Issues: {visit.repeat_issues}")
    else:
        positives.append("No Repeat Issues")

    return positives, concerns


def suggest_visit_actions(visit: Visit, factors: VisitFactors, level: RiskLevel) -> List[str]:
    suggestions = []
    if not visit.was_issue_resolved:
        suggestions.append("Address unresolved issue immediately.")
    if visit.service_delay_in_days > DELAY_CONCERN_DAYS:
        suggestions.append("Consider compensatory measure for delay.")
    if not visit.feedback.feedback_provided:
        suggestions.append("Reach out for detailed feedback.")
    elif visit.feedback.stars <= LOW_FEEDBACK_STARS:
        suggestions.append("Follow up on the low rating with the customer.")
    if factors.price > PRICE_SHOCK_THRESHOLD:
        suggestions.append("Review the bill against the baseline service price.")
    if visit.repeat_issues == 0:
        suggestions.append("Maintain quick, quality service to uphold satisfaction.")
    if level is RiskLevel.SAFE:
        suggestions.append("No immediate action required.")
    elif level is RiskLevel.CRITICAL:
        suggestions.append("Management intervention recommended.")
    return suggestions


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def _factor_detail(sub_score: float, weight: float) -> str:
    return f"(Score: {sub_score * 100:.1f}/100, Weight: {weight * 100:.0f}%)"


def build_visit_explanation(
    visit: Visit,
    factors: VisitFactors,
    score: int,
    level: RiskLevel,
    positives: List[str],
    concerns: List[str],
    customer: Optional[Customer] = None,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> str:
    """Render the deterministic, template-based narrative for a visit"""
    visit_date = as_date(visit.visit_date).isoformat()
    feedback = visit.feedback

    if customer is not None:
        subject = f"Customer: {customer.name} ({customer.car.model}) | Visit Date: {visit_date}"
    else:
        subject = f"Visit ID: {visit.id} | Visit Date: {visit_date}"

    if feedback.feedback_provided:
        feedback_text = f"{feedback.stars} stars out of {params.max_feedback_stars}"
        feedback_sentence = (
            "Low feedback reflects dissatisfaction."
            if feedback.stars < 3
            else "Feedback is positive."
        )
    else:
        feedback_text = "No feedback provided (treated as risk)"
        feedback_sentence = "No feedback increases silent churn risk."

    lines = [
        "--- Visit Risk Score ---",
        subject,
        f"Risk Score: {score}/100 ({level.label})",
        "",
        "Breakdown:",
        f"• Service Delay: {visit.service_delay_in_days} days late "
        + _factor_detail(factors.delay, VISIT_WEIGHTS["delay"]),
        f"• Price Shock: Rs. {format_amount(visit.price)} billed "
        f"(baseline Rs. {format_amount(params.base_price)}) "
        + _factor_detail(factors.price, VISIT_WEIGHTS["price"]),
        f"• Feedback: {feedback_text} " + _factor_detail(factors.feedback, VISIT_WEIGHTS["feedback"]),
        f"• Repeat Issues: {visit.repeat_issues} recent repeat(s) "
        + _factor_detail(factors.repeat, VISIT_WEIGHTS["repeat"]),
        f"• Issue Resolution: {'Resolved' if visit.was_issue_resolved else 'Unresolved'} "
        + _factor_detail(factors.resolution, VISIT_WEIGHTS["resolution"]),
        "",
        "Explanation:",
        "- "
        + (
            "High delay in service increases disengagement risk."
            if visit.service_delay_in_days > HIGH_DELAY_DAYS
            else "Service was mostly on time."
        ),
        "- "
        + (
            "Significant price shock could cause dissatisfaction."
            if factors.price > PRICE_SHOCK_THRESHOLD
            else "Price close to baseline, low risk."
        ),
        f"- {feedback_sentence}",
        "- "
        + (
            "Repeat problems indicate unresolved issues."
            if visit.repeat_issues > 0
            else "No repeat issues reported."
        ),
        "- "
        + (
            "Issue was resolved, a positive signal."
            if visit.was_issue_resolved
            else "Unresolved issue sharply increases risk."
        ),
        "",
    ]
    if positives:
        lines.append(f"Strengths include: {', '.join(positives)}.")
    if concerns:
        lines.append(f"Concerns: {'; '.join(concerns)}.")
    lines.append(_CLOSING_SENTENCES[level])

    return "\n".join(lines)


def score_visit(
    visit: Visit,
    customer: Optional[Customer] = None,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> RiskAssessment:
    """
    Main entry point: validate, score and explain a single visit.

    The customer is optional and only used to label the explanation.
    """
    validate_visit(visit, params)
    factors = compute_visit_factors(visit, params)
    score = calculate_visit_risk(factors)
    level = determine_risk_level(score)
    positives, concerns = identify_visit_highlights(visit, factors)

    return RiskAssessment(
        score=score,
        level=level,
        explanation=build_visit_explanation(
            visit, factors, score, level, positives, concerns, customer, params
        ),
        positives=positives,
        concerns=concerns,
        suggestions=suggest_visit_actions(visit, factors, level),
    )
