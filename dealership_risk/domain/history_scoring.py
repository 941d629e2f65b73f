"""History aggregation - customer and dealership risk from a set of visits"""

from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence
from dealership_risk.domain.models import (
    DEFAULT_PARAMETERS,
    Customer,
    CustomerExperience,
    Dealership,
    HistorySignals,
    RankedVisit,
    RecordId,
    RiskAssessment,
    RiskLevel,
    ScoringParameters,
    Visit,
)
from dealership_risk.domain.exceptions import InsufficientDataError
from dealership_risk.domain.visit_scoring import (
    determine_risk_level,
    risk_to_score,
    score_visit,
)
from dealership_risk.utils.date_utils import as_date, days_between

# Weights must sum to 1.0, same invariant as the per-visit weights
HISTORY_WEIGHTS: Dict[str, float] = {
    "avg_delay": 0.18,
    "avg_visit_score": 0.20,
    "avg_feedback": 0.18,
    "missing_feedback": 0.12,
    "repeat": 0.12,
    "unresolved": 0.12,
    "recency": 0.08,
}

NO_VISITS_EXPLANATION = "No visits recorded."
RECENT_VISIT_DAYS = 90
RECENT_LEVELS_SHOWN = 3
WORST_VISITS_SHOWN = 3

_CUSTOMER_SUGGESTIONS = {
    RiskLevel.SAFE: "Maintain regular touchpoints and reward loyalty.",
    RiskLevel.AT_RISK: "Initiate follow-up, review major issues, incentivize retention.",
    RiskLevel.CRITICAL: "Contact customer for urgent satisfaction recovery.",
}

_DEALERSHIP_SUGGESTIONS = {
    RiskLevel.SAFE: "Keep up the high service standards!",
    RiskLevel.AT_RISK: "Analyze negative visits, enhance positive factors, and engage proactively.",
    RiskLevel.CRITICAL: "Intensive QA, staff retraining, or management review immediately.",
}

_DEALERSHIP_SUMMARIES = {
    RiskLevel.SAFE: (
        "Most customers have low risk scores, which means consistently good dealership experiences."
    ),
    RiskLevel.AT_RISK: (
        "Customer experiences are average, with warning signs for some customers. "
        "Attention needed on delays, repeat issues, or feedback."
    ),
    RiskLevel.CRITICAL: (
        "Many customers are at high risk: frequent delays, unresolved issues, "
        "or unsatisfactory feedback are causing bad experiences."
    ),
}


def empty_history_assessment(suggestion: Optional[str] = None) -> RiskAssessment:
    """
    Sentinel for a subject with no visits.

    No history is treated as maximal uncertainty, so it is CRITICAL with a
    score of 0 rather than SAFE.
    """
    return RiskAssessment(
        score=0,
        level=RiskLevel.CRITICAL,
        explanation=NO_VISITS_EXPLANATION,
        suggestions=[suggestion] if suggestion else [],
    )


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _extract_signals(
    visits: Sequence[Visit],
    visit_scores: Sequence[float],
    now: date,
    params: ScoringParameters,
) -> HistorySignals:
    count = len(visits)

    avg_delay_days = _mean([v.service_delay_in_days for v in visits])
    avg_visit_score = _mean(visit_scores)

    provided_stars = [v.feedback.stars for v in visits if v.feedback.feedback_provided]
    avg_stars = sum(provided_stars) / count
    avg_provided_stars = _mean(provided_stars) if provided_stars else None
    missing_feedback_count = count - len(provided_stars)

    repeat_issues_total = sum(v.repeat_issues for v in visits)
    repeat_cap = count * params.max_repeat_issues
    unresolved_count = sum(1 for v in visits if not v.was_issue_resolved)

    last_visit_date = max(as_date(v.visit_date) for v in visits)
    days_since_last_visit = days_between(last_visit_date, now)

    return HistorySignals(
        visit_count=count,
        avg_visit_score=avg_visit_score,
        avg_delay_days=avg_delay_days,
        avg_stars=avg_stars,
        avg_provided_stars=avg_provided_stars,
        missing_feedback_count=missing_feedback_count,
        repeat_issues_total=repeat_issues_total,
        unresolved_count=unresolved_count,
        last_visit_date=last_visit_date,
        days_since_last_visit=days_since_last_visit,
        avg_delay_norm=min(avg_delay_days, params.max_delay_days) / params.max_delay_days,
        avg_visit_score_norm=avg_visit_score / 100,
        avg_feedback_norm=1.0 - avg_stars / params.max_feedback_stars,
        missing_feedback_norm=missing_feedback_count / count,
        repeat_norm=min(repeat_issues_total, repeat_cap) / repeat_cap,
        unresolved_norm=unresolved_count / count,
        recency_norm=min(days_since_last_visit, params.recency_cap_days) / params.recency_cap_days,
    )


def analyze_visit_history(
    visits: Sequence[Visit],
    now: date,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> HistorySignals:
    """
    Extract aggregate risk signals from a visit history.

    Every visit is scored (and so validated) individually first. `now` is
    only used for the recency signal and must be supplied by the caller.

    Raises:
        InsufficientDataError: If visits is empty
        InvalidVisitError: If any visit is malformed
    """
    if not visits:
        raise InsufficientDataError("No visit history available")

    visit_scores = [score_visit(v, params=params).score for v in visits]
    return _extract_signals(visits, visit_scores, now, params)


def calculate_history_risk(signals: HistorySignals) -> int:
    """Weighted sum of the normalized history signals on the 0-100 scale"""
    risk = (
        HISTORY_WEIGHTS["avg_delay"] * signals.avg_delay_norm
        + HISTORY_WEIGHTS["avg_visit_score"] * signals.avg_visit_score_norm
        + HISTORY_WEIGHTS["avg_feedback"] * signals.avg_feedback_norm
        + HISTORY_WEIGHTS["missing_feedback"] * signals.missing_feedback_norm
        + HISTORY_WEIGHTS["repeat"] * signals.repeat_norm
        + HISTORY_WEIGHTS["unresolved"] * signals.unresolved_norm
        + HISTORY_WEIGHTS["recency"] * signals.recency_norm
    )
    return risk_to_score(risk)


def _customer_highlights(signals: HistorySignals):
    positives: List[str] = []
    concerns: List[str] = []
    count = signals.visit_count

    if signals.avg_delay_days <= 1:
        positives.append("Consistently Quick Service")
    elif signals.avg_delay_days > 2:
        concerns.append(f"Average Service Delay: {signals.avg_delay_days:.1f} days")

    if signals.avg_provided_stars is not None:
        if signals.avg_provided_stars >= 4:
            positives.append("High Customer Feedback")
        elif signals.avg_provided_stars <= 2:
            concerns.append("Low Customer Feedback")
    if signals.missing_feedback_count:
        concerns.append(f"Feedback Missing on {signals.missing_feedback_count}/{count} Visits")

    if signals.unresolved_count:
        concerns.append(f"Unresolved Issues on {signals.unresolved_count}/{count} Visits")
    else:
        positives.append("All Issues Resolved")

    if signals.repeat_issues_total:
        concerns.append(f"Repeat Issues: {signals.repeat_issues_total}")
    else:
        positives.append("No Repeat Issues")

    if signals.days_since_last_visit > RECENT_VISIT_DAYS:
        concerns.append(f"No Visit in {signals.days_since_last_visit} Days")
    else:
        positives.append("Recent Visit")

    return positives, concerns


def _customer_suggestions(signals: HistorySignals, level: RiskLevel) -> List[str]:
    suggestions = [_CUSTOMER_SUGGESTIONS[level]]
    if signals.unresolved_count:
        suggestions.append("Resolve outstanding issues from previous visits.")
    if signals.missing_feedback_count:
        suggestions.append("Reach out for detailed feedback.")
    if signals.days_since_last_visit > RECENT_VISIT_DAYS:
        suggestions.append("Send a service reminder to bring the customer back.")
    return suggestions


def _customer_label(customer: Optional[Customer], customer_id: RecordId) -> str:
    if customer is None:
        return f"Customer {customer_id}"
    return f"{customer.name} ({customer.car.model})"


def _assess_customer_history(
    visits: Sequence[Visit],
    now: date,
    params: ScoringParameters,
    customer: Optional[Customer],
) -> RiskAssessment:
    if not visits:
        return empty_history_assessment("No visits yet - reach out to get feedback!")

    visit_assessments = [score_visit(v, customer, params) for v in visits]
    signals = _extract_signals(visits, [a.score for a in visit_assessments], now, params)
    score = calculate_history_risk(signals)
    level = determine_risk_level(score)
    positives, concerns = _customer_highlights(signals)

    chronological = sorted(
        zip(visits, visit_assessments), key=lambda pair: as_date(pair[0].visit_date)
    )
    recent_levels = [a.level.label for _, a in chronological[-RECENT_LEVELS_SHOWN:]]
    customer_id = customer.id if customer is not None else visits[0].customer_id
    avg_feedback = (
        f"{signals.avg_provided_stars:.1f}/{params.max_feedback_stars}"
        if signals.avg_provided_stars is not None
        else "No feedback"
    )

    lines = [
        f"--- Dealership Experience Risk for {_customer_label(customer, customer_id)} ---",
        f"Risk Score: {score}/100 ({level.label})",
        "",
        "Breakdown:",
        f"- Average Visit Risk: {signals.avg_visit_score:.1f}/100 "
        f"(last visit: {signals.last_visit_date.isoformat()})",
        f"- Average Service Delay: {signals.avg_delay_days:.1f} days",
        f"- Average Feedback: {avg_feedback}",
        f"- Visits with No Feedback: {signals.missing_feedback_count}/{signals.visit_count}",
        f"- Total Repeat Issues: {signals.repeat_issues_total}",
        f"- Unresolved Visits: {signals.unresolved_count}/{signals.visit_count}",
        f"- Days Since Last Visit: {signals.days_since_last_visit}",
        "",
        f"Across {signals.visit_count} visits, the most recent risk levels are: "
        f"{', '.join(recent_levels)}.",
        (
            "This customer shows positive engagement and retention."
            if level is RiskLevel.SAFE
            else "Customer engagement may be at risk, requiring follow-up and careful management."
        ),
    ]

    return RiskAssessment(
        score=score,
        level=level,
        explanation="\n".join(lines),
        positives=positives,
        concerns=concerns,
        suggestions=_customer_suggestions(signals, level),
    )


def aggregate_customer(
    customer: Customer,
    visits: Sequence[Visit],
    now: date,
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> RiskAssessment:
    """
    Overall risk for one customer across their visit history.

    The caller is responsible for passing only this customer's visits.
    An empty history yields the CRITICAL sentinel with score 0.
    """
    return _assess_customer_history(visits, now, params, customer)


def _index_customers(customers: Iterable[Customer]) -> Dict[RecordId, Customer]:
    return {c.id: c for c in customers}


def customer_breakdown(
    visits: Sequence[Visit],
    now: date,
    customers: Iterable[Customer] = (),
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> List[CustomerExperience]:
    """
    Assess each distinct customer found in the visits, in order of first appearance.

    `customers` only supplies names for the explanation; a customer with no
    visits in the slice is not part of the breakdown.
    """
    by_id = _index_customers(customers)
    grouped: Dict[RecordId, List[Visit]] = {}
    for visit in visits:
        grouped.setdefault(visit.customer_id, []).append(visit)

    experiences = []
    for customer_id, customer_visits in grouped.items():
        customer = by_id.get(customer_id)
        experiences.append(
            CustomerExperience(
                customer_id=customer_id,
                customer_name=customer.name if customer is not None else None,
                visit_count=len(customer_visits),
                assessment=_assess_customer_history(customer_visits, now, params, customer),
            )
        )
    return experiences


def rank_worst_visits(
    visits: Sequence[Visit],
    limit: int = WORST_VISITS_SHOWN,
    include_safe: bool = False,
    customers: Iterable[Customer] = (),
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> List[RankedVisit]:
    """
    Highest-risk visits first; ties go to the most recent visit.

    SAFE visits are left out unless include_safe is set.
    """
    by_id = _index_customers(customers)
    ranked = [
        RankedVisit(visit=v, assessment=score_visit(v, by_id.get(v.customer_id), params))
        for v in visits
    ]
    if not include_safe:
        ranked = [r for r in ranked if r.assessment.level is not RiskLevel.SAFE]

    ranked.sort(
        key=lambda r: (r.assessment.score, as_date(r.visit.visit_date)),
        reverse=True,
    )
    return ranked[:limit]


def aggregate_dealership(
    dealership: Dealership,
    visits: Sequence[Visit],
    now: date,
    customers: Iterable[Customer] = (),
    params: ScoringParameters = DEFAULT_PARAMETERS,
) -> RiskAssessment:
    """
    Overall risk for a dealership: the mean of its customers' aggregate scores.

    Aggregating visit -> customer -> dealership means each customer counts
    once no matter how often they visit. The score is the unrounded mean.
    """
    if not visits:
        return empty_history_assessment("Increase outreach to attract first customers.")

    customers = list(customers)
    experiences = customer_breakdown(visits, now, customers, params)
    score = _mean([e.assessment.score for e in experiences])
    level = determine_risk_level(score)

    level_counts = {lvl: 0 for lvl in RiskLevel}
    for experience in experiences:
        level_counts[experience.assessment.level] += 1
    total = len(experiences)

    lines = [
        f"=== Overall Dealership Experience for {dealership.company} ===",
        f"Average Risk Score (all customers): {score:.1f}/100 ({level.label})",
        "Customer Risk Breakdown: "
        + ", ".join(f"{lvl.label}: {level_counts[lvl]}" for lvl in RiskLevel),
        "",
    ]
    for experience in experiences:
        name = experience.customer_name or f"Customer {experience.customer_id}"
        lines.append(
            f"→ {name}: {experience.assessment.score}/100 ({experience.assessment.level.label})"
        )

    worst = rank_worst_visits(visits, customers=customers, params=params)
    if worst:
        lines += ["", "Most problematic visits:"]
        for ranked in worst:
            lines.append(
                f"→ Visit {ranked.visit.id} on {as_date(ranked.visit.visit_date).isoformat()}: "
                f"{ranked.assessment.score}/100 ({ranked.assessment.level.label})"
            )
    lines += ["", _DEALERSHIP_SUMMARIES[level]]

    positives = []
    concerns = []
    if level_counts[RiskLevel.SAFE]:
        positives.append(f"Low-Risk Customers: {level_counts[RiskLevel.SAFE]}/{total}")
    if level_counts[RiskLevel.AT_RISK]:
        concerns.append(f"At-Risk Customers: {level_counts[RiskLevel.AT_RISK]}/{total}")
    if level_counts[RiskLevel.CRITICAL]:
        concerns.append(f"Critical Customers: {level_counts[RiskLevel.CRITICAL]}/{total}")

    suggestions = [_DEALERSHIP_SUGGESTIONS[level]]
    if worst:
        suggestions.append("Follow up with customers from the most problematic visits.")

    return RiskAssessment(
        score=score,
        level=level,
        explanation="\n".join(lines),
        positives=positives,
        concerns=concerns,
        suggestions=suggestions,
    )
