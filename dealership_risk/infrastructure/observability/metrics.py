"""Prometheus metrics for monitoring risk level distribution and scoring failures"""

from prometheus_client import Counter, Histogram

from dealership_risk.domain.models import RiskAssessment
from dealership_risk.domain.history_scoring import NO_VISITS_EXPLANATION

# Assessment metrics
assessment_counter = Counter(
    "dealership_risk_assessments_total",
    "Total risk assessments produced",
    ["subject", "level"],  # subject: visit | customer | dealership
)

score_histogram = Histogram(
    "dealership_risk_score",
    "Distribution of risk scores (0-100)",
    ["subject"],
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

empty_history_counter = Counter(
    "dealership_risk_empty_history_total",
    "Assessments returned as the no-visits sentinel",
    ["subject"],
)

# Input quality
invalid_visit_counter = Counter(
    "dealership_risk_invalid_visits_total",
    "Visits rejected as malformed",
)


def record_assessment(subject: str, assessment: RiskAssessment) -> None:
    """Record assessment metrics for monitoring level distribution"""
    assessment_counter.labels(subject=subject, level=assessment.level.name).inc()
    score_histogram.labels(subject=subject).observe(assessment.score)

    if assessment.explanation == NO_VISITS_EXPLANATION:
        empty_history_counter.labels(subject=subject).inc()
