"""Risk service - entry point for collaborators, adds clock, logging and metrics"""

import logging
import time
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from dealership_risk.config import settings
from dealership_risk.domain.exceptions import InvalidVisitError
from dealership_risk.domain.history_scoring import (
    aggregate_customer,
    aggregate_dealership,
    customer_breakdown,
    rank_worst_visits,
    WORST_VISITS_SHOWN,
)
from dealership_risk.domain.models import (
    Customer,
    CustomerExperience,
    Dealership,
    RankedVisit,
    RiskAssessment,
    ScoringParameters,
    Visit,
)
from dealership_risk.domain.visit_scoring import score_visit
from dealership_risk.infrastructure.observability.logging import log_assessment, setup_logging
from dealership_risk.infrastructure.observability.metrics import (
    invalid_visit_counter,
    record_assessment,
)

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class RiskService:
    """
    Scores visits, customers and dealerships for the CRM.

    The domain functions are pure; this class supplies the configured
    scoring parameters and the current date, and records a log line and
    metrics for every assessment. Pass `now` explicitly to any method to
    make the result reproducible.
    """

    def __init__(
        self,
        params: Optional[ScoringParameters] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.params = params or settings.scoring_parameters()
        self.clock = clock or utc_today

    @classmethod
    def from_settings(cls, clock: Optional[Callable[[], date]] = None) -> "RiskService":
        """Build a service from environment settings and configure JSON logging"""
        setup_logging(settings.log_level)
        return cls(settings.scoring_parameters(), clock)

    def _now(self, now: Optional[date]) -> date:
        return now if now is not None else self.clock()

    def _run(self, subject: str, subject_id, compute: Callable[[], RiskAssessment]) -> RiskAssessment:
        start_time = time.time()
        try:
            assessment = compute()
        except InvalidVisitError as e:
            invalid_visit_counter.inc()
            logger.warning(f"Invalid visit: {e}", extra={"subject": subject, "subject_id": str(subject_id)})
            raise

        duration_ms = (time.time() - start_time) * 1000
        record_assessment(subject, assessment)
        log_assessment(subject, subject_id, assessment.score, assessment.level.label, duration_ms)
        return assessment

    def score_visit(self, visit: Visit, customer: Optional[Customer] = None) -> RiskAssessment:
        return self._run(
            "visit",
            getattr(visit, "id", None),
            lambda: score_visit(visit, customer, self.params),
        )

    def aggregate_customer(
        self,
        customer: Customer,
        visits: Sequence[Visit],
        now: Optional[date] = None,
    ) -> RiskAssessment:
        today = self._now(now)
        return self._run(
            "customer",
            customer.id,
            lambda: aggregate_customer(customer, visits, today, self.params),
        )

    def aggregate_dealership(
        self,
        dealership: Dealership,
        visits: Sequence[Visit],
        customers: Iterable[Customer] = (),
        now: Optional[date] = None,
    ) -> RiskAssessment:
        today = self._now(now)
        customers = list(customers)
        return self._run(
            "dealership",
            dealership.id,
            lambda: aggregate_dealership(dealership, visits, today, customers, self.params),
        )

    def customer_breakdown(
        self,
        visits: Sequence[Visit],
        customers: Iterable[Customer] = (),
        now: Optional[date] = None,
    ) -> List[CustomerExperience]:
        return customer_breakdown(visits, self._now(now), customers, self.params)

    def worst_visits(
        self,
        visits: Sequence[Visit],
        limit: int = WORST_VISITS_SHOWN,
        include_safe: bool = False,
        customers: Iterable[Customer] = (),
    ) -> List[RankedVisit]:
        return rank_worst_visits(visits, limit, include_safe, customers, self.params)
