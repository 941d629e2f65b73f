"""Domain models - pure Python dataclasses representing CRM records and risk output"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import total_ordering
from typing import List, Optional, Union
from dealership_risk.domain.exceptions import InvalidParametersError

RecordId = Union[int, str]


@dataclass(frozen=True)
class Feedback:
    """Customer feedback captured after a visit"""

    feedback_provided: bool
    stars: Optional[int] = None  # only meaningful when feedback_provided


@dataclass(frozen=True)
class Car:
    model: str
    year: int
    registration_number: str


@dataclass(frozen=True)
class Customer:
    """Dealership customer, referenced by visits"""

    id: RecordId
    name: str
    car: Car
    dealership_id: Optional[RecordId] = None


@dataclass(frozen=True)
class Dealership:
    id: RecordId
    company: str
    unique_name: str
    address: str


@dataclass(frozen=True)
class Visit:
    """Single service visit, read-only to the engine"""

    id: RecordId
    customer_id: RecordId
    dealership_id: RecordId
    visit_date: date
    service_delay_in_days: int
    price: float
    feedback: Feedback
    repeat_issues: int
    was_issue_resolved: bool


@dataclass(frozen=True)
class ScoringParameters:
    """Normalization constants shared by visit and history scoring"""

    base_price: float = 5000
    max_delay_days: int = 30
    max_repeat_issues: int = 2
    max_feedback_stars: int = 5
    recency_cap_days: int = 180

    def __post_init__(self) -> None:
        for name in ("base_price", "max_delay_days", "max_repeat_issues", "max_feedback_stars", "recency_cap_days"):
            if getattr(self, name) <= 0:
                raise InvalidParametersError(f"{name} must be positive")


DEFAULT_PARAMETERS = ScoringParameters()


@total_ordering
class RiskLevel(Enum):
    """Risk category, ordered SAFE < AT_RISK < CRITICAL"""

    SAFE = "SAFE"
    AT_RISK = "AT RISK"
    CRITICAL = "CRITICAL"

    @property
    def label(self) -> str:
        return self.value

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __lt__(self, other: "RiskLevel") -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity < other.severity


_SEVERITY = {RiskLevel.SAFE: 0, RiskLevel.AT_RISK: 1, RiskLevel.CRITICAL: 2}


@dataclass
class VisitFactors:
    """Normalized per-factor risk for one visit (0 = no risk, 1 = maximum)"""

    delay: float
    price: float
    feedback: float
    repeat: float
    resolution: float


@dataclass
class HistorySignals:
    """Aggregate metrics extracted from a visit history"""

    visit_count: int
    avg_visit_score: float
    avg_delay_days: float
    avg_stars: float  # missing feedback counts as 0 stars
    avg_provided_stars: Optional[float]
    missing_feedback_count: int
    repeat_issues_total: int
    unresolved_count: int
    last_visit_date: date
    days_since_last_visit: int

    # Normalized signals, risk-increasing direction
    avg_delay_norm: float
    avg_visit_score_norm: float
    avg_feedback_norm: float
    missing_feedback_norm: float
    repeat_norm: float
    unresolved_norm: float
    recency_norm: float


@dataclass
class RiskAssessment:
    """Output of risk scoring; computed per call, never persisted"""

    score: float
    level: RiskLevel
    explanation: str
    positives: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class CustomerExperience:
    """One customer's aggregate within a dealership rollup"""

    customer_id: RecordId
    customer_name: Optional[str]
    visit_count: int
    assessment: RiskAssessment


@dataclass
class RankedVisit:
    visit: Visit
    assessment: RiskAssessment
