"""Pydantic schemas for the CRM's record shapes and the assessment output"""

from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from dealership_risk.domain.exceptions import InvalidVisitError
from dealership_risk.domain.models import (
    Car,
    Customer,
    Dealership,
    Feedback,
    RiskAssessment,
    Visit,
)

RecordIdField = Union[int, str]


def _record_id(**kwargs):
    """Accept both the store's `_id` and a plain `id`"""
    return Field(..., validation_alias=AliasChoices("_id", "id"), **kwargs)


class FeedbackSchema(BaseModel):
    """Feedback left after a visit; stars may be null"""

    model_config = ConfigDict(populate_by_name=True)

    feedback_provided: bool = Field(..., alias="feedbackProvided", strict=True)
    stars: Optional[int] = Field(None, ge=1, le=5, strict=True)

    def to_domain(self) -> Feedback:
        return Feedback(feedback_provided=self.feedback_provided, stars=self.stars)


class VisitSchema(BaseModel):
    """Service visit as returned by the CRM API"""

    model_config = ConfigDict(populate_by_name=True)

    id: RecordIdField = _record_id()
    customer_id: RecordIdField = Field(..., alias="customerId")
    dealership_id: RecordIdField = Field(..., alias="dealershipId")
    visit_date: date = Field(..., alias="visitDate")
    service_delay_in_days: int = Field(..., alias="serviceDelayInDays", ge=0, strict=True)
    price: float = Field(..., ge=0, strict=True)
    feedback: FeedbackSchema
    repeat_issues: int = Field(..., alias="repeatIssues", ge=0, strict=True)
    was_issue_resolved: bool = Field(..., alias="wasIssueResolved", strict=True)

    @field_validator("visit_date", mode="before")
    @classmethod
    def drop_time_part(cls, value: Any) -> Any:
        # The store serializes dates as full ISO timestamps at midnight
        if isinstance(value, str) and len(value) > 10 and value[10] == "T":
            return value[:10]
        return value

    def to_domain(self) -> Visit:
        return Visit(
            id=self.id,
            customer_id=self.customer_id,
            dealership_id=self.dealership_id,
            visit_date=self.visit_date,
            service_delay_in_days=self.service_delay_in_days,
            price=self.price,
            feedback=self.feedback.to_domain(),
            repeat_issues=self.repeat_issues,
            was_issue_resolved=self.was_issue_resolved,
        )


class CarSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str
    year: int
    registration_number: str = Field(..., alias="registrationNumber")


class CustomerSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: RecordIdField = _record_id()
    name: str
    car: CarSchema
    dealership_id: Optional[RecordIdField] = Field(None, alias="dealershipId")

    def to_domain(self) -> Customer:
        return Customer(
            id=self.id,
            name=self.name,
            car=Car(
                model=self.car.model,
                year=self.car.year,
                registration_number=self.car.registration_number,
            ),
            dealership_id=self.dealership_id,
        )


class DealershipSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: RecordIdField = _record_id()
    company: str
    unique_name: str = Field(..., alias="uniqueName")
    address: str

    def to_domain(self) -> Dealership:
        return Dealership(
            id=self.id,
            company=self.company,
            unique_name=self.unique_name,
            address=self.address,
        )


class RiskAssessmentSchema(BaseModel):
    """Assessment as handed to the presentation layer"""

    score: float
    level: str
    explanation: str
    positives: List[str]
    concerns: List[str]
    suggestions: List[str]

    @classmethod
    def from_domain(cls, assessment: RiskAssessment) -> "RiskAssessmentSchema":
        return cls(
            score=assessment.score,
            level=assessment.level.label,
            explanation=assessment.explanation,
            positives=list(assessment.positives),
            concerns=list(assessment.concerns),
            suggestions=list(assessment.suggestions),
        )


def parse_visit(payload: Dict[str, Any]) -> Visit:
    """
    Build a domain Visit from a CRM record.

    Raises:
        InvalidVisitError: If a required field is missing or out of range
    """
    try:
        return VisitSchema.model_validate(payload).to_domain()
    except ValidationError as e:
        visit_id = payload.get("_id", payload.get("id")) if isinstance(payload, dict) else None
        raise InvalidVisitError(f"Invalid visit record: {e}", visit_id) from e


def parse_customer(payload: Dict[str, Any]) -> Customer:
    return CustomerSchema.model_validate(payload).to_domain()


def parse_dealership(payload: Dict[str, Any]) -> Dealership:
    return DealershipSchema.model_validate(payload).to_domain()
