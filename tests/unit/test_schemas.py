"""Unit tests for parsing CRM records into domain models"""

import pytest
from datetime import date
from pydantic import ValidationError
from dealership_risk.domain.models import Feedback, RiskLevel
from dealership_risk.domain.exceptions import InvalidVisitError
from dealership_risk.domain.visit_scoring import score_visit
from dealership_risk.schemas import (
    RiskAssessmentSchema,
    parse_customer,
    parse_dealership,
    parse_visit,
)


def visit_payload(**overrides) -> dict:
    payload = {
        "_id": "665a1f",
        "customerId": "c-101",
        "dealershipId": "d-2",
        "visitDate": "2024-05-10T00:00:00.000Z",
        "serviceDelayInDays": 2,
        "price": 4950,
        "feedback": {"stars": 5, "feedbackProvided": True},
        "repeatIssues": 0,
        "wasIssueResolved": True,
    }
    payload.update(overrides)
    return payload


def test_parse_visit_from_store_record():
    visit = parse_visit(visit_payload())

    assert visit.id == "665a1f"
    assert visit.customer_id == "c-101"
    assert visit.visit_date == date(2024, 5, 10)
    assert visit.price == 4950
    assert visit.feedback == Feedback(feedback_provided=True, stars=5)
    assert visit.was_issue_resolved is True


def test_parse_visit_accepts_plain_id_and_date():
    payload = visit_payload(visitDate="2024-06-01")
    del payload["_id"]
    payload["id"] = 3

    visit = parse_visit(payload)

    assert visit.id == 3
    assert visit.visit_date == date(2024, 6, 1)


def test_parse_visit_null_stars_without_feedback():
    visit = parse_visit(visit_payload(feedback={"stars": None, "feedbackProvided": False}))

    assert visit.feedback.feedback_provided is False
    assert visit.feedback.stars is None


def test_parse_visit_rejects_negative_delay():
    with pytest.raises(InvalidVisitError) as exc_info:
        parse_visit(visit_payload(serviceDelayInDays=-3))

    assert exc_info.value.visit_id == "665a1f"


def test_parse_visit_rejects_missing_resolution_flag():
    payload = visit_payload()
    del payload["wasIssueResolved"]

    with pytest.raises(InvalidVisitError, match="wasIssueResolved"):
        parse_visit(payload)


def test_parse_visit_does_not_coerce_strings():
    with pytest.raises(InvalidVisitError):
        parse_visit(visit_payload(price="4950"))

    with pytest.raises(InvalidVisitError):
        parse_visit(visit_payload(wasIssueResolved="yes"))


def test_parse_visit_rejects_stars_out_of_range():
    with pytest.raises(InvalidVisitError):
        parse_visit(visit_payload(feedback={"stars": 9, "feedbackProvided": True}))


def test_parse_customer_and_dealership():
    customer = parse_customer(
        {
            "_id": "c-101",
            "name": "Rahul Sharma",
            "car": {"model": "Swift", "year": 2019, "registrationNumber": "MH12AB1234"},
            "dealershipId": "d-2",
        }
    )
    dealership = parse_dealership(
        {"_id": "d-2", "company": "AutoWorld", "uniqueName": "autoworld", "address": "Main Street"}
    )

    assert customer.car.registration_number == "MH12AB1234"
    assert customer.dealership_id == "d-2"
    assert dealership.unique_name == "autoworld"


def test_parse_customer_requires_car():
    with pytest.raises(ValidationError):
        parse_customer({"_id": "c-1", "name": "No Car"})


def test_risk_assessment_schema_renders_level_label():
    visit = parse_visit(
        visit_payload(
            serviceDelayInDays=18,
            price=6100,
            feedback={"stars": 2, "feedbackProvided": True},
            repeatIssues=2,
            wasIssueResolved=False,
        )
    )
    assessment = score_visit(visit)

    schema = RiskAssessmentSchema.from_domain(assessment)

    assert assessment.level is RiskLevel.CRITICAL
    assert schema.level == "CRITICAL"
    assert schema.score == assessment.score
    assert schema.model_dump()["concerns"] == assessment.concerns
