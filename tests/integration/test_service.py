"""Integration tests for the risk service: clock, config, logging and metrics"""

import json
import logging
import pytest
from datetime import date
from prometheus_client import REGISTRY
from pydantic import ValidationError

from dealership_risk.config import Settings, settings
from dealership_risk.domain.exceptions import InvalidVisitError
from dealership_risk.domain.history_scoring import aggregate_customer
from dealership_risk.domain.models import RiskLevel
from dealership_risk.infrastructure.observability.logging import CustomJsonFormatter
from dealership_risk.service import RiskService


def sample_value(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


@pytest.fixture
def service(as_of) -> RiskService:
    return RiskService(clock=lambda: as_of)


def test_score_visit_records_assessment_metric(service, make_visit):
    labels = {"subject": "visit", "level": "SAFE"}
    before = sample_value("dealership_risk_assessments_total", labels)

    assessment = service.score_visit(make_visit())

    assert assessment.level is RiskLevel.SAFE
    assert sample_value("dealership_risk_assessments_total", labels) == before + 1


def test_invalid_visit_is_counted_and_reraised(service, make_visit):
    before = sample_value("dealership_risk_invalid_visits_total")

    with pytest.raises(InvalidVisitError):
        service.score_visit(make_visit(service_delay_in_days=-5))

    assert sample_value("dealership_risk_invalid_visits_total") == before + 1


def test_empty_history_is_counted(service, customers):
    labels = {"subject": "customer"}
    before = sample_value("dealership_risk_empty_history_total", labels)

    assessment = service.aggregate_customer(customers[101], [])

    assert assessment.level is RiskLevel.CRITICAL
    assert sample_value("dealership_risk_empty_history_total", labels) == before + 1


def test_service_uses_injected_clock(service, customers, visits_by_customer, as_of):
    via_clock = service.aggregate_customer(customers[103], visits_by_customer[103])
    direct = aggregate_customer(customers[103], visits_by_customer[103], as_of)

    assert via_clock == direct


def test_explicit_now_overrides_clock(service, customers, visits_by_customer):
    later = service.aggregate_customer(
        customers[101], visits_by_customer[101], now=date(2025, 1, 1)
    )
    today = service.aggregate_customer(customers[101], visits_by_customer[101])

    assert later.score > today.score
    assert any(c.startswith("No Visit in") for c in later.concerns)


def test_aggregate_dealership_through_service(
    service, dealerships, customers, visits_by_dealership
):
    assessment = service.aggregate_dealership(
        dealerships[1], visits_by_dealership[1], customers.values()
    )
    breakdown = service.customer_breakdown(visits_by_dealership[1], customers.values())

    assert assessment.score == sum(e.assessment.score for e in breakdown) / len(breakdown)
    assert [r.visit.id for r in service.worst_visits(visits_by_dealership[1], limit=1)] == [5]


def test_assessment_is_logged(service, customers, visits_by_customer, caplog):
    caplog.set_level(logging.INFO, logger="dealership_risk")

    assessment = service.aggregate_customer(customers[102], visits_by_customer[102])

    records = [r for r in caplog.records if r.getMessage() == "Risk assessment completed"]
    assert len(records) == 1
    assert records[0].subject == "customer"
    assert records[0].subject_id == "102"
    assert records[0].score == assessment.score
    assert records[0].risk_level == "CRITICAL"


def test_json_formatter_adds_service_metadata():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("dealership_risk", logging.WARNING, __file__, 1, "Invalid visit", None, None)

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "Invalid visit"
    assert payload["level"] == "WARNING"
    assert payload["service"] == settings.service_name
    assert "timestamp" in payload


def test_settings_scoring_parameters_from_env(monkeypatch):
    monkeypatch.setenv("DEALERSHIP_RISK_BASE_PRICE", "8000")
    monkeypatch.setenv("DEALERSHIP_RISK_RECENCY_CAP_DAYS", "90")

    params = Settings().scoring_parameters()

    assert params.base_price == 8000
    assert params.recency_cap_days == 90
    assert params.max_delay_days == 30


def test_settings_reject_non_positive_baseline(monkeypatch):
    monkeypatch.setenv("DEALERSHIP_RISK_MAX_DELAY_DAYS", "0")

    with pytest.raises(ValidationError):
        Settings()


def test_service_uses_configured_parameters(make_visit, as_of):
    service = RiskService(params=Settings(base_price=10000).scoring_parameters(), clock=lambda: as_of)

    assessment = service.score_visit(make_visit(price=5000))

    assert "Price Shock" in assessment.concerns


def test_from_settings_configures_logging(monkeypatch, as_of):
    levels = []
    monkeypatch.setattr("dealership_risk.service.setup_logging", levels.append)

    service = RiskService.from_settings(clock=lambda: as_of)

    assert levels == [settings.log_level]
    assert service.params == settings.scoring_parameters()
    assert service.clock() == as_of
