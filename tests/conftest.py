"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Callable
from dealership_risk.domain.models import Car, Customer, Dealership, Feedback, Visit


# Reference date for recency: the day of the latest sample visit
AS_OF = date(2024, 6, 1)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def make_visit() -> Callable[..., Visit]:
    """Factory for visits; defaults describe an ideal, zero-risk visit"""

    def _make_visit(**overrides) -> Visit:
        fields = dict(
            id=1,
            customer_id=101,
            dealership_id=1,
            visit_date=AS_OF,
            service_delay_in_days=0,
            price=5000,
            feedback=Feedback(feedback_provided=True, stars=5),
            repeat_issues=0,
            was_issue_resolved=True,
        )
        fields.update(overrides)
        return Visit(**fields)

    return _make_visit


@pytest.fixture
def dealerships() -> dict[int, Dealership]:
    return {
        1: Dealership(id=1, company="DriveMax", unique_name="drivemax", address="City Center"),
        2: Dealership(id=2, company="AutoWorld", unique_name="autoworld", address="Main Street"),
    }


@pytest.fixture
def customers() -> dict[int, Customer]:
    return {
        101: Customer(101, "Rahul Sharma", Car("Swift", 2019, "MH12AB1234"), dealership_id=2),
        102: Customer(102, "Priya Desai", Car("Baleno", 2020, "DL8CAF5678"), dealership_id=1),
        103: Customer(103, "Sahil Khan", Car("Creta", 2018, "KA01HG3456"), dealership_id=1),
    }


@pytest.fixture
def sample_visits() -> list[Visit]:
    """Visit history across both dealerships"""

    def visit(id, customer_id, dealership_id, visit_date, delay, price, stars, repeat, resolved):
        return Visit(
            id=id,
            customer_id=customer_id,
            dealership_id=dealership_id,
            visit_date=date.fromisoformat(visit_date),
            service_delay_in_days=delay,
            price=price,
            feedback=Feedback(feedback_provided=stars is not None, stars=stars),
            repeat_issues=repeat,
            was_issue_resolved=resolved,
        )

    return [
        # Rahul Sharma, AutoWorld
        visit(1, 101, 2, "2024-01-15", 2, 4900, 5, 0, True),
        visit(2, 101, 2, "2024-04-10", 4, 5000, 4, 0, True),
        visit(3, 101, 2, "2024-06-01", 3, 5100, 5, 0, True),
        # Priya Desai, DriveMax
        visit(4, 102, 1, "2023-12-12", 15, 6200, 2, 1, False),
        visit(5, 102, 1, "2024-03-18", 22, 6100, None, 2, False),
        # Sahil Khan, DriveMax
        visit(7, 103, 1, "2024-02-15", 10, 4500, 5, 0, True),
        visit(8, 103, 1, "2024-04-25", 16, 4700, None, 1, True),
    ]


@pytest.fixture
def visits_by_customer(sample_visits) -> dict[int, list[Visit]]:
    grouped: dict[int, list[Visit]] = {}
    for v in sample_visits:
        grouped.setdefault(v.customer_id, []).append(v)
    return grouped


@pytest.fixture
def visits_by_dealership(sample_visits) -> dict[int, list[Visit]]:
    grouped: dict[int, list[Visit]] = {}
    for v in sample_visits:
        grouped.setdefault(v.dealership_id, []).append(v)
    return grouped
