from decimal import Decimal

import pytest

from transfers import factories
from transfers.policies.roles import AuthorizationPolicy
from transfers.services.checklists import submit_checklist
from transfers.services.distance import DistanceResolutionError, DistanceResolver


class FixedDistanceResolver(DistanceResolver):
    def __init__(self, km="42.37"):
        self.km = Decimal(km)
        self.calls = []

    def resolve(self, origin, destination):
        self.calls.append((origin, destination))
        return self.km


class FailingDistanceResolver(DistanceResolver):
    def resolve(self, origin, destination):
        raise DistanceResolutionError("lookup timed out")


@pytest.fixture
def company_factory():
    return factories.CompanyFactory


@pytest.fixture
def user_factory():
    return factories.UserFactory


@pytest.fixture
def driver_factory():
    return factories.DriverFactory


@pytest.fixture
def order_factory():
    return factories.OrderFactory


@pytest.fixture
def checklist_factory():
    return factories.ChecklistFactory


@pytest.fixture
def handoff_factory():
    return factories.OrderHandoffFactory


@pytest.fixture
def segment_factory():
    return factories.OrderSegmentFactory


@pytest.fixture
def company(company_factory):
    return company_factory()


@pytest.fixture
def policy():
    return AuthorizationPolicy()


@pytest.fixture
def fixed_distance():
    return FixedDistanceResolver()


@pytest.fixture
def failing_distance():
    return FailingDistanceResolver()


@pytest.fixture
def assigned_order(order_factory, driver_factory, company):
    """Order assigned to a fresh driver of ``company``."""

    def make(driver=None, **kwargs):
        driver = driver or driver_factory(company=company)
        order = order_factory(company=driver.company, **kwargs)
        order.assign_driver(driver)
        return order

    return make


@pytest.fixture
def in_transit_order(assigned_order):
    """Order whose pickup protocol was submitted by its driver."""

    def make(driver=None, **kwargs):
        order = assigned_order(driver=driver, **kwargs)
        order, _ = submit_checklist(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft=factories.complete_draft("pickup"),
        )
        return order

    return make
