from decimal import Decimal

import pytest

from transfers.models import OrderSegment
from transfers.services import segments
from transfers.services.exceptions import AuthorizationError, ServiceError

pytestmark = pytest.mark.django_db


@pytest.fixture
def dispatcher(user_factory, company):
    return user_factory(role="dispatcher", company=company)


def test_approve_sets_price(segment_factory, company, dispatcher):
    segment = segment_factory(order__company=company)

    segment = segments.approve_segment_price(segment=segment, price="85,5", user=dispatcher)

    segment.refresh_from_db()
    assert segment.price == Decimal("85.50")
    assert segment.price_status == OrderSegment.PriceStatus.APPROVED


def test_reject_clears_price_and_keeps_reason(segment_factory, company, dispatcher):
    segment = segment_factory(order__company=company, price=Decimal("100.00"))

    segments.reject_segment_price(segment=segment, reason="Too expensive", user=dispatcher)

    segment.refresh_from_db()
    assert segment.price is None
    assert segment.price_status == OrderSegment.PriceStatus.REJECTED
    assert segment.price_rejection_reason == "Too expensive"


def test_reject_needs_reason(segment_factory, company, dispatcher):
    segment = segment_factory(order__company=company)
    with pytest.raises(ServiceError, match="reason"):
        segments.reject_segment_price(segment=segment, reason="  ", user=dispatcher)


@pytest.mark.parametrize("price", ["-1", "free"])
def test_invalid_price(segment_factory, company, dispatcher, price):
    segment = segment_factory(order__company=company)
    with pytest.raises(ServiceError, match="valid price"):
        segments.approve_segment_price(segment=segment, price=price, user=dispatcher)


def test_drivers_and_other_companies_cannot_settle(segment_factory, company, user_factory):
    segment = segment_factory(order__company=company)
    with pytest.raises(AuthorizationError):
        segments.approve_segment_price(
            segment=segment, price="10", user=user_factory(role="driver", company=company)
        )
    with pytest.raises(AuthorizationError):
        segments.approve_segment_price(
            segment=segment, price="10", user=user_factory(role="admin")
        )


def test_system_admin_may_settle_any_company(segment_factory, user_factory):
    segment = segment_factory()
    root = user_factory(role="admin", email="root@test.local")
    segments.approve_segment_price(segment=segment, price="10", user=root)
    segment.refresh_from_db()
    assert segment.price_status == OrderSegment.PriceStatus.APPROVED


def test_pending_price_requests(segment_factory, company, dispatcher):
    open_segment = segment_factory(order__company=company)
    settled = segment_factory(order__company=company)
    segment_factory()
    segments.approve_segment_price(segment=settled, price="20", user=dispatcher)

    assert list(segments.pending_price_requests(company)) == [open_segment]
