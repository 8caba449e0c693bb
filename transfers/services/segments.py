"""Price settlement for route segments (the driver's pay for a leg)."""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from transfers.models import OrderSegment
from transfers.policies.roles import default_policy
from transfers.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


def pending_price_requests(company):
    return (
        OrderSegment.objects.filter(
            order__company=company,
            price_status=OrderSegment.PriceStatus.PENDING,
        )
        .select_related("order", "driver")
        .order_by("-created_at")
    )


def _parse_price(value):
    try:
        price = Decimal(str(value).replace(",", "."))
    except InvalidOperation:
        raise ServiceError("Please enter a valid price.") from None
    if not price.is_finite() or price < 0:
        raise ServiceError("Please enter a valid price.")
    return price.quantize(Decimal("0.01"))


@transaction.atomic
def approve_segment_price(*, segment, price, user, policy=None):
    policy = policy or default_policy()
    policy.ensure_staff(user, segment.order.company_id)

    segment = OrderSegment.objects.select_for_update().get(pk=segment.pk)
    segment.price = _parse_price(price)
    segment.price_status = OrderSegment.PriceStatus.APPROVED
    segment.price_rejection_reason = ""
    segment.save(update_fields=["price", "price_status", "price_rejection_reason", "updated_at"])
    logger.info("Segment %s approved at %s by user %s", segment.pk, segment.price, user.pk)
    return segment


@transaction.atomic
def reject_segment_price(*, segment, reason, user, policy=None):
    policy = policy or default_policy()
    policy.ensure_staff(user, segment.order.company_id)

    reason = (reason or "").strip()
    if not reason:
        raise ServiceError("Please give a short reason for the rejection.")

    segment = OrderSegment.objects.select_for_update().get(pk=segment.pk)
    segment.price = None
    segment.price_status = OrderSegment.PriceStatus.REJECTED
    segment.price_rejection_reason = reason
    segment.save(update_fields=["price", "price_status", "price_rejection_reason", "updated_at"])
    logger.info("Segment %s rejected by user %s", segment.pk, user.pk)
    return segment
