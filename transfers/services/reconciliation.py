"""
Repair orders stuck in transit.

An in-transit order must have a driver, and its latest leg must not be an
unaccepted handoff. Orders breaking either rule are parked again
(zwischenabgabe, no driver) so they show up for a new driver. Safe to re-run:
corrected orders are no longer in transit.
"""

import logging
from dataclasses import dataclass, field

from django.db import transaction

from transfers.models import Order, OrderHandoff, OrderSegment
from transfers.policies.status_machine import OrderEvent, OrderStatus

logger = logging.getLogger(__name__)

REASON_NO_DRIVER = "no_driver"
REASON_HANDOFF_LATEST = "handoff_latest"


@dataclass
class ReconciliationResult:
    updated_count: int = 0
    reasons: dict = field(
        default_factory=lambda: {REASON_NO_DRIVER: 0, REASON_HANDOFF_LATEST: 0}
    )
    order_ids: list = field(default_factory=list)

    def as_dict(self):
        return {"updated_count": self.updated_count, "reasons": dict(self.reasons)}


def stuck_reason(order):
    """Why ``order`` needs correcting, or None."""
    if order.status != OrderStatus.IN_TRANSIT:
        return None
    if order.assigned_driver_id is None:
        return REASON_NO_DRIVER
    latest = (
        order.segments.select_related("handoff").order_by("-created_at", "-id").first()
    )
    if (
        latest is not None
        and latest.segment_type == OrderSegment.SegmentType.HANDOFF
        and (
            latest.handoff is None
            or latest.handoff.status != OrderHandoff.HandoffStatus.ACCEPTED
        )
    ):
        return REASON_HANDOFF_LATEST
    return None


@transaction.atomic
def reconcile_stuck_orders(company):
    result = ReconciliationResult()
    orders = (
        Order.objects.select_for_update()
        .filter(company=company, status=OrderStatus.IN_TRANSIT)
        .order_by("pk")
    )
    for order in orders:
        reason = stuck_reason(order)
        if reason is None:
            continue
        order.clear_assignment()
        order._transition(OrderEvent.RECONCILE)
        result.updated_count += 1
        result.reasons[reason] += 1
        result.order_ids.append(order.pk)
        logger.info("Order %s parked again (%s)", order.order_number, reason)

    logger.info(
        "Reconciliation for company %s: %s orders corrected %s",
        company.pk,
        result.updated_count,
        result.reasons,
    )
    return result
