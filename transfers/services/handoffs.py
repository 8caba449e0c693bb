"""
Mid-route custody changes.

A handoff parks the vehicle (order -> zwischenabgabe, no driver) until another
driver accepts it. A shuttle stop only records a leg; the driver keeps the
order. Both append one OrderSegment whose start is where the previous leg
ended, so the segments of an order always form one continuous route.

Creation runs under a row lock on the order; the conditional unique
constraint on pending handoffs backs that up when the database cannot lock.
"""

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils import timezone

from transfers.models import Order, OrderHandoff, OrderSegment
from transfers.policies.checklist_rules import ChecklistType
from transfers.policies.roles import default_policy
from transfers.policies.status_machine import OrderEvent, TransitionContext, next_status
from transfers.services import notifications
from transfers.services.distance import resolve_distance_km
from transfers.services.exceptions import ServiceError, StateConflictError

logger = logging.getLogger(__name__)

PENDING_CONFLICT = "A handoff for this order is already pending."


@dataclass(frozen=True)
class HandoffResult:
    handoff: OrderHandoff
    segment: OrderSegment
    order: Order


@dataclass(frozen=True)
class ShuttleResult:
    segment: OrderSegment
    order: Order


@dataclass(frozen=True)
class AcceptResult:
    handoff: OrderHandoff
    order: Order


def resolve_start_location(order) -> str:
    """
    Where the next leg starts: end of the latest segment, else the latest
    accepted handoff, else the pickup address.
    """
    last_segment = order.segments.order_by("-created_at", "-id").first()
    if last_segment is not None:
        return last_segment.end_location
    last_accepted = (
        order.handoffs.filter(status=OrderHandoff.HandoffStatus.ACCEPTED)
        .order_by("-accepted_at", "-id")
        .first()
    )
    if last_accepted is not None:
        return last_accepted.location
    return order.pickup_location_label


def _clean_location(location):
    location = (location or "").strip()
    if not location:
        raise ServiceError("Location is required.")
    return location


def _ensure_leg_can_start(order, event, *, reject_after_dropoff):
    pickup = order.checklist_of(ChecklistType.PICKUP)
    if pickup is None or not pickup.completed:
        raise StateConflictError("The pickup protocol has not been submitted yet.")
    if reject_after_dropoff and order.checklist_of(ChecklistType.DROPOFF) is not None:
        raise StateConflictError(
            "The dropoff protocol was already started; no handoff is possible."
        )
    if order.has_pending_handoff():
        raise StateConflictError(PENDING_CONFLICT)
    next_status(order.status, event, TransitionContext(has_pending_handoff=False))


def _append_segment(
    order, driver, segment_type, end_location, notes, resolver, handoff=None
):
    start_location = resolve_start_location(order)
    return OrderSegment.objects.create(
        order=order,
        handoff=handoff,
        driver=driver,
        segment_type=segment_type,
        start_location=start_location,
        end_location=end_location,
        distance_km=resolve_distance_km(start_location, end_location, resolver),
        notes=notes or "",
    )


def create_handoff(
    *,
    order,
    driver,
    location,
    notes="",
    latitude=None,
    longitude=None,
    resolver=None,
    policy=None,
):
    location = _clean_location(location)
    policy = policy or default_policy()
    try:
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            policy.ensure_assigned_driver(driver, order)
            _ensure_leg_can_start(
                order, OrderEvent.CREATE_HANDOFF, reject_after_dropoff=True
            )

            handoff = OrderHandoff.objects.create(
                order=order,
                created_by=driver,
                location=location,
                latitude=latitude,
                longitude=longitude,
                notes=notes or "",
            )
            segment = _append_segment(
                order,
                driver,
                OrderSegment.SegmentType.HANDOFF,
                location,
                notes,
                resolver,
                handoff=handoff,
            )
            order.clear_assignment()
            order._transition(
                OrderEvent.CREATE_HANDOFF, TransitionContext(has_pending_handoff=False)
            )
            notifications.handoff_created(handoff)
    except IntegrityError:
        raise StateConflictError(PENDING_CONFLICT) from None

    logger.info(
        "Order %s: handoff %s created by driver %s at %r",
        order.order_number,
        handoff.pk,
        driver.pk,
        location,
    )
    return HandoffResult(handoff=handoff, segment=segment, order=order)


def create_shuttle(*, order, driver, location, notes="", resolver=None, policy=None):
    """Record an intermediate stop. Assignment and status stay as they are."""
    location = _clean_location(location)
    policy = policy or default_policy()
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        policy.ensure_assigned_driver(driver, order)
        _ensure_leg_can_start(
            order, OrderEvent.CREATE_SHUTTLE, reject_after_dropoff=False
        )

        segment = _append_segment(
            order, driver, OrderSegment.SegmentType.SHUTTLE, location, notes, resolver
        )
        order._transition(
            OrderEvent.CREATE_SHUTTLE, TransitionContext(has_pending_handoff=False)
        )

    logger.info(
        "Order %s: shuttle segment %s recorded by driver %s",
        order.order_number,
        segment.pk,
        driver.pk,
    )
    return ShuttleResult(segment=segment, order=order)


def accept_handoff(*, handoff, driver, policy=None):
    policy = policy or default_policy()
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=handoff.order_id)
        handoff = OrderHandoff.objects.select_for_update().get(pk=handoff.pk)
        policy.ensure_driver_in_company(driver, order.company_id)

        if handoff.created_by_id == driver.pk:
            raise StateConflictError(
                "A handoff cannot be accepted by the driver who created it."
            )
        if handoff.status != OrderHandoff.HandoffStatus.PENDING:
            raise StateConflictError("This handoff has already been accepted.")

        context = TransitionContext(
            creating_driver_id=handoff.created_by_id, accepting_driver_id=driver.pk
        )
        next_status(order.status, OrderEvent.ACCEPT_HANDOFF, context)

        now = timezone.now()
        handoff.status = OrderHandoff.HandoffStatus.ACCEPTED
        handoff.accepted_by = driver
        handoff.accepted_at = now
        handoff.save(update_fields=["status", "accepted_by", "accepted_at", "updated_at"])

        order._transition(
            OrderEvent.ACCEPT_HANDOFF,
            context,
            assigned_driver=driver,
            assigned_at=now,
        )
        notifications.handoff_accepted(handoff)

    logger.info(
        "Order %s: handoff %s accepted by driver %s",
        order.order_number,
        handoff.pk,
        driver.pk,
    )
    return AcceptResult(handoff=handoff, order=order)
