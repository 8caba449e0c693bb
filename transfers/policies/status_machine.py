"""
Order status machine.

Pure module: no queries, no writes. The table below is the only place that
decides whether an order may move from one status to another. Model methods and
services build a ``TransitionContext`` from what they loaded and ask
``next_status`` for the target, then persist it themselves.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from django.db import models

from transfers.services.exceptions import TransitionNotAllowed


class OrderStatus(models.TextChoices):
    NEW = "new", "New"
    ASSIGNED = "assigned", "Assigned"
    PICKUP_STARTED = "pickup_started", "Pickup started"
    IN_TRANSIT = "in_transit", "In transit"
    ZWISCHENABGABE = "zwischenabgabe", "Intermediate drop (awaiting driver)"
    DELIVERY_STARTED = "delivery_started", "Delivery started"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    # billing sub-states, handled by accounting after completion
    REVIEW = "review", "In review"
    READY_FOR_BILLING = "ready_for_billing", "Ready for billing"
    APPROVED = "approved", "Approved"


class OrderEvent(models.TextChoices):
    ASSIGN_DRIVER = "assign_driver", "Assign driver"
    OPEN_PICKUP = "open_pickup", "Open pickup protocol"
    SUBMIT_PICKUP = "submit_pickup", "Submit pickup protocol"
    CREATE_HANDOFF = "create_handoff", "Create handoff"
    CREATE_SHUTTLE = "create_shuttle", "Create shuttle stop"
    ACCEPT_HANDOFF = "accept_handoff", "Accept handoff"
    OPEN_DROPOFF = "open_dropoff", "Open dropoff protocol"
    SUBMIT_DROPOFF = "submit_dropoff", "Submit dropoff protocol"
    CANCEL = "cancel", "Cancel"
    RECONCILE = "reconcile", "Reconcile stuck order"
    SEND_TO_REVIEW = "send_to_review", "Send to review"
    MARK_READY_FOR_BILLING = "mark_ready_for_billing", "Mark ready for billing"
    APPROVE_BILLING = "approve_billing", "Approve billing"


TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
        OrderStatus.REVIEW,
        OrderStatus.READY_FOR_BILLING,
        OrderStatus.APPROVED,
    }
)

# Orders that count as finished work for reporting.
COMPLETED_FAMILY = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.REVIEW,
        OrderStatus.READY_FOR_BILLING,
        OrderStatus.APPROVED,
    }
)


@dataclass(frozen=True)
class TransitionContext:
    """Facts a guard may look at. Services fill in what applies to the event."""

    has_pending_handoff: bool = False
    creating_driver_id: Optional[int] = None
    accepting_driver_id: Optional[int] = None
    checklist_valid: bool = False


Guard = Callable[[TransitionContext], bool]


# GUARDS


def no_pending_handoff(ctx: TransitionContext) -> bool:
    return not ctx.has_pending_handoff


def accepting_driver_differs(ctx: TransitionContext) -> bool:
    return (
        ctx.accepting_driver_id is not None
        and ctx.accepting_driver_id != ctx.creating_driver_id
    )


def checklist_passes(ctx: TransitionContext) -> bool:
    return ctx.checklist_valid


@dataclass(frozen=True)
class Transition:
    source: str
    event: str
    target: str
    guard: Optional[Guard] = None
    guard_message: str = ""


def _rows(sources, event, target, guard=None, guard_message=""):
    return [Transition(s, event, target, guard, guard_message) for s in sources]


_NON_TERMINAL = [s for s in OrderStatus.values if s not in TERMINAL_STATUSES]

_PENDING_HANDOFF_MSG = "A handoff for this order is already pending."

TRANSITIONS = {
    (t.source, t.event): t
    for t in [
        *_rows(
            [OrderStatus.NEW, OrderStatus.ASSIGNED],
            OrderEvent.ASSIGN_DRIVER,
            OrderStatus.ASSIGNED,
        ),
        # dispatch hands a parked vehicle to a new driver directly
        Transition(
            OrderStatus.ZWISCHENABGABE,
            OrderEvent.ASSIGN_DRIVER,
            OrderStatus.IN_TRANSIT,
            no_pending_handoff,
            "Vehicle has a pending handoff; it must be accepted by a driver.",
        ),
        *_rows(
            [OrderStatus.NEW, OrderStatus.ASSIGNED],
            OrderEvent.OPEN_PICKUP,
            OrderStatus.PICKUP_STARTED,
        ),
        *_rows(
            [OrderStatus.NEW, OrderStatus.ASSIGNED, OrderStatus.PICKUP_STARTED],
            OrderEvent.SUBMIT_PICKUP,
            OrderStatus.IN_TRANSIT,
            checklist_passes,
            "Pickup protocol is incomplete.",
        ),
        Transition(
            OrderStatus.IN_TRANSIT,
            OrderEvent.CREATE_HANDOFF,
            OrderStatus.ZWISCHENABGABE,
            no_pending_handoff,
            _PENDING_HANDOFF_MSG,
        ),
        Transition(
            OrderStatus.IN_TRANSIT,
            OrderEvent.CREATE_SHUTTLE,
            OrderStatus.IN_TRANSIT,
            no_pending_handoff,
            _PENDING_HANDOFF_MSG,
        ),
        Transition(
            OrderStatus.ZWISCHENABGABE,
            OrderEvent.ACCEPT_HANDOFF,
            OrderStatus.IN_TRANSIT,
            accepting_driver_differs,
            "A handoff cannot be accepted by the driver who created it.",
        ),
        *_rows(
            [
                OrderStatus.NEW,
                OrderStatus.ASSIGNED,
                OrderStatus.PICKUP_STARTED,
                OrderStatus.IN_TRANSIT,
            ],
            OrderEvent.OPEN_DROPOFF,
            OrderStatus.DELIVERY_STARTED,
        ),
        *_rows(
            [
                OrderStatus.NEW,
                OrderStatus.ASSIGNED,
                OrderStatus.PICKUP_STARTED,
                OrderStatus.IN_TRANSIT,
                OrderStatus.DELIVERY_STARTED,
            ],
            OrderEvent.SUBMIT_DROPOFF,
            OrderStatus.COMPLETED,
            checklist_passes,
            "Dropoff protocol is incomplete.",
        ),
        *_rows(_NON_TERMINAL, OrderEvent.CANCEL, OrderStatus.CANCELLED),
        Transition(
            OrderStatus.IN_TRANSIT, OrderEvent.RECONCILE, OrderStatus.ZWISCHENABGABE
        ),
        Transition(
            OrderStatus.COMPLETED, OrderEvent.SEND_TO_REVIEW, OrderStatus.REVIEW
        ),
        Transition(
            OrderStatus.REVIEW,
            OrderEvent.MARK_READY_FOR_BILLING,
            OrderStatus.READY_FOR_BILLING,
        ),
        Transition(
            OrderStatus.READY_FOR_BILLING,
            OrderEvent.APPROVE_BILLING,
            OrderStatus.APPROVED,
        ),
    ]
}


def _label(choices, value):
    try:
        return choices(value).label
    except ValueError:
        return value


def next_status(status, event, context: Optional[TransitionContext] = None) -> str:
    """
    Return the target status for ``event`` fired in ``status``.

    Raises TransitionNotAllowed when the pair is not in the table or its guard
    rejects the context.
    """
    transition = TRANSITIONS.get((status, event))
    if transition is None:
        raise TransitionNotAllowed(
            f"Cannot {_label(OrderEvent, event).lower()} "
            f"while order is {_label(OrderStatus, status)}.",
            status=status,
            event=event,
        )
    if transition.guard is not None and not transition.guard(
        context or TransitionContext()
    ):
        raise TransitionNotAllowed(
            transition.guard_message, status=status, event=event
        )
    return transition.target


def can_fire(status, event, context: Optional[TransitionContext] = None) -> bool:
    try:
        next_status(status, event, context)
    except TransitionNotAllowed:
        return False
    return True


def events_from(status) -> list[str]:
    """Events that have a table entry for ``status`` (guards not evaluated)."""
    return [event for (source, event) in TRANSITIONS if source == status]
