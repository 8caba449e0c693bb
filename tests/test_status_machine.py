import pytest

from transfers.policies.status_machine import (
    TERMINAL_STATUSES,
    OrderEvent,
    OrderStatus,
    TransitionContext,
    can_fire,
    events_from,
    next_status,
)
from transfers.services.exceptions import StateConflictError, TransitionNotAllowed


@pytest.mark.parametrize(
    "status, event, context, expected",
    [
        (OrderStatus.NEW, OrderEvent.ASSIGN_DRIVER, None, OrderStatus.ASSIGNED),
        (OrderStatus.ASSIGNED, OrderEvent.OPEN_PICKUP, None, OrderStatus.PICKUP_STARTED),
        (
            OrderStatus.PICKUP_STARTED,
            OrderEvent.SUBMIT_PICKUP,
            TransitionContext(checklist_valid=True),
            OrderStatus.IN_TRANSIT,
        ),
        (
            OrderStatus.IN_TRANSIT,
            OrderEvent.CREATE_HANDOFF,
            TransitionContext(has_pending_handoff=False),
            OrderStatus.ZWISCHENABGABE,
        ),
        (
            OrderStatus.IN_TRANSIT,
            OrderEvent.CREATE_SHUTTLE,
            None,
            OrderStatus.IN_TRANSIT,
        ),
        (
            OrderStatus.ZWISCHENABGABE,
            OrderEvent.ACCEPT_HANDOFF,
            TransitionContext(creating_driver_id=1, accepting_driver_id=2),
            OrderStatus.IN_TRANSIT,
        ),
        (OrderStatus.IN_TRANSIT, OrderEvent.OPEN_DROPOFF, None, OrderStatus.DELIVERY_STARTED),
        (
            OrderStatus.DELIVERY_STARTED,
            OrderEvent.SUBMIT_DROPOFF,
            TransitionContext(checklist_valid=True),
            OrderStatus.COMPLETED,
        ),
        (OrderStatus.IN_TRANSIT, OrderEvent.RECONCILE, None, OrderStatus.ZWISCHENABGABE),
        (OrderStatus.COMPLETED, OrderEvent.SEND_TO_REVIEW, None, OrderStatus.REVIEW),
    ],
)
def test_table_targets(status, event, context, expected):
    assert next_status(status, event, context) == expected


def test_unknown_pair_is_a_state_conflict():
    with pytest.raises(TransitionNotAllowed, match="while order is Completed") as exc:
        next_status(OrderStatus.COMPLETED, OrderEvent.CREATE_HANDOFF)
    assert isinstance(exc.value, StateConflictError)
    assert isinstance(exc.value, ValueError)
    assert exc.value.status == OrderStatus.COMPLETED
    assert exc.value.event == OrderEvent.CREATE_HANDOFF


def test_unknown_event_name_still_raises_transition_error():
    with pytest.raises(TransitionNotAllowed):
        next_status(OrderStatus.NEW, "teleport")


def test_submit_requires_valid_checklist():
    with pytest.raises(TransitionNotAllowed, match="Pickup protocol is incomplete"):
        next_status(OrderStatus.ASSIGNED, OrderEvent.SUBMIT_PICKUP)


def test_handoff_blocked_while_another_is_pending():
    with pytest.raises(TransitionNotAllowed, match="already pending"):
        next_status(
            OrderStatus.IN_TRANSIT,
            OrderEvent.CREATE_HANDOFF,
            TransitionContext(has_pending_handoff=True),
        )


def test_creator_cannot_accept_own_handoff():
    with pytest.raises(TransitionNotAllowed, match="driver who created it"):
        next_status(
            OrderStatus.ZWISCHENABGABE,
            OrderEvent.ACCEPT_HANDOFF,
            TransitionContext(creating_driver_id=7, accepting_driver_id=7),
        )


def test_direct_assignment_of_parked_vehicle_needs_no_pending_handoff():
    assert (
        next_status(OrderStatus.ZWISCHENABGABE, OrderEvent.ASSIGN_DRIVER)
        == OrderStatus.IN_TRANSIT
    )
    assert not can_fire(
        OrderStatus.ZWISCHENABGABE,
        OrderEvent.ASSIGN_DRIVER,
        TransitionContext(has_pending_handoff=True),
    )


def test_cancel_allowed_only_before_terminal_statuses():
    for status in OrderStatus.values:
        if status in TERMINAL_STATUSES:
            assert not can_fire(status, OrderEvent.CANCEL)
        else:
            assert next_status(status, OrderEvent.CANCEL) == OrderStatus.CANCELLED


def test_billing_events_follow_completion():
    assert events_from(OrderStatus.COMPLETED) == [OrderEvent.SEND_TO_REVIEW]
    assert events_from(OrderStatus.CANCELLED) == []
    assert OrderEvent.APPROVE_BILLING in events_from(OrderStatus.READY_FOR_BILLING)
