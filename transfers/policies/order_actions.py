from transfers.models import Order
from transfers.policies.checklist_rules import ChecklistType
from transfers.policies.roles import is_admin, is_driver, is_staff_member
from transfers.policies.status_machine import (
    OrderEvent,
    TransitionContext,
    can_fire,
)


def _driver_of(user):
    return getattr(user, "driver_profile", None) if is_driver(user) else None


def actions_for(user, order: Order) -> list[str]:
    """What ``user`` may do on ``order`` right now, for the app to show buttons."""
    actions: list[str] = []
    pending = order.has_pending_handoff()
    context = TransitionContext(has_pending_handoff=pending)

    if is_staff_member(user) and user.company_id == order.company_id:
        if can_fire(order.status, OrderEvent.ASSIGN_DRIVER, context):
            actions.append("assign_driver")
        if can_fire(order.status, OrderEvent.CANCEL):
            actions.append("cancel")
        for event in (
            OrderEvent.SEND_TO_REVIEW,
            OrderEvent.MARK_READY_FOR_BILLING,
            OrderEvent.APPROVE_BILLING,
        ):
            if can_fire(order.status, event):
                actions.append(str(event))
        if is_admin(user) and order.status == Order.Status.IN_TRANSIT:
            actions.append("reconcile")

    driver = _driver_of(user)
    if driver is None or driver.company_id != order.company_id:
        return actions

    if order.assigned_driver_id == driver.pk:
        pickup = order.checklist_of(ChecklistType.PICKUP)
        dropoff = order.checklist_of(ChecklistType.DROPOFF)

        if pickup is None or not pickup.completed:
            if not order.is_terminal:
                actions.append("pickup_protocol")
        else:
            if can_fire(order.status, OrderEvent.CREATE_HANDOFF, context) and dropoff is None:
                actions.append("create_handoff")
            if can_fire(order.status, OrderEvent.CREATE_SHUTTLE, context):
                actions.append("create_shuttle")
            if dropoff is None or not dropoff.completed:
                if not order.is_terminal:
                    actions.append("dropoff_protocol")
        if dropoff is not None and dropoff.completed:
            actions.append("add_expense")

    if (
        order.status == Order.Status.ZWISCHENABGABE
        and order.handoffs.filter(status="pending").exclude(created_by=driver).exists()
    ):
        actions.append("accept_handoff")

    return actions
