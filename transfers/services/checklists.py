"""
Pickup/dropoff protocol workflow.

open -> save draft (any number of times) -> submit. Submission validates the
whole record before anything is written, then stores the protocol and moves
the order in one transaction.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from transfers.models import Checklist, ChecklistExpense, Order
from transfers.policies import checklist_rules
from transfers.policies.checklist_rules import ChecklistType
from transfers.policies.roles import default_policy
from transfers.policies.status_machine import (
    OrderEvent,
    TransitionContext,
    can_fire,
    next_status,
)
from transfers.services import notifications
from transfers.services.exceptions import (
    AuthorizationError,
    ChecklistDraftError,
    ServiceError,
    StateConflictError,
)

logger = logging.getLogger(__name__)

DRAFT_FIELDS = frozenset(
    {
        "location",
        "odometer",
        "fuel_level",
        "cleanliness_inside",
        "cleanliness_outside",
        "accessories",
        "damages",
        "photos",
        "mandatory_checks",
        "notes",
        "signature_driver",
        "signature_customer",
        "customer_name",
        "customer_refused",
        "refuser_name",
        "refusal_reason",
    }
)
PICKUP_ONLY_FIELDS = frozenset({"accessories", "damages"})
LIST_FIELDS = frozenset({"damages", "photos"})
DICT_FIELDS = frozenset({"accessories", "mandatory_checks"})
CHOICE_FIELDS = {
    "fuel_level": Checklist.FuelLevel,
    "cleanliness_inside": Checklist.Cleanliness,
    "cleanliness_outside": Checklist.Cleanliness,
}

OPEN_EVENTS = {
    ChecklistType.PICKUP: OrderEvent.OPEN_PICKUP,
    ChecklistType.DROPOFF: OrderEvent.OPEN_DROPOFF,
}
SUBMIT_EVENTS = {
    ChecklistType.PICKUP: OrderEvent.SUBMIT_PICKUP,
    ChecklistType.DROPOFF: OrderEvent.SUBMIT_DROPOFF,
}


def _checklist_type(value):
    try:
        return ChecklistType(value)
    except ValueError:
        raise ServiceError(f"Unknown protocol type: {value!r}.") from None


def _is_text(value):
    return value is None or isinstance(value, str)


def _clean_draft_value(key, value):
    """Type-check one draft field. Raises ChecklistDraftError naming the field."""
    if key in LIST_FIELDS:
        value = [] if value is None else value
        if not isinstance(value, list) or not all(
            isinstance(item, dict) and all(_is_text(v) for v in item.values())
            for item in value
        ):
            raise ChecklistDraftError(
                f"{key} must be a list of objects with text values.", field=key
            )
        return value
    if key in DICT_FIELDS:
        value = {} if value is None else value
        if not isinstance(value, dict):
            raise ChecklistDraftError(f"{key} must be an object.", field=key)
        if key == "mandatory_checks" and not all(
            v is None or isinstance(v, bool) for v in value.values()
        ):
            raise ChecklistDraftError(
                "mandatory_checks answers must be true or false.", field=key
            )
        return value
    if key == "customer_refused":
        if value is not None and not isinstance(value, bool):
            raise ChecklistDraftError(
                "customer_refused must be true or false.", field=key
            )
        return bool(value)
    if key in CHOICE_FIELDS:
        if value not in CHOICE_FIELDS[key].values:
            raise ChecklistDraftError(f"{key} has an unknown value: {value!r}.", field=key)
        return value
    if key == "odometer" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not _is_text(value):
        raise ChecklistDraftError(f"{key} must be text.", field=key)
    return value or ""


def _apply_draft(checklist, draft):
    unknown = set(draft) - DRAFT_FIELDS
    if unknown:
        raise ServiceError(f"Unknown protocol fields: {', '.join(sorted(unknown))}.")
    if checklist.type == ChecklistType.DROPOFF:
        misplaced = set(draft) & PICKUP_ONLY_FIELDS
        if misplaced:
            raise ServiceError(
                f"Only the pickup protocol records {', '.join(sorted(misplaced))}."
            )
    cleaned = {key: _clean_draft_value(key, value) for key, value in draft.items()}
    for key, value in cleaned.items():
        setattr(checklist, key, value)


def _new_checklist(order, driver, checklist_type):
    default_location = (
        order.dropoff_location_label
        if checklist_type == ChecklistType.DROPOFF
        else order.pickup_location_label
    )
    return Checklist(
        order=order, driver=driver, type=checklist_type, location=default_location
    )


def _locked_order(order):
    return Order.objects.select_for_update().get(pk=order.pk)


def _ensure_author(checklist, driver):
    if checklist.pk and checklist.driver_id != driver.pk:
        raise AuthorizationError("This protocol belongs to another driver.")


@transaction.atomic
def open_protocol(*, order, driver, checklist_type, policy=None):
    """
    Create the draft protocol if needed and mark the order as started.

    Re-opening an existing protocol (e.g. to view a submitted one) leaves the
    order status alone.
    """
    checklist_type = _checklist_type(checklist_type)
    policy = policy or default_policy()
    order = _locked_order(order)
    policy.ensure_assigned_driver(driver, order)

    checklist = order.checklist_of(checklist_type)
    if checklist is None:
        if order.is_terminal:
            raise StateConflictError(
                f"Order is {order.get_status_display()}; no new protocol can be started."
            )
        checklist = _new_checklist(order, driver, checklist_type)
        checklist.save()

    event = OPEN_EVENTS[checklist_type]
    if can_fire(order.status, event):
        order._transition(event)
        logger.info(
            "Order %s: %s protocol opened by driver %s",
            order.order_number,
            checklist_type,
            driver.pk,
        )
    return order, checklist


@transaction.atomic
def save_checklist_draft(*, order, driver, checklist_type, draft, policy=None):
    checklist_type = _checklist_type(checklist_type)
    policy = policy or default_policy()
    order = _locked_order(order)
    policy.ensure_assigned_driver(driver, order)

    checklist = order.checklist_of(checklist_type)
    if checklist is None:
        order, checklist = open_protocol(
            order=order, driver=driver, checklist_type=checklist_type, policy=policy
        )
    _ensure_author(checklist, driver)
    checklist_rules.ensure_mutable(checklist)
    _apply_draft(checklist, draft)
    checklist.save()
    return checklist


def submit_checklist(*, order, driver, checklist_type, draft=None, policy=None):
    """
    Validate and submit a protocol.

    Raises ChecklistValidationError naming the first failing predicate and its
    wizard step; nothing is written in that case.
    Returns (order, checklist).
    """
    checklist_type = _checklist_type(checklist_type)
    policy = policy or default_policy()

    with transaction.atomic():
        order = _locked_order(order)
        policy.ensure_assigned_driver(driver, order)
        checklist = order.checklist_of(checklist_type) or _new_checklist(
            order, driver, checklist_type
        )
        _ensure_author(checklist, driver)
        checklist_rules.ensure_mutable(checklist)
        _apply_draft(checklist, draft or {})

        # GUARDS - both raise before any write
        checklist_rules.validate_for_submission(checklist, checklist_type)
        event = SUBMIT_EVENTS[checklist_type]
        context = TransitionContext(checklist_valid=True)
        next_status(order.status, event, context)

        now = timezone.now()
        checklist.completed = True
        checklist.completed_at = now
        checklist.save()

        extra = {"completed_at": now} if checklist_type == ChecklistType.DROPOFF else {}
        order._transition(event, context, **extra)

        if checklist_type == ChecklistType.DROPOFF:
            notifications.order_completed(order, checklist)

    logger.info(
        "Order %s: %s protocol submitted, status now %s",
        order.order_number,
        checklist_type,
        order.status,
    )
    return order, checklist


def add_checklist_expense(
    *, checklist, driver, expense_type, amount, note="", receipt_url="", policy=None
):
    """Record a driver expense. The protocol itself is not modified."""
    policy = policy or default_policy()
    policy.ensure_driver_in_company(driver, checklist.order.company_id)
    _ensure_author(checklist, driver)

    if expense_type not in ChecklistExpense.ExpenseType.values:
        raise ServiceError(f"Unknown expense type: {expense_type!r}.")
    try:
        amount = Decimal(str(amount).replace(",", "."))
    except InvalidOperation:
        raise ServiceError("Expense amount must be a number.") from None
    if not amount.is_finite() or amount < 0:
        raise ServiceError("Expense amount must be zero or more.")

    return ChecklistExpense.objects.create(
        checklist=checklist,
        type=expense_type,
        amount=amount,
        note=note or "",
        receipt_url=receipt_url or "",
    )
