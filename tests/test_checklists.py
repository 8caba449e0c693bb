from decimal import Decimal

import pytest

from transfers.factories import complete_draft
from transfers.models import Checklist, Order
from transfers.policies import checklist_rules
from transfers.services import checklists
from transfers.services.exceptions import (
    AuthorizationError,
    ChecklistDraftError,
    ChecklistLockedError,
    ChecklistValidationError,
    ServiceError,
    StateConflictError,
)

pytestmark = pytest.mark.django_db


def test_open_pickup_creates_draft_and_starts_pickup(assigned_order):
    order = assigned_order()
    order, checklist = checklists.open_protocol(
        order=order, driver=order.assigned_driver, checklist_type="pickup"
    )
    assert order.status == Order.Status.PICKUP_STARTED
    assert checklist.pk is not None
    assert not checklist.completed
    assert checklist.location == order.pickup_location_label


def test_reopening_submitted_protocol_leaves_status_alone(in_transit_order):
    order = in_transit_order()
    order, checklist = checklists.open_protocol(
        order=order, driver=order.assigned_driver, checklist_type="pickup"
    )
    assert order.status == Order.Status.IN_TRANSIT
    assert checklist.completed


def test_only_assigned_driver_may_open(assigned_order, driver_factory, company):
    order = assigned_order()
    with pytest.raises(AuthorizationError):
        checklists.open_protocol(
            order=order, driver=driver_factory(company=company), checklist_type="pickup"
        )


def test_unknown_protocol_type(assigned_order):
    order = assigned_order()
    with pytest.raises(ServiceError, match="Unknown protocol type"):
        checklists.open_protocol(
            order=order, driver=order.assigned_driver, checklist_type="midway"
        )


def test_no_new_protocol_on_cancelled_order(assigned_order):
    order = assigned_order()
    driver = order.assigned_driver
    order.cancel()
    with pytest.raises(StateConflictError):
        checklists.open_protocol(order=order, driver=driver, checklist_type="pickup")


def test_draft_is_saved_without_validation(assigned_order):
    order = assigned_order()
    checklist = checklists.save_checklist_draft(
        order=order,
        driver=order.assigned_driver,
        checklist_type="pickup",
        draft={"odometer": "", "notes": "half done"},
    )
    checklist.refresh_from_db()
    assert checklist.notes == "half done"
    assert not checklist.completed


def test_draft_rejects_unknown_fields(assigned_order):
    order = assigned_order()
    with pytest.raises(ServiceError, match="Unknown protocol fields: completed"):
        checklists.save_checklist_draft(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft={"completed": True},
        )


def test_dropoff_does_not_record_damages(in_transit_order):
    order = in_transit_order()
    with pytest.raises(ServiceError, match="Only the pickup protocol"):
        checklists.save_checklist_draft(
            order=order,
            driver=order.assigned_driver,
            checklist_type="dropoff",
            draft={"damages": []},
        )


def test_submit_pickup_moves_order_in_transit(assigned_order):
    order = assigned_order()
    order, checklist = checklists.submit_checklist(
        order=order,
        driver=order.assigned_driver,
        checklist_type="pickup",
        draft=complete_draft("pickup"),
    )
    assert order.status == Order.Status.IN_TRANSIT
    assert checklist.completed
    assert checklist.completed_at is not None
    assert Order.objects.get(pk=order.pk).status == Order.Status.IN_TRANSIT


def test_dropoff_without_customer_signature_is_rejected(in_transit_order):
    order = in_transit_order()
    with pytest.raises(ChecklistValidationError) as exc:
        checklists.submit_checklist(
            order=order,
            driver=order.assigned_driver,
            checklist_type="dropoff",
            draft=complete_draft("dropoff", signature_customer="", customer_refused=False),
        )
    assert exc.value.step == "signatures"
    assert exc.value.predicate == "signatures_complete"

    order.refresh_from_db()
    assert order.status == Order.Status.IN_TRANSIT
    assert order.completed_at is None
    assert not Checklist.objects.filter(order=order, type="dropoff", completed=True).exists()


def test_dropoff_with_refusal_completes_order(in_transit_order, mailoutbox, django_capture_on_commit_callbacks):
    order = in_transit_order(customer_email="kunde@example.com")
    with django_capture_on_commit_callbacks(execute=True):
        order, checklist = checklists.submit_checklist(
            order=order,
            driver=order.assigned_driver,
            checklist_type="dropoff",
            draft=complete_draft(
                "dropoff",
                signature_customer="",
                customer_name="",
                customer_refused=True,
                refuser_name="Pförtner",
                refusal_reason="Not authorised to sign",
            ),
        )
    assert order.status == Order.Status.COMPLETED
    assert order.completed_at is not None
    assert len(mailoutbox) == 1
    assert "kunde@example.com" in mailoutbox[0].to


def test_submitted_protocol_cannot_be_changed(in_transit_order):
    order = in_transit_order()
    with pytest.raises(ChecklistLockedError):
        checklists.save_checklist_draft(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft={"odometer": "1"},
        )
    with pytest.raises(ChecklistLockedError):
        checklists.submit_checklist(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft=complete_draft("pickup"),
        )
    assert order.checklist_of("pickup").odometer == "45210"


def test_protocol_of_other_driver_is_read_only(in_transit_order, driver_factory, company):
    order = in_transit_order()
    checklists.save_checklist_draft(
        order=order, driver=order.assigned_driver, checklist_type="dropoff", draft={}
    )
    other = driver_factory(company=company)
    Order.objects.filter(pk=order.pk).update(assigned_driver=other)
    with pytest.raises(AuthorizationError, match="another driver"):
        checklists.save_checklist_draft(
            order=order, driver=other, checklist_type="dropoff", draft={"notes": "x"}
        )


def test_expense_is_recorded_without_touching_protocol(in_transit_order):
    order = in_transit_order()
    driver = order.assigned_driver
    order, dropoff = checklists.submit_checklist(
        order=order, driver=driver, checklist_type="dropoff", draft=complete_draft("dropoff")
    )
    expense = checklists.add_checklist_expense(
        checklist=dropoff, driver=driver, expense_type="fuel", amount="45,50"
    )
    assert expense.amount == Decimal("45.50")
    assert dropoff.expenses.count() == 1


@pytest.mark.parametrize("amount", ["-1", "abc", "NaN"])
def test_expense_amount_must_be_a_non_negative_number(in_transit_order, amount):
    order = in_transit_order()
    pickup = order.checklist_of("pickup")
    with pytest.raises(ServiceError):
        checklists.add_checklist_expense(
            checklist=pickup, driver=order.assigned_driver, expense_type="toll", amount=amount
        )


def test_expense_type_must_be_known(in_transit_order):
    order = in_transit_order()
    with pytest.raises(ServiceError, match="Unknown expense type"):
        checklists.add_checklist_expense(
            checklist=order.checklist_of("pickup"),
            driver=order.assigned_driver,
            expense_type="snacks",
            amount="3",
        )


@pytest.mark.parametrize(
    "draft, field",
    [
        ({"mandatory_checks": ["vin_checked"]}, "mandatory_checks"),
        ({"mandatory_checks": {"vin_checked": "yes"}}, "mandatory_checks"),
        ({"accessories": "2 keys"}, "accessories"),
        ({"photos": {"type": "front"}}, "photos"),
        ({"photos": [{"type": ["front"], "url": "https://x/y.jpg"}]}, "photos"),
        ({"damages": ["scratch"]}, "damages"),
        ({"customer_refused": "false"}, "customer_refused"),
        ({"fuel_level": "9/8"}, "fuel_level"),
        ({"notes": {"text": "x"}}, "notes"),
    ],
)
def test_malformed_draft_is_rejected_with_field(assigned_order, draft, field):
    order = assigned_order()
    with pytest.raises(ChecklistDraftError) as exc_info:
        checklists.save_checklist_draft(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft=draft,
        )
    assert exc_info.value.field == field
    assert not Checklist.objects.filter(order=order).exists()
    order.refresh_from_db()
    assert order.status == Order.Status.ASSIGNED


def test_malformed_photos_rejected_on_submit(assigned_order):
    order = assigned_order()
    draft = complete_draft(photos=[{"type": ["front"], "url": "https://x/y.jpg"}])
    with pytest.raises(ChecklistDraftError, match="photos"):
        checklists.submit_checklist(
            order=order,
            driver=order.assigned_driver,
            checklist_type="pickup",
            draft=draft,
        )
    order.refresh_from_db()
    assert order.status == Order.Status.ASSIGNED


def test_numeric_odometer_is_stored_as_text(assigned_order):
    order = assigned_order()
    checklist = checklists.save_checklist_draft(
        order=order,
        driver=order.assigned_driver,
        checklist_type="pickup",
        draft={"odometer": 45210, "mandatory_checks": {"vin_checked": True}},
    )
    checklist.refresh_from_db()
    assert checklist.odometer == "45210"
    assert checklist_rules.has_odometer(checklist)
    assert "vehicle_check" in checklist_rules.completed_steps(checklist, "pickup")
