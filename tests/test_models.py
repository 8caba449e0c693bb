from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

import transfers.models as transfer_models
from transfers.services.exceptions import ChecklistLockedError, TransitionNotAllowed

pytestmark = pytest.mark.django_db

Order = transfer_models.Order


def test_assign_driver_moves_new_order_to_assigned(order_factory, driver_factory):
    order = order_factory()
    driver = driver_factory(company=order.company, first_name="Jan", last_name="Kurz")
    order.assign_driver(driver)
    order.refresh_from_db()
    assert order.status == Order.Status.ASSIGNED
    assert order.assigned_driver == driver
    assert order.assigned_driver_name == "Jan Kurz"
    assert order.assigned_at is not None


def test_assign_driver_rejects_driver_of_other_company(order_factory, driver_factory):
    order = order_factory()
    with pytest.raises(ValueError, match="another company"):
        order.assign_driver(driver_factory())
    order.refresh_from_db()
    assert order.status == Order.Status.NEW
    assert order.assigned_driver is None


def test_reassigning_parked_vehicle_resumes_transit(order_factory, driver_factory):
    order = order_factory(status=Order.Status.ZWISCHENABGABE)
    order.assign_driver(driver_factory(company=order.company))
    order.refresh_from_db()
    assert order.status == Order.Status.IN_TRANSIT


def test_parked_vehicle_with_pending_handoff_cannot_be_assigned(
    handoff_factory, driver_factory
):
    handoff = handoff_factory()
    order = handoff.order
    with pytest.raises(TransitionNotAllowed, match="pending handoff"):
        order.assign_driver(driver_factory(company=order.company))
    order.refresh_from_db()
    assert order.status == Order.Status.ZWISCHENABGABE


def test_cancel_stamps_reason_and_time(order_factory):
    order = order_factory(status=Order.Status.IN_TRANSIT)
    order.cancel(reason="Customer withdrew")
    order.refresh_from_db()
    assert order.status == Order.Status.CANCELLED
    assert order.cancellation_reason == "Customer withdrew"
    assert order.cancelled_at is not None


def test_completed_order_cannot_be_cancelled(order_factory):
    order = order_factory(status=Order.Status.COMPLETED)
    with pytest.raises(TransitionNotAllowed):
        order.cancel()
    order.refresh_from_db()
    assert order.status == Order.Status.COMPLETED


def test_billing_chain(order_factory):
    order = order_factory(status=Order.Status.COMPLETED)
    order.send_to_review()
    order.mark_ready_for_billing()
    order.approve_billing()
    order.refresh_from_db()
    assert order.status == Order.Status.APPROVED
    assert order.is_terminal


def test_billing_steps_cannot_be_skipped(order_factory):
    order = order_factory(status=Order.Status.COMPLETED)
    with pytest.raises(TransitionNotAllowed):
        order.approve_billing()


def test_location_labels(order_factory):
    order = order_factory(
        pickup_address="Hauptstr. 1",
        pickup_postal_code="10115",
        pickup_city="Berlin",
        dropoff_address="Ring 5",
        dropoff_postal_code="",
        dropoff_city="Hamburg",
    )
    assert order.pickup_location_label == "Hauptstr. 1, 10115 Berlin"
    assert order.dropoff_location_label == "Ring 5, Hamburg"


def test_completed_checklist_refuses_every_save(checklist_factory):
    checklist = checklist_factory(completed=True)

    checklist.notes = "late edit"
    with pytest.raises(ChecklistLockedError):
        checklist.save()

    fresh = transfer_models.Checklist.objects.get(pk=checklist.pk)
    fresh.odometer = "1"
    with pytest.raises(ChecklistLockedError):
        fresh.save()

    fresh.refresh_from_db()
    assert fresh.notes == ""
    assert fresh.odometer == "45210"


def test_open_checklist_can_be_edited(checklist_factory):
    checklist = checklist_factory()
    checklist.notes = "scratch on bumper"
    checklist.save()
    checklist.refresh_from_db()
    assert checklist.notes == "scratch on bumper"


def test_one_checklist_per_type(checklist_factory):
    checklist = checklist_factory()
    with pytest.raises(IntegrityError), transaction.atomic():
        checklist_factory(order=checklist.order, driver=checklist.driver)


def test_only_one_pending_handoff_per_order(handoff_factory):
    handoff = handoff_factory()
    with pytest.raises(IntegrityError), transaction.atomic():
        handoff_factory(order=handoff.order, created_by=handoff.created_by)


def test_accepted_handoffs_do_not_block_new_ones(handoff_factory):
    first = handoff_factory(status="accepted")
    second = handoff_factory(order=first.order, created_by=first.created_by)
    assert second.status == "pending"


def test_segment_is_immutable_except_price(segment_factory):
    segment = segment_factory()

    segment.end_location = "Elsewhere"
    with pytest.raises(ValueError, match="immutable"):
        segment.save()

    segment.refresh_from_db()
    segment.price = Decimal("80.00")
    segment.price_status = segment.PriceStatus.APPROVED
    segment.save(update_fields=["price", "price_status", "updated_at"])
    segment.refresh_from_db()
    assert segment.price == Decimal("80.00")
