from types import SimpleNamespace

import pytest

from transfers.factories import complete_draft
from transfers.policies import checklist_rules as rules
from transfers.services.exceptions import ChecklistLockedError, ChecklistValidationError


def draft(checklist_type="pickup", **overrides):
    return SimpleNamespace(**complete_draft(checklist_type, **overrides))


def damage(**overrides):
    entry = {
        "location": "front_left",
        "type": "scratch",
        "description": "10cm scratch",
        "severity": "minor",
        "photo_url": "https://files.test/d1.jpg",
    }
    entry.update(overrides)
    return entry


@pytest.mark.parametrize("value", ["45210", "45210.5", "45210,5", " 12 "])
def test_odometer_accepts_numbers(value):
    assert rules.has_odometer(draft(odometer=value))


@pytest.mark.parametrize("value", ["", None, "abc", "12km", "-5"])
def test_odometer_rejects_non_numbers(value):
    assert not rules.has_odometer(draft(odometer=value))


def test_photo_without_url_does_not_count():
    photos = [p for p in complete_draft()["photos"] if p["type"] != "trunk"]
    photos.append({"type": "trunk", "url": ""})
    checklist = draft(photos=photos)
    assert rules.missing_photo_ids(checklist) == ["trunk"]
    assert not rules.has_all_required_photos(checklist)


def test_extra_photos_are_ignored():
    photos = complete_draft()["photos"] + [{"type": "other", "url": "https://x/y.jpg"}]
    assert rules.has_all_required_photos(draft(photos=photos))


def test_empty_damage_list_is_complete():
    assert rules.damages_complete(draft(damages=[]))


def test_damage_needs_photo():
    checklist = draft(damages=[damage(), damage(photo_url="")])
    assert rules.incomplete_damage_indexes(checklist) == [1]
    assert not rules.damages_complete(checklist)


def test_customer_signature_needs_name():
    assert not rules.signatures_complete(draft(customer_name=""))


def test_refusal_replaces_customer_signature():
    checklist = draft(
        signature_customer="",
        customer_name="",
        customer_refused=True,
        refuser_name="Max Muster",
        refusal_reason="No time",
    )
    assert rules.signatures_complete(checklist)


def test_refusal_without_reason_is_incomplete():
    checklist = draft(
        signature_customer="",
        customer_refused=True,
        refuser_name="Max Muster",
        refusal_reason="",
    )
    assert not rules.signatures_complete(checklist)


def test_first_failing_predicate_wins():
    checklist = draft(odometer="", signature_driver="")
    with pytest.raises(ChecklistValidationError) as exc:
        rules.validate_for_submission(checklist, "pickup")
    assert exc.value.predicate == "has_odometer"
    assert exc.value.step == rules.STEP_VEHICLE_CHECK


def test_missing_customer_signature_is_reported_specifically():
    with pytest.raises(ChecklistValidationError, match="Customer signature is missing") as exc:
        rules.validate_for_submission(draft(signature_customer=""), "pickup")
    assert exc.value.predicate == "signatures_complete"
    assert exc.value.step == rules.STEP_SIGNATURES


def test_dropoff_skips_damage_check():
    checklist = draft("dropoff", damages=[damage(description="")])
    assert rules.is_submittable(checklist, "dropoff")
    assert not rules.is_submittable(checklist, "pickup")


def test_all_errors_are_listed_in_wizard_order():
    checklist = draft(odometer="x", photos=[], damages=[damage(type="")], signature_driver="")
    errors = rules.submission_errors(checklist, "pickup")
    assert [e.step for e in errors] == [
        rules.STEP_VEHICLE_CHECK,
        rules.STEP_PHOTOS,
        rules.STEP_DAMAGES,
        rules.STEP_SIGNATURES,
    ]


def test_completed_steps_includes_informational_checklist_step():
    checklist = draft(mandatory_checks={})
    steps = rules.completed_steps(checklist, "pickup")
    assert rules.STEP_CHECKLIST not in steps
    assert rules.is_submittable(checklist, "pickup")

    steps = rules.completed_steps(draft(), "pickup")
    assert steps == rules.WIZARD_STEPS


def test_ensure_mutable():
    rules.ensure_mutable(SimpleNamespace(completed=False))
    with pytest.raises(ChecklistLockedError):
        rules.ensure_mutable(SimpleNamespace(completed=True))
