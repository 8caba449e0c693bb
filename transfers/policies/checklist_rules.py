"""
Inspection protocol rules.

Pure functions, no request, no DB writes. They work on anything that exposes
the checklist attributes, so the same rules check a saved Checklist and an
unsaved draft built from request data.
"""

import re

from django.db import models

from transfers.services.exceptions import ChecklistLockedError, ChecklistValidationError


class ChecklistType(models.TextChoices):
    PICKUP = "pickup", "Pickup"
    DROPOFF = "dropoff", "Dropoff"


# Wizard steps in the order the driver walks through them.
STEP_VEHICLE_CHECK = "vehicle_check"
STEP_PHOTOS = "photos"
STEP_DAMAGES = "damages"
STEP_CHECKLIST = "checklist"
STEP_SIGNATURES = "signatures"

WIZARD_STEPS = [
    STEP_VEHICLE_CHECK,
    STEP_PHOTOS,
    STEP_DAMAGES,
    STEP_CHECKLIST,
    STEP_SIGNATURES,
]

REQUIRED_PHOTO_IDS = (
    "odometer",
    "door_driver",
    "wheel_front_left",
    "front_right",
    "front",
    "front_left",
    "wheel_front_right",
    "door_passenger",
    "door_rear_right",
    "wheel_rear_right",
    "rear_right",
    "rear",
    "trunk",
    "rear_left",
    "wheel_rear_left",
    "door_rear_left",
    "windshield",
    "interior_front",
    "interior_rear",
)

# Optional slots a driver may add on top of the required set.
OPTIONAL_PHOTO_IDS = ("damage", "other")

MANDATORY_CHECK_IDS = (
    "vin_checked",
    "odometer_correct",
    "fuel_correct",
    "exterior_checked",
    "interior_checked",
    "photos_complete",
    "damages_checked",
    "damages_documented",
    "accessories_checked",
    "contact_correct",
    "customer_informed",
    "signatures_obtained",
)

DAMAGE_REQUIRED_FIELDS = ("location", "type", "description", "photo_url")

_NUMERIC = re.compile(r"^\d+(?:[.,]\d+)?$")


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


# PREDICATES


def has_odometer(checklist) -> bool:
    return bool(_NUMERIC.match(_text(getattr(checklist, "odometer", ""))))


def missing_photo_ids(checklist) -> list[str]:
    taken = {
        photo.get("type")
        for photo in (getattr(checklist, "photos", None) or [])
        if isinstance(photo, dict) and _text(photo.get("url"))
    }
    return [photo_id for photo_id in REQUIRED_PHOTO_IDS if photo_id not in taken]


def has_all_required_photos(checklist) -> bool:
    return not missing_photo_ids(checklist)


def incomplete_damage_indexes(checklist) -> list[int]:
    damages = getattr(checklist, "damages", None) or []
    return [
        index
        for index, damage in enumerate(damages)
        if not isinstance(damage, dict)
        or any(not _text(damage.get(field)) for field in DAMAGE_REQUIRED_FIELDS)
    ]


def damages_complete(checklist) -> bool:
    """True for an empty damage list."""
    return not incomplete_damage_indexes(checklist)


def customer_refused_complete(checklist) -> bool:
    return bool(
        getattr(checklist, "customer_refused", False)
        and _text(getattr(checklist, "refuser_name", ""))
        and _text(getattr(checklist, "refusal_reason", ""))
    )


def customer_signed(checklist) -> bool:
    return bool(
        _text(getattr(checklist, "signature_customer", ""))
        and _text(getattr(checklist, "customer_name", ""))
    )


def signatures_complete(checklist) -> bool:
    return bool(_text(getattr(checklist, "signature_driver", ""))) and (
        customer_signed(checklist) or customer_refused_complete(checklist)
    )


def mandatory_checks_answered(checklist) -> bool:
    checks = getattr(checklist, "mandatory_checks", None) or {}
    return all(isinstance(checks.get(check_id), bool) for check_id in MANDATORY_CHECK_IDS)


# STEP / SUBMISSION


def _signature_problem(checklist):
    if not _text(getattr(checklist, "signature_driver", "")):
        return "Driver signature is missing."
    if customer_signed(checklist) or customer_refused_complete(checklist):
        return None
    if getattr(checklist, "customer_refused", False):
        if not _text(getattr(checklist, "refuser_name", "")):
            return "Name of the person refusing to sign is missing."
        return "Reason for the refused signature is missing."
    if not _text(getattr(checklist, "signature_customer", "")):
        return "Customer signature is missing."
    return "Customer name is missing."


def submission_errors(checklist, checklist_type) -> list[ChecklistValidationError]:
    """Every failing predicate, in wizard order."""
    errors = []
    if not has_odometer(checklist):
        errors.append(
            ChecklistValidationError(
                "Odometer reading is missing or not a number.",
                predicate="has_odometer",
                step=STEP_VEHICLE_CHECK,
            )
        )
    missing = missing_photo_ids(checklist)
    if missing:
        errors.append(
            ChecklistValidationError(
                f"Required photos are missing: {', '.join(missing)}.",
                predicate="has_all_required_photos",
                step=STEP_PHOTOS,
            )
        )
    if checklist_type == ChecklistType.PICKUP:
        gaps = incomplete_damage_indexes(checklist)
        if gaps:
            numbers = ", ".join(str(i + 1) for i in gaps)
            errors.append(
                ChecklistValidationError(
                    f"Damage entries {numbers} need location, type, description and photo.",
                    predicate="damages_complete",
                    step=STEP_DAMAGES,
                )
            )
    problem = _signature_problem(checklist)
    if problem:
        errors.append(
            ChecklistValidationError(
                problem, predicate="signatures_complete", step=STEP_SIGNATURES
            )
        )
    return errors


def is_submittable(checklist, checklist_type) -> bool:
    return not submission_errors(checklist, checklist_type)


def validate_for_submission(checklist, checklist_type):
    """Raise ChecklistValidationError for the first failing predicate."""
    errors = submission_errors(checklist, checklist_type)
    if errors:
        raise errors[0]


def completed_steps(checklist, checklist_type) -> list[str]:
    """Wizard steps the driver may move past. ``checklist`` is informational only."""
    done = []
    if has_odometer(checklist):
        done.append(STEP_VEHICLE_CHECK)
    if has_all_required_photos(checklist):
        done.append(STEP_PHOTOS)
    if checklist_type != ChecklistType.PICKUP or damages_complete(checklist):
        done.append(STEP_DAMAGES)
    if mandatory_checks_answered(checklist):
        done.append(STEP_CHECKLIST)
    if signatures_complete(checklist):
        done.append(STEP_SIGNATURES)
    return done


def ensure_mutable(checklist):
    if getattr(checklist, "completed", False):
        raise ChecklistLockedError(
            "This protocol has been submitted and can no longer be changed."
        )
