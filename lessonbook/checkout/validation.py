"""
Per-step field validation for the checkout wizard.

Each rule pairs a field name with a check and the message shown next to
the field. Validation is purely local: nothing here touches the network.

Usage:
    errors = validate_registration(learner)
    if errors:
        raise ValidationError(errors)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from lessonbook.config import settings
from lessonbook.errors import ValidationError
from lessonbook.scheduling.time_parser import is_valid_label
from lessonbook.schemas.booking_schema import LessonRequest
from lessonbook.schemas.checkout_schema import PackageKind, PackageSelection
from lessonbook.schemas.learner_schema import LearnerDetails, LoginCredentials
from lessonbook.utils import is_blank, is_valid_email, normalize_phone

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 8
MAX_PHONE_DIGITS = 15

LESSON_FIELD_MESSAGES: dict[str, str] = {
    "date": "Please choose a date",
    "start_time": "Please choose a time",
    "pickup_suburb": "Please enter a pickup suburb",
    "pickup_address": "Please enter a pickup address",
}


@dataclass(frozen=True)
class FieldRule:
    """One check against a learner form, reported under ``name``."""

    name: str
    message: str
    check: Callable[[LearnerDetails], bool]


def _phone_ok(learner: LearnerDetails) -> bool:
    digits = normalize_phone(learner.phone).lstrip("+")
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


REGISTRATION_RULES: list[FieldRule] = [
    FieldRule("first_name", "First name is required", lambda d: not is_blank(d.first_name)),
    FieldRule("last_name", "Last name is required", lambda d: not is_blank(d.last_name)),
    FieldRule("email", "Email is required", lambda d: not is_blank(d.email)),
    FieldRule("phone", "Phone number is required", lambda d: not is_blank(d.phone)),
    FieldRule("pickup_address", "Pickup address is required", lambda d: not is_blank(d.pickup_address)),
    FieldRule("suburb", "Suburb is required", lambda d: not is_blank(d.suburb)),
    FieldRule(
        "dob",
        "Date of birth is required",
        lambda d: not (is_blank(d.dob_day) or is_blank(d.dob_month) or is_blank(d.dob_year)),
    ),
    FieldRule("learner_type", "Please select learner type", lambda d: not is_blank(d.learner_type)),
    FieldRule("password", "Password is required", lambda d: not is_blank(d.password)),
    FieldRule("terms", "You must accept the terms and conditions", lambda d: d.terms_accepted),
]


def validate_package(selection: PackageSelection) -> dict[str, str]:
    errors: dict[str, str] = {}
    if selection.kind is None:
        errors["package"] = "Please select a package"
    elif selection.kind == PackageKind.CUSTOM and selection.custom_hours < 1:
        errors["custom_hours"] = "Please select at least 1 hour"
    return errors


def validate_lessons(
    lessons: Iterable[LessonRequest],
    available_times: Optional[Callable[[LessonRequest], list[str]]] = None,
) -> dict[str, str]:
    """
    Scheduling is optional, but a lesson with any field filled needs all of them.

    ``available_times`` re-resolves the slots for a lesson so a stale
    selection (e.g. taken since it was picked) is caught before payment.
    """
    errors: dict[str, str] = {}
    for lesson in lessons:
        if lesson.is_blank:
            continue
        for field_name in lesson.missing_fields():
            errors[f"lessons.{lesson.id}.{field_name}"] = LESSON_FIELD_MESSAGES[field_name]
        if lesson.start_time and not is_valid_label(lesson.start_time):
            errors[f"lessons.{lesson.id}.start_time"] = "Please choose a valid time"
        elif lesson.is_complete and available_times is not None:
            if lesson.start_time not in available_times(lesson):
                errors[f"lessons.{lesson.id}.start_time"] = "That time is no longer available"
    return errors


def validate_registration(
    learner: LearnerDetails,
    min_password_length: int = settings.checkout.min_password_length,
) -> dict[str, str]:
    errors = {rule.name: rule.message for rule in REGISTRATION_RULES if not rule.check(learner)}

    if "email" not in errors and not is_valid_email(learner.email):
        errors["email"] = "Please enter a valid email"
    if "phone" not in errors and not _phone_ok(learner):
        errors["phone"] = "Please enter a valid phone number"
    if "password" not in errors and len(learner.password) < min_password_length:
        errors["password"] = f"Password must be at least {min_password_length} characters"
    if learner.password != learner.confirm_password:
        errors["confirm_password"] = "Passwords do not match"

    if errors:
        logger.debug("Registration validation failed: %s", sorted(errors))
    return errors


def validate_login(credentials: LoginCredentials) -> dict[str, str]:
    errors: dict[str, str] = {}
    if is_blank(credentials.email):
        errors["email"] = "Email is required"
    elif not is_valid_email(credentials.email):
        errors["email"] = "Please enter a valid email"
    if is_blank(credentials.password):
        errors["password"] = "Password is required"
    return errors


def ensure_valid(errors: dict[str, str]) -> None:
    """Raise ValidationError when a validator reported anything."""
    if errors:
        raise ValidationError(errors)
