"""Input validation for the registration and password flows."""

from __future__ import annotations

import re
from typing import Optional

from flask import current_app
from flask_babel import gettext as _

from core.models.authenticatable import Capability
from core.models.user import User

from .utils import capability_enabled


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def _password_length_bounds() -> tuple[int, int]:
    return (
        int(current_app.config.get("PASSWORD_LENGTH_MIN", 6)),
        int(current_app.config.get("PASSWORD_LENGTH_MAX", 128)),
    )


def validate_email(email: Optional[str], *, user: Optional[User] = None) -> list[str]:
    """Return the errors for *email*; *user* is the record being edited, if any."""
    errors: list[str] = []
    normalized = User.normalize_email(email)
    if not normalized:
        errors.append(_("Email can't be blank"))
        return errors
    if not capability_enabled(Capability.VALIDATABLE):
        return errors
    if not EMAIL_PATTERN.match(normalized):
        errors.append(_("Email is invalid"))
        return errors
    existing = User.find_by_email(normalized)
    if existing is not None and (user is None or existing.id != user.id):
        errors.append(_("Email has already been taken"))
    return errors


def validate_password(
    password: Optional[str],
    confirmation: Optional[str] = None,
    *,
    required: bool = True,
) -> list[str]:
    errors: list[str] = []
    if not password:
        if required:
            errors.append(_("Password can't be blank"))
        return errors
    if not capability_enabled(Capability.VALIDATABLE):
        return errors

    minimum, maximum = _password_length_bounds()
    if len(password) < minimum:
        errors.append(
            _("Password is too short (minimum is %(count)d characters)", count=minimum)
        )
    elif len(password) > maximum:
        errors.append(
            _("Password is too long (maximum is %(count)d characters)", count=maximum)
        )
    if confirmation is not None and confirmation != password:
        errors.append(_("Password confirmation doesn't match Password"))
    return errors


def validate_registration(
    email: Optional[str],
    password: Optional[str],
    confirmation: Optional[str] = None,
) -> list[str]:
    return validate_email(email) + validate_password(password, confirmation)


__all__ = [
    "EMAIL_PATTERN",
    "validate_email",
    "validate_password",
    "validate_registration",
]
