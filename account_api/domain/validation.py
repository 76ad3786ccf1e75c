"""Field rules shared by account creation and update."""

from __future__ import annotations

from typing import List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

MAX_LENGTH = 255
MIN_PASSWORD_LENGTH = 6

# Internal field name -> attribute name used by API callers.
FIELD_LABELS = {
    "name": "name",
    "email": "email",
    "password": "password",
    "password_confirmation": "passwordConfirmation",
    "is_admin": "isAdmin",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def label(field: str) -> str:
    return FIELD_LABELS.get(field, field)


def _required(field: str) -> str:
    return f"The {label(field)} field is required."


def _text(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def _not_a_string(field: str, value: object) -> List[str]:
    if value is not None and not isinstance(value, str):
        return [f"The {label(field)} must be a string."]
    return []


def check_name(value: object) -> Tuple[Optional[str], List[str]]:
    messages = _not_a_string("name", value)
    if messages:
        return None, messages
    text = _text(value)
    if text is None or not text.strip():
        return None, [_required("name")]
    text = text.strip()
    if len(text) > MAX_LENGTH:
        return None, [f"The name may not be greater than {MAX_LENGTH} characters."]
    return text, []


def normalize_email(value: str) -> str:
    return value.strip().lower()


def check_email_syntax(value: object) -> Tuple[Optional[str], List[str]]:
    """Return the normalized address, or the messages explaining why it is invalid."""
    messages = _not_a_string("email", value)
    if messages:
        return None, messages
    text = _text(value)
    if text is None or not text.strip():
        return None, [_required("email")]
    text = normalize_email(text)
    if len(text) > MAX_LENGTH:
        messages.append(f"The email may not be greater than {MAX_LENGTH} characters.")
    try:
        validate_email(text, check_deliverability=False)
    except EmailNotValidError:
        messages.append("The email must be a valid email address.")
    if messages:
        return None, messages
    return text, []


def check_password(value: object) -> Tuple[Optional[str], List[str]]:
    messages = _not_a_string("password", value)
    if messages:
        return None, messages
    # Passwords are never trimmed.
    text = _text(value)
    if not text:
        return None, [_required("password")]
    if len(text) < MIN_PASSWORD_LENGTH:
        return None, [f"The password must be at least {MIN_PASSWORD_LENGTH} characters."]
    return text, []


def check_confirmation(password: str, confirmation: object) -> List[str]:
    if _text(confirmation) != password:
        return ["The password confirmation does not match."]
    return []


def check_boolean(field: str, value: object) -> Tuple[Optional[bool], List[str]]:
    if isinstance(value, bool):
        return value, []
    if isinstance(value, int) and value in (0, 1):
        return bool(value), []
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True, []
        if lowered in _FALSE_VALUES:
            return False, []
    return None, [f"The {label(field)} field must be true or false."]


EMAIL_TAKEN = "The email has already been taken."
