"""Input validation helpers for quickjob.

Canonical helpers:
- ``sanitize_string`` - reject non-strings, blanks and overlong text, drop control characters
- ``clean_text`` - drop control characters and surrounding whitespace before validating
- ``validate_job_post`` - field-level checks for a new job posting
- ``is_valid_email`` / ``is_valid_phone_number`` / ``is_valid_pay_amount``
"""

import logging
import math
import re
from typing import Any, Dict

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Digits with optional leading +, spaces, dashes and parentheses; 10+ chars
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{10,}$")

# Null bytes and control characters; newlines and tabs survive
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_JOB_TYPE_LENGTH = 100


def sanitize_string(
    value: Any, field_name: str, max_length: int = 1000, required: bool = True
) -> str:
    """Check free text from a user (chat message, testimonial comment).

    The length limit applies to the text as submitted. Control characters
    are removed from the result, so callers that need non-blank text must
    check again after stripping.

    Raises:
        ValueError: If ``value`` is not a string, is blank while required,
            or is longer than ``max_length``.
    """
    if value is None and not required:
        return ""

    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value).__name__}")

    if required and not value.strip():
        raise ValueError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters, got {len(value)})")

    return CONTROL_CHARS.sub("", value)


def clean_text(value: Any) -> Any:
    """Drop control characters and outer whitespace; non-strings pass through."""
    if not isinstance(value, str):
        return value
    return CONTROL_CHARS.sub("", value).strip()


def is_required(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def is_valid_phone_number(phone: Any) -> bool:
    """Basic international phone shape check (spaces ignored)."""
    if not isinstance(phone, str):
        return False
    return bool(PHONE_PATTERN.match(phone.replace(" ", "")))


def is_valid_pay_amount(amount: Any) -> bool:
    """Pay must parse as a finite positive number."""
    if isinstance(amount, bool):
        return False
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def validate_job_post(
    title: Any,
    description: Any,
    job_type: Any,
    pay: Any,
    contact: Any,
) -> Dict[str, str]:
    """Validate the fields of a new job posting.

    Returns:
        Mapping of field name to error message; empty when valid.
    """
    errors: Dict[str, str] = {}

    if not is_required(title):
        errors["title"] = "Job title is required"
    elif len(title) > MAX_TITLE_LENGTH:
        errors["title"] = f"Job title must be at most {MAX_TITLE_LENGTH} characters"

    if not is_required(description):
        errors["description"] = "Job description is required"
    elif len(description) > MAX_DESCRIPTION_LENGTH:
        errors["description"] = (
            f"Job description must be at most {MAX_DESCRIPTION_LENGTH} characters"
        )

    if not is_required(job_type):
        errors["job_type"] = "Job type is required"
    elif len(job_type) > MAX_JOB_TYPE_LENGTH:
        errors["job_type"] = f"Job type must be at most {MAX_JOB_TYPE_LENGTH} characters"

    if pay is None or (isinstance(pay, str) and not pay.strip()):
        errors["pay"] = "Pay amount is required"
    elif not is_valid_pay_amount(pay):
        errors["pay"] = "Please enter a valid positive pay amount"

    if not is_required(contact):
        errors["contact"] = "Contact information is required"
    elif not is_valid_phone_number(contact):
        errors["contact"] = "Please enter a valid phone number"

    if errors:
        logger.debug(f"Job post validation failed for fields: {sorted(errors)}")
    return errors
