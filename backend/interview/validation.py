"""
Profile field validation for the intake conversation.
"""
import re

from models.schemas import ProfileField
from utils.errors import ValidationError

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PHONE_DIGITS = 10
MIN_NAME_TOKENS = 2


def validate_profile_field(field: ProfileField, value: str) -> str:
    """
    Validate a candidate-supplied profile value.

    Args:
        field: Which profile field is being answered
        value: Raw text typed by the candidate

    Returns:
        The trimmed value

    Raises:
        ValidationError: With a candidate-facing message
    """
    field = ProfileField(field)
    trimmed = (value or "").strip()

    if not trimmed:
        raise ValidationError(field.value, f"Please provide a valid {field.value}.")

    if field == ProfileField.EMAIL and not EMAIL_PATTERN.match(trimmed):
        raise ValidationError(
            field.value,
            "The email you entered isn't valid. Please check and enter it again.",
        )

    if field == ProfileField.PHONE and len(re.sub(r'\D', '', trimmed)) < MIN_PHONE_DIGITS:
        raise ValidationError(field.value, "Please enter a phone number with at least 10 digits.")

    if field == ProfileField.NAME and len(trimmed.split()) < MIN_NAME_TOKENS:
        raise ValidationError(field.value, "Please enter your full name.")

    return trimmed
