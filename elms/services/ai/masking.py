"""
Personal data masking for prompts and AI audit logs.
"""
import re
from typing import Any


EMAIL_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
PHONE_PATTERN = re.compile(r"\b\d{10,}\b")

MASKED_KEYS = {"email", "phone", "password", "password_hash", "user_email"}
NAME_KEYS = {"name", "user_name"}


def mask_text(text: str) -> str:
    """Replace e-mail addresses and long digit runs (phone numbers)."""
    text = EMAIL_PATTERN.sub("[EMAIL]", text)
    return PHONE_PATTERN.sub("[PHONE]", text)


def mask_data(data: Any) -> Any:
    """
    Recursively mask personal data.

    Strings are scrubbed with ``mask_text``; dict values under sensitive keys
    are replaced outright and names become "Employee". Other values pass
    through unchanged.
    """
    if isinstance(data, str):
        return mask_text(data)
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if lowered in MASKED_KEYS:
                masked[key] = "[MASKED]"
            elif lowered in NAME_KEYS:
                masked[key] = "Employee"
            else:
                masked[key] = mask_data(value)
        return masked
    if isinstance(data, (list, tuple)):
        return [mask_data(item) for item in data]
    return data
