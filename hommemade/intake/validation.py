"""Onboarding form validation and sanitization.

Validation never raises and never stops at the first problem: every field is
checked independently so the form can show all errors at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from hommemade.schemas.submission import CommunicationChannel, Struggle

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\d\s\-+().]+$")
UNSAFE_CHARS_RE = re.compile(r"[<>]")

VALID_STRUGGLES = frozenset(s.value for s in Struggle)
VALID_COMMUNICATION = frozenset(c.value for c in CommunicationChannel)

MAX_STRUGGLES = 3

# field -> (min, max, error message)
REQUIRED_STRING_FIELDS: dict[str, tuple[int, int, str]] = {
    "name": (1, 100, "Name is required and must be between 1-100 characters"),
    "brandName": (1, 100, "Brand name is required and must be between 1-100 characters"),
    "whyNow": (1, 2000, "Please tell us why now (1-2000 characters)"),
    "successMetrics": (1, 2000, "Success metrics are required (1-2000 characters)"),
}

OPTIONAL_STRING_FIELDS: dict[str, tuple[int, str]] = {
    "industry": (100, "Industry must be less than 100 characters"),
    "onlinePresence": (1000, "Online presence must be less than 1000 characters"),
    "brandVoice": (200, "Brand voice must be less than 200 characters"),
    "brandTone": (200, "Brand tone must be less than 200 characters"),
    "avoidances": (1000, "Avoidances must be less than 1000 characters"),
    "aestheticReferences": (1000, "Aesthetic references must be less than 1000 characters"),
    "offering": (1000, "Offering description must be less than 1000 characters"),
    "valueProvision": (1000, "Value provision must be less than 1000 characters"),
    "dreamAudience": (1000, "Dream audience must be less than 1000 characters"),
    "feedback": (1000, "Feedback must be less than 1000 characters"),
    "additionalInfo": (1000, "Additional info must be less than 1000 characters"),
    "otherStruggle": (200, "Other struggle must be less than 200 characters"),
}

TEXT_FIELDS = (
    "name", "email", "phone", "brandName", "industry", "onlinePresence",
    "whyNow", "successMetrics", "brandVoice", "brandTone", "avoidances",
    "aestheticReferences", "offering", "valueProvision", "dreamAudience",
    "feedback", "additionalInfo", "otherStruggle", "communication",
)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: dict[str, str] = field(default_factory=dict)


def is_valid_string(value: Any, min_length: int = 1, max_length: int = 1000) -> bool:
    if not isinstance(value, str):
        return False
    return min_length <= len(value.strip()) <= max_length


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def is_valid_phone(value: Any) -> bool:
    """Flexible phone format: allowed punctuation, at least 10 digits."""
    if not value:
        return True
    if not isinstance(value, str) or not PHONE_RE.match(value):
        return False
    return sum(ch.isdigit() for ch in value) >= 10


def is_valid_struggles(value: Any) -> bool:
    if not isinstance(value, list):
        return False
    if not 1 <= len(value) <= MAX_STRUGGLES:
        return False
    return all(isinstance(s, str) and s in VALID_STRUGGLES for s in value)


def is_valid_communication(value: Any) -> bool:
    return isinstance(value, str) and value in VALID_COMMUNICATION


def validate_submission(payload: Any) -> ValidationResult:
    """Validate a raw form payload.

    Args:
        payload: Decoded JSON body (non-dicts are rejected)

    Returns:
        ValidationResult with every failing field in errors
    """
    if not isinstance(payload, dict):
        return ValidationResult(
            is_valid=False,
            errors={"body": "Request body must be a JSON object"},
        )

    errors: dict[str, str] = {}

    for name, (min_len, max_len, message) in REQUIRED_STRING_FIELDS.items():
        if not is_valid_string(payload.get(name), min_len, max_len):
            errors[name] = message

    if not is_valid_email(payload.get("email")):
        errors["email"] = "Valid email address is required"

    if not is_valid_struggles(payload.get("struggles")):
        errors["struggles"] = "Please select 1-3 struggles"

    if not is_valid_communication(payload.get("communication")):
        errors["communication"] = "Please select a communication preference"

    if payload.get("phone") and not is_valid_phone(payload["phone"]):
        errors["phone"] = "Please enter a valid phone number"

    for name, (max_len, message) in OPTIONAL_STRING_FIELDS.items():
        value = payload.get(name)
        if value and not is_valid_string(value, 0, max_len):
            errors[name] = message

    files = payload.get("files")
    if files is not None and not _is_valid_files(files):
        errors["files"] = "Files must be a list of uploaded file references"

    return ValidationResult(is_valid=not errors, errors=errors)


def _is_valid_files(files: Any) -> bool:
    if not isinstance(files, list):
        return False
    return all(isinstance(f, dict) and isinstance(f.get("url", ""), str) for f in files)


def sanitize_text(value: Any) -> str:
    """Strip angle brackets and trim.

    This is a minimal XSS mitigation, not an HTML sanitizer: rendering code
    must still escape output.
    """
    if not isinstance(value, str):
        return ""
    return UNSAFE_CHARS_RE.sub("", value).strip()


def sanitize_submission(payload: dict, clean: bool = True) -> dict:
    """Return a cleaned copy holding only known fields.

    Fields absent from the input stay absent, and so do text fields that
    clean down to an empty string.
    With clean=False values are copied as-is (the known-field filter still
    applies).
    """
    text = sanitize_text if clean else (lambda v: v)
    sanitized: dict[str, Any] = {}

    for name in TEXT_FIELDS:
        if payload.get(name):
            value = text(payload[name])
            if value:
                sanitized[name] = value

    if isinstance(payload.get("struggles"), list):
        sanitized["struggles"] = [text(s) for s in payload["struggles"]]

    if isinstance(payload.get("files"), list):
        sanitized["files"] = [
            {
                "url": text(f.get("url", "")),
                "fileName": text(f.get("fileName", "")),
                "size": f.get("size"),
                "uploadedAt": f.get("uploadedAt"),
            }
            for f in payload["files"]
            if isinstance(f, dict)
        ]

    return sanitized
