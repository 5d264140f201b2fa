"""
Input Validators - validation for generation requests at the system boundary.

Parse at the boundary: validate and type-check all external input before it
enters the pipeline. submit() runs these before any stage is called.
"""

import json
import logging
import re

logger = logging.getLogger(__name__)

MIN_REQUEST_LENGTH = 10
LONG_REQUEST_LENGTH = 2_000
MAX_REQUEST_LENGTH = 20_000
MAX_CONTENT_BYTES = 1_000_000

_FORM_FIELDS = re.compile(
    r"\b(name|first.?name|last.?name|email|phone|company|message|address|subject|inquiry|"
    r"description|title|position|department|website|budget|project|service|comment|"
    r"feedback|question)\b",
    re.IGNORECASE,
)
_PAGE_TYPES = re.compile(
    r"\b(landing|contact|about|portfolio|blog|ecommerce|dashboard|pricing|service|product|"
    r"home|signup|login|register)\b",
    re.IGNORECASE,
)
_INDUSTRIES = re.compile(
    r"\b(healthcare|finance|fintech|saas|software|technology|education|ecommerce|retail|"
    r"consulting|legal|law|real.?estate|marketing|agency|nonprofit|restaurant|hospitality|"
    r"fitness|medical|dental)\b",
    re.IGNORECASE,
)


class ValidationError(ValueError):
    """Raised when input validation fails. Contains a user-friendly message."""

    pass


def validate_not_empty(value: str, field_name: str = "input") -> str:
    """Validate that a string is not empty or whitespace-only."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value.strip()


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    """Validate string length is within bounds."""
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def validate_identifier(value: str, field_name: str = "identifier") -> str:
    """Validate that a string is a safe identifier (alphanumeric + underscore)."""
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9_-]*$", value):
        raise ValidationError(
            f"{field_name} must start with a letter and contain only "
            f"letters, numbers, underscores, and hyphens"
        )
    return value


def validate_in_choices(value: str, choices: list[str] | tuple[str, ...], field_name: str = "value") -> str:
    """Validate that a value is one of the allowed choices."""
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def validate_dict_size(
    data: dict,
    field_name: str = "data",
    max_size_bytes: int = MAX_CONTENT_BYTES,
) -> dict:
    """Validate that a serialized dict does not exceed a maximum byte size."""
    serialized = json.dumps(data, default=str)
    if len(serialized) > max_size_bytes:
        raise ValidationError(
            f"{field_name} exceeds maximum size of {max_size_bytes} bytes"
        )
    return data


def validate_request_text(text: str) -> str:
    """Non-empty, 10..20000 characters. Logs a warning above 2000."""
    text = validate_not_empty(text, "request")
    validate_length(text, "request", MIN_REQUEST_LENGTH, MAX_REQUEST_LENGTH)
    if len(text) > LONG_REQUEST_LENGTH:
        logger.warning(f"[Validators] Very long request ({len(text)} chars)")
    return text


def extract_request_hints(text: str) -> dict[str, list[str]]:
    """Page types, industries and form fields mentioned in a request."""

    def unique(pattern: re.Pattern) -> list[str]:
        return list(dict.fromkeys(m.group(0).lower() for m in pattern.finditer(text)))

    return {
        "page_types": unique(_PAGE_TYPES),
        "industries": unique(_INDUSTRIES),
        "form_fields": unique(_FORM_FIELDS),
    }
