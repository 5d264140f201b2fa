"""Security utilities -- prompt injection defense and request validation."""
from .prompt_guard import (
    detect_injection_attempt,
    sanitize_for_prompt,
    wrap_stage_context,
    wrap_user_content,
)
from .validators import (
    ValidationError,
    extract_request_hints,
    validate_dict_size,
    validate_identifier,
    validate_in_choices,
    validate_length,
    validate_not_empty,
    validate_request_text,
)
