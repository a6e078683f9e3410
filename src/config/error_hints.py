"""Error hints for proxy configuration validation errors.

Provides user-friendly hints with actionable remediation steps
for common validation errors.
"""

from typing import Final


# Mapping of error types to user-friendly hints
ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This field is required. Please add it to your configuration.",
    "extra_forbidden": "Unknown field. Check the spelling against the documented keys.",
    "int_type": "This field must be an integer (whole number).",
    "int_parsing": "This field must be an integer (whole number).",
    "string_type": "This field must be a text string.",
    "bool_type": "This field must be true or false.",
    "bool_parsing": "This field must be true or false.",
    "list_type": "This field must be a list/array.",
    "dict_type": "This field must be an object/mapping.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "less_than_equal": "The value is too large. Check the maximum allowed.",
    "string_too_short": "The text is too short. Check minimum length requirement.",
    "value_error": "Check the value format.",
    "file_not_found": "The file does not exist. Check the file path.",
    "yaml_parse_error": "Invalid YAML syntax. Check for proper indentation and formatting.",
}

# Field-specific hints for more context
FIELD_HINTS: Final[dict[str, str]] = {
    "target": "Must be a valid HTTP/HTTPS URL (e.g., 'http://localhost:5001').",
    "pattern": "Must be a valid regular expression matched against the request path.",
    "ttl": "Use milliseconds or a duration such as '30s', '5m' or '1h'.",
    "timeout": "Use milliseconds or a duration such as '500ms' or '5s'.",
    "fn": "Must name a registered handler, e.g. 'redirect' or 'static'.",
    "status_code_handlers": "Keys must be HTTP status codes (e.g., 404).",
    "name": "Backend names must be unique.",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'missing').
        field_name: Optional dotted field location for field-specific hints.

    Returns:
        A user-friendly hint string.
    """
    if field_name:
        # 'backends.0.ttl' checks 'ttl' first, then 'backends'
        parts = [p for p in field_name.split(".") if not p.isdigit()]
        for part in reversed(parts):
            if part in FIELD_HINTS:
                return FIELD_HINTS[part]

    return ERROR_HINTS.get(
        error_type, "Check the configuration documentation for valid values."
    )


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error with optional hint.

    Args:
        location: The error location (e.g., 'backends.0.target').
        message: The original error message.
        error_type: The error type.
        include_hint: Whether to include a hint.

    Returns:
        Formatted error string.
    """
    base = f"{location}: {message}"
    if include_hint:
        hint = get_error_hint(error_type, location)
        return f"{base}\n    Hint: {hint}"
    return base
