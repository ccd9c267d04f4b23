"""JSON Schema checks for structured assistant replies."""

from typing import Any

from jsonschema import Draft7Validator, ValidationError


def _describe(error: ValidationError) -> str:
    location = ".".join(str(part) for part in error.absolute_path)
    return f"{location}: {error.message}" if location else error.message


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Check a parsed reply against a JSON Schema.

    Errors are reported in document order, each prefixed with the dotted
    path of the offending value.

    Returns:
        (is_valid, error messages)
    """
    if not schema:
        return True, []

    found = Draft7Validator(schema).iter_errors(data)
    messages = [
        _describe(error)
        for error in sorted(found, key=lambda e: [str(part) for part in e.absolute_path])
    ]
    return not messages, messages
