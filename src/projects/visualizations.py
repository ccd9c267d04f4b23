"""Visualization suggestions parsed from a structured assistant reply."""

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.schema import validate_schema

logger = get_logger(__name__)

FENCED_JSON = re.compile(r"```(?:json)?\s*({[\s\S]*?})\s*```", re.IGNORECASE)
BARE_JSON = re.compile(r"{[\s\S]*}")
TRAILING_COMMA = re.compile(r",\s*([}\]])")

VISUALIZATIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["visualizations"],
    "properties": {
        "visualizations": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["title", "type", "data"],
                "properties": {
                    "title": {"type": "string"},
                    "type": {"type": "string", "enum": ["pie", "bar", "line", "table"]},
                    "description": {"type": "string"},
                    "data": {"type": "object"},
                },
            },
        },
    },
}


class VisualizationParseError(ValueError):
    """The assistant reply holds no parsable JSON object."""
    pass


class Visualization(BaseModel):
    """One suggested chart or table."""
    title: str
    type: Literal["pie", "bar", "line", "table"]
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class VisualizationSuggestions(BaseModel):
    visualizations: list[Visualization] = Field(default_factory=list)


def extract_json_object(text: str) -> str:
    """
    Locate the JSON object in a free-form reply.

    Prefers a fenced code block, then the outermost braces, then an
    explicit empty suggestion list written without braces.

    Raises:
        VisualizationParseError: If no JSON object can be found
    """
    fenced = FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1)

    bare = BARE_JSON.search(text)
    if bare:
        return bare.group(0)

    if '"visualizations": []' in text:
        return '{"visualizations": []}'

    raise VisualizationParseError("No valid JSON object found in the assistant's response")


def parse_visualizations(text: str) -> VisualizationSuggestions:
    """
    Parse suggested visualizations from a raw assistant reply.

    A well-formed JSON payload with the wrong structure yields no
    suggestions rather than an error.

    Raises:
        VisualizationParseError: If the reply is empty or not JSON
    """
    if not text or not text.strip():
        raise VisualizationParseError("Assistant returned an empty response")

    json_text = TRAILING_COMMA.sub(r"\1", extract_json_object(text))
    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise VisualizationParseError(f"Invalid JSON in assistant response: {e}") from e

    valid, errors = validate_schema(payload, VISUALIZATIONS_SCHEMA)
    if not valid:
        logger.warning("Unexpected visualization structure", errors=errors)
        return VisualizationSuggestions()

    return VisualizationSuggestions.model_validate(payload)
