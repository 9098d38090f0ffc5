"""JSON schema for structured chat responses from the Responses API."""

from typing import Any, Dict

SCHEMA_NAME = "chat_response"

CHAT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "content": {
            "type": "string",
            "description": "The main response content from the AI",
        },
        "confidence": {
            "type": "number",
            "description": "Confidence level in the response (0-1)",
            "minimum": 0,
            "maximum": 1,
        },
        "suggestions": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Optional follow-up suggestions for the user",
        },
        "metadata": {
            "type": "object",
            "properties": {
                "reasoning": {
                    "type": "string",
                    "description": "Brief explanation of the reasoning process",
                },
                "sources": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Any sources or references used",
                },
                "functions_used": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "List of functions that were called during processing",
                },
                "web_search_used": {
                    "type": "boolean",
                    "description": "Whether web search was used in this response",
                },
                "search_calls": {
                    "type": "array",
                    "items": {"type": "object", "additionalProperties": False},
                    "description": "Details of web search calls made",
                },
            },
            "required": ["reasoning", "sources", "functions_used", "web_search_used", "search_calls"],
            "additionalProperties": False,
        },
    },
    "required": ["content", "confidence", "suggestions", "metadata"],
    "additionalProperties": False,
}


def chat_response_format() -> Dict[str, Any]:
    """Return the `text` parameter requesting strict JSON-schema output."""
    return {
        "format": {
            "type": "json_schema",
            "name": SCHEMA_NAME,
            "schema": CHAT_RESPONSE_SCHEMA,
            "strict": True,
        }
    }
