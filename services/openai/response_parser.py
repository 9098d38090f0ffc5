"""Helpers to turn Responses API outputs into chat results."""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from services.openai.output_items import (
    FileSearchCallItem,
    MessageItem,
    OutputItem,
    WebSearchCallItem,
    field_of,
    items_of,
    to_plain,
)

LOGGER = logging.getLogger(__name__)

SEARCH_CONFIDENCE = 0.9

WEB_SEARCH_SUGGESTIONS = [
    "Would you like me to search for more specific information?",
    "I can help you find the latest updates on this topic.",
    "Let me know if you need more details about any of the sources.",
]

FILE_SEARCH_SUGGESTIONS = [
    "Would you like me to search for more specific information in the files?",
    "I can help you find related documents or sections.",
    "Let me know if you need more details about any of the sources.",
]


def extract_usage(response: Any) -> Optional[Dict[str, Any]]:
    """Return token usage from the response as a plain dict, if present."""
    usage = field_of(response, "usage")
    if usage is None:
        return None
    plain = to_plain(usage)
    return plain if isinstance(plain, dict) else {"raw": plain}


def parse_structured_message(
    response: Any, items: List[OutputItem]
) -> Tuple[str, Optional[Dict[str, Any]]]:
    """Return `(content, structured_data)` for a plain message response.

    The first message item is parsed as `chat_response` JSON. When the text
    is not valid JSON the raw text is used and `structured_data` is None.
    """
    messages = items_of(items, MessageItem)
    if not messages:
        return field_of(response, "output_text") or "", None

    message = messages[0]
    if message.refusal is not None:
        return f"I apologize, but I cannot fulfill this request: {message.refusal}", None
    if message.text is None:
        return "No response content available", None

    try:
        structured = json.loads(message.text)
    except (TypeError, ValueError):
        LOGGER.warning("Failed to parse structured output, using raw text")
        return message.text, None
    if not isinstance(structured, dict):
        LOGGER.warning("Structured output was not an object, using raw text")
        return message.text, None
    return structured.get("content") or message.text, structured


def _first_message(items: List[OutputItem]) -> Tuple[str, List[Any]]:
    messages = items_of(items, MessageItem)
    if not messages:
        return "", []
    return messages[0].text or "", messages[0].annotations


def build_web_search_result(items: List[OutputItem]) -> Tuple[str, Dict[str, Any], List[Dict[str, Any]]]:
    """Return `(content, structured_data, web_search_calls)` for a web search answer."""
    content, annotations = _first_message(items)
    calls = items_of(items, WebSearchCallItem)
    sources = [
        {
            "url": field_of(annotation, "url"),
            "title": field_of(annotation, "title"),
            "startIndex": field_of(annotation, "start_index"),
            "endIndex": field_of(annotation, "end_index"),
        }
        for annotation in annotations
        if field_of(annotation, "type") == "url_citation"
    ]
    structured = {
        "content": content,
        "confidence": SEARCH_CONFIDENCE,
        "suggestions": list(WEB_SEARCH_SUGGESTIONS),
        "metadata": {
            "reasoning": "Information retrieved from web search to provide current and accurate data.",
            "sources": sources,
            "web_search_used": True,
            "search_calls": [
                {
                    "id": call.id,
                    "status": call.status,
                    "action": to_plain(call.action),
                    "query": field_of(call.action, "query"),
                    "domains": field_of(call.action, "domains"),
                }
                for call in calls
            ],
        },
    }
    return content, structured, [to_plain(call.raw) for call in calls]


def build_file_search_result(items: List[OutputItem]) -> Tuple[str, Dict[str, Any], List[Dict[str, Any]]]:
    """Return `(content, structured_data, file_search_calls)` for a file search answer."""
    content, annotations = _first_message(items)
    calls = items_of(items, FileSearchCallItem)
    sources = [
        {
            "fileId": field_of(annotation, "file_id"),
            "filename": field_of(annotation, "filename"),
            "index": field_of(annotation, "index"),
        }
        for annotation in annotations
        if field_of(annotation, "type") == "file_citation"
    ]
    structured = {
        "content": content,
        "confidence": SEARCH_CONFIDENCE,
        "suggestions": list(FILE_SEARCH_SUGGESTIONS),
        "metadata": {
            "reasoning": "Information retrieved from uploaded files and knowledge base.",
            "sources": sources,
            "file_search_used": True,
            "search_calls": [
                {
                    "id": call.id,
                    "status": call.status,
                    "queries": call.queries,
                    "searchResults": to_plain(call.results),
                }
                for call in calls
            ],
        },
    }
    return content, structured, [to_plain(call.raw) for call in calls]
