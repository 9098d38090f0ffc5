"""Typed view over the `output` items of a Responses API result."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from an SDK model or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def to_plain(obj: Any) -> Any:
    """Convert SDK objects into JSON-serializable structures."""
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, dict):
        return {key: to_plain(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(value) for value in obj]
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dict__"):
        return {key: to_plain(value) for key, value in vars(obj).items() if not key.startswith("_")}
    return str(obj)


@dataclass
class MessageItem:
    text: Optional[str]
    refusal: Optional[str] = None
    annotations: List[Any] = field(default_factory=list)


@dataclass
class FunctionCallItem:
    call_id: str
    name: str
    arguments: str
    id: Optional[str] = None

    def parsed_arguments(self) -> Dict[str, Any]:
        return json.loads(self.arguments or "{}")

    def as_input(self) -> Dict[str, Any]:
        """Echo this call back to the model as an input item."""
        return {
            "type": "function_call",
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.arguments,
        }


@dataclass
class WebSearchCallItem:
    id: Optional[str]
    status: Optional[str]
    action: Any = None
    raw: Any = None


@dataclass
class FileSearchCallItem:
    id: Optional[str]
    status: Optional[str]
    queries: List[str] = field(default_factory=list)
    results: Any = None
    raw: Any = None


@dataclass
class ImageGenerationCallItem:
    id: Optional[str]
    status: Optional[str]
    result: Optional[str]
    revised_prompt: Optional[str] = None


@dataclass
class UnknownItem:
    type: Optional[str]
    raw: Any = None


OutputItem = Union[
    MessageItem,
    FunctionCallItem,
    WebSearchCallItem,
    FileSearchCallItem,
    ImageGenerationCallItem,
    UnknownItem,
]


def _decode_message(item: Any) -> MessageItem:
    contents = field_of(item, "content") or []
    if not contents:
        return MessageItem(text=None)
    first = contents[0]
    content_type = field_of(first, "type")
    if content_type == "refusal":
        return MessageItem(text=None, refusal=field_of(first, "refusal") or "")
    return MessageItem(
        text=field_of(first, "text"),
        annotations=list(field_of(first, "annotations") or []),
    )


def decode_item(item: Any) -> OutputItem:
    """Decode one raw output item into its typed variant."""
    item_type = field_of(item, "type")
    if item_type == "message":
        return _decode_message(item)
    if item_type == "function_call":
        return FunctionCallItem(
            call_id=field_of(item, "call_id") or "",
            name=field_of(item, "name") or "",
            arguments=field_of(item, "arguments") or "{}",
            id=field_of(item, "id"),
        )
    if item_type == "web_search_call":
        return WebSearchCallItem(
            id=field_of(item, "id"),
            status=field_of(item, "status"),
            action=field_of(item, "action"),
            raw=item,
        )
    if item_type == "file_search_call":
        return FileSearchCallItem(
            id=field_of(item, "id"),
            status=field_of(item, "status"),
            queries=list(field_of(item, "queries") or []),
            results=field_of(item, "results"),
            raw=item,
        )
    if item_type == "image_generation_call":
        return ImageGenerationCallItem(
            id=field_of(item, "id"),
            status=field_of(item, "status"),
            result=field_of(item, "result"),
            revised_prompt=field_of(item, "revised_prompt"),
        )
    return UnknownItem(type=item_type, raw=item)


def decode_output(response: Any) -> List[OutputItem]:
    """Decode every output item of a Responses API result."""
    return [decode_item(item) for item in field_of(response, "output") or []]


def items_of(items: List[OutputItem], kind: type) -> List[Any]:
    return [item for item in items if isinstance(item, kind)]
