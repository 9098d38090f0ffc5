"""Chat domain models shared by the routing orchestrator."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Union

FUNCTION_CALL_CONTEXT_WINDOW = 6
CREATIVE_CONTEXT_WINDOW = 10
IMAGE_ACK_CONTEXT_WINDOW = 5
CONVERSATION_STATE_CAPACITY = 20


@dataclass(frozen=True)
class ConversationTurn:
    """A single user or assistant message in a chat."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationState:
    """Provider-side context kept by the OpenAI handler between calls.

    Attributes:
        previous_response_id: Id of the most recent successful response.
        messages: Rolling window of turns (oldest dropped first once
            `CONVERSATION_STATE_CAPACITY` is reached).
    """

    previous_response_id: Optional[str] = None
    messages: Deque[ConversationTurn] = field(
        default_factory=lambda: deque(maxlen=CONVERSATION_STATE_CAPACITY)
    )

    def record(self, user_message: str, assistant_message: str, response_id: Optional[str]) -> None:
        """Append a user/assistant pair and remember the response id."""
        self.messages.append(ConversationTurn(role="user", content=user_message))
        self.messages.append(ConversationTurn(role="assistant", content=assistant_message))
        self.previous_response_id = response_id

    def recent(self, limit: int) -> List[ConversationTurn]:
        """Return up to `limit` of the newest turns in chronological order."""
        if limit <= 0:
            return []
        return list(self.messages)[-limit:]

    def clear(self) -> None:
        self.previous_response_id = None
        self.messages.clear()


@dataclass(frozen=True)
class ReferenceImage:
    """An image the user attached to a message."""

    url: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "description": self.description}


@dataclass(frozen=True)
class FunctionCallRecord:
    """Outcome of one function call executed for the model."""

    function_name: str
    result: str

    def to_dict(self) -> Dict[str, str]:
        return {"functionName": self.function_name, "result": self.result}


@dataclass(frozen=True)
class ResponseEnvelope:
    """Unified result returned by `ChatFlowController.process_message`."""

    type: str
    content: str
    image_url: Optional[str] = None
    enhanced_prompt: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    structured_data: Optional[Dict[str, Any]] = None
    function_calls: Optional[List[FunctionCallRecord]] = None
    web_search_calls: Optional[List[Dict[str, Any]]] = None
    file_search_calls: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, leaving out fields that are unset."""
        payload: Dict[str, Any] = {"type": self.type, "content": self.content}
        optional = {
            "imageUrl": self.image_url,
            "enhancedPrompt": self.enhanced_prompt,
            "usage": self.usage,
            "structuredData": self.structured_data,
            "functionCalls": [call.to_dict() for call in self.function_calls]
            if self.function_calls is not None
            else None,
            "webSearchCalls": self.web_search_calls,
            "fileSearchCalls": self.file_search_calls,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass(frozen=True)
class ImageRoute:
    with_reference: bool
    lifestyle: bool


@dataclass(frozen=True)
class CreativeRoute:
    pass


@dataclass(frozen=True)
class GeneralRoute:
    function_calling: bool
    web_search: bool
    file_search: bool


RouteDecision = Union[ImageRoute, CreativeRoute, GeneralRoute]
