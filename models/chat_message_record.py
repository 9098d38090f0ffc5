from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ChatMessageRecord:
    """In-memory representation of a row in the CHAT_MESSAGE table.

    Attributes:
        id: Primary key (None for new records).
        session_id: Chat session the message belongs to.
        role: "user" or "assistant".
        content: Message text as shown in the chat history.
        message_type: "text" or "image".
        image_url: Generated image (base64 or URL) for image replies.
        created_at: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    session_id: str
    role: str
    content: str
    message_type: str = "text"
    image_url: Optional[str] = None
    created_at: Optional[int] = None
