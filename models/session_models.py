"""Session domain models for chat conversations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.chat.chat_flow_controller import ChatFlowController


@dataclass
class ChatSession:
    """One live conversation: its controller and the lock serializing its turns.

    Attributes:
        session_id: Public identifier returned to clients.
        controller: Long-lived controller holding history and provider state.
        lock: Held while a message is processed so concurrent requests for
            the same session cannot interleave state changes.
        restored: False until persisted history has been loaded into the
            controller.
        last_used: Store clock reading of the last lookup, used for eviction.
    """

    session_id: str
    controller: "ChatFlowController"
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    restored: bool = False
    last_used: float = 0.0
