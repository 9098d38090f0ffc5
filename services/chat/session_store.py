"""Simple in-memory store of live chat sessions."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple
from uuid import uuid4

from models.session_models import ChatSession
from services.chat.chat_flow_controller import ChatFlowController

ControllerFactory = Callable[[], ChatFlowController]

DEFAULT_MAX_SESSIONS = 500
DEFAULT_IDLE_SECONDS = 3600.0


class ChatSessionStore:
    """Keep one controller per session id, built on demand by `factory`.

    Sessions are held least-recently-used first. Creating a session evicts
    sessions idle for longer than `idle_seconds`, then the oldest ones beyond
    `max_sessions`. A session whose lock is held is never evicted. Evicted
    sessions are rebuilt from the message store on their next request.
    """

    def __init__(
        self,
        factory: ControllerFactory,
        max_sessions: Optional[int] = DEFAULT_MAX_SESSIONS,
        idle_seconds: Optional[float] = DEFAULT_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._sessions: "OrderedDict[str, ChatSession]" = OrderedDict()
        self.max_sessions = max_sessions
        self.idle_seconds = idle_seconds
        self._clock = clock

    def create(self, session_id: Optional[str] = None) -> ChatSession:
        """Create a session, generating an id when none is given."""
        self.evict()
        session_id = session_id or uuid4().hex
        session = ChatSession(session_id=session_id, controller=self._factory(), last_used=self._clock())
        self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> ChatSession:
        """Return a session or raise KeyError if missing."""
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Session {session_id} not found")
        self._touch(session)
        return session

    def get_or_create(self, session_id: Optional[str]) -> Tuple[ChatSession, bool]:
        """Return `(session, created)` for an existing or newly built session."""
        if session_id and session_id in self._sessions:
            return self.get(session_id), False
        return self.create(session_id), True

    def discard(self, session_id: str) -> bool:
        """Forget a session; returns False if it was not in memory."""
        return self._sessions.pop(session_id, None) is not None

    def evict(self) -> int:
        """Drop idle and surplus sessions; returns how many were removed."""
        removed = 0
        if self.idle_seconds is not None:
            cutoff = self._clock() - self.idle_seconds
            for session_id, session in list(self._sessions.items()):
                if session.last_used < cutoff and not session.lock.locked():
                    del self._sessions[session_id]
                    removed += 1
        if self.max_sessions is not None:
            # Leave room for the session about to be created.
            for session_id, session in list(self._sessions.items()):
                if len(self._sessions) < self.max_sessions:
                    break
                if not session.lock.locked():
                    del self._sessions[session_id]
                    removed += 1
        return removed

    def _touch(self, session: ChatSession) -> None:
        session.last_used = self._clock()
        self._sessions.move_to_end(session.session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
