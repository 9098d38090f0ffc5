"""Chat-flow request handling on top of the session store and message DAL."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic
from fastapi import HTTPException, Request
from openai import AsyncOpenAI

from dal.chat_message_dal import ChatMessageDAL
from models.ai_config import AIConfig
from models.chat_message_record import ChatMessageRecord
from models.chat_models import ConversationTurn, ResponseEnvelope
from services.anthropic.claude_handler import ClaudeHandler
from services.chat.chat_flow_controller import IMAGE_GENERATED_SUFFIX, ChatFlowController
from services.chat.session_store import ChatSessionStore, ControllerFactory
from services.openai.image_options import ImageOptions
from services.openai.openai_handler import OpenAIHandler
from services.openai.premium_image import PremiumImageService
from services.openai.search_options import FileSearchOptions, WebSearchOptions

HISTORY_LIMIT = 50


def make_controller_factory(
    openai_client: AsyncOpenAI,
    anthropic_client: AsyncAnthropic,
    config: AIConfig,
) -> ControllerFactory:
    """Return a factory building one controller (and handler pair) per session."""

    def factory() -> ChatFlowController:
        return ChatFlowController(
            claude=ClaudeHandler(anthropic_client, config.claude),
            openai=OpenAIHandler(openai_client, config.openai),
            premium_images=PremiumImageService(openai_client, config.openai.premium_image_model),
            deadline_seconds=config.process_deadline,
        )

    return factory


def _user_content(message: str, reference_image_url: Optional[str]) -> str:
    """Embed an attached data-URL image so a restored history can find it again."""
    if reference_image_url and reference_image_url.startswith("data:image"):
        return f"{message} [Image: {reference_image_url}]"
    return message


def _record_to_turn(record: ChatMessageRecord) -> ConversationTurn:
    content = record.content
    if record.message_type == "image":
        content = f"{content} {IMAGE_GENERATED_SUFFIX}"
    return ConversationTurn(role=record.role, content=content)


def _session_view(controller: ChatFlowController) -> Dict[str, Any]:
    return {
        "history": [turn.to_dict() for turn in controller.get_history()],
        "referenceImages": [image.to_dict() for image in controller.get_reference_images()],
    }


async def send_chat_message(
    request: Request,
    message: str,
    session_id: Optional[str] = None,
    clear_history: bool = False,
    reference_image_url: Optional[str] = None,
    web_search_options: Optional[Dict[str, Any]] = None,
    file_search_options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Process one chat message for a session and persist both turns.

    Args:
        request: FastAPI Request object (used to access app.state for shared clients).
        message: The user's message text.
        session_id: Existing session id; a new session is created when omitted.
        clear_history: Wipe the session's history before processing.
        reference_image_url: Optional attached image (data URL, base64, or URL).
        web_search_options: camelCase web-search settings from the request.
        file_search_options: camelCase file-search settings from the request.

    Returns:
        The response envelope plus `sessionId`, `history` and `referenceImages`.
    """
    if not message or not message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    store: ChatSessionStore = request.app.state.chat_sessions
    dal = ChatMessageDAL(request.app.state.db_initializer)
    session, _ = store.get_or_create(session_id)

    async with session.lock:
        controller = session.controller
        if clear_history:
            controller.clear_history()
            await dal.delete_session(session.session_id)
            session.restored = True

        history: Optional[List[ConversationTurn]] = None
        if not session.restored:
            records = await dal.list_messages(session.session_id, limit=HISTORY_LIMIT)
            history = [_record_to_turn(record) for record in records]
            session.restored = True

        envelope: ResponseEnvelope = await controller.process_message(
            message,
            reference_image_url=reference_image_url,
            web_search_options=WebSearchOptions.from_dict(web_search_options),
            file_search_options=FileSearchOptions.from_dict(file_search_options),
            conversation_history=history,
        )

        await dal.add_message(
            ChatMessageRecord(
                id=None,
                session_id=session.session_id,
                role="user",
                content=_user_content(message, reference_image_url),
            )
        )
        await dal.add_message(
            ChatMessageRecord(
                id=None,
                session_id=session.session_id,
                role="assistant",
                content=envelope.content,
                message_type=envelope.type,
                image_url=envelope.image_url,
            )
        )

        result = envelope.to_dict()
        result["sessionId"] = session.session_id
        result.update(_session_view(controller))
        return result


async def get_chat_session(request: Request, session_id: str) -> Dict[str, Any]:
    """Return the in-memory history of a session, or its persisted messages."""
    store: ChatSessionStore = request.app.state.chat_sessions
    if session_id in store:
        view = _session_view(store.get(session_id).controller)
    else:
        records = await ChatMessageDAL(request.app.state.db_initializer).list_messages(session_id, limit=HISTORY_LIMIT)
        if not records:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        view = {
            "history": [_record_to_turn(record).to_dict() for record in records],
            "referenceImages": [],
        }
    view["sessionId"] = session_id
    return view


async def delete_chat_session(request: Request, session_id: str) -> Dict[str, Any]:
    """Clear a session from memory and from the message store."""
    store: ChatSessionStore = request.app.state.chat_sessions
    if session_id in store:
        session = store.get(session_id)
        async with session.lock:
            session.controller.clear_history()
        store.discard(session_id)
    deleted = await ChatMessageDAL(request.app.state.db_initializer).delete_session(session_id)
    return {"sessionId": session_id, "cleared": True, "deletedMessages": deleted}


async def edit_image(
    request: Request,
    previous_response_id: str,
    prompt: str,
    options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Apply a follow-up edit to an image produced by an earlier response."""
    if not previous_response_id:
        raise HTTPException(status_code=400, detail="previousResponseId is required")
    if not prompt or not prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")

    config: AIConfig = request.app.state.ai_config
    handler = OpenAIHandler(request.app.state.openai_client, config.openai)
    result = await handler.edit_image_with_previous_response(
        previous_response_id, prompt.strip(), ImageOptions.from_dict(options)
    )
    return {
        "imageUrl": result.image_base64,
        "revisedPrompt": result.revised_prompt,
        "responseId": result.response_id,
        "structuredData": result.structured_data,
    }
