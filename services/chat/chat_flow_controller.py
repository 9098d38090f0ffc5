"""Top-level chat orchestration across the Claude and OpenAI handlers.

`ChatFlowController.process_message` classifies the message into a
`RouteDecision`, dispatches to the image, creative, or general branch, and
always returns a `ResponseEnvelope`. Failures anywhere below degrade to a
single apology message.

One controller instance backs one conversation: it owns the local history,
the reference images the user attached, and (through its `OpenAIHandler`)
the provider-side response chain.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

from models.chat_models import (
    CREATIVE_CONTEXT_WINDOW,
    IMAGE_ACK_CONTEXT_WINDOW,
    ConversationTurn,
    CreativeRoute,
    GeneralRoute,
    ImageRoute,
    ReferenceImage,
    ResponseEnvelope,
)
from services.anthropic.claude_handler import ClaudeHandler
from services.chat.lifestyle_prompts import LifestyleTemplate, build_lifestyle_prompt
from services.chat.message_classifier import MessageClassifier
from services.openai.image_options import ImageOptions
from services.openai.openai_handler import ImageResult, OpenAIHandler
from services.openai.premium_image import PremiumImageService
from services.openai.search_options import FileSearchOptions, WebSearchOptions
from services.provider_errors import is_rate_limited

LOGGER = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I apologize, but I encountered an error processing your request. Please try again."
IMAGE_GENERATED_SUFFIX = "[Image generated]"

LIFESTYLE_IMAGE_OPTIONS = ImageOptions(size="1024x1024", quality="high", format="png", moderation="low")

IMAGE_MARKER_PATTERN = re.compile(r"\[Image: (data:image/[^;]+;base64,[^\]]+)\]")
INLINE_DATA_URI_PATTERN = re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+")

IMAGE_ACK_PROMPT = """You are helping with image generation for GenLo. The user requested: "{request}".
An image has been generated using the enhanced prompt: "{prompt}".
Provide a brief, helpful response acknowledging the image creation and mentioning any key features."""

BASE_INSTRUCTIONS = """# Identity
You are GenLo, a helpful and intelligent assistant. You provide clear, accurate, and engaging responses to user queries.

# Instructions
- Be helpful, accurate, and engaging
- Provide clear and concise explanations
- Use a friendly and professional tone
- If you're unsure about something, say so
- Keep responses focused and relevant to the user's question
- Provide confidence levels and suggestions when helpful"""

FUNCTION_CALLING_INSTRUCTIONS = """
# Function Calling
You have access to various functions to fetch data and perform actions:
- get_weather: Get current weather information
- send_email: Send emails to recipients
- file_operations: Perform file operations
- search_news: Search for recent news articles
- calculate: Perform mathematical calculations

Use these functions when they would help provide better, more accurate information to the user."""

WEB_SEARCH_INSTRUCTIONS = """
# Web Search
You have access to web search capabilities to find the latest information. When using web search:
- Always cite your sources with inline citations
- Provide accurate, up-to-date information
- Include relevant URLs and titles in your response
- Be transparent about what information comes from web search
- Focus on the most recent and relevant information"""

FILE_SEARCH_INSTRUCTIONS = """
# File Search
You have access to uploaded files and knowledge base documents. When using file search:
- Always cite your sources with file citations
- Provide accurate information from the documents
- Include relevant file names and sections in your response
- Be transparent about what information comes from file search
- Focus on the most relevant information from the files
- Use semantic search to find related content across documents"""

RESPONSE_RULES = """
# Response Rules
- Always be helpful and informative
- Use clear, simple language
- Provide examples when helpful
- Ask for clarification if needed"""

WEB_SEARCH_RULES = """
- Include clickable citations for web sources
- Mention when information is from web search
- Provide context for the information you find"""

FILE_SEARCH_RULES = """
- Include file citations for document sources
- Mention when information is from uploaded files
- Provide context for the information you find in documents"""


def build_system_instructions(route: GeneralRoute) -> str:
    """Assemble developer instructions with only the tool sections in use."""
    parts = [BASE_INSTRUCTIONS]
    if route.function_calling:
        parts.append(FUNCTION_CALLING_INSTRUCTIONS)
    if route.web_search:
        parts.append(WEB_SEARCH_INSTRUCTIONS)
    if route.file_search:
        parts.append(FILE_SEARCH_INSTRUCTIONS)
    parts.append(RESPONSE_RULES)
    if route.web_search:
        parts.append(WEB_SEARCH_RULES)
    if route.file_search:
        parts.append(FILE_SEARCH_RULES)
    return "\n".join(parts)


@dataclass(frozen=True)
class ReferencePayload:
    """Base64 image bytes ready to send as a reference."""

    data: str
    mime_type: str = "image/png"


def decode_reference(reference: str) -> Optional[ReferencePayload]:
    """Turn a reference image string into sendable base64.

    `data:` URLs are stripped to their payload. Remote `http(s)` URLs are not
    fetched and yield None, which callers treat as "text-only generation".
    Anything else is assumed to be raw base64.
    """
    if reference.startswith("data:image"):
        header, _, payload = reference.partition(",")
        mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
        return ReferencePayload(data=payload, mime_type=mime_type)
    if reference.startswith("http"):
        return None
    return ReferencePayload(data=reference)


HistoryEntry = Union[ConversationTurn, Mapping[str, Any]]


def _as_turn(entry: HistoryEntry) -> ConversationTurn:
    if isinstance(entry, ConversationTurn):
        return entry
    return ConversationTurn(role=str(entry.get("role", "user")), content=str(entry.get("content") or ""))


class ChatFlowController:
    """Route each chat message to the right provider capability."""

    def __init__(
        self,
        claude: ClaudeHandler,
        openai: OpenAIHandler,
        premium_images: Optional[PremiumImageService] = None,
        lifestyle_template: Optional[LifestyleTemplate] = None,
        deadline_seconds: Optional[float] = None,
    ) -> None:
        if claude is None or openai is None:
            raise ValueError("Both Claude and OpenAI handlers must be provided.")
        self.claude = claude
        self.openai = openai
        self.premium_images = premium_images
        self.lifestyle_template = lifestyle_template or LifestyleTemplate()
        self.deadline_seconds = deadline_seconds
        self._history: List[ConversationTurn] = []
        self._reference_images: List[ReferenceImage] = []

    async def process_message(
        self,
        user_message: str,
        reference_image_url: Optional[str] = None,
        web_search_options: Optional[WebSearchOptions] = None,
        file_search_options: Optional[FileSearchOptions] = None,
        conversation_history: Optional[Iterable[HistoryEntry]] = None,
    ) -> ResponseEnvelope:
        """Handle one user message; never raises.

        Args:
            user_message: The raw text the user sent.
            reference_image_url: Optional attached image as a data URL,
                raw base64, or remote URL.
            web_search_options: Settings for the configured web-search tool.
            file_search_options: Settings for the file-search tool.
            conversation_history: When non-empty, replaces the local history
                before the message is appended.

        Returns:
            The response envelope, or an apology text envelope on any failure
            or when the processing deadline passes.
        """
        try:
            user_message = user_message or ""
            history = [_as_turn(entry) for entry in conversation_history or []]
            if history:
                self._history = history
            self._history.append(ConversationTurn(role="user", content=user_message))
            if reference_image_url:
                self._reference_images.append(ReferenceImage(url=reference_image_url, description=user_message))

            work = self._dispatch(user_message, reference_image_url, web_search_options, file_search_options)
            if self.deadline_seconds:
                return await asyncio.wait_for(work, timeout=self.deadline_seconds)
            return await work
        except asyncio.TimeoutError:
            LOGGER.error("Processing deadline of %ss exceeded", self.deadline_seconds)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if is_rate_limited(exc):
                LOGGER.warning("Provider rate limit hit while processing message: %s", exc)
            LOGGER.exception("Error processing message: %s", exc)
        return ResponseEnvelope(type="text", content=APOLOGY_MESSAGE)

    async def _dispatch(
        self,
        user_message: str,
        reference_image_url: Optional[str],
        web_search_options: Optional[WebSearchOptions],
        file_search_options: Optional[FileSearchOptions],
    ) -> ResponseEnvelope:
        route = MessageClassifier.decide_route(user_message, has_reference=bool(reference_image_url))
        LOGGER.info("Routing message as %s", route)
        if isinstance(route, ImageRoute):
            return await self._handle_image(user_message, reference_image_url, route)
        if isinstance(route, CreativeRoute):
            return await self._handle_creative()
        return await self._handle_general(user_message, route, web_search_options, file_search_options)

    # Image ----------------------------------------------------------------

    async def _handle_image(
        self, user_message: str, reference_image_url: Optional[str], route: ImageRoute
    ) -> ResponseEnvelope:
        image_prompt = MessageClassifier.extract_image_prompt(user_message)
        if route.lifestyle:
            result = await self._generate_lifestyle_image(user_message, reference_image_url)
        elif route.with_reference and reference_image_url:
            reference = decode_reference(reference_image_url)
            if reference is None:
                result = await self.openai.generate_image(image_prompt)
            else:
                result = await self.openai.generate_image_from_image(
                    reference.data, image_prompt, mime_type=reference.mime_type
                )
        else:
            result = await self.openai.generate_image(image_prompt)

        structured = result.structured_data or {}
        acknowledgement = await self.claude.generate_creative_response(
            self._history[-IMAGE_ACK_CONTEXT_WINDOW:],
            IMAGE_ACK_PROMPT.format(request=user_message, prompt=structured.get("enhanced_prompt") or image_prompt),
        )
        self._history.append(
            ConversationTurn(role="assistant", content=f"{acknowledgement} {IMAGE_GENERATED_SUFFIX}")
        )
        return ResponseEnvelope(
            type="image",
            content=acknowledgement,
            image_url=result.image_base64,
            enhanced_prompt=structured.get("enhanced_prompt"),
            structured_data=structured,
        )

    async def _generate_lifestyle_image(self, user_message: str, reference_image_url: Optional[str]) -> ImageResult:
        effective_reference = reference_image_url or self._find_most_recent_image()
        if effective_reference:
            LOGGER.info("Lifestyle request using %s reference image", "supplied" if reference_image_url else "history")
        else:
            LOGGER.info("Lifestyle request without reference image, using text-only generation")

        reference = decode_reference(effective_reference) if effective_reference else None
        if reference is not None:
            prompt = build_lifestyle_prompt(self.lifestyle_template, user_message, has_reference=True)
            return await self.openai.generate_image_from_image(reference.data, prompt, mime_type=reference.mime_type)

        prompt = build_lifestyle_prompt(self.lifestyle_template, user_message, has_reference=False)
        if effective_reference is None and self.premium_images is not None:
            try:
                return await self.premium_images.generate(prompt)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.warning("Premium image generation failed, falling back to OpenAI: %s", exc)
        return await self.openai.generate_image(prompt, LIFESTYLE_IMAGE_OPTIONS)

    def _find_most_recent_image(self) -> Optional[str]:
        """Scan history newest first for an embedded image, then the reference list."""
        for turn in reversed(self._history):
            if not turn.content:
                continue
            if "[Image:" in turn.content:
                match = IMAGE_MARKER_PATTERN.search(turn.content)
                if match:
                    return match.group(1)
            if "data:image" in turn.content:
                match = INLINE_DATA_URI_PATTERN.search(turn.content)
                if match:
                    return match.group(0)
        if self._reference_images:
            return self._reference_images[-1].url
        return None

    # Text -----------------------------------------------------------------

    async def _handle_creative(self) -> ResponseEnvelope:
        response = await self.claude.generate_creative_response(self._history[-CREATIVE_CONTEXT_WINDOW:])
        self._history.append(ConversationTurn(role="assistant", content=response))
        return ResponseEnvelope(type="text", content=response)

    async def _handle_general(
        self,
        user_message: str,
        route: GeneralRoute,
        web_search_options: Optional[WebSearchOptions],
        file_search_options: Optional[FileSearchOptions],
    ) -> ResponseEnvelope:
        enhanced_prompt = await self.claude.enhance_prompt(user_message)
        result = await self.openai.generate_text_response(
            user_message,
            enable_function_calling=route.function_calling,
            enhanced_prompt=enhanced_prompt,
            system_instructions=build_system_instructions(route),
            enable_web_search=route.web_search,
            web_search_options=web_search_options,
            enable_file_search=route.file_search,
            file_search_options=file_search_options,
        )
        self._history.append(ConversationTurn(role="assistant", content=result.content))
        return ResponseEnvelope(
            type="text",
            content=result.content,
            enhanced_prompt=enhanced_prompt,
            usage=result.usage,
            structured_data=result.structured_data,
            function_calls=result.function_calls,
            web_search_calls=result.web_search_calls,
            file_search_calls=result.file_search_calls,
        )

    # Utilities ------------------------------------------------------------

    def clear_history(self) -> None:
        self._history = []
        self._reference_images = []
        self.openai.clear_conversation_state()

    def get_history(self) -> List[ConversationTurn]:
        return list(self._history)

    def get_reference_images(self) -> List[ReferenceImage]:
        return list(self._reference_images)
