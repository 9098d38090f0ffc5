"""Text, tool, and image generation through OpenAI.

`OpenAIHandler` owns one piece of mutable state, the `ConversationState`
used to chain text responses (`previous_response_id` plus recent turns).
Image edits chain explicitly through a caller-supplied response id instead.
"""

from __future__ import annotations

import base64
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from openai import APIStatusError, AsyncOpenAI

from models.ai_config import OpenAIConfig
from models.chat_models import FUNCTION_CALL_CONTEXT_WINDOW, ConversationState, FunctionCallRecord
from services.chat.message_classifier import MessageClassifier
from services.functions.function_handlers import FunctionExecutor
from services.openai.image_options import (
    ImageOptions,
    build_reference_prompt,
    image_api_kwargs,
    image_generation_tool,
    truncate_prompt,
)
from services.openai.media_inputs import build_reference_image_input, build_text_inputs
from services.openai.output_items import (
    FileSearchCallItem,
    FunctionCallItem,
    ImageGenerationCallItem,
    WebSearchCallItem,
    decode_item,
    decode_output,
    field_of,
    items_of,
)
from services.openai.response_parser import (
    build_file_search_result,
    build_web_search_result,
    extract_usage,
    parse_structured_message,
)
from services.openai.schemas import chat_response_format
from services.openai.search_options import FileSearchOptions, WebSearchOptions
from services.provider_errors import ProviderError

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 2000
PARTIAL_IMAGE_EVENT = "response.image_generation_call.partial_image"

PartialImageCallback = Callable[[int, str], Union[None, Awaitable[None]]]


@dataclass
class TextResponse:
    content: str
    response_id: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    structured_data: Optional[Dict[str, Any]] = None
    function_calls: Optional[List[FunctionCallRecord]] = None
    web_search_calls: Optional[List[Dict[str, Any]]] = None
    file_search_calls: Optional[List[Dict[str, Any]]] = None


@dataclass
class ImageResult:
    image_base64: str
    revised_prompt: Optional[str] = None
    structured_data: Dict[str, Any] = field(default_factory=dict)
    response_id: Optional[str] = None


def _image_metadata(prompt: str, composition: str, **extra: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "description": prompt,
        "style": "realistic",
        "mood": "neutral",
        "composition": composition,
        "enhanced_prompt": prompt,
    }
    data.update(extra)
    return data


class OpenAIHandler:
    """Wrap an `AsyncOpenAI` client for chat, tools, and images."""

    def __init__(
        self,
        client: AsyncOpenAI,
        config: Optional[OpenAIConfig] = None,
        function_executor: Optional[FunctionExecutor] = None,
    ) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.config = config or OpenAIConfig()
        self.function_executor = function_executor or FunctionExecutor()
        self._state = ConversationState()

    @property
    def conversation_state(self) -> ConversationState:
        return self._state

    def clear_conversation_state(self) -> None:
        self._state = ConversationState()

    async def _guard(self, operation: str, call: Awaitable[Any]) -> Any:
        """Await a provider call, converting HTTP failures into `ProviderError`."""
        try:
            return await call
        except APIStatusError as exc:
            LOGGER.error("%s: %s", operation, exc)
            raise ProviderError.from_status_error(operation, exc, provider="openai") from exc
        except Exception as exc:
            LOGGER.error("%s: %s", operation, exc)
            raise

    # Text -----------------------------------------------------------------

    async def generate_text_response(
        self,
        user_message: str,
        enable_function_calling: bool = False,
        enhanced_prompt: Optional[str] = None,
        system_instructions: Optional[str] = None,
        enable_web_search: Optional[bool] = None,
        web_search_options: Optional[WebSearchOptions] = None,
        enable_file_search: Optional[bool] = None,
        file_search_options: Optional[FileSearchOptions] = None,
    ) -> TextResponse:
        """Answer a general chat message with structured output and tools.

        Explicit `enable_web_search` / `enable_file_search` flags win; when
        they are None the message classifier decides.

        Raises:
            ProviderError: When OpenAI returns a non-2xx response.
        """
        needs_web_search = (
            enable_web_search if enable_web_search is not None else MessageClassifier.needs_web_search(user_message)
        )
        needs_file_search = (
            enable_file_search if enable_file_search is not None else MessageClassifier.needs_file_search(user_message)
        )

        inputs = build_text_inputs(
            enhanced_prompt or user_message,
            self._state.recent(FUNCTION_CALL_CONTEXT_WINDOW),
            system_instructions=system_instructions,
        )

        tools: List[Dict[str, Any]] = [{"type": "web_search_preview"}]
        if needs_web_search:
            tools.append((web_search_options or WebSearchOptions()).to_tool())
        file_search_enabled = needs_file_search and bool(self.config.vector_store_ids)
        if file_search_enabled:
            tools.append((file_search_options or FileSearchOptions()).to_tool(self.config.vector_store_ids))
        if enable_function_calling:
            tools.extend(self.function_executor.definitions)

        request: Dict[str, Any] = {
            "model": self.config.model,
            "input": inputs,
            "tools": tools,
            "max_output_tokens": MAX_OUTPUT_TOKENS,
            "text": chat_response_format(),
        }
        if file_search_enabled and file_search_options and file_search_options.include_results:
            request["include"] = ["file_search_call.results"]
        if self._state.previous_response_id:
            request["previous_response_id"] = self._state.previous_response_id

        LOGGER.debug(
            "OpenAI text request: model=%s tools=%s inputs=%d",
            self.config.model,
            [tool["type"] for tool in tools],
            len(inputs),
        )
        response = await self._guard("OpenAI API error", self.client.responses.create(**request))
        items = decode_output(response)

        function_calls = items_of(items, FunctionCallItem)
        if function_calls:
            results = await self._execute_function_calls(function_calls, inputs)
            return await self._respond_with_function_results(user_message, inputs, results)

        if items_of(items, WebSearchCallItem):
            content, structured, calls = build_web_search_result(items)
            return self._record(user_message, response, content, structured, web_search_calls=calls)

        if items_of(items, FileSearchCallItem):
            content, structured, calls = build_file_search_result(items)
            return self._record(user_message, response, content, structured, file_search_calls=calls)

        content, structured = parse_structured_message(response, items)
        return self._record(user_message, response, content, structured)

    async def _execute_function_calls(
        self, function_calls: List[FunctionCallItem], inputs: List[Dict[str, Any]]
    ) -> List[FunctionCallRecord]:
        """Run each call in order, appending the call and its output to `inputs`."""
        results: List[FunctionCallRecord] = []
        for call in function_calls:
            try:
                result = await self.function_executor.execute(call.name, call.parsed_arguments())
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Error executing function %s: %s", call.name, exc)
                result = f"Error executing function: {exc}"
            inputs.append(call.as_input())
            inputs.append({"type": "function_call_output", "call_id": call.call_id, "output": result})
            results.append(FunctionCallRecord(function_name=call.name, result=result))
        return results

    async def _respond_with_function_results(
        self,
        user_message: str,
        inputs: List[Dict[str, Any]],
        results: List[FunctionCallRecord],
    ) -> TextResponse:
        request: Dict[str, Any] = {
            "model": self.config.model,
            "input": inputs,
            "max_output_tokens": MAX_OUTPUT_TOKENS,
            "text": chat_response_format(),
        }
        if self._state.previous_response_id:
            request["previous_response_id"] = self._state.previous_response_id

        response = await self._guard("OpenAI API error", self.client.responses.create(**request))
        content, structured = parse_structured_message(response, decode_output(response))
        if structured is not None:
            metadata = structured.get("metadata")
            if not isinstance(metadata, dict):
                metadata = structured["metadata"] = {}
            metadata["functions_used"] = [record.function_name for record in results]
        return self._record(user_message, response, content, structured, function_calls=results)

    def _record(
        self,
        user_message: str,
        response: Any,
        content: str,
        structured: Optional[Dict[str, Any]],
        **extra: Any,
    ) -> TextResponse:
        response_id = field_of(response, "id")
        self._state.record(user_message, content, response_id)
        return TextResponse(
            content=content,
            response_id=response_id,
            usage=extract_usage(response),
            structured_data=structured,
            **extra,
        )

    # Images ---------------------------------------------------------------

    def _use_image_api(self, options: Optional[ImageOptions]) -> bool:
        if options is not None and options.use_image_api is not None:
            return options.use_image_api
        return self.config.use_image_api

    async def generate_image(self, prompt: str, options: Optional[ImageOptions] = None) -> ImageResult:
        """Generate an image from text, capping the prompt at 4000 characters."""
        final_prompt = truncate_prompt(prompt)
        LOGGER.info("Image generation prompt length: %d", len(final_prompt))
        if self._use_image_api(options):
            response = await self._guard(
                "Image generation failed",
                self.client.images.generate(
                    model=self.config.image_model,
                    prompt=final_prompt,
                    n=1,
                    **image_api_kwargs(options),
                ),
            )
            return self._image_api_result(response, final_prompt, "standard")

        response = await self._guard(
            "Image generation failed",
            self.client.responses.create(
                model=self.config.model,
                input=final_prompt,
                tools=[image_generation_tool(options)],
            ),
        )
        return self._image_call_result(response, final_prompt, "standard")

    async def generate_image_from_image(
        self,
        reference_image_base64: str,
        prompt: str,
        options: Optional[ImageOptions] = None,
        mime_type: str = "image/png",
    ) -> ImageResult:
        """Generate an image that keeps the product from a reference image."""
        combined_prompt = build_reference_prompt(prompt)
        LOGGER.info("Reference image prompt length: %d", len(combined_prompt))
        if self._use_image_api(options):
            image_bytes = base64.b64decode(reference_image_base64)
            response = await self._guard(
                "Image-to-image generation failed",
                self.client.images.edit(
                    model=self.config.image_model,
                    image=("reference.png", image_bytes, mime_type),
                    prompt=combined_prompt,
                    n=1,
                    **image_api_kwargs(options, edit=True),
                ),
            )
            return self._image_api_result(response, combined_prompt, "with reference image")

        response = await self._guard(
            "Image-to-image generation failed",
            self.client.responses.create(
                model=self.config.model,
                input=build_reference_image_input(combined_prompt, reference_image_base64, mime_type),
                tools=[image_generation_tool(options)],
            ),
        )
        return self._image_call_result(response, combined_prompt, "with reference image")

    async def edit_image_with_previous_response(
        self,
        previous_response_id: str,
        edit_prompt: str,
        options: Optional[ImageOptions] = None,
    ) -> ImageResult:
        """Edit the image produced by an earlier response, threading its id."""
        if not previous_response_id:
            raise ValueError("previous_response_id is required for image edits.")
        response = await self._guard(
            "Image editing failed",
            self.client.responses.create(
                model=self.config.model,
                previous_response_id=previous_response_id,
                input=edit_prompt,
                tools=[image_generation_tool(options)],
            ),
        )
        return self._image_call_result(
            response,
            edit_prompt,
            "edited from previous",
            previous_response_id=previous_response_id,
        )

    async def generate_image_stream(
        self,
        prompt: str,
        options: Optional[ImageOptions] = None,
        on_partial_image: Optional[PartialImageCallback] = None,
    ) -> ImageResult:
        """Stream an image generation, reporting partial images as they arrive.

        Raises:
            RuntimeError: If the stream ends without a completed image.
        """
        final_prompt = truncate_prompt(prompt)
        stream = await self._guard(
            "Streaming image generation failed",
            self.client.responses.create(
                model=self.config.model,
                input=final_prompt,
                tools=[image_generation_tool(options, streaming=True)],
                stream=True,
            ),
        )

        final_image: Optional[ImageGenerationCallItem] = None
        response_id: Optional[str] = None
        partial_images = 0
        try:
            async for event in stream:
                event_type = field_of(event, "type")
                if event_type == PARTIAL_IMAGE_EVENT:
                    partial_images += 1
                    if on_partial_image is not None:
                        outcome = on_partial_image(
                            field_of(event, "partial_image_index", 0),
                            field_of(event, "partial_image_b64", ""),
                        )
                        if inspect.isawaitable(outcome):
                            await outcome
                elif event_type == "response.output_item.done":
                    item = decode_item(field_of(event, "item"))
                    if isinstance(item, ImageGenerationCallItem) and item.status == "completed" and item.result:
                        final_image = item
                elif event_type == "response.completed":
                    completed = field_of(event, "response")
                    response_id = field_of(completed, "id")
                    if final_image is None:
                        for item in items_of(decode_output(completed), ImageGenerationCallItem):
                            if item.status == "completed" and item.result:
                                final_image = item
                elif event_type in ("error", "response.failed"):
                    LOGGER.warning("Streaming image generation event %s: %s", event_type, event)
        finally:
            await stream.close()

        if final_image is None:
            raise RuntimeError("No final image received from streaming response.")

        return ImageResult(
            image_base64=final_image.result,
            revised_prompt=final_image.revised_prompt or "",
            structured_data=_image_metadata(
                final_prompt,
                "standard",
                revised_prompt=final_image.revised_prompt or "",
                partial_images_received=partial_images,
            ),
            response_id=response_id,
        )

    @staticmethod
    def _image_api_result(response: Any, prompt: str, composition: str) -> ImageResult:
        data = field_of(response, "data") or []
        if not data:
            raise RuntimeError("No image data returned from OpenAI")
        image = data[0]
        image_data = field_of(image, "b64_json") or field_of(image, "url")
        if not image_data:
            raise RuntimeError("No image data returned from OpenAI")
        return ImageResult(
            image_base64=image_data,
            revised_prompt=field_of(image, "revised_prompt") or prompt,
            structured_data=_image_metadata(prompt, composition, image_id=field_of(image, "id")),
        )

    @staticmethod
    def _image_call_result(response: Any, prompt: str, composition: str, **extra: Any) -> ImageResult:
        calls = items_of(decode_output(response), ImageGenerationCallItem)
        if not calls:
            raise RuntimeError("No image generation call found in response")
        call = calls[0]
        if call.status != "completed":
            raise RuntimeError(f"Image generation failed with status: {call.status}")
        return ImageResult(
            image_base64=call.result,
            revised_prompt=call.revised_prompt,
            structured_data=_image_metadata(
                prompt,
                composition,
                revised_prompt=call.revised_prompt,
                image_id=call.id,
                **extra,
            ),
            response_id=field_of(response, "id"),
        )
