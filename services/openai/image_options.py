"""Prompt limits and request shaping for OpenAI image generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 4000
MAX_REFERENCE_PROMPT_LENGTH = 3950
ELLIPSIS = "..."
REFERENCE_NOTE = "Maintain exact product design, colors, and features from reference image."


@dataclass
class ImageOptions:
    """Optional generation settings; unset fields are not sent.

    Attributes:
        size: "1024x1024", "1024x1536" or "1536x1024".
        quality: "low", "medium" or "high".
        format: "png", "jpeg" or "webp".
        compression: Output compression (0-100) for jpeg/webp.
        background: "transparent" or "opaque".
        partial_images: Number of partial images to stream.
        moderation: "auto" or "low".
        use_image_api: Override the handler's endpoint choice for this call.
    """

    size: Optional[str] = None
    quality: Optional[str] = None
    format: Optional[str] = None
    compression: Optional[int] = None
    background: Optional[str] = None
    partial_images: Optional[int] = None
    moderation: Optional[str] = None
    use_image_api: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ImageOptions":
        """Build from a request payload accepting camelCase or snake_case keys."""
        data = data or {}
        return cls(
            size=data.get("size"),
            quality=data.get("quality"),
            format=data.get("format"),
            compression=data.get("compression"),
            background=data.get("background"),
            partial_images=data.get("partialImages", data.get("partial_images")),
            moderation=data.get("moderation"),
            use_image_api=data.get("useImageAPI", data.get("use_image_api")),
        )


def truncate_prompt(prompt: str, limit: int = MAX_PROMPT_LENGTH) -> str:
    """Trim the prompt and cut it to `limit` characters ending in '...'."""
    final_prompt = (prompt or "").strip()
    if len(final_prompt) > limit:
        LOGGER.warning("Prompt too long (%d chars), truncating to %d characters", len(final_prompt), limit)
        final_prompt = final_prompt[: limit - len(ELLIPSIS)] + ELLIPSIS
    return final_prompt


def build_reference_prompt(prompt: str) -> str:
    """Combine the user prompt with the reference-image note within the cap."""
    base_prompt = (prompt or "").strip()
    available = MAX_REFERENCE_PROMPT_LENGTH - (len(REFERENCE_NOTE) + 2)
    if len(base_prompt) > available:
        base_prompt = base_prompt[: available - len(ELLIPSIS)] + ELLIPSIS
    return f"{base_prompt}. {REFERENCE_NOTE}"


def image_generation_tool(options: Optional[ImageOptions], *, streaming: bool = False) -> Dict[str, Any]:
    """Return the Responses API `image_generation` tool entry."""
    options = options or ImageOptions()
    tool: Dict[str, Any] = {"type": "image_generation"}
    settings = {
        "size": options.size,
        "quality": options.quality,
        "output_format": options.format,
        "output_compression": options.compression,
        "background": options.background,
        "moderation": options.moderation,
    }
    if streaming:
        settings["partial_images"] = options.partial_images
    tool.update({key: value for key, value in settings.items() if value})
    return tool


def image_api_kwargs(options: Optional[ImageOptions], *, edit: bool = False) -> Dict[str, Any]:
    """Return keyword arguments for `images.generate` or `images.edit`.

    The edit endpoint has no moderation setting, so it is dropped there.
    """
    options = options or ImageOptions()
    settings = {
        "size": options.size,
        "quality": options.quality,
        "output_format": options.format,
        "output_compression": options.compression,
        "background": options.background,
        "moderation": None if edit else options.moderation,
    }
    return {key: value for key, value in settings.items() if value}
