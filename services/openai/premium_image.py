"""Higher-quality image generation used for text-only lifestyle shots."""

import logging
from typing import Optional

from openai import APIStatusError, AsyncOpenAI

from models.ai_config import DEFAULT_PREMIUM_IMAGE_MODEL
from services.openai.openai_handler import ImageResult
from services.openai.output_items import field_of
from services.provider_errors import ProviderError

LOGGER = logging.getLogger(__name__)


class PremiumImageService:
    """Generate a single HD image through the images endpoint."""

    def __init__(self, client: AsyncOpenAI, model: Optional[str] = None) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model or DEFAULT_PREMIUM_IMAGE_MODEL

    async def generate(self, prompt: str) -> ImageResult:
        """Generate one 1024x1024 HD image for `prompt`.

        Raises:
            ProviderError: When the images endpoint returns a non-2xx response.
            RuntimeError: When the response carries no image.
        """
        try:
            response = await self.client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size="1024x1024",
                quality="hd",
                response_format="b64_json",
            )
        except APIStatusError as exc:
            LOGGER.error("Premium image generation failed: %s", exc)
            raise ProviderError.from_status_error("Premium image generation failed", exc, provider="openai") from exc

        data = field_of(response, "data") or []
        image = (field_of(data[0], "b64_json") or field_of(data[0], "url")) if data else None
        if not image:
            raise RuntimeError("No image data returned from premium image model")
        return ImageResult(
            image_base64=image,
            revised_prompt=field_of(data[0], "revised_prompt"),
            structured_data={
                "description": prompt,
                "style": "realistic",
                "mood": "neutral",
                "composition": "standard",
                "enhanced_prompt": prompt,
                "image_id": f"{self.model}-generated",
            },
        )
