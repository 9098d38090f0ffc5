"""Creative text and prompt enhancement through the Anthropic Messages API.

The two public calls deliberately fail differently: `enhance_prompt` is an
optimisation and falls back to the caller's text on any error, while
`generate_creative_response` produces the reply itself and lets provider
errors propagate.
"""

import logging
from typing import Any, Iterable, List, Optional

from anthropic import APIStatusError, AsyncAnthropic

from models.ai_config import ClaudeConfig
from models.chat_models import ConversationTurn
from services.provider_errors import ProviderError

LOGGER = logging.getLogger(__name__)

ENHANCE_MAX_TOKENS = 500
CREATIVE_MAX_TOKENS = 4000
DEFAULT_CREATIVE_SYSTEM_PROMPT = "You are a creative and helpful AI assistant for GenLo."
EMPTY_CREATIVE_RESPONSE = "I'm sorry, I couldn't generate a response."

ENHANCEMENT_SYSTEM_PROMPT = """# Identity
You are a creative prompt enhancement specialist for GenLo. Your role is to transform user requests into detailed, imaginative prompts that will generate high-quality AI responses.

# Instructions
- Enhance prompts to be more descriptive, creative, and engaging
- Add relevant context and details that would improve the output
- Maintain the user's original intent while expanding on it
- For image requests, include visual details like style, composition, lighting, mood
- Keep enhanced prompts under 1000 characters for API compatibility
- Be creative but practical

# Examples

<user_request>
"Draw a cat"
</user_request>

<enhanced_prompt>
"A majestic orange tabby cat sitting regally on a sunlit windowsill, detailed fur texture, warm golden lighting, photorealistic style, high quality"
</enhanced_prompt>

<user_request>
"Write about space"
</user_request>

<enhanced_prompt>
"Compose an engaging narrative about space exploration, focusing on the wonder and mystery of distant galaxies, with vivid descriptions and emotional depth"
</enhanced_prompt>"""


def _first_text(message: Any) -> Optional[str]:
    """Return the text of the first content block when it is a text block."""
    content = getattr(message, "content", None) or []
    if not content:
        return None
    block = content[0]
    if isinstance(block, dict):
        return block.get("text")
    return getattr(block, "text", None)


class ClaudeHandler:
    """Wrap an `AsyncAnthropic` client for enhancement and creative replies."""

    def __init__(self, client: AsyncAnthropic, config: Optional[ClaudeConfig] = None) -> None:
        if client is None:
            raise ValueError("Anthropic client must be provided.")
        self.client = client
        self.config = config or ClaudeConfig()

    async def enhance_prompt(self, user_message: str, context: Optional[str] = None) -> str:
        """Rewrite a terse request into a richer prompt; never raises.

        Args:
            user_message: The raw user request.
            context: Optional extra context appended to the request.

        Returns:
            The enhanced prompt, or `user_message` unchanged on any failure.
        """
        request = f'Enhance this request: "{user_message}"'
        if context:
            request = f"{request}\n\nContext: {context}"
        try:
            message = await self.client.messages.create(
                model=self.config.model,
                max_tokens=ENHANCE_MAX_TOKENS,
                system=ENHANCEMENT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": request}],
            )
            text = _first_text(message)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Claude prompt enhancement error: %s", exc)
            return user_message
        enhanced = text.strip() if text else ""
        return enhanced or user_message

    async def generate_creative_response(
        self,
        messages: Iterable[ConversationTurn],
        system_prompt: Optional[str] = None,
    ) -> str:
        """Generate a conversational reply from recent turns.

        Raises:
            ProviderError: When Anthropic returns a non-2xx response.
        """
        payload: List[dict] = [
            {"role": "user" if turn.role == "user" else "assistant", "content": turn.content}
            for turn in messages
        ]
        try:
            message = await self.client.messages.create(
                model=self.config.model,
                max_tokens=CREATIVE_MAX_TOKENS,
                system=system_prompt or DEFAULT_CREATIVE_SYSTEM_PROMPT,
                messages=payload,
            )
        except APIStatusError as exc:
            LOGGER.error("Claude API error: %s", exc)
            raise ProviderError.from_status_error("Claude API error", exc, provider="anthropic") from exc
        except Exception as exc:
            LOGGER.error("Claude API error: %s", exc)
            raise

        text = _first_text(message)
        return text if text else EMPTY_CREATIVE_RESPONSE
