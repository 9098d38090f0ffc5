"""Utilities to build input payloads for the Responses API."""

from typing import Any, Dict, Iterable, List, Optional

from models.chat_models import ConversationTurn


def to_image_data_url(image_b64: str, mime_type: str = "image/png") -> str:
    """Wrap bare base64 image data in a data URL suitable for vision input."""
    if not image_b64:
        raise ValueError("Reference image data is required.")
    return f"data:{mime_type};base64,{image_b64}"


def text_message(role: str, text: str) -> Dict[str, Any]:
    return {"type": "message", "role": role, "content": text}


def build_text_inputs(
    user_content: str,
    history: Iterable[ConversationTurn],
    *,
    system_instructions: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Build the chat input list: instructions, the user content, then history.

    History turns are appended after the current user content.
    """
    inputs: List[Dict[str, Any]] = []
    if system_instructions:
        inputs.append(text_message("developer", system_instructions))
    inputs.append(text_message("user", user_content))
    inputs.extend(text_message(turn.role, turn.content) for turn in history)
    return inputs


def build_reference_image_input(prompt: str, image_b64: str, mime_type: str = "image/png") -> List[Dict[str, Any]]:
    """Return a single user message carrying the prompt and the reference image."""
    return [
        {
            "type": "message",
            "role": "user",
            "content": [
                {"type": "input_text", "text": prompt},
                {"type": "input_image", "image_url": to_image_data_url(image_b64, mime_type)},
            ],
        }
    ]
