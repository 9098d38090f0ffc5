"""Provider configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"
DEFAULT_OPENAI_MODEL = "gpt-4.1"
DEFAULT_IMAGE_MODEL = "gpt-image-1"
DEFAULT_PREMIUM_IMAGE_MODEL = "dall-e-3"


@dataclass
class ClaudeConfig:
    """Settings for the Anthropic creative-text handler."""

    model: str = DEFAULT_CLAUDE_MODEL


@dataclass
class OpenAIConfig:
    """Settings for the OpenAI handler.

    Attributes:
        model: Responses API model used for text and tool-based image calls.
        image_model: Model used by the dedicated images endpoints.
        use_image_api: Route image generation through the images endpoints
            instead of the Responses API `image_generation` tool.
        vector_store_ids: Vector stores searched by the file-search tool.
        premium_image_model: Model for the higher-quality lifestyle fallback.
    """

    model: str = DEFAULT_OPENAI_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    use_image_api: bool = False
    vector_store_ids: List[str] = field(default_factory=list)
    premium_image_model: str = DEFAULT_PREMIUM_IMAGE_MODEL


@dataclass
class AIConfig:
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    request_timeout: float = 60.0
    process_deadline: Optional[float] = 180.0
    max_sessions: Optional[int] = 500
    session_idle_seconds: Optional[float] = 3600.0


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc
    # Zero or negative disables the limit.
    return value if value > 0 else None


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = _env_float(name, default)
    return max(1, int(value)) if value is not None else None


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_ai_config() -> AIConfig:
    """Build an `AIConfig` from environment variables."""
    return AIConfig(
        claude=ClaudeConfig(model=os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)),
        openai=OpenAIConfig(
            model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            image_model=os.getenv("OPENAI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            use_image_api=_env_bool("OPENAI_USE_IMAGE_API"),
            vector_store_ids=_env_list("OPENAI_VECTOR_STORE_IDS"),
            premium_image_model=os.getenv("PREMIUM_IMAGE_MODEL", DEFAULT_PREMIUM_IMAGE_MODEL),
        ),
        request_timeout=_env_float("REQUEST_TIMEOUT_SECONDS", 60.0) or 60.0,
        process_deadline=_env_float("PROCESS_DEADLINE_SECONDS", 180.0),
        max_sessions=_env_int("SESSION_MAX_COUNT", 500),
        session_idle_seconds=_env_float("SESSION_IDLE_SECONDS", 3600.0),
    )
