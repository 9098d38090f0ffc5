"""Errors raised when an upstream AI provider call fails."""

from __future__ import annotations

from typing import Any, Optional


class ProviderError(RuntimeError):
    """A non-2xx provider response, carrying the status and provider message."""

    def __init__(self, operation: str, status_code: Optional[int], message: str, *, provider: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.provider_message = message
        self.provider = provider
        status = status_code if status_code is not None else "n/a"
        super().__init__(f"{operation}: {status} - {message}")

    @classmethod
    def from_status_error(cls, operation: str, exc: Any, *, provider: str) -> "ProviderError":
        """Build from an SDK `APIStatusError` (openai or anthropic)."""
        return cls(operation, getattr(exc, "status_code", None), provider_message(exc), provider=provider)


def provider_message(exc: Any) -> str:
    """Return the provider-reported error message, or 'Unknown error'."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    message = getattr(exc, "message", None)
    return str(message) if message else "Unknown error"


def is_rate_limited(exc: BaseException) -> bool:
    """Return True for HTTP 429 responses or errors mentioning a rate limit."""
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status == 429:
        return True
    return "rate limit" in str(exc).lower()
