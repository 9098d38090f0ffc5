"""Keyword heuristics that decide how a chat message is routed.

Every predicate lower-cases the message and checks for plain substring
membership, so routing is a deterministic function of the text. There is no
negation handling: "I need one with good documentation" is an image request
because it contains "need one with". That is the accepted behaviour.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern

from models.chat_models import CreativeRoute, GeneralRoute, ImageRoute, RouteDecision

IMAGE_KEYWORDS = (
    "generate", "create", "draw", "image", "picture", "photo",
    "illustration", "artwork", "design", "visual", "sketch", "show me",
    "woman holding", "person holding", "lifestyle", "product shot", "product image",
    "with a woman", "with someone", "holding it", "holding the", "person using",
    "need one with", "make one with", "create one with", "generate one with",
)

LIFESTYLE_KEYWORDS = (
    "woman holding", "person holding", "lifestyle", "product shot", "product image",
    "with a woman", "with someone", "holding it", "holding the", "person using",
    "need one with", "make one with", "create one with", "generate one with",
)

CREATIVE_KEYWORDS = (
    "creative", "imaginative", "artistic", "story", "poem", "song",
    "write", "compose", "brainstorm", "ideas", "concept",
)

FUNCTION_KEYWORDS = (
    "weather", "temperature", "email", "send", "search", "find", "query",
    "database", "file", "calculate", "math", "news", "knowledge", "data",
)

WEB_SEARCH_KEYWORDS = (
    "latest", "recent", "today", "yesterday", "this week", "this month",
    "current", "breaking", "news", "update", "trending", "now",
    "what happened", "what's new", "latest news", "current events",
    "recent developments", "latest updates", "breaking news",
    "search", "find", "look up", "research", "investigate",
    "weather", "stock", "price", "market", "crypto", "bitcoin",
    "election", "politics", "sports", "scores", "results",
    "movie", "film", "box office", "reviews", "ratings",
    "restaurant", "hotel", "travel", "vacation", "tourism",
)

FILE_SEARCH_KEYWORDS = (
    "file", "document", "pdf", "search", "find", "look up",
    "knowledge base", "database", "repository", "archive",
    "documentation", "manual", "guide", "tutorial", "reference",
    "report", "analysis", "data", "information", "content",
    "read", "analyze", "examine", "review", "study",
    "what does the document say", "what is in the file",
    "search the files", "find in documents", "look through",
    "check the documentation", "refer to the manual",
    "what does it say about", "find information about",
)

# Checked in order; the first pattern that matches supplies the prompt.
IMAGE_PROMPT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"generate (?:an? )?image (?:of )?(.+)", re.IGNORECASE),
    re.compile(r"create (?:an? )?(?:image|picture) (?:of )?(.+)", re.IGNORECASE),
    re.compile(r"draw (?:an? )?(.+)", re.IGNORECASE),
    re.compile(r"show me (?:an? )?(?:image|picture) (?:of )?(.+)", re.IGNORECASE),
    re.compile(r"make (?:an? )?(?:image|picture) (?:of )?(.+)", re.IGNORECASE),
    re.compile(r"need one with (.+)", re.IGNORECASE),
    re.compile(r"make one with (.+)", re.IGNORECASE),
    re.compile(r"create one with (.+)", re.IGNORECASE),
    re.compile(r"generate one with (.+)", re.IGNORECASE),
    re.compile(r"with a (.+)", re.IGNORECASE),
    re.compile(r"with (.+)", re.IGNORECASE),
]


def _contains_any(message: str, keywords: Iterable[str]) -> bool:
    lowered = (message or "").lower()
    return any(keyword in lowered for keyword in keywords)


class MessageClassifier:
    """Stateless predicates over the raw user message."""

    @staticmethod
    def is_image_request(message: str) -> bool:
        return _contains_any(message, IMAGE_KEYWORDS)

    @staticmethod
    def extract_image_prompt(message: str) -> str:
        """Return the subject phrase of an image request, or the whole message."""
        for pattern in IMAGE_PROMPT_PATTERNS:
            match = pattern.search(message or "")
            if match:
                return match.group(1).strip()
        return message

    @staticmethod
    def is_creative_request(message: str) -> bool:
        return _contains_any(message, CREATIVE_KEYWORDS)

    @staticmethod
    def needs_function_calling(message: str) -> bool:
        return _contains_any(message, FUNCTION_KEYWORDS)

    @staticmethod
    def needs_web_search(message: str) -> bool:
        return _contains_any(message, WEB_SEARCH_KEYWORDS)

    @staticmethod
    def needs_file_search(message: str) -> bool:
        return _contains_any(message, FILE_SEARCH_KEYWORDS)

    @staticmethod
    def is_lifestyle_product_request(message: str) -> bool:
        """Lifestyle shots are a refinement of image requests, not an alternative."""
        return _contains_any(message, LIFESTYLE_KEYWORDS)

    @classmethod
    def decide_route(cls, message: str, has_reference: bool = False) -> RouteDecision:
        """Map a message onto the image, creative, or general branch.

        Image detection wins over creative detection, which wins over the
        general tool-assisted path.
        """
        if cls.is_image_request(message):
            return ImageRoute(
                with_reference=has_reference,
                lifestyle=cls.is_lifestyle_product_request(message),
            )
        if cls.is_creative_request(message):
            return CreativeRoute()
        return GeneralRoute(
            function_calling=cls.needs_function_calling(message),
            web_search=cls.needs_web_search(message),
            file_search=cls.needs_file_search(message),
        )
