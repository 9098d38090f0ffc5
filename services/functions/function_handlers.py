"""Function tools the chat model may call, and the executor that runs them.

Each handler returns a human-readable string that is fed back to the model
as the `function_call_output`. Handlers report failures in that string
instead of raising, so one broken tool never aborts a chat turn.
"""

from __future__ import annotations

import ast
import logging
import math
import operator
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

LOGGER = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

MOCK_NEWS = [
    {
        "title": "AI Breakthrough in Natural Language Processing",
        "description": "Researchers develop new model that significantly improves text understanding.",
        "source": "Tech News",
        "published_at": "2024-01-15",
    },
    {
        "title": "Sustainable Energy Solutions Gain Momentum",
        "description": "Global adoption of renewable energy sources reaches new milestones.",
        "source": "Environmental Weekly",
        "published_at": "2024-01-14",
    },
]


def _function(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "strict": True,
        "parameters": {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False,
        },
    }


FUNCTION_DEFINITIONS: List[Dict[str, Any]] = [
    _function(
        "get_weather",
        "Get current weather information for a specific location.",
        {
            "location": {
                "type": "string",
                "description": "City and country e.g. Paris, France or New York, USA",
            },
            "units": {
                "type": ["string", "null"],
                "enum": ["celsius", "fahrenheit", None],
                "description": "Temperature units. Defaults to celsius if not specified.",
            },
        },
        ["location", "units"],
    ),
    _function(
        "send_email",
        "Send an email to a specified recipient with subject and message.",
        {
            "to": {"type": "string", "description": "The recipient's email address"},
            "subject": {"type": "string", "description": "The subject line of the email"},
            "body": {"type": "string", "description": "The body content of the email message"},
        },
        ["to", "subject", "body"],
    ),
    _function(
        "file_operations",
        "Perform file operations like read, write, delete, or list files.",
        {
            "operation": {
                "type": "string",
                "enum": ["read", "write", "delete", "list"],
                "description": "The file operation to perform",
            },
            "path": {"type": "string", "description": "The file path or directory path"},
            "content": {
                "type": ["string", "null"],
                "description": "Content to write (required for write operations)",
            },
        },
        ["operation", "path", "content"],
    ),
    _function(
        "search_news",
        "Search for recent news articles on a specific topic.",
        {
            "query": {"type": "string", "description": "The news search query or topic"},
            "category": {
                "type": ["string", "null"],
                "description": "Optional news category filter (e.g. 'technology', 'business', 'sports')",
            },
            "limit": {
                "type": ["number", "null"],
                "description": "Number of news articles to return (1-10)",
            },
        },
        ["query", "category", "limit"],
    ),
    _function(
        "calculate",
        "Perform mathematical calculations and solve equations.",
        {
            "expression": {
                "type": "string",
                "description": "The mathematical expression to evaluate (e.g. '2 + 2', '5 * (3 + 2)')",
            }
        },
        ["expression"],
    ),
]


async def get_weather(location: str, units: Optional[str] = "celsius", *, client: Optional[httpx.AsyncClient] = None) -> str:
    """Look up current conditions for `location` through Open-Meteo."""
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=10.0)
    try:
        geo = await http.get(GEOCODING_URL, params={"name": location.split(",")[0].strip(), "count": 1})
        geo.raise_for_status()
        places = geo.json().get("results") or []
        if not places:
            return f"Unable to find a location named {location}."
        place = places[0]
        forecast = await http.get(
            FORECAST_URL,
            params={
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current": "temperature_2m,weather_code,wind_speed_10m",
                "timezone": "auto",
            },
        )
        if forecast.status_code != 200:
            return f"Unable to fetch weather data for {location}. Please try again later."
        current = forecast.json()["current"]
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        LOGGER.error("Weather API error: %s", exc)
        return f"Sorry, I couldn't fetch the weather for {location}. Please try again later."
    finally:
        if owns_client:
            await http.aclose()

    temperature = float(current["temperature_2m"])
    description = WEATHER_DESCRIPTIONS.get(current.get("weather_code"), "Unknown weather")
    if units == "fahrenheit":
        return f"Current weather in {location}: {temperature * 9 / 5 + 32:.1f}°F, {description}"
    return f"Current weather in {location}: {temperature:.1f}°C, {description}"


async def send_email(to: str, subject: str, body: str) -> str:
    """Record an outgoing email; delivery is left to an email service."""
    LOGGER.info("Email would be sent to=%s subject=%s (%d chars)", to, subject, len(body or ""))
    return f'Email sent successfully to {to} with subject: "{subject}"'


async def file_operations(operation: str, path: str, content: Optional[str] = None) -> str:
    if operation == "read":
        return f"File content for {path} would be read here."
    if operation == "write":
        if not content:
            return "Content is required for write operations."
        return f"Content written to {path} successfully."
    if operation == "delete":
        return f"File {path} deleted successfully."
    if operation == "list":
        return f"Files in {path} would be listed here."
    return f"Unknown operation: {operation}"


async def search_news(query: str, category: Optional[str] = None, limit: Optional[float] = 5) -> str:
    articles = MOCK_NEWS
    if category:
        articles = [news for news in MOCK_NEWS if category.lower() in news["title"].lower()]
    if not articles:
        suffix = f' in category "{category}"' if category else ""
        return f'No news found for "{query}"{suffix}.'
    count = int(limit) if limit else 5
    lines = [
        f"{index}. **{news['title']}**\n   {news['description']}\n"
        f"   Source: {news['source']} | Date: {news['published_at']}"
        for index, news in enumerate(articles[:count], start=1)
    ]
    return f'Latest news for "{query}":\n\n' + "\n\n".join(lines)


_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPERATORS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
INVALID_EXPRESSION = "Invalid mathematical expression."


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        # Floats bound the size of every intermediate result.
        return float(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        return _BINARY_OPERATORS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError("Unsupported expression")


def calculate(expression: str) -> str:
    """Evaluate a plain arithmetic expression without executing code."""
    try:
        result = _evaluate(ast.parse(expression, mode="eval"))
    except OverflowError:
        return INVALID_EXPRESSION
    except (SyntaxError, ValueError, ZeroDivisionError, TypeError):
        return "Unable to calculate the expression. Please check your input."
    if not isinstance(result, float) or not math.isfinite(result):
        return INVALID_EXPRESSION
    if result.is_integer():
        return f"Result: {int(result)}"
    return f"Result: {result}"


async def _calculate(expression: str) -> str:
    return calculate(expression)


Handler = Callable[..., Awaitable[str]]


class FunctionExecutor:
    """Dispatch model function calls by name to async handlers."""

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None, definitions: Optional[List[Dict[str, Any]]] = None) -> None:
        self.handlers: Dict[str, Handler] = handlers if handlers is not None else {
            "get_weather": get_weather,
            "send_email": send_email,
            "file_operations": file_operations,
            "search_news": search_news,
            "calculate": _calculate,
        }
        self.definitions = definitions if definitions is not None else [
            definition for definition in FUNCTION_DEFINITIONS if definition["name"] in self.handlers
        ]

    async def execute(self, name: str, args: Dict[str, Any]) -> str:
        """Run the named function and return its string result."""
        handler = self.handlers.get(name)
        if handler is None:
            return f"Unknown function: {name}"
        try:
            return await handler(**(args or {}))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Function execution error for %s: %s", name, exc)
            return f"Error executing {name}: {exc}"
