import asyncio

import httpx
import pytest

from services.functions.function_handlers import (
    FORECAST_URL,
    FUNCTION_DEFINITIONS,
    FunctionExecutor,
    calculate,
    file_operations,
    get_weather,
    search_news,
    send_email,
)


def weather_transport(temperature=20.0, code=0, places=True):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host.startswith("geocoding"):
            results = [{"latitude": 48.85, "longitude": 2.35, "name": "Paris"}] if places else []
            return httpx.Response(200, json={"results": results})
        assert str(request.url).startswith(FORECAST_URL)
        return httpx.Response(200, json={"current": {"temperature_2m": temperature, "weather_code": code}})

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_get_weather_celsius():
    async with httpx.AsyncClient(transport=weather_transport()) as client:
        result = await get_weather("Paris, France", "celsius", client=client)

    assert result == "Current weather in Paris, France: 20.0°C, Clear sky"


@pytest.mark.asyncio
async def test_get_weather_fahrenheit():
    async with httpx.AsyncClient(transport=weather_transport(temperature=10.0, code=61)) as client:
        result = await get_weather("Paris", "fahrenheit", client=client)

    assert result == "Current weather in Paris: 50.0°F, Slight rain"


@pytest.mark.asyncio
async def test_get_weather_unknown_location():
    async with httpx.AsyncClient(transport=weather_transport(places=False)) as client:
        result = await get_weather("Atlantis", None, client=client)

    assert result == "Unable to find a location named Atlantis."


@pytest.mark.asyncio
async def test_get_weather_transport_error_is_reported():
    def failing(request):
        raise httpx.ConnectError("no route", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(failing)) as client:
        result = await get_weather("Paris", None, client=client)

    assert result.startswith("Sorry, I couldn't fetch the weather for Paris")


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("2 + 2", "Result: 4"),
        ("5 * (3 + 2)", "Result: 25"),
        ("7 / 2", "Result: 3.5"),
        ("-3 ** 2", "Result: -9"),
    ],
)
def test_calculate(expression, expected):
    assert calculate(expression) == expected


@pytest.mark.parametrize("expression", ["__import__('os')", "1 / 0", "2 +", "[1, 2]"])
def test_calculate_rejects_unsafe_or_invalid(expression):
    assert calculate(expression) == "Unable to calculate the expression. Please check your input."


@pytest.mark.parametrize("expression", ["9**9**9", "10**5000", "1e308*10", "(-8) ** 0.5"])
def test_calculate_rejects_non_finite_results(expression):
    assert calculate(expression) == "Invalid mathematical expression."


@pytest.mark.asyncio
async def test_executor_returns_quickly_for_huge_powers():
    result = await asyncio.wait_for(FunctionExecutor().execute("calculate", {"expression": "9**9**8"}), timeout=1)

    assert result == "Invalid mathematical expression."


@pytest.mark.asyncio
async def test_mock_tools():
    assert await send_email("a@b.c", "Hi", "Body") == 'Email sent successfully to a@b.c with subject: "Hi"'
    assert await file_operations("write", "/tmp/x", None) == "Content is required for write operations."
    assert await file_operations("list", "/tmp") == "Files in /tmp would be listed here."
    news = await search_news("AI", None, 1)
    assert news.startswith('Latest news for "AI":')
    assert "Sustainable Energy" not in news
    assert await search_news("AI", "sports", None) == 'No news found for "AI" in category "sports".'


@pytest.mark.asyncio
async def test_executor_dispatches_and_reports_errors():
    async def broken(**kwargs):
        raise RuntimeError("boom")

    executor = FunctionExecutor(handlers={"broken": broken, "calculate": FunctionExecutor().handlers["calculate"]})

    assert await executor.execute("calculate", {"expression": "6 * 7"}) == "Result: 42"
    assert await executor.execute("broken", {}) == "Error executing broken: boom"
    assert await executor.execute("missing", {}) == "Unknown function: missing"
    assert [definition["name"] for definition in executor.definitions] == ["calculate"]


def test_definitions_are_strict_function_tools():
    for definition in FUNCTION_DEFINITIONS:
        parameters = definition["parameters"]
        assert definition["type"] == "function"
        assert definition["strict"] is True
        assert set(parameters["required"]) == set(parameters["properties"])
        assert parameters["additionalProperties"] is False
