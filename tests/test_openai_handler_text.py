import json

import pytest

from models.ai_config import OpenAIConfig
from models.chat_models import CONVERSATION_STATE_CAPACITY, FunctionCallRecord
from services.functions.function_handlers import FunctionExecutor
from services.openai.openai_handler import MAX_OUTPUT_TOKENS, OpenAIHandler
from services.openai.search_options import FileSearchOptions, WebSearchOptions
from services.provider_errors import ProviderError
from tests._fakes import (
    FakeOpenAIClient,
    function_call_response,
    message_item,
    openai_status_error,
    text_response,
)


def test_requires_client():
    with pytest.raises(ValueError):
        OpenAIHandler(None)


@pytest.mark.asyncio
async def test_plain_text_response_parses_structured_output(openai_client, openai_handler):
    openai_client.responses.create.results.append(text_response("Hello there", response_id="resp_a"))

    result = await openai_handler.generate_text_response(
        "Say hello", enhanced_prompt="Say hello warmly", system_instructions="Be nice"
    )

    assert result.content == "Hello there"
    assert result.response_id == "resp_a"
    assert result.structured_data["confidence"] == 0.8
    assert result.usage["total_tokens"] == 15
    request = openai_client.responses.create.calls[0]
    assert request["max_output_tokens"] == MAX_OUTPUT_TOKENS
    assert request["text"]["format"]["type"] == "json_schema"
    assert request["input"][0] == {"type": "message", "role": "developer", "content": "Be nice"}
    assert request["input"][1] == {"type": "message", "role": "user", "content": "Say hello warmly"}
    assert request["tools"] == [{"type": "web_search_preview"}]
    assert "previous_response_id" not in request


@pytest.mark.asyncio
async def test_state_threads_previous_response_id_and_history(openai_client, openai_handler):
    openai_client.responses.create.results.extend(
        [text_response("first", response_id="resp_1"), text_response("second", response_id="resp_2")]
    )

    await openai_handler.generate_text_response("one")
    await openai_handler.generate_text_response("two")

    second_request = openai_client.responses.create.calls[1]
    assert second_request["previous_response_id"] == "resp_1"
    assert [item["content"] for item in second_request["input"]] == ["two", "one", "first"]
    state = openai_handler.conversation_state
    assert state.previous_response_id == "resp_2"
    assert [(turn.role, turn.content) for turn in state.messages] == [
        ("user", "one"),
        ("assistant", "first"),
        ("user", "two"),
        ("assistant", "second"),
    ]


@pytest.mark.asyncio
async def test_state_keeps_only_newest_turns(openai_client, openai_handler):
    calls = 15
    openai_client.responses.create.results.extend(
        text_response(f"answer {index}", response_id=f"resp_{index}") for index in range(calls)
    )

    for index in range(calls):
        await openai_handler.generate_text_response(f"question {index}")

    messages = list(openai_handler.conversation_state.messages)
    assert len(messages) == min(2 * calls, CONVERSATION_STATE_CAPACITY)
    assert messages[0].content == "question 5"
    assert messages[-1].content == "answer 14"
    assert openai_handler.conversation_state.previous_response_id == "resp_14"
    # Only the newest six turns are replayed as input.
    last_request = openai_client.responses.create.calls[-1]
    assert len(last_request["input"]) == 1 + 6


@pytest.mark.asyncio
async def test_search_tools_and_options(openai_client, openai_handler):
    openai_client.responses.create.results.append(text_response("ok"))

    await openai_handler.generate_text_response(
        "look it up",
        enable_web_search=True,
        web_search_options=WebSearchOptions(search_context_size="high"),
        enable_file_search=True,
        file_search_options=FileSearchOptions(max_num_results=3, include_results=True),
        enable_function_calling=True,
    )

    request = openai_client.responses.create.calls[0]
    tool_types = [tool["type"] for tool in request["tools"]]
    assert tool_types[:3] == ["web_search_preview", "web_search_preview", "file_search"]
    assert request["tools"][1]["search_context_size"] == "high"
    assert request["tools"][2] == {"type": "file_search", "vector_store_ids": ["vs_docs"], "max_num_results": 3}
    assert "function" in tool_types
    assert request["include"] == ["file_search_call.results"]


@pytest.mark.asyncio
async def test_file_search_requires_vector_stores():
    client = FakeOpenAIClient([text_response("ok")])
    handler = OpenAIHandler(client, OpenAIConfig())

    await handler.generate_text_response("find it in the document", enable_file_search=True)

    assert all(tool["type"] != "file_search" for tool in client.responses.create.calls[0]["tools"])


@pytest.mark.asyncio
async def test_function_calls_are_executed_and_fed_back():
    executed = []

    async def fake_weather(location, units=None):
        executed.append((location, units))
        return "Current weather in Paris: 20.0°C, Clear sky"

    executor = FunctionExecutor(handlers={"get_weather": fake_weather})
    client = FakeOpenAIClient(
        [
            function_call_response("get_weather", {"location": "Paris", "units": None}, call_id="call_9"),
            text_response("It is sunny in Paris.", response_id="resp_final"),
        ]
    )
    handler = OpenAIHandler(client, OpenAIConfig(), function_executor=executor)

    result = await handler.generate_text_response("weather in Paris?", enable_function_calling=True)

    assert executed == [("Paris", None)]
    assert result.content == "It is sunny in Paris."
    assert result.function_calls == [
        FunctionCallRecord(function_name="get_weather", result="Current weather in Paris: 20.0°C, Clear sky")
    ]
    assert result.structured_data["metadata"]["functions_used"] == ["get_weather"]
    follow_up = client.responses.create.calls[1]
    assert "tools" not in follow_up
    assert follow_up["input"][-2]["type"] == "function_call"
    assert follow_up["input"][-1] == {
        "type": "function_call_output",
        "call_id": "call_9",
        "output": "Current weather in Paris: 20.0°C, Clear sky",
    }
    assert handler.conversation_state.previous_response_id == "resp_final"


@pytest.mark.asyncio
async def test_web_search_output_builds_sources(openai_client, openai_handler):
    openai_client.responses.create.results.append(
        {
            "id": "resp_ws",
            "output": [
                {"type": "web_search_call", "id": "ws_1", "status": "completed", "action": {"query": "tides"}},
                message_item(
                    "Tides are high.",
                    annotations=[
                        {"type": "url_citation", "url": "https://tides.example", "title": "Tides", "start_index": 0, "end_index": 5}
                    ],
                ),
            ],
        }
    )

    result = await openai_handler.generate_text_response("latest tides", enable_web_search=True)

    assert result.content == "Tides are high."
    metadata = result.structured_data["metadata"]
    assert metadata["web_search_used"] is True
    assert metadata["sources"][0]["url"] == "https://tides.example"
    assert metadata["search_calls"][0]["query"] == "tides"
    assert result.web_search_calls[0]["id"] == "ws_1"


@pytest.mark.asyncio
async def test_file_search_output_builds_sources(openai_client, openai_handler):
    openai_client.responses.create.results.append(
        {
            "id": "resp_fs",
            "output": [
                {"type": "file_search_call", "id": "fs_1", "status": "completed", "queries": ["refund policy"]},
                message_item(
                    "Refunds take 5 days.",
                    annotations=[{"type": "file_citation", "file_id": "file_1", "filename": "policy.pdf", "index": 3}],
                ),
            ],
        }
    )

    result = await openai_handler.generate_text_response("search the files", enable_file_search=True)

    metadata = result.structured_data["metadata"]
    assert metadata["file_search_used"] is True
    assert metadata["sources"] == [{"fileId": "file_1", "filename": "policy.pdf", "index": 3}]
    assert result.file_search_calls[0]["queries"] == ["refund policy"]


@pytest.mark.asyncio
async def test_unparseable_output_falls_back_to_raw_text(openai_client, openai_handler):
    openai_client.responses.create.results.append({"id": "resp_raw", "output": [message_item("not json")]})

    result = await openai_handler.generate_text_response("hi")

    assert result.content == "not json"
    assert result.structured_data is None


@pytest.mark.asyncio
async def test_refusal_is_reported(openai_client, openai_handler):
    openai_client.responses.create.results.append(
        {"id": "resp_r", "output": [{"type": "message", "content": [{"type": "refusal", "refusal": "No."}]}]}
    )

    result = await openai_handler.generate_text_response("do something bad")

    assert result.content == "I apologize, but I cannot fulfill this request: No."


@pytest.mark.asyncio
async def test_http_errors_raise_provider_error_and_keep_state(openai_client, openai_handler):
    openai_client.responses.create.results.append(openai_status_error(429, "Rate limit reached"))

    with pytest.raises(ProviderError) as excinfo:
        await openai_handler.generate_text_response("hi")

    assert str(excinfo.value) == "OpenAI API error: 429 - Rate limit reached"
    assert openai_handler.conversation_state.previous_response_id is None
    assert len(openai_handler.conversation_state.messages) == 0


@pytest.mark.asyncio
async def test_clear_conversation_state(openai_client, openai_handler):
    openai_client.responses.create.results.append(text_response("hi", response_id="resp_x"))
    await openai_handler.generate_text_response("hello")

    openai_handler.clear_conversation_state()

    assert openai_handler.conversation_state.previous_response_id is None
    assert list(openai_handler.conversation_state.messages) == []


def test_structured_output_schema_is_strict():
    from services.openai.schemas import CHAT_RESPONSE_SCHEMA

    metadata = CHAT_RESPONSE_SCHEMA["properties"]["metadata"]
    assert set(metadata["required"]) == set(metadata["properties"])
    assert json.dumps(CHAT_RESPONSE_SCHEMA)
