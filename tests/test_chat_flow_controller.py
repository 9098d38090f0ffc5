import asyncio
from types import SimpleNamespace

import pytest

from models.ai_config import OpenAIConfig
from models.chat_models import ConversationTurn
from services.anthropic.claude_handler import ClaudeHandler
from services.chat.chat_flow_controller import APOLOGY_MESSAGE, ChatFlowController, decode_reference
from services.openai.openai_handler import OpenAIHandler
from services.openai.premium_image import PremiumImageService
from tests._fakes import (
    FakeAnthropicClient,
    FakeOpenAIClient,
    anthropic_status_error,
    claude_message,
    image_call_response,
    images_api_response,
    openai_status_error,
    text_response,
)

NEW_REFERENCE = "data:image/jpeg;base64,TkVX"
OLD_REFERENCE = "data:image/png;base64,T0xE"


def make_controller(openai_client, anthropic_client, premium=True, deadline=None):
    return ChatFlowController(
        claude=ClaudeHandler(anthropic_client),
        openai=OpenAIHandler(openai_client, OpenAIConfig()),
        premium_images=PremiumImageService(openai_client) if premium else None,
        deadline_seconds=deadline,
    )


def sent_image_url(openai_client):
    content = openai_client.responses.create.calls[0]["input"][0]["content"]
    return content[1]["image_url"], content[0]["text"]


@pytest.mark.asyncio
async def test_plain_question_returns_text_without_image():
    openai_client = FakeOpenAIClient([text_response("Try 'Bean There'.")])
    anthropic_client = FakeAnthropicClient([claude_message("Suggest creative coffee shop names")])
    controller = make_controller(openai_client, anthropic_client)

    envelope = await controller.process_message("What's a good name for a coffee shop?")

    assert envelope.type == "text"
    assert envelope.content == "Try 'Bean There'."
    assert envelope.enhanced_prompt == "Suggest creative coffee shop names"
    assert "imageUrl" not in envelope.to_dict()
    request = openai_client.responses.create.calls[0]
    assert request["input"][1]["content"] == "Suggest creative coffee shop names"
    assert [turn.role for turn in controller.get_history()] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_general_instructions_include_only_needed_sections():
    openai_client = FakeOpenAIClient([text_response("Sunny.")])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("weather in Paris")]))

    envelope = await controller.process_message("What's the weather in Paris today?")

    instructions = openai_client.responses.create.calls[0]["input"][0]["content"]
    assert "# Function Calling" in instructions
    assert "# Web Search" in instructions
    assert "# File Search" not in instructions
    assert envelope.structured_data["confidence"] == 0.8
    assert envelope.usage["total_tokens"] == 15


@pytest.mark.asyncio
async def test_image_request_without_reference():
    openai_client = FakeOpenAIClient([image_call_response(result="YmlrZQ==")])
    anthropic_client = FakeAnthropicClient([claude_message("Here is your red bicycle!")])
    controller = make_controller(openai_client, anthropic_client)

    envelope = await controller.process_message("generate an image of a red bicycle")

    assert envelope.type == "image"
    assert envelope.image_url == "YmlrZQ=="
    assert envelope.content == "Here is your red bicycle!"
    assert envelope.enhanced_prompt == "a red bicycle"
    assert openai_client.responses.create.calls[0]["input"] == "a red bicycle"
    ack_call = anthropic_client.messages.create.calls[0]
    assert 'The user requested: "generate an image of a red bicycle"' in ack_call["system"]
    assert controller.get_history()[-1] == ConversationTurn("assistant", "Here is your red bicycle! [Image generated]")


@pytest.mark.asyncio
async def test_lifestyle_prefers_supplied_reference_over_history():
    openai_client = FakeOpenAIClient([image_call_response()])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Done!")]))
    history = [
        {"role": "user", "content": "here is my product"},
        {"role": "assistant", "content": f"Nice product [Image: {OLD_REFERENCE}]"},
    ]

    envelope = await controller.process_message(
        "now i need one with a woman holding it",
        reference_image_url=NEW_REFERENCE,
        conversation_history=history,
    )

    assert envelope.type == "image"
    image_url, prompt = sent_image_url(openai_client)
    assert image_url == NEW_REFERENCE
    assert prompt.startswith("Professional lifestyle photography of a friendly young woman holding")
    assert controller.get_reference_images()[-1].url == NEW_REFERENCE


@pytest.mark.asyncio
async def test_lifestyle_uses_most_recent_history_image():
    openai_client = FakeOpenAIClient([image_call_response()])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Done!")]))
    history = [
        {"role": "user", "content": f"old one [Image: {OLD_REFERENCE}]"},
        {"role": "user", "content": 'newer <img src="data:image/png;base64,TkVXRVI=">'},
    ]

    await controller.process_message("make one with someone using it", conversation_history=history)

    image_url, prompt = sent_image_url(openai_client)
    assert image_url == "data:image/png;base64,TkVXRVI="
    assert "person holding the exact same back stretcher device" in prompt


@pytest.mark.asyncio
async def test_lifestyle_without_reference_uses_premium_model():
    openai_client = FakeOpenAIClient(images=[images_api_response("cHJlbWl1bQ==")])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Lovely!")]))

    envelope = await controller.process_message("lifestyle product shot please")

    assert envelope.image_url == "cHJlbWl1bQ=="
    assert envelope.structured_data["image_id"] == "dall-e-3-generated"
    call = openai_client.images.generate.calls[0]
    assert call["model"] == "dall-e-3"
    assert call["quality"] == "hd"
    assert "NOT a U-shaped neck massager" in call["prompt"]
    assert openai_client.responses.create.calls == []


@pytest.mark.asyncio
async def test_lifestyle_premium_failure_falls_back_to_handler():
    openai_client = FakeOpenAIClient([image_call_response(result="ZmFsbGJhY2s=")], images=[openai_status_error(500)])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Here you go")]))

    envelope = await controller.process_message("product image with a woman")

    assert envelope.image_url == "ZmFsbGJhY2s="
    tool = openai_client.responses.create.calls[0]["tools"][0]
    assert tool["quality"] == "high"
    assert tool["moderation"] == "low"


@pytest.mark.asyncio
async def test_lifestyle_with_remote_reference_uses_text_only_generation():
    openai_client = FakeOpenAIClient([image_call_response()])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Here")]))

    await controller.process_message("need one with a woman", reference_image_url="https://cdn.example/p.png")

    request = openai_client.responses.create.calls[0]
    assert isinstance(request["input"], str)
    assert request["input"].startswith("Professional lifestyle photography")
    assert openai_client.images.generate.calls == []


@pytest.mark.asyncio
async def test_non_lifestyle_image_with_reference_uses_image_to_image():
    openai_client = FakeOpenAIClient([image_call_response()])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("Here")]))

    await controller.process_message("draw a watercolor version", reference_image_url="UkFX")

    image_url, prompt = sent_image_url(openai_client)
    assert image_url == "data:image/png;base64,UkFX"
    assert prompt.startswith("watercolor version. ")


def test_decode_reference_variants():
    assert decode_reference("data:image/webp;base64,QUJD").mime_type == "image/webp"
    assert decode_reference("data:image/webp;base64,QUJD").data == "QUJD"
    assert decode_reference("https://example.com/a.png") is None
    assert decode_reference("QUJD").data == "QUJD"


@pytest.mark.asyncio
async def test_creative_request_uses_recent_history():
    anthropic_client = FakeAnthropicClient([claude_message("Roses are red")])
    controller = make_controller(FakeOpenAIClient(), anthropic_client)
    history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"} for i in range(14)]

    envelope = await controller.process_message("Write a poem about the sea", conversation_history=history)

    assert envelope.to_dict() == {"type": "text", "content": "Roses are red"}
    sent = anthropic_client.messages.create.calls[0]["messages"]
    assert len(sent) == 10
    assert sent[-1] == {"role": "user", "content": "Write a poem about the sea"}


@pytest.mark.asyncio
async def test_creative_provider_failure_returns_apology():
    anthropic_client = FakeAnthropicClient([anthropic_status_error(500)])
    controller = make_controller(FakeOpenAIClient(), anthropic_client)

    envelope = await controller.process_message("Write a poem about the sea")

    assert envelope.type == "text"
    assert envelope.content == APOLOGY_MESSAGE
    assert controller.get_history()[-1].role == "user"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message, reference",
    [
        ("", None),
        (None, None),
        ("generate an image of a cat", "data:image/png;base64,"),
        ("hello there", "https://example.com/x.png"),
        ("Compose a song", None),
    ],
)
async def test_process_message_never_raises(message, reference):
    openai_client = FakeOpenAIClient()
    openai_client.responses.create.default = openai_status_error(503)
    openai_client.images.generate.default = RuntimeError("images down")
    anthropic_client = FakeAnthropicClient(default=RuntimeError("claude down"))
    controller = make_controller(openai_client, anthropic_client)

    envelope = await controller.process_message(message, reference_image_url=reference)

    assert envelope.type == "text"
    assert envelope.content == APOLOGY_MESSAGE


@pytest.mark.asyncio
async def test_deadline_exceeded_returns_apology():
    class SlowMessages:
        async def create(self, **kwargs):
            await asyncio.sleep(5)

    controller = make_controller(FakeOpenAIClient(), SimpleNamespace(messages=SlowMessages()), deadline=0.05)

    envelope = await controller.process_message("Write a story")

    assert envelope.content == APOLOGY_MESSAGE


@pytest.mark.asyncio
async def test_clear_history_resets_everything():
    openai_client = FakeOpenAIClient([text_response("hi", response_id="resp_1")])
    controller = make_controller(openai_client, FakeAnthropicClient([claude_message("hi")]))
    await controller.process_message("hello friend", reference_image_url="https://example.com/x.png")

    controller.clear_history()

    assert controller.get_history() == []
    assert controller.get_reference_images() == []
    assert controller.openai.conversation_state.previous_response_id is None


@pytest.mark.asyncio
async def test_history_accessors_return_copies():
    controller = make_controller(FakeOpenAIClient(), FakeAnthropicClient([claude_message("ok")]))
    await controller.process_message("Write a haiku")

    controller.get_history().clear()
    controller.get_reference_images().append(None)

    assert len(controller.get_history()) == 2
    assert controller.get_reference_images() == []


def test_requires_handlers():
    with pytest.raises(ValueError):
        ChatFlowController(None, None)
