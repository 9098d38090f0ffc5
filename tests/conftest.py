import pytest

from models.ai_config import ClaudeConfig, OpenAIConfig
from services.anthropic.claude_handler import ClaudeHandler
from services.openai.openai_handler import OpenAIHandler
from tests._fakes import FakeAnthropicClient, FakeOpenAIClient


@pytest.fixture
def openai_client():
    return FakeOpenAIClient()


@pytest.fixture
def anthropic_client():
    return FakeAnthropicClient()


@pytest.fixture
def openai_handler(openai_client):
    return OpenAIHandler(openai_client, OpenAIConfig(vector_store_ids=["vs_docs"]))


@pytest.fixture
def claude_handler(anthropic_client):
    return ClaudeHandler(anthropic_client, ClaudeConfig())
