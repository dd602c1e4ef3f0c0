"""LLMクライアントのユニットテスト

AsyncOpenAIクライアントをモックして、外部APIを呼び出さずに検証します。
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from apex_ai.llm.client import CompletionMessage, LLMClient, LLMClientError
from apex_ai.models.chat import ChatMessage, ToolCall


def _completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def _async_iter(items):
    for item in items:
        yield item


@pytest.fixture
def openai_client():
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def llm(sample_config, openai_client):
    return LLMClient(sample_config, client=openai_client)


class TestComplete:
    """complete() のテスト"""

    @pytest.mark.asyncio
    async def test_complete_with_tools(self, llm, openai_client):
        """ツール付きの非ストリーミング呼び出し"""
        openai_client.chat.completions.create.return_value = _completion(
            tool_calls=[_tool_call("call_1", "get_weather", '{"city": "Beijing"}')]
        )
        tools = [{"type": "function", "function": {"name": "get_weather"}}]

        result = await llm.complete([ChatMessage(role="user", content="天气")], tools=tools)

        assert result.content is None
        assert result.tool_calls == [
            ToolCall(id="call_1", name="get_weather", arguments='{"city": "Beijing"}')
        ]
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "deepseek-chat"
        assert kwargs["stream"] is False
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["messages"] == [{"role": "user", "content": "天气"}]

    @pytest.mark.asyncio
    async def test_complete_without_tools(self, llm, openai_client):
        """ツール無しの場合はtoolsを送信しない"""
        openai_client.chat.completions.create.return_value = _completion(content="Hello")

        result = await llm.complete([{"role": "user", "content": "hi"}])

        assert result.content == "Hello"
        assert result.tool_calls == []
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_empty_arguments_default_to_empty_object(self, llm, openai_client):
        openai_client.chat.completions.create.return_value = _completion(
            tool_calls=[_tool_call("call_1", "list", None)]
        )

        result = await llm.complete([{"role": "user", "content": "hi"}])

        assert result.tool_calls[0].arguments == "{}"

    @pytest.mark.asyncio
    async def test_api_error(self, llm, openai_client):
        """API呼び出しの失敗はLLMClientError"""
        openai_client.chat.completions.create.side_effect = RuntimeError("boom")

        with pytest.raises(LLMClientError, match="boom"):
            await llm.complete([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_empty_choices(self, llm, openai_client):
        openai_client.chat.completions.create.return_value = SimpleNamespace(choices=[])

        with pytest.raises(LLMClientError):
            await llm.complete([{"role": "user", "content": "hi"}])


class TestOpenStream:
    """open_stream() のテスト"""

    @pytest.mark.asyncio
    async def test_yields_non_empty_deltas(self, llm, openai_client):
        openai_client.chat.completions.create.return_value = _async_iter([
            _chunk("Hel"),
            _chunk(None),
            _chunk(""),
            SimpleNamespace(choices=[]),
            _chunk("lo"),
        ])

        stream = await llm.open_stream([{"role": "user", "content": "hi"}])
        pieces = [piece async for piece in stream]

        assert pieces == ["Hel", "lo"]
        assert openai_client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_connection_error_is_raised_before_iteration(self, llm, openai_client):
        """ストリーム開始時のエラーはイテレーション前に送出される"""
        openai_client.chat.completions.create.side_effect = ConnectionError("refused")

        with pytest.raises(LLMClientError, match="refused"):
            await llm.open_stream([{"role": "user", "content": "hi"}])


class TestCompletionMessage:

    def test_to_chat_message(self):
        call = ToolCall(id="call_1", name="add", arguments='{"a": 1, "b": 2}')
        message = CompletionMessage(content=None, tool_calls=[call]).to_chat_message()

        assert message.role == "assistant"
        assert message.to_dict()["tool_calls"][0]["id"] == "call_1"

    def test_to_chat_message_without_tool_calls(self):
        message = CompletionMessage(content="hi").to_chat_message()

        assert message.tool_calls is None
