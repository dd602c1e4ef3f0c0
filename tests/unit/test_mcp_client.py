"""MCPツールクライアントのユニットテスト

セッションをモックして、ツール一覧の変換と呼び出し結果の整形を検証します。
"""

import contextlib
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from apex_ai.mcp.client import MCPClientError, MCPToolClient
from apex_ai.utils.config import Config


def _fake_session(session):
    @contextlib.asynccontextmanager
    async def opener():
        yield session
    return opener


def _text(text):
    return SimpleNamespace(type="text", text=text)


class TestConstruction:

    def test_url(self):
        client = MCPToolClient(url="http://localhost:3001/mcp")

        assert client.transport == "streamable-http"
        assert "http://localhost:3001/mcp" in repr(client)

    def test_command(self):
        client = MCPToolClient(command="apex-mcp-math")

        assert client.transport == "stdio"

    @pytest.mark.parametrize("kwargs", [{}, {"url": "http://x/mcp", "command": "apex-mcp-math"}])
    def test_exactly_one_target(self, kwargs):
        with pytest.raises(ValueError):
            MCPToolClient(**kwargs)


class TestFromConfig:

    def test_url_takes_precedence(self, monkeypatch, empty_env_file):
        monkeypatch.setenv("MCP_SERVER_URL", "http://localhost:3001/mcp")
        monkeypatch.setenv("MCP_SERVER_COMMAND", "apex-mcp-math")

        client = MCPToolClient.from_config(Config(env_file=str(empty_env_file)))

        assert client.url == "http://localhost:3001/mcp"

    def test_command(self, monkeypatch, empty_env_file):
        monkeypatch.setenv("MCP_SERVER_COMMAND", "apex-mcp-math")

        client = MCPToolClient.from_config(Config(env_file=str(empty_env_file)))

        assert client.command == "apex-mcp-math"

    def test_disabled(self, empty_env_file):
        assert MCPToolClient.from_config(Config(env_file=str(empty_env_file))) is None


class TestListTools:

    @pytest.mark.asyncio
    async def test_converts_to_tool_specs(self):
        session = Mock()
        session.list_tools = AsyncMock(return_value=SimpleNamespace(tools=[
            SimpleNamespace(name="add", description="Add two numbers",
                            inputSchema={"type": "object", "required": ["a", "b"]}),
            SimpleNamespace(name="noop", description=None, inputSchema=None),
        ]))
        client = MCPToolClient(command="apex-mcp-math")

        with patch.object(client, "_session", _fake_session(session)):
            specs = await client.list_tools()

        assert specs[0].name == "add"
        assert specs[0].parameters["required"] == ["a", "b"]
        assert specs[1].description == ""
        assert specs[1].parameters == {"type": "object", "properties": {}}

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        client = MCPToolClient(url="http://localhost:1/mcp")

        @contextlib.asynccontextmanager
        async def failing():
            raise ConnectionError("refused")
            yield

        with patch.object(client, "_session", failing):
            with pytest.raises(MCPClientError, match="refused"):
                await client.list_tools()


class TestCallTool:

    @pytest.mark.asyncio
    async def test_joins_text_content(self):
        session = Mock()
        session.call_tool = AsyncMock(return_value=SimpleNamespace(
            isError=False,
            content=[_text("line 1"), SimpleNamespace(type="image"), _text("line 2")],
        ))
        client = MCPToolClient(command="apex-mcp-math")

        with patch.object(client, "_session", _fake_session(session)):
            result = await client.call_tool("add", {"a": 1, "b": 2})

        assert result == "line 1\nline 2"
        session.call_tool.assert_awaited_once_with("add", {"a": 1, "b": 2})

    @pytest.mark.asyncio
    async def test_error_result_is_wrapped_in_json(self):
        """isErrorの結果はerrorキーのJSONになる"""
        session = Mock()
        session.call_tool = AsyncMock(return_value=SimpleNamespace(
            isError=True, content=[_text("Insufficient Stock")],
        ))
        client = MCPToolClient(url="http://localhost:3001/mcp")

        with patch.object(client, "_session", _fake_session(session)):
            result = await client.call_tool("create_order", {})

        assert json.loads(result) == {"error": "Insufficient Stock"}

    @pytest.mark.asyncio
    async def test_session_failure(self):
        session = Mock()
        session.call_tool = AsyncMock(side_effect=RuntimeError("closed"))
        client = MCPToolClient(command="apex-mcp-math")

        with patch.object(client, "_session", _fake_session(session)):
            with pytest.raises(MCPClientError, match="closed"):
                await client.call_tool("add", {})
