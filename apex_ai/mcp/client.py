"""MCPツールクライアント。

stdioで起動する子プロセス、またはStreamable HTTPのツールサーバーに接続し、
ツール一覧の取得とツール呼び出しを行います。
呼び出しごとにセッションを開いて閉じます。
"""

import contextlib
import json
import logging
import shlex
from collections.abc import AsyncIterator
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from ..models.chat import ToolSpec
from ..utils.config import Config

logger = logging.getLogger(__name__)


class MCPClientError(Exception):
    """MCPツールサーバーとの通信エラー"""
    pass


class MCPToolClient:
    """MCPツールサーバーのクライアント

    url と command のどちらか一方を指定します。

    Attributes:
        url: Streamable HTTPエンドポイントのURL
        command: stdioで起動するサーバーのコマンドライン
    """

    def __init__(self, url: Optional[str] = None, command: Optional[str] = None):
        """初期化

        Args:
            url: Streamable HTTPエンドポイントのURL（例: http://localhost:3001/mcp）
            command: stdioサーバーのコマンドライン（例: "apex-mcp-math"）

        Raises:
            ValueError: urlとcommandの指定が不正な場合
        """
        if bool(url) == bool(command):
            raise ValueError("Specify exactly one of url or command")
        self.url = url
        self.command = command

    @classmethod
    def from_config(cls, config: Config) -> Optional["MCPToolClient"]:
        """設定からクライアントを作成（MCPが無効な場合はNone）

        MCP_SERVER_URLが設定されていればHTTP、
        そうでなくMCP_SERVER_COMMANDが設定されていればstdioを使用します。
        """
        if config.mcp_server_url:
            return cls(url=config.mcp_server_url)
        if config.mcp_server_command:
            return cls(command=config.mcp_server_command)
        return None

    @property
    def transport(self) -> str:
        return "streamable-http" if self.url else "stdio"

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[ClientSession]:
        """初期化済みのMCPセッションを開く"""
        if self.url:
            async with streamablehttp_client(self.url) as (read_stream, write_stream, _):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session
        else:
            args = shlex.split(self.command)
            params = StdioServerParameters(command=args[0], args=args[1:])
            async with stdio_client(params) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

    async def list_tools(self) -> list[ToolSpec]:
        """ツールサーバーのツール一覧を取得

        Returns:
            list[ToolSpec]: ツール定義のリスト

        Raises:
            MCPClientError: 通信に失敗した場合
        """
        try:
            async with self._session() as session:
                result = await session.list_tools()
        except Exception as e:
            raise MCPClientError(f"MCPツール一覧の取得に失敗しました ({self}): {e}") from e

        return [
            ToolSpec(
                name=tool.name,
                description=tool.description or "",
                parameters=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """ツールを呼び出し、テキストコンテンツを連結して返す

        ツールがisErrorを返した場合は {"error": テキスト} のJSONを返します。

        Args:
            name: ツール名
            arguments: ツール引数

        Returns:
            str: ツールの結果テキスト

        Raises:
            MCPClientError: 通信に失敗した場合
        """
        logger.info(f"MCPツールを呼び出し中: {name} ({self.transport})")
        try:
            async with self._session() as session:
                result = await session.call_tool(name, arguments)
        except Exception as e:
            raise MCPClientError(f"MCPツール '{name}' の呼び出しに失敗しました: {e}") from e

        text = "\n".join(
            item.text for item in result.content if getattr(item, "type", None) == "text"
        )

        if result.isError:
            logger.warning(f"MCPツール '{name}' がエラーを返しました: {text}")
            return json.dumps({"error": text}, ensure_ascii=False)
        return text

    def __repr__(self) -> str:
        target = self.url or self.command
        return f"MCPToolClient(transport='{self.transport}', target='{target}')"
