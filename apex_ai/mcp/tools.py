"""MCPツールの登録。

ツールハンドラーの定義をMCPツールとしてサーバーに公開します。
"""

import logging

from mcp.server import Server
from mcp.types import TextContent, Tool

from .handlers import BaseToolHandler

logger = logging.getLogger(__name__)


class ToolExecutionError(Exception):
    """ツールがエラー結果を返したことを示す例外

    MCP SDKはcall_toolハンドラー内の例外をisError=Trueの結果に変換します。
    """
    pass


def register_tools(server: Server, handler: BaseToolHandler):
    """MCPツールをサーバーに登録します。

    Args:
        server: MCPサーバーインスタンス
        handler: ツールハンドラーインスタンス
    """

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """利用可能なツール一覧を返します。"""
        return [
            Tool(
                name=definition.name,
                description=definition.description,
                inputSchema=definition.input_schema,
            )
            for definition in handler.definitions()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        """ツール呼び出しを処理します。

        Args:
            name: ツール名
            arguments: ツール引数

        Returns:
            実行結果のテキストコンテンツリスト

        Raises:
            ToolExecutionError: ツールがエラー結果を返した場合
        """
        result = await handler.handle_tool_call(name, arguments)

        if result.is_error:
            logger.warning(f"ツール '{name}' がエラーを返しました: {result.text}")
            raise ToolExecutionError(result.text)

        return [TextContent(type="text", text=result.text)]
