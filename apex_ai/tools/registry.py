"""ツールレジストリモジュール

モデルに公開するツールの定義と、ツール呼び出しのディスパッチを管理します。
ローカルで実行するツール（天気など）と、MCPツールサーバー経由のツールの両方を扱います。
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..models.chat import ToolCall, ToolSpec

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[dict[str, Any]], Awaitable[Any]]


class ToolError(Exception):
    """ツール実行エラー"""
    pass


class ToolRegistry:
    """ツールの登録と実行を管理するクラス

    Attributes:
        tools: ツール名からToolSpecと実行関数へのマッピング
    """

    def __init__(self):
        self._tools: dict[str, tuple[ToolSpec, ToolExecutor]] = {}

    def register(self, spec: ToolSpec, executor: ToolExecutor) -> None:
        """ツールを登録する

        同名のツールが登録済みの場合は上書きします。

        Args:
            spec: ツール定義
            executor: 引数の辞書を受け取る非同期実行関数

        Raises:
            ToolError: ツール名が空、または実行関数が呼び出し可能でない場合
        """
        if not spec.name:
            raise ToolError("ツール名が指定されていません")
        if not callable(executor):
            raise ToolError(f"ツール '{spec.name}' の実行関数が呼び出し可能ではありません")
        if spec.name in self._tools:
            logger.warning(f"ツール '{spec.name}' を上書き登録します")
        self._tools[spec.name] = (spec, executor)
        logger.debug(f"ツールを登録しました: {spec.name}")

    async def register_mcp_tools(self, mcp_client) -> int:
        """MCPツールサーバーのツールを登録する

        Args:
            mcp_client: MCPToolClientインスタンス

        Returns:
            int: 登録したツール数
        """
        specs = await mcp_client.list_tools()
        for spec in specs:
            self.register(spec, self._make_mcp_executor(mcp_client, spec.name))
        logger.info(f"MCPツールを{len(specs)}件登録しました: {[s.name for s in specs]}")
        return len(specs)

    @staticmethod
    def _make_mcp_executor(mcp_client, name: str) -> ToolExecutor:
        async def execute(arguments: dict[str, Any]) -> Any:
            return await mcp_client.call_tool(name, arguments)
        return execute

    def names(self) -> list[str]:
        """登録済みツール名の一覧"""
        return list(self._tools)

    def specs(self) -> list[dict[str, Any]]:
        """OpenAI API形式のツール定義一覧を返す"""
        return [spec.to_openai_tool() for spec, _ in self._tools.values()]

    async def execute(self, tool_call: ToolCall) -> str:
        """ツール呼び出しを実行し、toolメッセージ用のコンテンツを返す

        未知のツールや実行時の失敗はチャットを中断せず、
        エラー内容をJSONで返してモデルに伝えます。

        Args:
            tool_call: 実行するツール呼び出し

        Returns:
            str: toolメッセージのコンテンツ（JSON文字列またはテキスト）
        """
        entry = self._tools.get(tool_call.name)
        if entry is None:
            logger.warning(f"未知のツールが要求されました: {tool_call.name}")
            return json.dumps(
                {"error": f"Unknown tool: {tool_call.name}"},
                ensure_ascii=False
            )

        _, executor = entry
        try:
            arguments = tool_call.parsed_arguments()
            logger.info(f"ツール呼び出し: {tool_call.name}, 引数: {arguments}")
            result = await executor(arguments)
        except Exception as e:
            logger.error(f"ツール '{tool_call.name}' の実行に失敗しました: {e}", exc_info=True)
            return json.dumps(
                {"error": f"Tool '{tool_call.name}' failed: {e}"},
                ensure_ascii=False
            )

        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
