"""チャットサービス

ツール呼び出しを含むチャットの往復処理、推論モデルのストリーミング、
レシピ検索付きの回答生成を提供します。
CLIとWeb APIで共通利用されます。

各メソッドはストリーム開始前の処理（ツール判定・検索・最初の断片の取得）を
完了してから非同期イテレータを返すため、呼び出し側はレスポンス送信前にエラーを検出できます。
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Optional

from ..llm.client import LLMClient, LLMClientError
from ..llm.dsml import parse_dsml_tool_calls
from ..llm.reasoner import ReasonerClient
from ..models.chat import ChatMessage
from ..tools import create_default_registry
from ..tools.registry import ToolRegistry
from ..utils.config import Config, get_config
from .recipe_service import RecipeService, RecipeServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant. You have access to a weather tool that provides "
    "current weather and a 7-day forecast. If the user asks for weather for a specific "
    "day (e.g., today, tomorrow, or a date within the next week), call `get_weather` "
    "for that city. Then, use the returned 7-day forecast data to find and report the "
    "weather for the specific day requested."
)


class ChatServiceError(Exception):
    """チャットサービスのエラー"""
    pass


def normalize_messages(messages: list[ChatMessage | dict[str, Any]]) -> list[ChatMessage]:
    """辞書形式のメッセージをChatMessageに変換する

    Raises:
        ChatServiceError: メッセージの形式が不正な場合
    """
    try:
        return [m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m) for m in messages]
    except (ValueError, KeyError, TypeError) as e:
        raise ChatServiceError(f"メッセージの形式が不正です: {e}") from e


async def _prime(stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """最初の断片を先に取得し、その断片から再生するイテレータを返す"""
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        return _replay(None, stream)
    return _replay(first, stream)


async def _replay(first: Optional[str], rest: AsyncIterator[str]) -> AsyncIterator[str]:
    if first is not None:
        yield first
    async for piece in rest:
        yield piece


class ChatService:
    """チャットサービスクラス

    Attributes:
        config: アプリケーション設定
        llm: ツール判定と最終回答に使用するLLMクライアント
        reasoner: 推論モデルクライアント
        registry: モデルに公開するツール
        recipe_service: レシピ検索サービス
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        llm: Optional[LLMClient] = None,
        reasoner: Optional[ReasonerClient] = None,
        registry: Optional[ToolRegistry] = None,
        recipe_service: Optional[RecipeService] = None
    ):
        """初期化

        Args:
            config: アプリケーション設定（省略時はデフォルト設定を使用）
            llm: LLMクライアント（省略時は設定から作成）
            reasoner: 推論モデルクライアント（省略時は設定から作成）
            registry: ツールレジストリ（省略時は天気ツールのみ）
            recipe_service: レシピ検索サービス（省略時は設定から作成）
        """
        self.config = config or get_config()
        self.llm = llm or LLMClient(self.config)
        self.reasoner = reasoner or ReasonerClient(self.config)
        self.registry = registry if registry is not None else create_default_registry()
        self.recipe_service = recipe_service or RecipeService(
            self.config, reasoner=self.reasoner
        )

    async def respond(self, messages: list[ChatMessage | dict[str, Any]]) -> AsyncIterator[str]:
        """ツール呼び出しを含むチャットの往復処理

        1回目の非ストリーミング呼び出しでツール呼び出しを判定し、
        ツールを実行した場合は2回目の呼び出しをストリーミングします。
        ツール呼び出しが無い場合は1回目の応答をタイプライター風に分割して返します。

        Args:
            messages: 会話履歴（systemプロンプトは自動で先頭に追加）

        Returns:
            応答テキストの断片を返す非同期イテレータ

        Raises:
            ChatServiceError: ストリーム開始前に失敗した場合
        """
        conversation = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            *normalize_messages(messages),
        ]

        try:
            response = await self.llm.complete(
                conversation,
                tools=self.registry.specs() or None,
                tool_choice="auto",
            )

            tool_calls = response.tool_calls
            is_dsml = False
            if not tool_calls:
                tool_calls = parse_dsml_tool_calls(response.content)
                is_dsml = bool(tool_calls)

            if not tool_calls:
                return self._typewriter(response.content or "")

            if is_dsml:
                # DSMLの生テキストはtool_callsを持たない通常のassistantメッセージとして扱う
                conversation.append(ChatMessage(role="assistant", content=response.content))
            else:
                conversation.append(response.to_chat_message())

            for tool_call in tool_calls:
                result = await self.registry.execute(tool_call)
                conversation.append(ChatMessage(
                    role="tool",
                    tool_call_id=tool_call.id,
                    content=result,
                ))

            return await self.llm.open_stream(conversation)
        except LLMClientError as e:
            raise ChatServiceError(f"チャット応答の取得に失敗しました: {e}") from e

    async def _typewriter(self, content: str) -> AsyncIterator[str]:
        """完成済みのテキストを一定文字数ずつ遅延を挟んで返す"""
        size = self.config.stream_chunk_size
        for start in range(0, len(content), size):
            yield content[start:start + size]
            await asyncio.sleep(self.config.stream_chunk_delay)

    async def stream_reasoning(
        self,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> AsyncIterator[str]:
        """推論モデルの応答を<think>タグ付きでストリーミングする

        Raises:
            ChatServiceError: ストリーム開始前に失敗した場合
        """
        conversation = normalize_messages(messages)
        try:
            return await _prime(self.reasoner.stream_with_reasoning(conversation))
        except Exception as e:
            raise ChatServiceError(f"推論モデルの呼び出しに失敗しました: {e}") from e

    async def respond_recipe(
        self,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> AsyncIterator[str]:
        """レシピ検索の結果をコンテキストとして回答をストリーミングする

        レシピが見つからない場合はコンテキスト無しで回答します。

        Raises:
            ChatServiceError: ストリーム開始前に失敗した場合
        """
        conversation = normalize_messages(messages)
        try:
            augmented = await self.recipe_service.answer_messages(conversation)
        except RecipeServiceError as e:
            raise ChatServiceError(str(e)) from e
        return await self.stream_reasoning(augmented)

    async def stream(
        self,
        mode: str,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> AsyncIterator[str]:
        """モード名（chat / langchain / recipe）で応答方法を選択する

        Raises:
            ChatServiceError: 未知のモード、またはストリーム開始前に失敗した場合
        """
        if mode == "chat":
            return await self.respond(messages)
        if mode == "langchain":
            return await self.stream_reasoning(messages)
        if mode == "recipe":
            return await self.respond_recipe(messages)
        raise ChatServiceError(f"未知のモードです: {mode}")
