"""LLMエンドポイントクライアントモジュール

OpenAI互換のホスト型LLMエンドポイント（DeepSeek）へのアクセスを提供します。
ツール判定用の非ストリーミング呼び出しと、最終回答用のストリーミング呼び出しに対応します。
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI

from ..models.chat import ChatMessage, ToolCall
from ..utils.config import Config, get_config

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    """LLMエンドポイント呼び出しエラー"""
    pass


@dataclass
class CompletionMessage:
    """非ストリーミング呼び出しで返されたassistantメッセージ

    Attributes:
        content: 応答本文
        tool_calls: 標準形式のツール呼び出し
    """
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_chat_message(self) -> ChatMessage:
        """会話履歴に追加するためのChatMessageに変換する"""
        return ChatMessage(
            role="assistant",
            content=self.content,
            tool_calls=self.tool_calls or None,
        )


def _to_payload(messages: list[ChatMessage | dict[str, Any]]) -> list[dict[str, Any]]:
    """メッセージをAPI送信用の辞書リストに変換する"""
    return [m.to_dict() if isinstance(m, ChatMessage) else m for m in messages]


class LLMClient:
    """OpenAI互換LLMエンドポイントのクライアント

    Attributes:
        config: アプリケーション設定
        model: 使用するチャットモデル名
        client: OpenAI SDKの非同期クライアント
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        """初期化

        Args:
            config: アプリケーション設定（省略時はデフォルト設定を使用）
            model: チャットモデル名（省略時は設定ファイルの値を使用）
            client: 注入するAsyncOpenAIクライアント（テスト用）
        """
        self.config = config or get_config()
        self.model = model or self.config.llm_chat_model
        self.client = client or AsyncOpenAI(
            base_url=self.config.llm_base_url,
            api_key=self.config.deepseek_api_key,
        )

    async def complete(
        self,
        messages: list[ChatMessage | dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
        tool_choice: str = "auto"
    ) -> CompletionMessage:
        """非ストリーミングでチャット補完を実行

        Args:
            messages: 送信するメッセージ
            tools: OpenAI形式のツール定義（省略時はツールなし）
            tool_choice: ツール選択方針

        Returns:
            CompletionMessage: 応答メッセージ

        Raises:
            LLMClientError: 呼び出しに失敗した場合
        """
        params: dict[str, Any] = {
            "model": self.model,
            "messages": _to_payload(messages),
            "stream": False,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = tool_choice

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            raise LLMClientError(f"チャット補完の呼び出しに失敗しました: {e}") from e

        if not response.choices:
            raise LLMClientError("LLMエンドポイントが空の応答を返しました")

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=call.function.arguments or "{}",
            )
            for call in (message.tool_calls or [])
            if getattr(call, "function", None) is not None
        ]

        logger.debug(
            f"チャット補完が完了しました（ツール呼び出し: {len(tool_calls)}件）"
        )
        return CompletionMessage(content=message.content, tool_calls=tool_calls)

    async def open_stream(
        self,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> AsyncIterator[str]:
        """ストリーミング呼び出しを開始し、テキスト差分のイテレータを返す

        接続エラーはこのメソッドの呼び出し時点で送出されるため、
        レスポンス送信開始前にエラーを検出できます。

        Args:
            messages: 送信するメッセージ

        Returns:
            空でないテキスト差分を順に返す非同期イテレータ

        Raises:
            LLMClientError: ストリームの開始に失敗した場合
        """
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=_to_payload(messages),
                stream=True,
            )
        except Exception as e:
            raise LLMClientError(f"ストリーミング呼び出しに失敗しました: {e}") from e

        return self._iter_deltas(stream)

    @staticmethod
    async def _iter_deltas(stream) -> AsyncIterator[str]:
        """ストリームのチャンクからテキスト差分を取り出す"""
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

    def __repr__(self) -> str:
        return f"LLMClient(model='{self.model}', base_url='{self.config.llm_base_url}')"
