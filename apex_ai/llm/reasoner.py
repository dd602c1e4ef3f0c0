"""推論モデルクライアントモジュール

LangChainのChatDeepSeekを使用して推論モデル（deepseek-reasoner）を呼び出します。
推論過程（reasoning_content）を<think>タグで囲んでストリーミングします。
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_deepseek import ChatDeepSeek

from ..models.chat import ChatMessage
from ..utils.config import Config, get_config
from .client import LLMClientError

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>\n"
THINK_CLOSE = "\n</think>\n"


def to_langchain_messages(messages: list[ChatMessage | dict[str, Any]]) -> list[BaseMessage]:
    """メッセージをLangChainのメッセージオブジェクトに変換する

    user→HumanMessage, assistant→AIMessage, system→SystemMessage、
    それ以外のロールはHumanMessageとして扱います。
    """
    converted: list[BaseMessage] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            role, content = message.role, message.content or ""
        else:
            role, content = message.get("role"), message.get("content") or ""

        if role == "user":
            converted.append(HumanMessage(content))
        elif role in ("assistant", "ai"):
            converted.append(AIMessage(content))
        elif role == "system":
            converted.append(SystemMessage(content))
        else:
            converted.append(HumanMessage(content))
    return converted


class ReasonerClient:
    """推論モデルのクライアント

    ChatDeepSeekはAPIキーが無いと生成時に例外を送出するため、
    モデルは初回使用時に生成します。

    Attributes:
        config: アプリケーション設定
        model_name: 使用する推論モデル名
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        model_name: Optional[str] = None,
        chat_model: Optional[Any] = None
    ):
        """初期化

        Args:
            config: アプリケーション設定（省略時はデフォルト設定を使用）
            model_name: 推論モデル名（省略時は設定ファイルの値を使用）
            chat_model: 注入するLangChainチャットモデル（テスト用）
        """
        self.config = config or get_config()
        self.model_name = model_name or self.config.llm_reasoner_model
        self._chat_model = chat_model

    @property
    def chat_model(self):
        """LangChainのチャットモデルを取得（初回アクセス時に生成）

        Raises:
            LLMClientError: モデルの初期化に失敗した場合
        """
        if self._chat_model is None:
            try:
                self._chat_model = ChatDeepSeek(
                    model=self.model_name,
                    api_key=self.config.deepseek_api_key,
                    api_base=self.config.llm_base_url,
                    temperature=0,
                )
                logger.info(f"推論モデルを初期化しました: {self.model_name}")
            except Exception as e:
                raise LLMClientError(
                    f"推論モデルの初期化に失敗しました: {e}\n"
                    f"DEEPSEEK_API_KEYが設定されているか確認してください。"
                ) from e
        return self._chat_model

    async def stream_with_reasoning(
        self,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> AsyncIterator[str]:
        """推論過程を<think>タグで囲んでストリーミングする

        推論テキストの最初の断片の前に"<think>\\n"を出力し、
        最初の本文断片の前に一度だけ"\\n</think>\\n"を出力します。
        推論のみで終了した場合も閉じタグを出力します。

        Args:
            messages: 送信するメッセージ

        Yields:
            str: クライアントに送信するテキスト断片
        """
        lc_messages = to_langchain_messages(messages)

        has_started_thinking = False
        has_finished_thinking = False

        async for chunk in self.chat_model.astream(lc_messages):
            content = chunk.content
            reasoning = (chunk.additional_kwargs or {}).get("reasoning_content")

            if reasoning:
                if not has_started_thinking:
                    yield THINK_OPEN
                    has_started_thinking = True
                yield str(reasoning)

            if has_started_thinking and not has_finished_thinking and content:
                yield THINK_CLOSE
                has_finished_thinking = True

            if content:
                if isinstance(content, str):
                    yield content
                else:
                    # マルチモーダルなど文字列以外のコンテンツ
                    yield json.dumps(content, ensure_ascii=False)

        if has_started_thinking and not has_finished_thinking:
            yield THINK_CLOSE

    async def invoke_text(self, prompt: str) -> str:
        """単発のプロンプトを送信してテキスト応答を取得する

        Args:
            prompt: ユーザーメッセージとして送信するプロンプト

        Returns:
            str: 応答テキスト（文字列以外の応答の場合は空文字）

        Raises:
            LLMClientError: 呼び出しに失敗した場合
        """
        try:
            response = await self.chat_model.ainvoke([HumanMessage(prompt)])
        except LLMClientError:
            raise
        except Exception as e:
            raise LLMClientError(f"推論モデルの呼び出しに失敗しました: {e}") from e

        return response.content if isinstance(response.content, str) else ""
