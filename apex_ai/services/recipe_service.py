"""レシピ検索サービス（RAG）

ユーザーの発言から菜名を抽出し、レシピコレクションを類似検索して
回答生成用のコンテキストを組み立てます。
"""

import asyncio
import logging
from typing import Any, Optional

from ..llm.client import LLMClientError
from ..llm.reasoner import ReasonerClient
from ..models.chat import ChatMessage
from ..rag.embeddings import EmbeddingError, ZhipuEmbeddings
from ..rag.vector_store import ChromaVectorStore, VectorStoreError
from ..utils.config import Config, get_config

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = "从这句话中提取菜名，只返回菜名，不要其他文字："
RECIPE_CONTEXT_PROMPT = (
    "以下是从菜谱库中检索到的菜谱，请根据菜谱内容回答用户的问题：\n\n{recipe}"
)
SEARCH_RESULTS = 5
STRIP_CHARS = "'\"《》"


class RecipeServiceError(Exception):
    """レシピサービスのエラー"""
    pass


class RecipeService:
    """レシピ検索サービスクラス

    Attributes:
        config: アプリケーション設定
        reasoner: 菜名抽出に使用する推論モデル
        embeddings: クエリの埋め込み生成器
        vector_store: ChromaDBベクトルストア
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        reasoner: Optional[ReasonerClient] = None,
        embeddings: Optional[ZhipuEmbeddings] = None,
        vector_store: Optional[ChromaVectorStore] = None
    ):
        self.config = config or get_config()
        self.reasoner = reasoner or ReasonerClient(self.config)
        self.embeddings = embeddings or ZhipuEmbeddings(self.config)
        self.vector_store = vector_store or ChromaVectorStore(self.config)

    async def extract_dish_name(self, content: str) -> str:
        """発言から菜名を抽出する

        Args:
            content: ユーザーの発言

        Returns:
            str: 菜名（引用符と書名号は除去）

        Raises:
            RecipeServiceError: モデルの呼び出しに失敗した場合
        """
        try:
            reply = await self.reasoner.invoke_text(f"{EXTRACTION_PROMPT}{content}")
        except LLMClientError as e:
            raise RecipeServiceError(f"菜名の抽出に失敗しました: {e}") from e

        dish_name = reply.strip()
        for char in STRIP_CHARS:
            dish_name = dish_name.replace(char, "")
        return dish_name

    def search_recipe(self, dish_name: str) -> Optional[str]:
        """菜名でレシピを検索する

        上位5件のうち、relativePathに菜名を含む最初の結果を優先します。
        該当が無い場合は最上位の結果を返します。

        Args:
            dish_name: 菜名

        Returns:
            レシピ本文（見つからない場合やエラー時はNone）
        """
        logger.info(f"Searching for recipe: {dish_name}")
        try:
            query_embedding = self.embeddings.embed_query(dish_name)
            results = self.vector_store.query(
                self.config.recipe_collection,
                [query_embedding],
                n_results=SEARCH_RESULTS,
            )
        except (EmbeddingError, VectorStoreError) as e:
            logger.error(f"Error searching recipe in Chroma: {e}")
            return None

        documents = results["documents"][0] if results["documents"] else []
        if not documents:
            return None
        metadatas = results["metadatas"][0] if results["metadatas"] else []

        best_index = 0
        if dish_name:
            needle = dish_name.lower()
            for index, metadata in enumerate(metadatas):
                relative_path = (metadata or {}).get("relativePath")
                if isinstance(relative_path, str) and needle in relative_path.lower():
                    logger.info(
                        f"Re-ranking: Promoted index {index} ({relative_path}) due to keyword match."
                    )
                    best_index = index
                    break

        return documents[best_index]

    async def answer_messages(
        self,
        messages: list[ChatMessage | dict[str, Any]]
    ) -> list[ChatMessage | dict[str, Any]]:
        """最後のユーザー発言に対応するレシピをsystemメッセージとして差し込む

        レシピが見つからない場合は元のメッセージをそのまま返します。

        Args:
            messages: 会話履歴

        Returns:
            回答生成に使用するメッセージのリスト
        """
        question = _last_user_content(messages)
        if not question:
            return list(messages)

        dish_name = await self.extract_dish_name(question)
        if not dish_name:
            logger.info("菜名を抽出できませんでした")
            return list(messages)

        recipe = await asyncio.to_thread(self.search_recipe, dish_name)
        if recipe is None:
            logger.info(f"レシピが見つかりませんでした: {dish_name}")
            return list(messages)

        context = ChatMessage(role="system", content=RECIPE_CONTEXT_PROMPT.format(recipe=recipe))
        return [context, *messages]


def _last_user_content(messages: list[ChatMessage | dict[str, Any]]) -> str:
    for message in reversed(messages):
        if isinstance(message, ChatMessage):
            role, content = message.role, message.content
        else:
            role, content = message.get("role"), message.get("content")
        if role == "user" and content:
            return content
    return ""
