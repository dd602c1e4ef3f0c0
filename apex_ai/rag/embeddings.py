"""埋め込み生成モジュール

このモジュールはZhipu AI（BigModel）の埋め込みAPIを使用してテキストのベクトル埋め込みを生成します。
LangChainのEmbeddingsインターフェースを実装しているため、
LangChainのベクトルストア連携にもそのまま使用できます。
"""

import logging
from typing import Optional

import httpx
from langchain_core.embeddings import Embeddings

from ..utils.config import Config, get_config

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """埋め込み生成エラー"""
    pass


class ZhipuEmbeddings(Embeddings):
    """Zhipu AI埋め込みクラス

    入力テキストをbatch_size件ずつ埋め込みAPIに送信し、
    入力順にベクトルを返します。

    Attributes:
        api_key: 埋め込みAPIのキー
        model: 埋め込みモデル名
        base_url: 埋め込みAPIのベースURL
        batch_size: 1回のAPI呼び出しで送信する最大件数
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: Optional[int] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """埋め込み生成器の初期化

        Args:
            config: 設定インスタンス（省略時はデフォルト設定を使用）
            api_key: APIキー（省略時は設定ファイルの値を使用）
            model: 埋め込みモデル名（省略時は設定ファイルの値を使用）
            base_url: APIのベースURL（省略時は設定ファイルの値を使用）
            batch_size: バッチサイズ（省略時は設定ファイルの値を使用）
            timeout: HTTPタイムアウト秒数
            transport: 注入するHTTPトランスポート（テスト用）
        """
        self.config = config or get_config()
        self.api_key = api_key if api_key is not None else self.config.embedding_api_key
        self.model = model or self.config.embedding_model
        self.base_url = (base_url or self.config.embedding_base_url).rstrip("/")
        self.batch_size = batch_size or self.config.embedding_batch_size
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/embeddings"

    def _embed_batch(self, client: httpx.Client, batch: list[str]) -> list[list[float]]:
        """1バッチ分の埋め込みを取得する"""
        response = client.post(
            self.endpoint,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"model": self.model, "input": batch},
        )

        if response.status_code >= 400:
            raise EmbeddingError(
                f"Embedding API Error: {response.status_code} {response.text}"
            )

        payload = response.json()
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != len(batch):
            raise EmbeddingError(
                f"埋め込みAPIの応答形式が不正です（期待件数: {len(batch)}）"
            )
        if not all(
            isinstance(item, dict) and isinstance(item.get("embedding"), list)
            for item in data
        ):
            raise EmbeddingError("埋め込みAPIの応答にembeddingが含まれていません")

        # 全要素にindexが付与されている場合のみ入力順に並べ替える
        if all(isinstance(item.get("index"), int) for item in data):
            data = sorted(data, key=lambda item: item["index"])
        return [item["embedding"] for item in data]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """複数のドキュメントをベクトル化

        Args:
            texts: ベクトル化するテキストのリスト

        Returns:
            list[list[float]]: 各テキストのベクトル表現のリスト

        Raises:
            EmbeddingError: APIキーが無い、またはベクトル化に失敗した場合
        """
        if not texts:
            return []

        if not self.api_key:
            raise EmbeddingError("BIGMODEL_API_KEY or OPENAI_API_KEY is not set.")

        results: list[list[float]] = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                for start in range(0, len(texts), self.batch_size):
                    batch = texts[start:start + self.batch_size]
                    results.extend(self._embed_batch(client, batch))
        except EmbeddingError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(
                f"Failed to embed documents (count: {len(texts)}): {e}"
            ) from e

        logger.debug(f"{len(texts)}件のテキストをベクトル化しました")
        return results

    def embed_query(self, text: str) -> list[float]:
        """クエリをベクトル化

        Args:
            text: ベクトル化するクエリテキスト

        Returns:
            list[float]: クエリのベクトル表現

        Raises:
            EmbeddingError: ベクトル化に失敗した場合
        """
        return self.embed_documents([text])[0]

    def __repr__(self) -> str:
        return (
            f"ZhipuEmbeddings("
            f"model='{self.model}', "
            f"base_url='{self.base_url}', "
            f"batch_size={self.batch_size}"
            f")"
        )
