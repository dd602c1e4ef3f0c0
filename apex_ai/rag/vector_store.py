"""ChromaDBベクトルストアモジュール

このモジュールはリモートのChromaDBサーバーの閲覧・操作を担当します。
コレクション一覧・詳細・ページング取得、レシピコレクションのデバッグ検索、
サンプルデータの投入、取り込み用のコレクション再作成とチャンク追加を提供します。
"""

import logging
from typing import Any, Optional

import chromadb
from chromadb.config import Settings

from ..models.document import Chunk
from ..utils.config import Config

logger = logging.getLogger(__name__)

PEEK_LIMIT = 10
DEBUG_LOOKUP_LIMIT = 3
PREVIEW_LENGTH = 200
SEED_COLLECTION = "recipes"
COSINE_METADATA = {"hnsw:space": "cosine"}

SAMPLE_RECIPES = [
    {
        "id": "recipe_1",
        "document": (
            "番茄炒蛋做法：\n1. 鸡蛋打散，番茄切块。\n2. 热锅凉油，倒入蛋液炒熟盛出。\n"
            "3. 锅中留底油，放入番茄炒出汁。\n4. 倒入鸡蛋，加盐、糖调味，翻炒均匀即可。"
        ),
        "metadata": {"title": "番茄炒蛋", "category": "家常菜"},
    },
    {
        "id": "recipe_2",
        "document": (
            "红烧肉做法：\n1. 五花肉切块，焯水洗净。\n2. 锅中放糖炒糖色，放入肉块翻炒上色。\n"
            "3. 加入生抽、老抽、料酒、八角、桂皮、香叶。\n4. 加开水没过肉，小火炖煮一小时。\n"
            "5. 大火收汁即可。"
        ),
        "metadata": {"title": "红烧肉", "category": "硬菜"},
    },
]


class VectorStoreError(Exception):
    """ベクトルストア操作のエラー"""
    pass


def _to_list(value: Any) -> Any:
    """numpy配列などをJSONシリアライズ可能なリストに変換する"""
    if value is None:
        return None
    if hasattr(value, "tolist"):
        return value.tolist()
    if isinstance(value, (list, tuple)):
        return [_to_list(v) for v in value]
    return value


def _first(values: Optional[list]) -> Any:
    """結果リストの最初の要素（空ならNone）"""
    return values[0] if values else None


class ChromaVectorStore:
    """ChromaDBサーバーの管理クラス

    HttpClientはサーバーへの接続確認を行うため、初回使用時に作成します。

    Attributes:
        config: アプリケーション設定
        embeddings: サンプル投入時に使用する埋め込み（省略時はChroma既定の埋め込み関数）
    """

    def __init__(
        self,
        config: Config,
        embeddings=None,
        client: Optional[Any] = None
    ):
        """初期化

        Args:
            config: アプリケーション設定
            embeddings: LangChainのEmbeddings実装（オプション）
            client: 注入するChromaDBクライアント（テスト用）
        """
        self.config = config
        self.embeddings = embeddings
        self._client = client

    def initialize(self) -> None:
        """ChromaDBクライアントの初期化

        Raises:
            VectorStoreError: 接続に失敗した場合
        """
        if self._client is not None:
            return

        host, port, ssl = self.config.chroma_connection()
        logger.info(f"ChromaDBに接続中: {self.config.chroma_db_url}")
        try:
            self._client = chromadb.HttpClient(
                host=host,
                port=port,
                ssl=ssl,
                settings=Settings(anonymized_telemetry=False),
            )
        except Exception as e:
            error_msg = f"ChromaDBへの接続に失敗しました: {str(e)}"
            logger.error(error_msg)
            raise VectorStoreError(error_msg) from e

    @property
    def client(self):
        """ChromaDBクライアント（未初期化の場合は初期化する）"""
        if self._client is None:
            self.initialize()
        return self._client

    def _get_collection(self, name: str):
        """埋め込み関数なしでコレクションを取得する"""
        try:
            return self.client.get_collection(name=name, embedding_function=None)
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"コレクション '{name}' の取得に失敗しました: {e}") from e

    def list_collections(self) -> list[dict[str, Any]]:
        """コレクション一覧を取得

        Returns:
            name, id, metadataを含む辞書のリスト
        """
        logger.info("Fetching collections from Chroma...")
        try:
            collections = self.client.list_collections()
            result = []
            for col in collections:
                # クライアントのバージョンによってはコレクション名のみが返る
                if isinstance(col, str):
                    col = self.client.get_collection(name=col, embedding_function=None)
                result.append({
                    "name": col.name,
                    "id": str(col.id),
                    "metadata": col.metadata,
                })
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"コレクション一覧の取得に失敗しました: {e}") from e

        logger.info(f"Collections fetched: {len(result)} items")
        return result

    def get_collection_details(self, name: str) -> dict[str, Any]:
        """コレクションの詳細と先頭のレコードを取得

        Args:
            name: コレクション名

        Returns:
            name, id, metadata, count, peekを含む辞書
        """
        logger.info(f"Fetching details for collection: {name}")
        collection = self._get_collection(name)
        try:
            count = collection.count()
            peek = collection.peek(limit=PEEK_LIMIT)
        except Exception as e:
            raise VectorStoreError(f"コレクション '{name}' の参照に失敗しました: {e}") from e

        return {
            "name": collection.name,
            "id": str(collection.id),
            "metadata": collection.metadata,
            "count": count,
            "peek": {
                "ids": _to_list(peek.get("ids")),
                "embeddings": _to_list(peek.get("embeddings")),
                "documents": _to_list(peek.get("documents")),
                "metadatas": _to_list(peek.get("metadatas")),
            },
        }

    def get_records(self, name: str, offset: int = 0, limit: int = 10) -> dict[str, Any]:
        """コレクションのレコードをページング取得

        Args:
            name: コレクション名
            offset: 取得開始位置
            limit: 取得件数

        Returns:
            ids, embeddings, documents, metadatasを含む辞書
        """
        logger.info(f"Querying collection {name} with offset={offset}, limit={limit}")
        collection = self._get_collection(name)
        try:
            results = collection.get(
                limit=limit,
                offset=offset,
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as e:
            raise VectorStoreError(f"コレクション '{name}' の取得に失敗しました: {e}") from e

        return {
            "ids": _to_list(results.get("ids")),
            "embeddings": _to_list(results.get("embeddings")),
            "documents": _to_list(results.get("documents")),
            "metadatas": _to_list(results.get("metadatas")),
        }

    def debug_lookup(self, query: Optional[str] = None) -> dict[str, Any]:
        """レシピコレクションのデバッグ用検索

        クエリ指定時は本文に部分一致するレコードを最大3件返し、
        指定が無い場合は件数と先頭レコードを返します。

        Args:
            query: 本文に含まれる文字列

        Returns:
            検索結果またはコレクション概要の辞書
        """
        collection = self._get_collection(self.config.recipe_collection)

        if query:
            results = collection.get(
                where_document={"$contains": query},
                limit=DEBUG_LOOKUP_LIMIT,
                include=["documents", "metadatas"],
            )
            ids = results.get("ids") or []
            documents = results.get("documents") or []
            metadatas = results.get("metadatas") or []
            return {
                "query": query,
                "count": len(ids),
                "results": [
                    {
                        "id": doc_id,
                        "metadata": metadatas[i] if i < len(metadatas) else None,
                        "document_preview": (documents[i] or "")[:PREVIEW_LENGTH]
                        if i < len(documents) else None,
                        "full_document": documents[i] if i < len(documents) else None,
                    }
                    for i, doc_id in enumerate(ids)
                ],
            }

        peek = collection.peek(limit=1)
        return {
            "name": collection.name,
            "count": collection.count(),
            "firstItem": {
                "id": _first(peek.get("ids")),
                "document": _first(peek.get("documents")),
            },
        }

    def seed_recipes(self) -> dict[str, Any]:
        """サンプルレシピをrecipesコレクションに投入

        埋め込みが設定されている場合はそれでベクトルを計算し、
        無い場合はChroma既定の埋め込み関数に任せます。

        Returns:
            投入結果のメッセージと件数
        """
        logger.info("Seeding recipes collection...")
        try:
            collection = self.client.get_or_create_collection(name=SEED_COLLECTION)
            documents = [r["document"] for r in SAMPLE_RECIPES]
            params: dict[str, Any] = {
                "ids": [r["id"] for r in SAMPLE_RECIPES],
                "documents": documents,
                "metadatas": [r["metadata"] for r in SAMPLE_RECIPES],
            }
            if self.embeddings is not None:
                params["embeddings"] = self.embeddings.embed_documents(documents)
            collection.upsert(**params)
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"サンプルレシピの投入に失敗しました: {e}") from e

        return {"message": "Recipes seeded successfully", "count": len(SAMPLE_RECIPES)}

    def query(
        self,
        name: str,
        query_embeddings: list[list[float]],
        n_results: int = 5
    ) -> dict[str, Any]:
        """埋め込みベクトルで類似検索

        Args:
            name: コレクション名
            query_embeddings: クエリの埋め込みベクトルのリスト
            n_results: 返す結果の最大数

        Returns:
            ids, documents, metadatas, distancesを含む辞書（クエリごとのリスト）
        """
        collection = self._get_collection(name)
        try:
            results = collection.query(
                query_embeddings=query_embeddings,
                n_results=n_results,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise VectorStoreError(f"類似検索に失敗しました: {e}") from e

        return {
            "ids": _to_list(results.get("ids")) or [],
            "documents": _to_list(results.get("documents")) or [],
            "metadatas": _to_list(results.get("metadatas")) or [],
            "distances": _to_list(results.get("distances")) or [],
        }

    def ensure_collection(self, name: str):
        """コサイン距離のコレクションを取得または作成"""
        try:
            return self.client.get_or_create_collection(
                name=name,
                metadata=COSINE_METADATA,
                embedding_function=None,
            )
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"コレクション '{name}' の作成に失敗しました: {e}") from e

    def reset_collection(self, name: str):
        """コレクションを削除して作り直す

        削除の失敗（存在しない場合など）は警告のみとし、作成の失敗は例外とします。

        Returns:
            作成されたコレクション
        """
        try:
            self.client.delete_collection(name=name)
            logger.info("   - Old collection deleted.")
        except VectorStoreError:
            raise
        except Exception as e:
            logger.warning(f"   - Delete collection failed (maybe didn't exist?): {e}")

        collection = self.ensure_collection(name)
        logger.info("   - New collection created.")
        return collection

    def add_chunks(
        self,
        name: str,
        chunks: list[Chunk],
        embeddings: list[list[float]]
    ) -> None:
        """チャンクをコレクションに追加

        Args:
            name: コレクション名
            chunks: 追加するChunkのリスト
            embeddings: 各チャンクの埋め込みベクトル

        Raises:
            VectorStoreError: 追加に失敗した場合
        """
        if len(chunks) != len(embeddings):
            raise VectorStoreError(
                f"チャンク数({len(chunks)})と埋め込み数({len(embeddings)})が一致しません"
            )

        if not chunks:
            logger.warning("追加するチャンクがありません")
            return

        collection = self._get_collection(name)
        try:
            collection.add(
                ids=[chunk.chunk_id for chunk in chunks],
                embeddings=embeddings,
                documents=[chunk.content for chunk in chunks],
                metadatas=[chunk.metadata for chunk in chunks],
            )
        except Exception as e:
            raise VectorStoreError(f"チャンクの追加に失敗しました: {e}") from e

    def heartbeat(self) -> bool:
        """サーバーが応答するか確認"""
        try:
            self.client.heartbeat()
            return True
        except Exception as e:
            logger.debug(f"ChromaDBのヘルスチェックに失敗しました: {e}")
            return False
