"""RAGモジュール

このモジュールはレシピ検索で使用する埋め込み生成、ベクトルストア、ドキュメント処理を提供します。
"""

from .document_processor import DocumentProcessor, DocumentProcessorError
from .embeddings import EmbeddingError, ZhipuEmbeddings
from .vector_store import ChromaVectorStore, VectorStoreError

__all__ = [
    'ZhipuEmbeddings',
    'EmbeddingError',
    'ChromaVectorStore',
    'VectorStoreError',
    'DocumentProcessor',
    'DocumentProcessorError',
]
