"""ドキュメント処理モジュール

このモジュールはMarkdownファイルの読み込み、テキスト分割、メタデータ付与を行います。
LangChainのテキスト分割機能を使用します。
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import hashlib

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..models.document import Chunk, SourceFile
from ..services.file_utils import calculate_hash
from ..utils.config import Config


class DocumentProcessorError(Exception):
    """ドキュメント処理エラー"""
    pass


class DocumentProcessor:
    """ドキュメントの読み込みと処理を行うクラス

    ファイルの読み込み、テキスト分割、チャンク作成などの機能を提供します。

    Attributes:
        config: アプリケーション設定
        text_splitter: テキスト分割器
    """

    def __init__(self, config: Config):
        """ドキュメントプロセッサーの初期化

        Args:
            config: アプリケーション設定
        """
        self.config = config
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
        )

    @staticmethod
    def read_text(file_path: Path) -> str:
        """テキストファイルをUTF-8で読み込む

        Raises:
            DocumentProcessorError: 読み込みに失敗した場合
        """
        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentProcessorError(
                f"ファイルの読み込みに失敗しました: {file_path}\n{str(e)}"
            ) from e

    def analyze_file(self, file_path: Path, source_dir: Path) -> Optional[SourceFile]:
        """ファイルを読み込み、取り込み対象の情報を作成

        空のファイル（空白のみを含む）はNoneを返します。

        Args:
            file_path: 対象ファイルの絶対パス
            source_dir: ソースディレクトリ

        Returns:
            SourceFile または None

        Raises:
            DocumentProcessorError: 読み込みに失敗した場合
        """
        content = self.read_text(file_path)
        if not content.strip():
            return None

        return SourceFile(
            path=file_path,
            relative_path=file_path.relative_to(source_dir).as_posix(),
            file_hash=calculate_hash(content),
        )

    def create_chunks(
        self,
        source: SourceFile,
        content: Optional[str] = None,
        indexed_at: Optional[datetime] = None
    ) -> list[Chunk]:
        """ソースファイルからチャンクを作成

        Args:
            source: ソースファイル情報
            content: ファイル内容（省略時はファイルから読み込む）
            indexed_at: 取り込み日時（省略時は現在時刻）

        Returns:
            list[Chunk]: 作成されたチャンクのリスト
        """
        if content is None:
            content = self.read_text(source.path)
        indexed_at = indexed_at or datetime.now(timezone.utc)

        document = Document(
            page_content=content,
            metadata={
                "source": str(source.path),
                "relativePath": source.relative_path,
                "file_hash": source.file_hash,
                "indexed_at": indexed_at.isoformat(),
            },
        )

        document_id = self._generate_document_id(source)
        return [
            Chunk(
                content=split.page_content,
                chunk_id=self._generate_chunk_id(document_id, index),
                metadata=dict(split.metadata),
            )
            for index, split in enumerate(self.text_splitter.split_documents([document]))
        ]

    @staticmethod
    def _generate_document_id(source: SourceFile) -> str:
        """相対パスとハッシュから一意のIDを生成

        Returns:
            str: SHA-256ハッシュの先頭16文字
        """
        hash_input = f"{source.relative_path}:{source.file_hash}"
        return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def _generate_chunk_id(document_id: str, chunk_index: int) -> str:
        """チャンクIDを生成"""
        return f"{document_id}_chunk_{chunk_index:04d}"
