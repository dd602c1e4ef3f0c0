"""レシピコーパス取り込みサービス

how-to-cookリポジトリのMarkdownファイルを読み込み、チャンク分割・ベクトル化して
ChromaDBのレシピコレクションに投入します。
CLI（apex ingest）、単体スクリプト（apex-ingest）、HTTPルートで共通利用されます。
"""

import logging
import sys
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, TypeVar

from ..models.document import Chunk, IngestResult, IngestStats, SourceFile
from ..rag.document_processor import DocumentProcessor, DocumentProcessorError
from ..rag.embeddings import ZhipuEmbeddings
from ..rag.vector_store import ChromaVectorStore
from ..utils.config import Config, get_config
from .file_utils import find_markdown_files

logger = logging.getLogger(__name__)

T = TypeVar("T")

FLUSH_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0


def with_retry(
    fn: Callable[[], T],
    retries: int = FLUSH_RETRIES,
    delay: float = INITIAL_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """失敗時に指数バックオフで再試行する

    Args:
        fn: 実行する関数
        retries: 再試行回数
        delay: 最初の待機秒数（再試行ごとに2倍）
        sleep: 待機関数

    Returns:
        fnの戻り値

    Raises:
        最後の試行で発生した例外
    """
    while True:
        try:
            return fn()
        except Exception as e:
            if retries <= 0:
                raise
            logger.warning(
                f"Operation failed, retrying in {delay:.1f}s... "
                f"({retries} retries left). Error: {e}"
            )
            sleep(delay)
            retries -= 1
            delay *= 2


class IngestService:
    """レシピコーパスの取り込みを行うクラス

    Attributes:
        config: アプリケーション設定
        embeddings: 埋め込み生成器
        vector_store: ChromaDBベクトルストア
        processor: ドキュメントプロセッサ
        collection_name: 投入先コレクション名
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        embeddings: Optional[ZhipuEmbeddings] = None,
        vector_store: Optional[ChromaVectorStore] = None,
        processor: Optional[DocumentProcessor] = None,
        retry_delay: float = INITIAL_RETRY_DELAY
    ):
        """初期化

        Args:
            config: アプリケーション設定（省略時はデフォルト設定を使用）
            embeddings: 埋め込み生成器（省略時は設定から作成）
            vector_store: ベクトルストア（省略時は設定から作成）
            processor: ドキュメントプロセッサ（省略時は設定から作成）
            retry_delay: バッチ投入の再試行の初期待機秒数
        """
        self.config = config or get_config()
        self.embeddings = embeddings or ZhipuEmbeddings(self.config)
        self.vector_store = vector_store or ChromaVectorStore(self.config)
        self.processor = processor or DocumentProcessor(self.config)
        self.collection_name = self.config.recipe_collection
        self.retry_delay = retry_delay

    def ingest_how_to_cook(self) -> IngestResult:
        """レシピコーパスを全件取り込む

        コレクションは毎回削除して作り直すため、常に全件投入になります。

        Returns:
            IngestResult: 取り込み結果
        """
        started = time.perf_counter()
        logger.info(f"Starting ingestion process for '{self.collection_name}'...")
        stats = IngestStats()

        # 1. APIキーの確認
        if not self.embeddings.api_key:
            logger.error("BIGMODEL_API_KEY or OPENAI_API_KEY is not set.")
            return IngestResult(success=False, message="API Key missing")

        # 2. 埋め込み生成とChromaDBへの接続を確認
        logger.info(f"Connecting to ChromaDB at {self.config.chroma_db_url}...")
        try:
            test_embedding = self.embeddings.embed_query("test")
            logger.info(
                f"Test Embedding Generation: dimension={len(test_embedding)}, "
                f"sample(first 5)={test_embedding[:5]}"
            )
            self.vector_store.ensure_collection(self.collection_name)
        except Exception as e:
            logger.error(
                f"Failed to connect/create collection in ChromaDB or generate embeddings: {e}"
            )
            return IngestResult(
                success=False,
                message="ChromaDB connection or Embedding failed"
            )

        # 3. 次元の整合性を保つため、既存コレクションを必ず作り直す
        try:
            logger.info("Cleaning up existing collection...")
            self.vector_store.reset_collection(self.collection_name)
        except Exception as e:
            logger.error(f"Failed to clear/recreate collection: {e}")
            return IngestResult(success=False, message="Failed to clear collection")

        # 4. ソースディレクトリの確認
        source_dir = self.config.get_ingest_source_path()
        if not source_dir.is_dir():
            logger.error(f"Source directory {source_dir} does not exist.")
            return IngestResult(success=False, message="Source directory not found")

        # 5. ファイルの解析
        files = find_markdown_files(source_dir)
        logger.info(f"Found {len(files)} local markdown files.")
        sources = self._analyze_files(files, source_dir, stats)
        logger.info(f"Files to process: {len(sources)}")

        # 6. チャンク分割とバッチ投入
        buffer: list[Chunk] = []
        for source in sources:
            try:
                buffer.extend(self.processor.create_chunks(source))
                if len(buffer) >= self.config.ingest_batch_size:
                    self._flush(buffer, stats)
                    buffer = []
                stats.processed += 1
            except DocumentProcessorError as e:
                logger.error(f"Error processing file {source.relative_path}: {e}")
                stats.errors += 1
        self._flush(buffer, stats)

        # 7. 統計の出力
        duration = time.perf_counter() - started
        logger.info(f"Ingestion completed in {duration:.2f}s")
        logger.info(
            f"Final Stats: processed={stats.processed}, skipped={stats.skipped}, "
            f"deleted={stats.deleted}, chunks={stats.chunks}, errors={stats.errors}"
        )
        return IngestResult(success=True, stats=stats)

    def _analyze_files(
        self,
        files: list[Path],
        source_dir: Path,
        stats: IngestStats
    ) -> list[SourceFile]:
        """ファイルを並行して読み込み、取り込み対象を抽出する

        空のファイルはskipped、読み込みに失敗したファイルはerrorsとして数えます。
        """
        def analyze(path: Path) -> Optional[SourceFile]:
            return self.processor.analyze_file(path, source_dir)

        sources: list[SourceFile] = []
        with ThreadPoolExecutor(max_workers=self.config.ingest_concurrency) as executor:
            futures = [(path, executor.submit(analyze, path)) for path in files]
            for path, future in futures:
                try:
                    source = future.result()
                except DocumentProcessorError as e:
                    logger.error(f"Error reading file {path}: {e}")
                    stats.errors += 1
                    continue
                if source is None:
                    stats.skipped += 1
                else:
                    sources.append(source)
        return sources

    def _flush(self, buffer: list[Chunk], stats: IngestStats) -> None:
        """バッファのチャンクをベクトル化して投入する

        再試行しても失敗した場合はエラーを1件数え、バッファの内容は破棄します。
        """
        if not buffer:
            return

        def add_batch() -> None:
            vectors = self.embeddings.embed_documents([chunk.content for chunk in buffer])
            self.vector_store.add_chunks(self.collection_name, buffer, vectors)

        try:
            with_retry(add_batch, delay=self.retry_delay)
        except Exception as e:
            logger.error(f"Error adding documents batch: {e}")
            stats.errors += 1
            return

        stats.chunks += len(buffer)
        logger.info(f"Saved batch of {len(buffer)} chunks...")


def run() -> None:
    """apex-ingest のエントリーポイント（失敗時は終了コード1）"""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = IngestService(config).ingest_how_to_cook()
    except Exception as e:
        logger.error(f"Fatal error during ingestion: {e}", exc_info=True)
        sys.exit(1)

    if not result.success:
        logger.error(f"Ingestion failed: {result.message}")
        sys.exit(1)


if __name__ == "__main__":
    run()
