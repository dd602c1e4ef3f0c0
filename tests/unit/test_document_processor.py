"""ドキュメント処理のユニットテスト

DocumentProcessor のファイル解析とチャンク分割を検証します。
"""

import hashlib
from datetime import datetime, timezone

import pytest

from apex_ai.models.document import SourceFile
from apex_ai.rag.document_processor import DocumentProcessor, DocumentProcessorError
from apex_ai.services.file_utils import calculate_hash


@pytest.fixture
def processor(sample_config):
    return DocumentProcessor(sample_config)


class TestAnalyzeFile:
    """analyze_file() のテスト"""

    def test_source_file(self, processor, recipe_dir):
        path = (recipe_dir / "dishes" / "meat_dish" / "红烧肉.md").resolve()

        source = processor.analyze_file(path, recipe_dir.resolve())

        assert source.path == path
        assert source.relative_path == "dishes/meat_dish/红烧肉.md"
        assert source.file_hash == calculate_hash(path.read_text(encoding="utf-8"))

    def test_empty_file_returns_none(self, processor, recipe_dir):
        """空白のみのファイルはNone"""
        path = (recipe_dir / "empty.md").resolve()

        assert processor.analyze_file(path, recipe_dir.resolve()) is None

    def test_unreadable_file(self, processor, tmp_path):
        with pytest.raises(DocumentProcessorError, match="読み込みに失敗"):
            processor.analyze_file(tmp_path / "missing.md", tmp_path)

    def test_invalid_utf8(self, processor, tmp_path):
        path = tmp_path / "binary.md"
        path.write_bytes(b"\xff\xfe\x00broken")

        with pytest.raises(DocumentProcessorError):
            processor.analyze_file(path, tmp_path)


class TestCreateChunks:
    """create_chunks() のテスト"""

    def _source(self, recipe_dir, processor, name="红烧肉.md"):
        path = (recipe_dir / "dishes" / "meat_dish" / name).resolve()
        return processor.analyze_file(path, recipe_dir.resolve())

    def test_long_file_is_split(self, processor, recipe_dir):
        """CHUNK_SIZEを超えるファイルは複数のチャンクに分割される"""
        source = self._source(recipe_dir, processor)

        chunks = processor.create_chunks(source)

        assert len(chunks) > 1
        assert all(chunk.size <= 200 for chunk in chunks)

    def test_chunk_metadata(self, processor, recipe_dir):
        source = self._source(recipe_dir, processor)
        indexed_at = datetime(2024, 1, 1, tzinfo=timezone.utc)

        chunks = processor.create_chunks(source, indexed_at=indexed_at)

        metadata = chunks[0].metadata
        assert metadata["source"] == str(source.path)
        assert metadata["relativePath"] == "dishes/meat_dish/红烧肉.md"
        assert metadata["file_hash"] == source.file_hash
        assert metadata["indexed_at"] == "2024-01-01T00:00:00+00:00"

    def test_chunk_ids(self, processor, recipe_dir):
        """チャンクIDは相対パスとハッシュ由来のIDと連番"""
        source = self._source(recipe_dir, processor)
        expected_doc_id = hashlib.sha256(
            f"{source.relative_path}:{source.file_hash}".encode("utf-8")
        ).hexdigest()[:16]

        chunks = processor.create_chunks(source)

        assert chunks[0].chunk_id == f"{expected_doc_id}_chunk_0000"
        assert chunks[1].chunk_id == f"{expected_doc_id}_chunk_0001"
        assert len({c.chunk_id for c in chunks}) == len(chunks)

    def test_same_content_in_different_paths_has_different_ids(self, processor, tmp_path):
        first = SourceFile(path=tmp_path / "a.md", relative_path="a.md", file_hash="h")
        second = SourceFile(path=tmp_path / "b.md", relative_path="b.md", file_hash="h")

        id_a = processor.create_chunks(first, content="same")[0].chunk_id
        id_b = processor.create_chunks(second, content="same")[0].chunk_id

        assert id_a != id_b

    def test_short_file_single_chunk(self, processor, recipe_dir):
        source = self._source(recipe_dir, processor, "可乐鸡翅.md")

        chunks = processor.create_chunks(source)

        assert len(chunks) == 1
        assert "可乐鸡翅" in chunks[0].content
