"""ファイルユーティリティのユニットテスト"""

import hashlib

from apex_ai.services.file_utils import calculate_hash, find_markdown_files


class TestCalculateHash:
    """calculate_hash() のテスト"""

    def test_md5_hex(self):
        assert calculate_hash("红烧肉") == hashlib.md5("红烧肉".encode("utf-8")).hexdigest()

    def test_line_endings_are_normalized(self):
        """CRLFとLFで同じハッシュになる"""
        assert calculate_hash("a\r\nb\r\n") == calculate_hash("a\nb\n")

    def test_different_content(self):
        assert calculate_hash("a") != calculate_hash("b")


class TestFindMarkdownFiles:
    """find_markdown_files() のテスト"""

    def test_recursive_markdown_only(self, recipe_dir):
        files = find_markdown_files(recipe_dir)

        names = [f.name for f in files]
        assert sorted(names) == ["empty.md", "可乐鸡翅.md", "红烧肉.md"]
        assert all(f.is_absolute() for f in files)
        assert files == sorted(files)

    def test_accepts_string_path(self, recipe_dir):
        assert len(find_markdown_files(str(recipe_dir))) == 3

    def test_empty_directory(self, tmp_path):
        assert find_markdown_files(tmp_path) == []
