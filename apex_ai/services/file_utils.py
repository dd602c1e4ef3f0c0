"""ファイル関連ユーティリティ

Markdownファイルの探索やハッシュ計算など、ファイル操作に関する共通ユーティリティを提供します。
"""

import hashlib
from pathlib import Path

# 取り込み対象のファイルパターン
MARKDOWN_PATTERN = "**/*.md"


def calculate_hash(content: str) -> str:
    """内容のMD5ハッシュを計算（改行はLFに正規化）

    Args:
        content: ファイルの内容

    Returns:
        16進数のMD5ハッシュ文字列
    """
    normalized = content.replace("\r\n", "\n")
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()


def find_markdown_files(source_dir: str | Path) -> list[Path]:
    """ディレクトリ配下のMarkdownファイルを再帰的に探索

    Args:
        source_dir: 探索するディレクトリ

    Returns:
        絶対パスのリスト（パス順）
    """
    root = Path(source_dir).resolve()
    return sorted(p for p in root.glob(MARKDOWN_PATTERN) if p.is_file())
