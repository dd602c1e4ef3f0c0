"""レシピコーパス取り込み用のデータモデル。

このモジュールは取り込み処理で使用される中核的なデータ構造を定義します:
- SourceFile: 取り込み対象のMarkdownファイル
- Chunk: メタデータを含む分割されたテキストチャンク
- IngestStats: 取り込み処理の統計
- IngestResult: 取り込み処理の結果
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

__all__ = [
    'SourceFile',
    'Chunk',
    'IngestStats',
    'IngestResult',
]


@dataclass
class SourceFile:
    """取り込み対象のソースファイルを表現する。

    Attributes:
        path: ファイルの絶対パス
        relative_path: ソースディレクトリからの相対パス
        file_hash: 改行を正規化した内容のMD5ハッシュ
    """
    path: Path
    relative_path: str
    file_hash: str

    def __post_init__(self):
        """pathがPathオブジェクトであることを保証する。"""
        if not isinstance(self.path, Path):
            self.path = Path(self.path)


@dataclass
class Chunk:
    """メタデータを含む分割されたテキストチャンクを表現する。

    Attributes:
        content: チャンクのテキストコンテンツ
        chunk_id: チャンクの一意識別子
        metadata: ソースファイルのメタデータ
    """
    content: str
    chunk_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        """チャンクコンテンツの文字数を返す。"""
        return len(self.content)


@dataclass
class IngestStats:
    """取り込み処理の統計。"""
    processed: int = 0
    skipped: int = 0
    deleted: int = 0
    chunks: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class IngestResult:
    """取り込み処理の結果。

    Attributes:
        success: 処理が成功したか
        message: 失敗時のメッセージ
        stats: 成功時の統計
    """
    success: bool
    message: str | None = None
    stats: IngestStats | None = None

    def to_dict(self) -> dict[str, Any]:
        """APIレスポンス用の辞書に変換する。

        成功時は統計を展開し、失敗時はメッセージを含めます。
        """
        result: dict[str, Any] = {'success': self.success}
        if self.message is not None:
            result['message'] = self.message
        if self.stats is not None:
            result.update(self.stats.to_dict())
        return result
