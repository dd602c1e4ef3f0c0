"""設定管理モジュール

このモジュールはアプリケーション全体で使用する設定を一元管理します。
環境変数の読み込み、デフォルト設定の定義、設定値のバリデーションを行います。
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv


class ConfigError(Exception):
    """設定エラー"""
    pass


class Config:
    """アプリケーション設定クラス

    環境変数から設定値を読み込み、デフォルト値を提供します。
    設定値のバリデーションも行います。
    """

    # デフォルト値
    DEFAULT_LLM_BASE_URL = "https://api.deepseek.com"
    DEFAULT_LLM_CHAT_MODEL = "deepseek-chat"
    DEFAULT_LLM_REASONER_MODEL = "deepseek-reasoner"
    DEFAULT_EMBEDDING_BASE_URL = "https://open.bigmodel.cn/api/paas/v4"
    DEFAULT_EMBEDDING_MODEL = "embedding-3"
    DEFAULT_EMBEDDING_BATCH_SIZE = 64
    DEFAULT_CHROMA_DB_URL = "http://localhost:8000"
    DEFAULT_RECIPE_COLLECTION = "how-to-cook"
    DEFAULT_INGEST_SOURCE_DIR = "./tmp/how-to-cook"
    DEFAULT_CHUNK_SIZE = 1000
    DEFAULT_CHUNK_OVERLAP = 200
    DEFAULT_INGEST_BATCH_SIZE = 100
    DEFAULT_INGEST_CONCURRENCY = 10
    DEFAULT_STREAM_CHUNK_SIZE = 2
    DEFAULT_STREAM_CHUNK_DELAY = 0.01
    DEFAULT_APP_HOST = "127.0.0.1"
    DEFAULT_APP_PORT = 3000
    DEFAULT_MCP_HTTP_HOST = "127.0.0.1"
    DEFAULT_MCP_HTTP_PORT = 3001
    DEFAULT_LOG_LEVEL = "INFO"

    # バリデーション用の定数
    VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    MIN_CHUNK_SIZE = 100
    MAX_CHUNK_SIZE = 10000
    MIN_CHUNK_OVERLAP = 0

    def __init__(self, env_file: Optional[str] = None):
        """設定の初期化

        Args:
            env_file: .envファイルのパス（省略時は.envを探索）
        """
        # .envファイルの読み込み
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        self._load_and_validate()

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        """整数の環境変数を読み込む"""
        try:
            return int(os.getenv(name, str(default)))
        except ValueError:
            raise ConfigError(
                f"{name} must be an integer, got: {os.getenv(name)}"
            )

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        """数値の環境変数を読み込む"""
        try:
            return float(os.getenv(name, str(default)))
        except ValueError:
            raise ConfigError(
                f"{name} must be a number, got: {os.getenv(name)}"
            )

    def _load_and_validate(self):
        """環境変数から設定値を読み込み、バリデーションを実行"""

        # LLMエンドポイント設定
        self.deepseek_api_key = os.getenv("DEEPSEEK_API_KEY", "")
        self.llm_base_url = os.getenv("LLM_BASE_URL", self.DEFAULT_LLM_BASE_URL)
        self.llm_chat_model = os.getenv("LLM_CHAT_MODEL", self.DEFAULT_LLM_CHAT_MODEL)
        self.llm_reasoner_model = os.getenv(
            "LLM_REASONER_MODEL",
            self.DEFAULT_LLM_REASONER_MODEL
        )

        # 埋め込み設定（BIGMODEL_API_KEYが無ければOPENAI_API_KEYを使用）
        self.embedding_api_key = (
            os.getenv("BIGMODEL_API_KEY") or os.getenv("OPENAI_API_KEY") or ""
        )
        self.embedding_base_url = os.getenv(
            "EMBEDDING_BASE_URL",
            self.DEFAULT_EMBEDDING_BASE_URL
        )
        self.embedding_model = os.getenv("EMBEDDING_MODEL", self.DEFAULT_EMBEDDING_MODEL)
        self.embedding_batch_size = self._get_int(
            "EMBEDDING_BATCH_SIZE",
            self.DEFAULT_EMBEDDING_BATCH_SIZE
        )

        # ChromaDB設定
        self.chroma_db_url = os.getenv("CHROMA_DB_URL", self.DEFAULT_CHROMA_DB_URL)
        self.recipe_collection = os.getenv(
            "RECIPE_COLLECTION",
            self.DEFAULT_RECIPE_COLLECTION
        )

        # 取り込み設定
        self.ingest_source_dir = os.getenv(
            "INGEST_SOURCE_DIR",
            self.DEFAULT_INGEST_SOURCE_DIR
        )
        self.chunk_size = self._get_int("CHUNK_SIZE", self.DEFAULT_CHUNK_SIZE)
        self.chunk_overlap = self._get_int("CHUNK_OVERLAP", self.DEFAULT_CHUNK_OVERLAP)
        self.ingest_batch_size = self._get_int(
            "INGEST_BATCH_SIZE",
            self.DEFAULT_INGEST_BATCH_SIZE
        )
        self.ingest_concurrency = self._get_int(
            "INGEST_CONCURRENCY",
            self.DEFAULT_INGEST_CONCURRENCY
        )

        # MCPツールサーバー設定（空文字の場合は無効）
        self.mcp_server_url = os.getenv("MCP_SERVER_URL", "").strip()
        self.mcp_server_command = os.getenv("MCP_SERVER_COMMAND", "").strip()

        # ストリーミング設定
        self.stream_chunk_size = self._get_int(
            "STREAM_CHUNK_SIZE",
            self.DEFAULT_STREAM_CHUNK_SIZE
        )
        self.stream_chunk_delay = self._get_float(
            "STREAM_CHUNK_DELAY",
            self.DEFAULT_STREAM_CHUNK_DELAY
        )

        # サーバー設定
        self.app_host = os.getenv("APP_HOST", self.DEFAULT_APP_HOST)
        self.app_port = self._get_int("APP_PORT", self.DEFAULT_APP_PORT)
        self.mcp_http_host = os.getenv("MCP_HTTP_HOST", self.DEFAULT_MCP_HTTP_HOST)
        self.mcp_http_port = self._get_int("MCP_HTTP_PORT", self.DEFAULT_MCP_HTTP_PORT)

        # ログ設定
        self.log_level = os.getenv("LOG_LEVEL", self.DEFAULT_LOG_LEVEL).upper()

        self._validate()

    def _validate(self):
        """設定値のバリデーション

        Raises:
            ConfigError: 設定値が不正な場合
        """
        # URLバリデーション
        for name, url in [
            ("LLM_BASE_URL", self.llm_base_url),
            ("EMBEDDING_BASE_URL", self.embedding_base_url),
            ("CHROMA_DB_URL", self.chroma_db_url),
        ]:
            if not url.startswith(("http://", "https://")):
                raise ConfigError(
                    f"{name} must start with http:// or https://, got: {url}"
                )

        if self.mcp_server_url and not self.mcp_server_url.startswith(("http://", "https://")):
            raise ConfigError(
                f"MCP_SERVER_URL must start with http:// or https://, "
                f"got: {self.mcp_server_url}"
            )

        # モデル名バリデーション（空文字チェック）
        if not self.llm_chat_model.strip():
            raise ConfigError("LLM_CHAT_MODEL cannot be empty")

        if not self.llm_reasoner_model.strip():
            raise ConfigError("LLM_REASONER_MODEL cannot be empty")

        if not self.embedding_model.strip():
            raise ConfigError("EMBEDDING_MODEL cannot be empty")

        if not self.recipe_collection.strip():
            raise ConfigError("RECIPE_COLLECTION cannot be empty")

        # チャンクサイズバリデーション
        if self.chunk_size < self.MIN_CHUNK_SIZE or self.chunk_size > self.MAX_CHUNK_SIZE:
            raise ConfigError(
                f"CHUNK_SIZE must be between {self.MIN_CHUNK_SIZE} and {self.MAX_CHUNK_SIZE}, "
                f"got: {self.chunk_size}"
            )

        if self.chunk_overlap < self.MIN_CHUNK_OVERLAP:
            raise ConfigError(
                f"CHUNK_OVERLAP must be >= {self.MIN_CHUNK_OVERLAP}, "
                f"got: {self.chunk_overlap}"
            )

        if self.chunk_overlap >= self.chunk_size:
            raise ConfigError(
                f"CHUNK_OVERLAP ({self.chunk_overlap}) must be less than "
                f"CHUNK_SIZE ({self.chunk_size})"
            )

        # 正の整数であるべき設定
        for name, value in [
            ("EMBEDDING_BATCH_SIZE", self.embedding_batch_size),
            ("INGEST_BATCH_SIZE", self.ingest_batch_size),
            ("INGEST_CONCURRENCY", self.ingest_concurrency),
            ("STREAM_CHUNK_SIZE", self.stream_chunk_size),
            ("APP_PORT", self.app_port),
            ("MCP_HTTP_PORT", self.mcp_http_port),
        ]:
            if value <= 0:
                raise ConfigError(f"{name} must be greater than 0, got: {value}")

        if self.stream_chunk_delay < 0:
            raise ConfigError(
                f"STREAM_CHUNK_DELAY must be >= 0, got: {self.stream_chunk_delay}"
            )

        # ログレベルバリデーション
        if self.log_level not in self.VALID_LOG_LEVELS:
            raise ConfigError(
                f"LOG_LEVEL must be one of {self.VALID_LOG_LEVELS}, "
                f"got: {self.log_level}"
            )

    def chroma_connection(self) -> tuple[str, int, bool]:
        """ChromaDBの接続情報を取得

        CHROMA_DB_URLのスキームでSSLを判定し、
        ポートが省略されている場合は443または80を使用します。

        Returns:
            tuple: (ホスト名, ポート番号, SSL使用有無)
        """
        url = urlparse(self.chroma_db_url)
        use_ssl = url.scheme == "https"
        port = url.port or (443 if use_ssl else 80)
        return url.hostname or "localhost", port, use_ssl

    def get_ingest_source_path(self) -> Path:
        """取り込み対象ディレクトリのパスを取得

        Returns:
            Path: 取り込み対象ディレクトリのPathオブジェクト
        """
        return Path(self.ingest_source_dir).resolve()

    @staticmethod
    def _mask(secret: str) -> str:
        """APIキーをマスクする"""
        if not secret:
            return "(not set)"
        return f"{secret[:4]}****"

    def to_dict(self) -> dict:
        """設定値を辞書形式で取得（APIキーはマスク）

        Returns:
            dict: 全設定値
        """
        return {
            "deepseek_api_key": self._mask(self.deepseek_api_key),
            "llm_base_url": self.llm_base_url,
            "llm_chat_model": self.llm_chat_model,
            "llm_reasoner_model": self.llm_reasoner_model,
            "embedding_api_key": self._mask(self.embedding_api_key),
            "embedding_base_url": self.embedding_base_url,
            "embedding_model": self.embedding_model,
            "embedding_batch_size": self.embedding_batch_size,
            "chroma_db_url": self.chroma_db_url,
            "recipe_collection": self.recipe_collection,
            "ingest_source_dir": self.ingest_source_dir,
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "ingest_batch_size": self.ingest_batch_size,
            "ingest_concurrency": self.ingest_concurrency,
            "mcp_server_url": self.mcp_server_url,
            "mcp_server_command": self.mcp_server_command,
            "stream_chunk_size": self.stream_chunk_size,
            "stream_chunk_delay": self.stream_chunk_delay,
            "app_host": self.app_host,
            "app_port": self.app_port,
            "mcp_http_host": self.mcp_http_host,
            "mcp_http_port": self.mcp_http_port,
            "log_level": self.log_level,
        }

    def __repr__(self) -> str:
        """設定の文字列表現"""
        config_dict = self.to_dict()
        config_str = "\n".join(f"  {k}: {v}" for k, v in config_dict.items())
        return f"Config(\n{config_str}\n)"


# グローバル設定インスタンス（シングルトンパターン）
_config_instance: Optional[Config] = None


def get_config(env_file: Optional[str] = None, reload: bool = False) -> Config:
    """設定インスタンスを取得

    Args:
        env_file: .envファイルのパス（省略時は.envを探索）
        reload: Trueの場合、設定を再読み込み

    Returns:
        Config: 設定インスタンス
    """
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = Config(env_file)

    return _config_instance
