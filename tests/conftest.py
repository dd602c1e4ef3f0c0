"""pytestの共通fixture定義

ユニットテストと統合テストで共有されるfixtureを定義します。
"""

import os
from unittest.mock import patch

import pytest

from apex_ai.models.document import Chunk
from apex_ai.utils import config as config_module
from apex_ai.utils.config import Config

# Configが読み込む環境変数
CONFIG_ENV_KEYS = [
    "DEEPSEEK_API_KEY",
    "LLM_BASE_URL",
    "LLM_CHAT_MODEL",
    "LLM_REASONER_MODEL",
    "BIGMODEL_API_KEY",
    "OPENAI_API_KEY",
    "EMBEDDING_BASE_URL",
    "EMBEDDING_MODEL",
    "EMBEDDING_BATCH_SIZE",
    "CHROMA_DB_URL",
    "RECIPE_COLLECTION",
    "INGEST_SOURCE_DIR",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "INGEST_BATCH_SIZE",
    "INGEST_CONCURRENCY",
    "MCP_SERVER_URL",
    "MCP_SERVER_COMMAND",
    "STREAM_CHUNK_SIZE",
    "STREAM_CHUNK_DELAY",
    "APP_HOST",
    "APP_PORT",
    "MCP_HTTP_HOST",
    "MCP_HTTP_PORT",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """テストごとに環境変数と設定のシングルトンを隔離する

    load_dotenvはos.environに書き込むため、テスト終了時に環境変数を元に戻します。
    """
    with patch.dict(os.environ):
        for key in CONFIG_ENV_KEYS:
            os.environ.pop(key, None)
        monkeypatch.setattr(config_module, "_config_instance", None)
        yield


@pytest.fixture
def empty_env_file(tmp_path):
    """空の.envファイル（プロジェクトの.envを読み込まないようにする）"""
    env_file = tmp_path / "empty.env"
    env_file.write_text("")
    return env_file


@pytest.fixture
def sample_config(tmp_path):
    """テスト用設定

    Args:
        tmp_path: pytestが提供する一時ディレクトリ

    Returns:
        Config: テスト用のConfig オブジェクト
    """
    source_dir = tmp_path / "how-to-cook"
    source_dir.mkdir(exist_ok=True)

    env_file = tmp_path / "test.env"
    env_file.write_text(f"""
DEEPSEEK_API_KEY=sk-test-deepseek
LLM_BASE_URL=https://api.deepseek.com
LLM_CHAT_MODEL=deepseek-chat
LLM_REASONER_MODEL=deepseek-reasoner
BIGMODEL_API_KEY=test-bigmodel-key
EMBEDDING_BASE_URL=https://open.bigmodel.cn/api/paas/v4
EMBEDDING_MODEL=embedding-3
EMBEDDING_BATCH_SIZE=2
CHROMA_DB_URL=http://localhost:8000
RECIPE_COLLECTION=how-to-cook
INGEST_SOURCE_DIR={source_dir}
CHUNK_SIZE=200
CHUNK_OVERLAP=20
INGEST_BATCH_SIZE=3
INGEST_CONCURRENCY=2
STREAM_CHUNK_SIZE=2
STREAM_CHUNK_DELAY=0
LOG_LEVEL=INFO
""")

    return Config(env_file=str(env_file))


@pytest.fixture
def sample_chunks():
    """テスト用Chunkリスト

    Returns:
        list[Chunk]: サンプルのChunkオブジェクトのリスト
    """
    doc_id = "0123456789abcdef"
    return [
        Chunk(
            content="番茄炒蛋做法：鸡蛋打散，番茄切块。",
            chunk_id=f"{doc_id}_chunk_0000",
            metadata={"relativePath": "dishes/vegetable_dish/番茄炒蛋.md"}
        ),
        Chunk(
            content="倒入鸡蛋，加盐、糖调味，翻炒均匀即可。",
            chunk_id=f"{doc_id}_chunk_0001",
            metadata={"relativePath": "dishes/vegetable_dish/番茄炒蛋.md"}
        ),
    ]


@pytest.fixture
def mock_embeddings(mocker):
    """モック化された埋め込み生成器

    Args:
        mocker: pytest-mockのmocker fixture

    Returns:
        Mock: ZhipuEmbeddingsのモック
    """
    mock = mocker.Mock()
    mock.api_key = "test-bigmodel-key"
    # embed_query は単一のベクトルを返す
    mock.embed_query.return_value = [0.1] * 8
    # embed_documents は入力件数分のベクトルを返す
    mock.embed_documents.side_effect = lambda texts: [[0.1] * 8 for _ in texts]
    return mock


@pytest.fixture
def mock_vector_store(mocker):
    """モック化されたベクトルストア

    Args:
        mocker: pytest-mockのmocker fixture

    Returns:
        Mock: ChromaVectorStoreのモック
    """
    mock = mocker.Mock()
    mock.ensure_collection.return_value = mocker.Mock()
    mock.reset_collection.return_value = mocker.Mock()
    mock.add_chunks.return_value = None
    mock.query.return_value = {"ids": [], "documents": [], "metadatas": [], "distances": []}
    return mock


@pytest.fixture
def recipe_dir(sample_config):
    """how-to-cookコーパスを模したMarkdownディレクトリ

    Returns:
        Path: ソースディレクトリ
    """
    source_dir = sample_config.get_ingest_source_path()
    dishes = source_dir / "dishes" / "meat_dish"
    dishes.mkdir(parents=True)
    (dishes / "红烧肉.md").write_text(
        "# 红烧肉的做法\n\n" + "五花肉切块，焯水洗净。锅中放糖炒糖色。\n" * 20,
        encoding="utf-8"
    )
    (dishes / "可乐鸡翅.md").write_text(
        "# 可乐鸡翅的做法\r\n\r\n鸡翅焯水，加可乐小火收汁。\r\n",
        encoding="utf-8"
    )
    (source_dir / "empty.md").write_text("   \n", encoding="utf-8")
    (source_dir / "README.txt").write_text("not markdown", encoding="utf-8")
    return source_dir
