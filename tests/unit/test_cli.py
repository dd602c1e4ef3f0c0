"""CLIコマンドのユニットテスト

ClickのCliRunnerでコマンドを実行し、サービス層はモック化します。
"""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, call, patch

import httpx
import pytest
from click.testing import CliRunner

from apex_ai import __version__
from apex_ai.cli import cli
from apex_ai.commands.chat import (
    GREETING,
    ChatCommandError,
    StreamRenderer,
    stream_reply,
    strip_reasoning,
)
from apex_ai.models.document import IngestResult, IngestStats
from apex_ai.rag.vector_store import VectorStoreError
from apex_ai.services.chat_service import ChatServiceError


async def _async_iter(items):
    for item in items:
        yield item


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def chat_service():
    service = Mock()
    service.stream = AsyncMock(side_effect=lambda mode, messages: _async_iter(["Hello", " world"]))
    return service


@pytest.fixture
def patched_service(chat_service):
    with patch("apex_ai.commands.chat._create_service", AsyncMock(return_value=chat_service)):
        yield chat_service


class TestStripReasoning:

    @pytest.mark.parametrize("text, expected", [
        ("<think>\nhmm\n</think>\nAnswer", "Answer"),
        ("Answer", "Answer"),
        ("<think>\nunfinished", ""),
    ])
    def test_strip(self, text, expected):
        assert strip_reasoning(text) == expected


class TestStreamRenderer:
    """StreamRenderer のテスト"""

    def _printed(self, console):
        return [(c.args[0], c.kwargs.get("style")) for c in console.print.call_args_list if c.args]

    def test_think_tags_split_across_pieces(self):
        """断片の境界で分割されたタグも判定できる"""
        console = Mock()
        renderer = StreamRenderer(console)

        for piece in ["<thi", "nk>\nhmm\n</th", "ink>\nAnswer"]:
            renderer.feed(piece)
        renderer.close()

        assert self._printed(console) == [("\nhmm\n", "dim"), ("\nAnswer", None)]
        assert renderer.text == "<think>\nhmm\n</think>\nAnswer"

    def test_plain_text(self):
        console = Mock()
        renderer = StreamRenderer(console)

        renderer.feed("Hello ")
        renderer.feed("world")
        renderer.close()

        assert self._printed(console) == [("Hello ", None), ("world", None)]

    def test_trailing_partial_tag_is_flushed_on_close(self):
        console = Mock()
        renderer = StreamRenderer(console)

        renderer.feed("a <")
        renderer.close()

        assert self._printed(console) == [("a ", None), ("<", None)]


class TestStreamReply:
    """stream_reply() のテスト"""

    @pytest.mark.asyncio
    async def test_in_process_service(self, chat_service):
        pieces = [p async for p in stream_reply("recipe", [{"role": "user", "content": "q"}], service=chat_service)]

        assert pieces == ["Hello", " world"]
        chat_service.stream.assert_awaited_once_with("recipe", [{"role": "user", "content": "q"}])

    @pytest.mark.asyncio
    async def test_server(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="Sunny")

        real_client = httpx.AsyncClient
        with patch(
            "apex_ai.commands.chat.httpx.AsyncClient",
            side_effect=lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        ):
            pieces = [p async for p in stream_reply("chat", [{"role": "user", "content": "q"}],
                                                    server="http://127.0.0.1:3000/")]

        assert "".join(pieces) == "Sunny"
        assert str(requests[0].url) == "http://127.0.0.1:3000/api/chat"

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Internal server error"})

        real_client = httpx.AsyncClient
        with patch(
            "apex_ai.commands.chat.httpx.AsyncClient",
            side_effect=lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        ):
            with pytest.raises(ChatCommandError, match="500: Internal server error"):
                async for _ in stream_reply("langchain", [], server="http://127.0.0.1:3000"):
                    pass


class TestChatCommands:
    """chat / ask コマンドのテスト"""

    def test_ask(self, runner, patched_service):
        result = runner.invoke(cli, ["ask", "北京天气", "--mode", "chat"])

        assert result.exit_code == 0
        assert "Hello world" in result.output
        patched_service.stream.assert_awaited_once_with(
            "chat", [{"role": "user", "content": "北京天气"}]
        )

    def test_ask_failure(self, runner, patched_service):
        patched_service.stream.side_effect = ChatServiceError("401 Unauthorized")

        result = runner.invoke(cli, ["ask", "hi"])

        assert result.exit_code == 1
        assert "401 Unauthorized" in result.output

    def test_ask_invalid_mode(self, runner):
        result = runner.invoke(cli, ["ask", "hi", "--mode", "vision"])

        assert result.exit_code == 2

    def test_chat_loop(self, runner, patched_service):
        """履歴を保持して送信し、/clearとexitを処理する"""
        result = runner.invoke(cli, ["chat", "--mode", "langchain"], input="hi\n/clear\nexit\n")

        assert result.exit_code == 0
        assert GREETING in result.output
        assert "クリアしました" in result.output
        assert "チャットを終了します" in result.output
        patched_service.stream.assert_awaited_once_with("langchain", [
            {"role": "assistant", "content": GREETING},
            {"role": "user", "content": "hi"},
        ])

    def test_chat_keeps_history(self, runner, patched_service):
        runner.invoke(cli, ["chat"], input="first\nsecond\nquit\n")

        messages = patched_service.stream.call_args_list[1].args[1]
        assert [m["content"] for m in messages] == [GREETING, "first", "Hello world", "second"]

    def test_chat_error_continues(self, runner, patched_service):
        patched_service.stream.side_effect = ChatServiceError("timeout")

        result = runner.invoke(cli, ["chat"], input="hi\n")

        assert result.exit_code == 0
        assert "timeout" in result.output


class TestVectorCommands:
    """ChromaDB閲覧・取り込みコマンドのテスト"""

    @pytest.fixture
    def store(self):
        store = Mock()
        with patch("apex_ai.commands.vector._create_store", return_value=store):
            yield store

    def test_collections(self, runner, store):
        store.list_collections.return_value = [
            {"name": "how-to-cook", "id": "uuid-1", "metadata": {"hnsw:space": "cosine"}}
        ]

        result = runner.invoke(cli, ["collections"])

        assert result.exit_code == 0
        assert "how-to-cook" in result.output

    def test_collections_error(self, runner, store):
        store.list_collections.side_effect = VectorStoreError("refused")

        result = runner.invoke(cli, ["collections"])

        assert result.exit_code == 1
        assert "refused" in result.output

    def test_collection_paging(self, runner, store):
        store.get_collection_details.return_value = {
            "name": "how-to-cook", "id": "uuid-1", "metadata": None, "count": 25
        }
        store.get_records.return_value = {
            "ids": ["c1", "c2"],
            "documents": ["红烧肉", "可乐鸡翅"],
            "metadatas": [{"relativePath": "a.md"}, None],
            "embeddings": [[0.1, 0.2, 0.3], None],
        }

        result = runner.invoke(cli, ["collection", "how-to-cook", "--offset", "10", "--limit", "2"])

        assert result.exit_code == 0
        store.get_records.assert_called_once_with("how-to-cook", offset=10, limit=2)
        assert "--offset 12 --limit 2" in result.output

    def test_collection_invalid_limit(self, runner, store):
        result = runner.invoke(cli, ["collection", "how-to-cook", "--limit", "0"])

        assert result.exit_code == 2

    def test_seed(self, runner, store):
        store.seed_recipes.return_value = {"message": "Recipes seeded successfully", "count": 2}

        result = runner.invoke(cli, ["seed"])

        assert "Recipes seeded successfully" in result.output

    def test_ingest(self, runner, sample_config):
        with patch("apex_ai.commands.vector.get_config", return_value=sample_config), \
             patch("apex_ai.commands.vector.IngestService") as mock_cls:
            mock_cls.return_value.ingest_how_to_cook.return_value = IngestResult(
                success=True, stats=IngestStats(processed=3, chunks=9)
            )

            result = runner.invoke(cli, ["ingest"])

        assert result.exit_code == 0
        assert "取り込み結果" in result.output
        assert "Chunks" in result.output

    def test_ingest_failure(self, runner, sample_config):
        with patch("apex_ai.commands.vector.get_config", return_value=sample_config), \
             patch("apex_ai.commands.vector.IngestService") as mock_cls:
            mock_cls.return_value.ingest_how_to_cook.return_value = IngestResult(
                success=False, message="API Key missing"
            )

            result = runner.invoke(cli, ["ingest"])

        assert result.exit_code == 1
        assert "API Key missing" in result.output


class TestManagementCommands:
    """serve / status / config コマンドのテスト"""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])

        for name in ["chat", "ask", "collections", "collection", "seed", "ingest", "serve", "status", "config"]:
            assert name in result.output

    def test_serve_overrides(self, runner, sample_config):
        with patch("apex_ai.commands.config.get_config", return_value=sample_config), \
             patch("apex_ai.api.app.run") as mock_run:
            result = runner.invoke(cli, ["serve", "--port", "8080"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(sample_config)
        assert sample_config.app_port == 8080

    def test_status(self, runner, sample_config):
        with patch("apex_ai.commands.config.get_config", return_value=sample_config), \
             patch("apex_ai.commands.config.ChromaVectorStore") as mock_store:
            mock_store.return_value.heartbeat.return_value = False

            result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "ChromaDB" in result.output
        assert "接続失敗" in result.output
        assert "未設定" in result.output

    def test_config_show_masks_keys(self, runner, sample_config):
        with patch("apex_ai.commands.config.get_config", return_value=sample_config):
            result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "DEEPSEEK_API_KEY" in result.output
        assert "sk-test-deepseek" not in result.output

    def test_config_set_writes_env(self, runner):
        with runner.isolated_filesystem():
            Path(".env").write_text("CHUNK_SIZE=1000\nLOG_LEVEL=INFO\n", encoding="utf-8")

            result = runner.invoke(cli, ["config", "set", "chunk_size", "1500"])

            assert result.exit_code == 0
            content = Path(".env").read_text(encoding="utf-8")
            assert "CHUNK_SIZE=1500" in content
            assert "LOG_LEVEL=INFO" in content

    def test_config_set_invalid_value(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["config", "set", "CHUNK_SIZE", "10"])

        assert result.exit_code == 1
        assert "設定値が不正です" in result.output

    def test_config_set_requires_value(self, runner):
        result = runner.invoke(cli, ["config", "set", "CHUNK_SIZE"])

        assert result.exit_code == 1
