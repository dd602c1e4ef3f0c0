"""チャットコマンドモジュール

このモジュールはchat（対話モード）とask（単発の質問）コマンドの実装を提供します。
--server を指定した場合は起動中のWebサービスに、指定しない場合はプロセス内のサービスに
メッセージを送信し、ストリーミングされた応答を逐次表示します。
"""

import asyncio
import logging
import re
import sys
from collections.abc import AsyncIterator
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.panel import Panel

from ..mcp.client import MCPToolClient
from ..models.chat import ChatHistory
from ..services.chat_service import ChatService, ChatServiceError
from ..utils.config import get_config

logger = logging.getLogger(__name__)
console = Console()

GREETING = "Hello! I'm Apex AI. How can I assist you today?"
MODES = ("chat", "langchain", "recipe")
MODE_ROUTES = {
    "chat": "/api/chat",
    "langchain": "/api/langchain",
    "recipe": "/api/recipe",
}
THINK_OPEN_TAG = "<think>"
THINK_CLOSE_TAG = "</think>"
_THINK_BLOCK = re.compile(r"<think>.*?(</think>|$)", re.DOTALL)


class ChatCommandError(Exception):
    """チャットコマンドのエラー"""
    pass


def strip_reasoning(text: str) -> str:
    """<think>...</think> の推論部分を除いた回答本文"""
    return _THINK_BLOCK.sub("", text).strip()


def _partial_tag_length(text: str, tag: str) -> int:
    """textの末尾がtagの先頭部分と一致する最大の長さ"""
    for length in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:length]):
            return length
    return 0


class StreamRenderer:
    """ストリーミングされたテキストを逐次表示するクラス

    <think> から </think> までの推論部分は薄い色で表示します。
    断片の境界でタグが分割されても正しく判定できるよう、
    タグの途中の可能性がある末尾は次の断片まで保留します。
    """

    def __init__(self, console: Console):
        self.console = console
        self.in_think = False
        self._pending = ""
        self._parts: list[str] = []

    @property
    def text(self) -> str:
        """受信したテキスト全体"""
        return "".join(self._parts)

    def feed(self, piece: str) -> None:
        self._parts.append(piece)
        self._pending += piece

        while True:
            tag = THINK_CLOSE_TAG if self.in_think else THINK_OPEN_TAG
            index = self._pending.find(tag)
            if index == -1:
                break
            self._emit(self._pending[:index])
            self._pending = self._pending[index + len(tag):]
            self.in_think = not self.in_think

        tag = THINK_CLOSE_TAG if self.in_think else THINK_OPEN_TAG
        keep = _partial_tag_length(self._pending, tag)
        self._emit(self._pending[:len(self._pending) - keep])
        self._pending = self._pending[len(self._pending) - keep:]

    def close(self) -> None:
        self._emit(self._pending)
        self._pending = ""
        self.console.print()

    def _emit(self, text: str) -> None:
        if text:
            self.console.print(
                text,
                end="",
                style="dim" if self.in_think else None,
                markup=False,
                highlight=False,
            )


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error") or response.text
    except ValueError:
        return response.text


async def stream_reply(
    mode: str,
    messages: list[dict],
    server: Optional[str] = None,
    service: Optional[ChatService] = None
) -> AsyncIterator[str]:
    """応答テキストの断片を順に返す

    Args:
        mode: chat / langchain / recipe
        messages: 会話履歴
        server: WebサービスのベースURL（省略時はプロセス内のサービスを使用）
        service: プロセス内で使用するチャットサービス

    Raises:
        ChatCommandError: Webサービスがエラーを返した場合
        ChatServiceError: プロセス内のサービスが失敗した場合
    """
    if server:
        url = f"{server.rstrip('/')}{MODE_ROUTES[mode]}"
        async with httpx.AsyncClient(timeout=None) as client:
            async with client.stream("POST", url, json={"messages": messages}) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ChatCommandError(
                        f"{response.status_code}: {_error_message(response)}"
                    )
                async for text in response.aiter_text():
                    if text:
                        yield text
        return

    stream = await service.stream(mode, messages)
    async for piece in stream:
        yield piece


async def _create_service() -> ChatService:
    """プロセス内のチャットサービスを作成し、MCPツールを登録する"""
    config = get_config()
    service = ChatService(config)
    mcp_client = MCPToolClient.from_config(config)
    if mcp_client is not None:
        try:
            await service.registry.register_mcp_tools(mcp_client)
        except Exception as e:
            logger.warning(f"MCPツールの登録に失敗しました: {e}")
    return service


async def _reply(
    history: ChatHistory,
    mode: str,
    server: Optional[str],
    service: Optional[ChatService]
) -> str:
    """履歴を送信して応答を表示し、回答本文を返す"""
    renderer = StreamRenderer(console)
    console.print("[bold green]Apex AI:[/bold green] ", end="")
    try:
        async for piece in stream_reply(mode, history.to_dicts(), server, service):
            renderer.feed(piece)
    finally:
        renderer.close()
    return strip_reasoning(renderer.text)


async def _chat_loop(mode: str, server: Optional[str]) -> None:
    service = None if server else await _create_service()
    history = ChatHistory()
    history.add_message("ai", GREETING)

    console.print(Panel(
        f"[bold green]{GREETING}[/bold green]\n\n"
        f"モード: [cyan]{mode}[/cyan]"
        f"{f'  サーバー: [cyan]{server}[/cyan]' if server else ''}\n"
        "終了するには 'exit' または 'quit' を入力してください。\n"
        "履歴をクリアするには '/clear' を入力してください。",
        title="Apex AI チャット",
        border_style="green"
    ))

    while True:
        try:
            user_input = console.input("\n[bold cyan]あなた:[/bold cyan] ").strip()
        except EOFError:
            break

        if user_input.lower() in ("exit", "quit"):
            break

        if user_input == "/clear":
            history.clear()
            history.add_message("ai", GREETING)
            console.print("[yellow]チャット履歴をクリアしました。[/yellow]")
            continue

        if not user_input:
            continue

        history.add_message("user", user_input)
        try:
            answer = await _reply(history, mode, server, service)
        except (ChatCommandError, ChatServiceError, httpx.HTTPError) as e:
            console.print(f"[bold red]エラー:[/bold red] {str(e)}")
            logger.error(f"チャットエラー: {str(e)}")
            continue
        history.add_message("ai", answer)

    console.print("\n[green]チャットを終了します。[/green]")
    logger.info("チャットモードが終了しました")


@click.command("chat")
@click.option(
    "--mode",
    "-m",
    type=click.Choice(MODES),
    default="chat",
    show_default=True,
    help="応答方法（chat: ツール呼び出し, langchain: 推論モデル, recipe: レシピ検索）"
)
@click.option(
    "--server",
    "-s",
    type=str,
    default=None,
    help="WebサービスのベースURL（例: http://127.0.0.1:3000）"
)
def chat_command(mode: str, server: Optional[str]) -> None:
    """対話モードでチャットを行います

    会話履歴を保持したまま連続して質問できます。

    Example:
        $ apex chat
        $ apex chat --mode langchain
        $ apex chat --mode recipe --server http://127.0.0.1:3000
    """
    try:
        asyncio.run(_chat_loop(mode, server))
    except KeyboardInterrupt:
        console.print("\n[yellow]チャットが中断されました[/yellow]")
        sys.exit(0)


async def _ask(message: str, mode: str, server: Optional[str]) -> str:
    service = None if server else await _create_service()
    history = ChatHistory()
    history.add_message("user", message)
    return await _reply(history, mode, server, service)


@click.command("ask")
@click.argument("message", type=str)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(MODES),
    default="chat",
    show_default=True,
    help="応答方法"
)
@click.option(
    "--server",
    "-s",
    type=str,
    default=None,
    help="WebサービスのベースURL"
)
def ask_command(message: str, mode: str, server: Optional[str]) -> None:
    """単発の質問を送信して応答を表示します

    Example:
        $ apex ask "What's the weather in Beijing tomorrow?"
        $ apex ask "红烧肉怎么做" --mode recipe
    """
    try:
        asyncio.run(_ask(message, mode, server))
    except (ChatCommandError, ChatServiceError, httpx.HTTPError) as e:
        console.print(f"[bold red]エラー:[/bold red] {str(e)}", style="red")
        logger.error(f"質問エラー: {str(e)}")
        sys.exit(1)
