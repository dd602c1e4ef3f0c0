"""設定・管理コマンドモジュール

このモジュールはWebサービスの起動、ステータス確認、設定の表示・変更を行う
CLIコマンドを実装します。
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..mcp.client import MCPToolClient
from ..rag.vector_store import ChromaVectorStore
from ..utils.config import Config, ConfigError, get_config

console = Console()

OK = "[green]✓ 接続OK[/green]"
NG = "[red]✗ 接続失敗[/red]"


def _load_config() -> Config:
    try:
        return get_config()
    except ConfigError as e:
        console.print(f"[bold red]設定エラー:[/bold red] {str(e)}")
        sys.exit(1)


@click.command("serve")
@click.option("--host", type=str, default=None, help="待ち受けホスト（デフォルト: APP_HOST）")
@click.option("--port", type=int, default=None, help="待ち受けポート（デフォルト: APP_PORT）")
def serve_command(host: Optional[str], port: Optional[int]):
    """チャットWebサービスを起動します

    Example:
        $ apex serve
        $ apex serve --port 8080
    """
    from ..api.app import run

    config = _load_config()
    if host:
        config.app_host = host
    if port:
        config.app_port = port

    console.print(
        f"\n[bold cyan]Apex AI を起動しています:[/bold cyan] "
        f"http://{config.app_host}:{config.app_port}\n"
    )
    run(config)


@click.command("status")
def status_command():
    """接続先の設定と接続状態を表示します

    ChromaDB、LLMエンドポイント、埋め込みAPI、MCPツールサーバーの状態を確認します。
    """
    config = _load_config()
    console.print("\n[bold cyan]Apex AI のステータス[/bold cyan]\n")

    # ChromaDB
    chroma_table = Table(show_header=False, box=None, padding=(0, 2))
    chroma_table.add_column("項目", style="cyan")
    chroma_table.add_column("値", style="white")
    chroma_table.add_row("URL", config.chroma_db_url)
    chroma_table.add_row("レシピコレクション", config.recipe_collection)

    store = ChromaVectorStore(config)
    try:
        reachable = store.heartbeat()
    except Exception:
        reachable = False
    chroma_table.add_row("接続状態", OK if reachable else NG)
    console.print(Panel(chroma_table, title="ChromaDB", border_style="blue"))

    # モデル
    console.print()
    model_table = Table(show_header=False, box=None, padding=(0, 2))
    model_table.add_column("項目", style="cyan")
    model_table.add_column("値", style="white")
    model_table.add_row("LLMエンドポイント", config.llm_base_url)
    model_table.add_row("チャットモデル", config.llm_chat_model)
    model_table.add_row("推論モデル", config.llm_reasoner_model)
    model_table.add_row(
        "DEEPSEEK_API_KEY",
        "[green]設定済み[/green]" if config.deepseek_api_key else "[red]未設定[/red]"
    )
    model_table.add_row("埋め込みモデル", config.embedding_model)
    model_table.add_row(
        "埋め込みAPIキー",
        "[green]設定済み[/green]" if config.embedding_api_key else "[red]未設定[/red]"
    )
    console.print(Panel(model_table, title="モデル設定", border_style="blue"))

    # MCPツールサーバー
    console.print()
    mcp_client = MCPToolClient.from_config(config)
    mcp_table = Table(show_header=False, box=None, padding=(0, 2))
    mcp_table.add_column("項目", style="cyan")
    mcp_table.add_column("値", style="white")
    if mcp_client is None:
        mcp_table.add_row("状態", "[dim]未設定（MCP_SERVER_URL / MCP_SERVER_COMMAND）[/dim]")
    else:
        mcp_table.add_row("トランスポート", mcp_client.transport)
        mcp_table.add_row("接続先", mcp_client.url or mcp_client.command)
        try:
            tools = asyncio.run(mcp_client.list_tools())
            mcp_table.add_row("接続状態", OK)
            mcp_table.add_row("ツール", ", ".join(t.name for t in tools) or "-")
        except Exception as e:
            mcp_table.add_row("接続状態", f"{NG} [dim]{e}[/dim]")
    console.print(Panel(mcp_table, title="MCPツールサーバー", border_style="blue"))
    console.print()


@click.command("config")
@click.argument("action", type=click.Choice(["show", "set"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
def config_command(action: str, key: Optional[str], value: Optional[str]):
    """設定の表示・変更

    ACTIONS:
        show   - 現在の設定を表示
        set    - 設定値を .env に保存

    EXAMPLES:
        apex config show
        apex config set CHUNK_SIZE 1500
    """
    if action == "show":
        _show_config(_load_config())
        return

    if not key or not value:
        console.print(
            "[bold red]エラー:[/bold red] set コマンドには KEY と VALUE が必要です"
        )
        console.print("\n使用例:")
        console.print("  [cyan]apex config set CHUNK_SIZE 1500[/cyan]")
        sys.exit(1)

    _set_config(key, value)


def _show_config(config: Config):
    """現在の設定を表示（APIキーはマスク）"""
    console.print("\n[bold cyan]現在の設定[/bold cyan]\n")

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("設定項目", style="cyan", no_wrap=True)
    table.add_column("現在値", style="white")
    table.add_column("デフォルト値", style="dim")

    for key, current_value in config.to_dict().items():
        default_value = getattr(Config, f"DEFAULT_{key.upper()}", "")

        # 値が変更されている場合は強調表示
        if default_value != "" and str(current_value) != str(default_value):
            current_value_str = f"[bold yellow]{current_value}[/bold yellow]"
        else:
            current_value_str = str(current_value)

        table.add_row(key.upper(), current_value_str, str(default_value))

    console.print(table)
    console.print("\n[dim]設定を変更するには:[/dim]")
    console.print("  [cyan]apex config set <KEY> <VALUE>[/cyan]\n")


def _set_config(key: str, value: str):
    """設定値を.envに書き込み、検証する"""
    key = key.upper()
    console.print(f"\n[cyan]設定を変更しています...[/cyan]")
    console.print(f"  {key} = {value}\n")

    env_path = Path(".env")
    env_lines = []
    key_found = False

    if env_path.exists():
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip().startswith(key + "="):
                    env_lines.append(f"{key}={value}\n")
                    key_found = True
                else:
                    env_lines.append(line)

    if not key_found:
        env_lines.append(f"{key}={value}\n")

    with open(env_path, "w", encoding="utf-8") as f:
        f.writelines(env_lines)

    console.print("[green]✓[/green] 設定を保存しました")

    try:
        get_config(env_file=str(env_path), reload=True)
        console.print("[green]✓[/green] 設定の検証に成功しました\n")
    except ConfigError as e:
        console.print(f"\n[bold red]警告:[/bold red] 設定値が不正です: {str(e)}")
        console.print("設定ファイルを確認してください\n")
        sys.exit(1)
