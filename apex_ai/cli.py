"""Apex AI CLI エントリーポイント

チャット・ChromaDB閲覧・コーパス取り込み・サーバー起動の各コマンドを
1つのapexコマンドグループにまとめます。
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .commands.chat import ask_command, chat_command
from .commands.config import config_command, serve_command, status_command
from .commands.vector import (
    collection_command,
    collections_command,
    ingest_command,
    seed_command,
)
from .utils.config import ConfigError, get_config

console = Console()


def setup_logging(verbose: bool = False):
    """ロギングの設定

    Args:
        verbose: 詳細ログを出力するか
    """
    try:
        config = get_config()
        log_level = logging.DEBUG if verbose else getattr(logging, config.log_level)
    except ConfigError:
        # 設定が読み込めない場合はデフォルト値を使用
        log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=True,
                show_path=verbose,
                markup=False,
                rich_tracebacks=True,
            )
        ],
    )


@click.group(
    name="apex",
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="詳細ログを出力",
)
@click.option(
    "--version",
    is_flag=True,
    help="バージョン情報を表示",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, version: bool):
    """Apex AI CLI Application

    ツール呼び出し付きのチャット、推論モデルとの対話、レシピ検索(RAG)、
    ChromaDBの閲覧とレシピコーパスの取り込みを行います。

    \b
    主要機能:
      • チャット (chat, ask)
      • ChromaDB閲覧 (collections, collection, seed)
      • コーパス取り込み (ingest)
      • システム管理 (serve, status, config)

    \b
    使用例:
      $ apex serve                          # Webサービスの起動
      $ apex chat                           # 対話モード開始
      $ apex chat --mode recipe             # レシピ検索モード
      $ apex ask "北京明天天气怎么样？"        # 単発の質問
      $ apex collection how-to-cook         # コレクションの閲覧

    詳細は各コマンドのヘルプを参照してください:
      $ apex <command> --help
    """
    setup_logging(verbose)

    if version:
        console.print(f"[bold cyan]Apex AI[/bold cyan] version [bold]{__version__}[/bold]")
        console.print("\nPowered by:")
        console.print("  • DeepSeek (OpenAI SDK / LangChain)")
        console.print("  • Model Context Protocol")
        console.print("  • ChromaDB")
        sys.exit(0)

    # サブコマンドが指定されていない場合はヘルプを表示
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# チャットコマンドの登録
cli.add_command(chat_command, name="chat")
cli.add_command(ask_command, name="ask")

# ベクトルストア管理コマンドの登録
cli.add_command(collections_command, name="collections")
cli.add_command(collection_command, name="collection")
cli.add_command(seed_command, name="seed")
cli.add_command(ingest_command, name="ingest")

# 設定・管理コマンドの登録
cli.add_command(serve_command, name="serve")
cli.add_command(status_command, name="status")
cli.add_command(config_command, name="config")


def main():
    """apex コマンドのエントリーポイント（pyproject.tomlのscriptsから呼び出される）"""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]処理が中断されました[/yellow]")
        sys.exit(130)  # 128 + SIGINT (2)
    except Exception as e:
        console.print(f"\n[bold red]予期しないエラーが発生しました:[/bold red] {e}")
        logging.exception("予期しないエラー")
        sys.exit(1)


if __name__ == "__main__":
    main()
