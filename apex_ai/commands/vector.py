"""ベクトルストア管理コマンドモジュール

このモジュールはChromaDBの閲覧（collections, collection）、サンプル投入（seed）、
レシピコーパスの取り込み（ingest）コマンドの実装を提供します。
"""

import json
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..rag.embeddings import ZhipuEmbeddings
from ..rag.vector_store import ChromaVectorStore, VectorStoreError
from ..services.ingest_service import IngestService
from ..utils.config import ConfigError, get_config

logger = logging.getLogger(__name__)
console = Console()

PREVIEW_WIDTH = 80


def _preview(text, width: int = PREVIEW_WIDTH) -> str:
    if text is None:
        return ""
    text = str(text).replace("\n", " ")
    return text if len(text) <= width else text[:width] + "..."


def _create_store() -> ChromaVectorStore:
    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[bold red]設定エラー:[/bold red] {str(e)}")
        sys.exit(1)
    return ChromaVectorStore(config, embeddings=ZhipuEmbeddings(config))


@click.command("collections")
def collections_command():
    """コレクション一覧を表示します"""
    store = _create_store()
    try:
        with console.status("[bold green]コレクションを取得中..."):
            collections = store.list_collections()
    except VectorStoreError as e:
        console.print(f"[bold red]エラー:[/bold red] {str(e)}")
        sys.exit(1)

    if not collections:
        console.print("[yellow]コレクションがありません[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("名前", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("メタデータ")
    for col in collections:
        metadata = json.dumps(col["metadata"], ensure_ascii=False) if col["metadata"] else ""
        table.add_row(col["name"], col["id"], metadata)

    console.print(table)
    console.print(f"\n[dim]合計: {len(collections)}件[/dim]")


@click.command("collection")
@click.argument("name", type=str)
@click.option("--offset", type=click.IntRange(min=0), default=0, show_default=True, help="取得開始位置")
@click.option("--limit", type=click.IntRange(1, 1000), default=10, show_default=True, help="取得件数")
def collection_command(name: str, offset: int, limit: int):
    """コレクションの詳細とレコードを表示します

    Example:
        $ apex collection how-to-cook
        $ apex collection how-to-cook --offset 10 --limit 10
    """
    store = _create_store()
    try:
        with console.status(f"[bold green]コレクション '{name}' を取得中..."):
            details = store.get_collection_details(name)
            records = store.get_records(name, offset=offset, limit=limit)
    except VectorStoreError as e:
        console.print(f"[bold red]エラー:[/bold red] {str(e)}")
        sys.exit(1)

    info = Table(show_header=False, box=None, padding=(0, 2))
    info.add_column("項目", style="cyan")
    info.add_column("値", style="white")
    info.add_row("名前", details["name"])
    info.add_row("ID", details["id"])
    info.add_row("レコード数", f"[bold]{details['count']}[/bold]")
    info.add_row(
        "メタデータ",
        json.dumps(details["metadata"], ensure_ascii=False) if details["metadata"] else "-"
    )
    console.print(Panel(info, title="コレクション情報", border_style="blue"))

    ids = records["ids"] or []
    documents = records["documents"] or []
    metadatas = records["metadatas"] or []
    embeddings = records["embeddings"] or []

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("ドキュメント")
    table.add_column("メタデータ", style="dim")
    table.add_column("次元", justify="right", style="green")
    for i, record_id in enumerate(ids):
        metadata = metadatas[i] if i < len(metadatas) else None
        embedding = embeddings[i] if i < len(embeddings) else None
        table.add_row(
            str(offset + i + 1),
            record_id,
            _preview(documents[i] if i < len(documents) else None),
            _preview(json.dumps(metadata, ensure_ascii=False) if metadata else None, 40),
            str(len(embedding)) if embedding else "-",
        )
    console.print(table)

    end = offset + len(ids)
    console.print(f"\n[dim]{offset + 1 if ids else offset}-{end} / {details['count']}件[/dim]")
    if end < details["count"]:
        console.print(
            f"[dim]次のページ: apex collection {name} --offset {end} --limit {limit}[/dim]"
        )


@click.command("seed")
def seed_command():
    """サンプルレシピをrecipesコレクションに投入します"""
    store = _create_store()
    try:
        with console.status("[bold green]サンプルレシピを投入中..."):
            result = store.seed_recipes()
    except VectorStoreError as e:
        console.print(f"[bold red]エラー:[/bold red] {str(e)}")
        sys.exit(1)
    console.print(f"[green]✓[/green] {result['message']} ({result['count']}件)")


@click.command("ingest")
def ingest_command():
    """how-to-cookコーパスをレシピコレクションに取り込みます

    INGEST_SOURCE_DIR 配下のMarkdownファイルを分割・ベクトル化して投入します。
    既存のコレクションは削除して作り直されます。
    """
    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[bold red]設定エラー:[/bold red] {str(e)}")
        sys.exit(1)

    console.print(
        f"\n[bold cyan]'{config.recipe_collection}' への取り込みを開始します[/bold cyan]"
        f"\n[dim]ソース: {config.get_ingest_source_path()}[/dim]\n"
    )
    result = IngestService(config).ingest_how_to_cook()

    if not result.success:
        console.print(f"[bold red]取り込みに失敗しました:[/bold red] {result.message}")
        sys.exit(1)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("項目", style="cyan")
    table.add_column("値", justify="right", style="white")
    for key, value in result.stats.to_dict().items():
        table.add_row(key.capitalize(), str(value))
    console.print(Panel(table, title="取り込み結果", border_style="green"))
