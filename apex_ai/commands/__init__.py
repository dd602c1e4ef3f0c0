"""コマンドモジュール

このパッケージはCLIアプリケーションのコマンド実装を提供します。

Modules:
    chat: チャットコマンド (chat, ask)
    vector: ベクトルストア管理コマンド (collections, collection, seed, ingest)
    config: 設定・管理コマンド (serve, status, config)
"""

from .chat import ask_command, chat_command
from .config import config_command, serve_command, status_command
from .vector import collection_command, collections_command, ingest_command, seed_command

__all__ = [
    # チャットコマンド
    'chat_command',
    'ask_command',
    # ベクトルストア管理コマンド
    'collections_command',
    'collection_command',
    'seed_command',
    'ingest_command',
    # 設定・管理コマンド
    'serve_command',
    'status_command',
    'config_command',
]
