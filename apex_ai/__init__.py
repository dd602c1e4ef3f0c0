"""Apex AI

ツール呼び出し付きチャット、MCPツールサーバー、ChromaDB閲覧、レシピRAGを提供するデモアプリケーション。
"""

__version__ = "0.1.0"
