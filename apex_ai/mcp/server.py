"""四則演算MCPサーバーのエントリーポイント（stdio トランスポート）。

stdioプロトコル経由でMCPクライアントと通信します。
チャットサービスからは子プロセスとして起動され、ツールとして利用されます。

Note: HTTP経由の業務ツールサーバーは server_http.py を使用してください。
"""

import asyncio
import logging
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server

from .handlers import MathToolHandler
from .tools import register_tools

SERVER_NAME = "mcp-math"
SERVER_VERSION = "1.0.0"


def create_math_server(handler: MathToolHandler | None = None) -> Server:
    """四則演算ツールを登録したMCPサーバーを作成します。

    Args:
        handler: ツールハンドラー（省略時は新規作成）

    Returns:
        Server: 初期化されたMCPサーバー
    """
    server = Server(SERVER_NAME, version=SERVER_VERSION)
    register_tools(server, handler or MathToolHandler())
    return server


async def main():
    """MCPサーバーを起動します。

    stdoutはMCPのメッセージ用に使用されるため、ログはstderrに出力します。
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    logger = logging.getLogger("mcp_math_server")

    try:
        server = create_math_server()
        logger.info("Math MCP Server running on stdio")

        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    except Exception as e:
        logger.error(f"MCPサーバーの起動に失敗しました: {e}", exc_info=True)
        raise


def run():
    """同期的にMCPサーバーを起動します（CLIエントリーポイント用）。

    pyproject.tomlのscriptsセクションから呼び出されます。
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nMCPサーバーを停止しました", file=sys.stderr)
    except Exception as e:
        print(f"Fatal error in main(): {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
